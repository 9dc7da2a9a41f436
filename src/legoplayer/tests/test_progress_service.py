"""Tests for progress persistence."""
import pytest
from sqlalchemy.orm import Session

from legoplayer.config import NetworkSettings
from legoplayer.models.network_models import BeltTier, UnitNode
from legoplayer.services.network_service import NetworkModel
from legoplayer.services.progress_service import ProgressService


@pytest.fixture
def service(db: Session) -> ProgressService:
    return ProgressService(db)


def node(unit_id: str, practices: int = 0, mastery: float = 0.0, eternal: bool = False,
         tier: BeltTier = BeltTier.WHITE) -> UnitNode:
    return UnitNode(unit_id, "I want", "quiero", "S0001", tier, practices, mastery, eternal)


def test_save_and_load(service: ProgressService) -> None:
    saved = service.save_nodes("spa", [node("U1", 3, 0.15), node("U2", tier=BeltTier.YELLOW)])

    assert saved == 2
    loaded = service.load_nodes("spa")
    assert [n.id for n in loaded] == ["U1", "U2"]
    assert loaded[0].total_practices == 3
    assert loaded[0].mastery_score == pytest.approx(0.15)
    assert loaded[1].birth_belt_tier is BeltTier.YELLOW
    assert service.load_nodes("fra") == []


def test_progress_never_goes_backward(service: ProgressService) -> None:
    service.save_nodes("spa", [node("U1", 40, 0.9, eternal=True)])
    service.save_nodes("spa", [node("U1", 2, 0.1)])

    row = service.get_progress("spa", "U1")
    assert row.total_practices == 40
    assert row.mastery_score == pytest.approx(0.9)
    assert row.is_eternal is True

    service.save_nodes("spa", [node("U1", 41, 0.95, eternal=True)])
    assert service.get_progress("spa", "U1").total_practices == 41


def test_restore_into_network(service: ProgressService) -> None:
    service.save_nodes("spa", [node("U1", 12, 0.6), node("U2", 1, 0.05)])
    network = NetworkModel(NetworkSettings())
    network.register_node("U2", "to speak", "hablar", "S0001", BeltTier.WHITE)
    network.register_practice("U2", 5)

    restored = service.restore_into("spa", network)

    assert restored == 2
    assert network.get_node("U1").total_practices == 12
    assert network.get_node("U2").total_practices == 5
    assert network.edge_count == 0


def test_save_network_and_reset(service: ProgressService) -> None:
    network = NetworkModel(NetworkSettings())
    network.register_node("U1", "I want", "quiero", "S0001", BeltTier.WHITE)
    network.register_practice("U1", 2)

    assert service.save_network("spa", network) == 1
    service.save_nodes("fra", [node("U1")])

    assert service.reset("spa") == 1
    assert service.get_progress("spa", "U1") is None
    assert service.get_progress("fra", "U1") is not None
