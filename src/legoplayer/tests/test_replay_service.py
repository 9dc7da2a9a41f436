"""Tests for the replay simulator."""
import asyncio

import pytest

from conftest import sample_rounds, wait_for
from legoplayer.config import NetworkSettings, ReplaySettings
from legoplayer.models.network_models import BeltTier, NetworkEventType, UnitEdge
from legoplayer.services.network_service import NetworkModel
from legoplayer.services.replay_service import ReplaySimulator, UnitInfo
from legoplayer.services.session_service import collect_units, flatten_rounds

FAST = ReplaySettings(base_interval_ms=1)

EDGES = [
    UnitEdge("S0001L01", "S0001L02", 2),
    UnitEdge("S0001L02", "S0002L01", 2),
]


def make_replay(network=None, edges=EDGES, replay_settings=FAST) -> ReplaySimulator:
    rounds = sample_rounds()
    return ReplaySimulator(
        flatten_rounds(rounds),
        network or NetworkModel(NetworkSettings()),
        edges=edges,
        unit_info=collect_units(rounds),
        replay_settings=replay_settings,
    )


async def run(replay: ReplaySimulator, speed=None) -> None:
    replay.start(speed)
    await asyncio.wait_for(replay.wait_until_done(), timeout=2)


@pytest.mark.asyncio
async def test_full_run_registers_each_unit_once() -> None:
    network = NetworkModel(NetworkSettings())
    events = []
    network.add_listener(events.append)
    replay = make_replay(network)
    steps = []
    replay.add_listener(steps.append)

    await run(replay)

    assert network.node_count == 3
    assert network.edge_count == 2
    assert [e.type for e in events].count(NetworkEventType.NODE_ADDED) == 3
    assert [e.type for e in events].count(NetworkEventType.EDGE_STRENGTHENED) == 0
    assert len(steps) == len(replay.queue)
    assert [s.node_added for s in steps].count(True) == 3
    assert steps[-1].finished is True
    assert replay.finished and not replay.running
    assert replay.progress == 1.0

    node = network.get_node("S0001L01")
    assert node.target_text == "quiero"
    assert node.seed_id == "S0001"
    assert node.total_practices == 0


@pytest.mark.asyncio
async def test_stop_and_resume_adds_no_duplicates() -> None:
    network = NetworkModel(NetworkSettings())
    events = []
    network.add_listener(events.append)
    replay = make_replay(network)

    replay.start()
    await wait_for(lambda: replay.index >= 4)
    replay.stop()
    stopped_at = replay.index
    assert not replay.running

    await asyncio.sleep(0.02)
    assert replay.index == stopped_at

    await run(replay)

    assert replay.finished
    assert network.node_count == 3
    assert network.edge_count == 2
    assert [e.type for e in events].count(NetworkEventType.NODE_ADDED) == 3


@pytest.mark.asyncio
async def test_restart_cancels_pending_step() -> None:
    replay = make_replay(replay_settings=ReplaySettings(base_interval_ms=50))
    steps = []
    replay.add_listener(steps.append)

    replay.start()
    replay.stop()
    replay.start()
    await asyncio.sleep(0.075)

    assert len(steps) == 1
    replay.stop()


@pytest.mark.asyncio
async def test_speed_change_applies_to_next_step() -> None:
    baseline = make_replay()
    await run(baseline)

    faster = make_replay()

    def speed_up(step):
        if step.index == 4:
            faster.set_speed(8)

    faster.add_listener(speed_up)
    await run(faster)

    assert faster.speed == 8
    assert faster.network.node_count == baseline.network.node_count
    assert faster.elapsed_ms < baseline.elapsed_ms
    assert baseline.elapsed_ms == pytest.approx(len(baseline.queue) * 1)


def test_invalid_speed_falls_back_to_normal() -> None:
    replay = make_replay(replay_settings=ReplaySettings(base_interval_ms=35))

    replay.set_speed(4)
    assert replay.step_delay_ms == pytest.approx(8.75)

    replay.set_speed(3)
    assert replay.speed == 1
    assert replay.step_delay_ms == 35
    assert replay.estimated_duration_ms() == pytest.approx(35 * len(replay.queue))


@pytest.mark.asyncio
async def test_unit_without_edges_is_isolated() -> None:
    replay = make_replay(edges=[UnitEdge("S0001L01", "S0001L02", 1)])

    await run(replay)

    assert replay.network.has_node("S0002L01")
    assert replay.network.neighbors("S0002L01") == []
    assert replay.network.edge_count == 1


@pytest.mark.asyncio
async def test_finished_replay_starts_over() -> None:
    replay = make_replay()
    await run(replay)
    steps = []
    replay.add_listener(steps.append)

    await run(replay)

    assert len(steps) == len(replay.queue)
    assert all(not s.node_added for s in steps)
    assert replay.network.node_count == 3


@pytest.mark.asyncio
async def test_birth_tiers_follow_node_count() -> None:
    network = NetworkModel(NetworkSettings(belt_thresholds=[0, 1, 2, 3, 4, 5, 6, 7]))
    replay = make_replay(network)

    await run(replay)

    assert [n.birth_belt_tier for n in network.nodes()] == [BeltTier.WHITE, BeltTier.YELLOW, BeltTier.ORANGE]


@pytest.mark.asyncio
async def test_missing_unit_info_uses_item_text() -> None:
    rounds = sample_rounds()
    info = {"S0001L01": UnitInfo("S0001L01", "I want (display)", "quiero", "S0001")}
    replay = ReplaySimulator(flatten_rounds(rounds), NetworkModel(NetworkSettings()), unit_info=info,
                             replay_settings=FAST)

    await run(replay)

    assert replay.network.get_node("S0001L01").known_text == "I want (display)"
    assert replay.network.get_node("S0001L02").target_text == "hablar"
    assert replay.network.edge_count == 0


@pytest.mark.asyncio
async def test_elapsed_time_counts_only_fired_steps() -> None:
    replay = make_replay(replay_settings=ReplaySettings(base_interval_ms=50))

    replay.start()
    replay.stop()
    replay.start()
    replay.stop()
    assert replay.steps == 0
    assert replay.elapsed_ms == 0

    fast = make_replay()
    fast.start()
    await wait_for(lambda: fast.index >= 3)
    fast.stop()
    await run(fast)

    assert fast.steps == len(fast.queue)
    assert fast.elapsed_ms == pytest.approx(fast.steps * 1)


@pytest.mark.asyncio
async def test_seek_reveals_items_before_target() -> None:
    replay = make_replay()

    replay.seek_to(0.5)

    assert replay.index == 4
    assert replay.network.node_count == 2
    assert replay.network.get_edge("S0001L01", "S0001L02") is not None
    assert replay.steps == 0

    replay.seek_to(7)
    assert replay.finished
    assert replay.network.node_count == 3
    assert replay.network.edge_count == 2

    replay.seek_to(-1)
    assert replay.index == 0
    assert replay.network.node_count == 3

    await run(replay)
    assert replay.network.node_count == 3
    assert replay.network.get_edge("S0001L01", "S0001L02").count == 1


@pytest.mark.asyncio
async def test_seek_while_running_continues_from_target() -> None:
    replay = make_replay(replay_settings=ReplaySettings(base_interval_ms=50))
    steps = []
    replay.add_listener(steps.append)

    replay.start()
    replay.seek_to(1.0)
    await asyncio.wait_for(replay.wait_until_done(), timeout=1)

    assert steps == []
    assert replay.finished and not replay.running
    assert replay.network.node_count == 3
