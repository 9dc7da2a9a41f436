"""Service for persisting unit progress between sessions."""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from legoplayer.models.models import UnitProgress
from legoplayer.models.network_models import BeltTier, UnitNode
from legoplayer.services.network_service import NetworkModel

logger = logging.getLogger(__name__)


class ProgressService:
    """Stores node statistics per course. Progress never goes backward."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_progress(self, course_code: str, unit_id: str) -> Optional[UnitProgress]:
        return (
            self.db.query(UnitProgress)
            .filter(
                and_(
                    UnitProgress.course_code == course_code,
                    UnitProgress.unit_id == unit_id,
                )
            )
            .first()
        )

    def save_nodes(self, course_code: str, nodes: Iterable[UnitNode]) -> int:
        """Upsert node stats, keeping the highest values already stored."""
        saved = 0
        for node in nodes:
            row = self.get_progress(course_code, node.id)
            if row is None:
                row = UnitProgress(
                    course_code=course_code,
                    unit_id=node.id,
                    seed_id=node.seed_id,
                    known_text=node.known_text,
                    target_text=node.target_text,
                    birth_belt_tier=node.birth_belt_tier.value,
                    total_practices=node.total_practices,
                    mastery_score=node.mastery_score,
                    is_eternal=node.is_eternal,
                )
                self.db.add(row)
            else:
                row.total_practices = max(row.total_practices or 0, node.total_practices)
                row.mastery_score = max(row.mastery_score or 0.0, node.mastery_score)
                row.is_eternal = bool(row.is_eternal) or node.is_eternal
            saved += 1
        self.db.commit()
        logger.info(f"Saved progress for {saved} units of course {course_code}")
        return saved

    def save_network(self, course_code: str, network: NetworkModel) -> int:
        return self.save_nodes(course_code, network.nodes())

    def load_nodes(self, course_code: str) -> List[UnitNode]:
        rows = (
            self.db.query(UnitProgress)
            .filter(UnitProgress.course_code == course_code)
            .order_by(UnitProgress.id)
            .all()
        )
        return [
            UnitNode(
                id=row.unit_id,
                known_text=row.known_text,
                target_text=row.target_text,
                seed_id=row.seed_id,
                birth_belt_tier=BeltTier(row.birth_belt_tier),
                total_practices=row.total_practices or 0,
                mastery_score=row.mastery_score or 0.0,
                is_eternal=bool(row.is_eternal),
            )
            for row in rows
        ]

    def restore_into(self, course_code: str, network: NetworkModel) -> int:
        """Restore persisted nodes into a network; returns how many were loaded."""
        nodes = self.load_nodes(course_code)
        for node in nodes:
            network.restore_node(node)
        logger.info(f"Restored {len(nodes)} units for course {course_code}")
        return len(nodes)

    def reset(self, course_code: str) -> int:
        """Forget all progress for a course."""
        removed = (
            self.db.query(UnitProgress)
            .filter(UnitProgress.course_code == course_code)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Reset progress for course {course_code}: {removed} units removed")
        return removed
