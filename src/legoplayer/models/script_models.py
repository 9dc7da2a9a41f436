"""Models for curriculum scripts: rounds and learning items."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ItemType(Enum):
    """Kinds of learning items a round can contain."""
    INTRO = "intro"  # Presentation of a new unit, not drilled
    DEBUT = "debut"  # First practice of the new unit on its own
    DEBUT_PHRASE = "debut_phrase"  # New unit inside a phrase
    SPACED_REP = "spaced_rep"  # Review of an earlier unit
    CONSOLIDATION = "consolidation"  # Longer phrase mixing known units


@dataclass(frozen=True)
class LearningItem:
    """One playable prompt/response pair."""
    id: str
    type: ItemType
    known_text: str
    target_text: str
    round_number: int
    unit_id: Optional[str] = None
    review_of: Optional[int] = None
    seed_id: Optional[str] = None

    def to_data(self) -> Dict[str, Any]:
        """Convert to serializable data for storage."""
        return {
            "id": self.id,
            "type": self.type.value,
            "unitId": self.unit_id,
            "knownText": self.known_text,
            "targetText": self.target_text,
            "roundNumber": self.round_number,
            "reviewOf": self.review_of,
            "seedId": self.seed_id,
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "LearningItem":
        """Create a LearningItem from stored data."""
        return cls(
            id=str(data["id"]),
            type=ItemType(data["type"]),
            unit_id=data.get("unitId"),
            known_text=data.get("knownText") or "",
            target_text=data.get("targetText") or "",
            round_number=int(data["roundNumber"]),
            review_of=data.get("reviewOf"),
            seed_id=data.get("seedId"),
        )


@dataclass
class Round:
    """One curriculum pass introducing a single new unit."""
    round_number: int
    unit_id: str
    seed_id: str
    items: List[LearningItem] = field(default_factory=list)
    spaced_rep_reviews: List[int] = field(default_factory=list)

    def to_data(self) -> Dict[str, Any]:
        """Convert to serializable data for storage."""
        return {
            "roundNumber": self.round_number,
            "unitId": self.unit_id,
            "seedId": self.seed_id,
            "items": [item.to_data() for item in self.items],
            "spacedRepReviews": list(self.spaced_rep_reviews),
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "Round":
        """Create a Round from stored data."""
        return cls(
            round_number=int(data["roundNumber"]),
            unit_id=data["unitId"],
            seed_id=data.get("seedId") or "",
            items=[LearningItem.from_data(item) for item in data.get("items", [])],
            spaced_rep_reviews=list(data.get("spacedRepReviews") or []),
        )


@dataclass
class Script:
    """A generated curriculum for a course."""
    course_code: str
    rounds: List[Round] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return sum(len(r.items) for r in self.rounds)

    def to_data(self) -> Dict[str, Any]:
        """Convert to serializable data for storage."""
        return {
            "courseCode": self.course_code,
            "rounds": [r.to_data() for r in self.rounds],
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "Script":
        """Create a Script from stored data."""
        return cls(
            course_code=data.get("courseCode") or "",
            rounds=[Round.from_data(r) for r in data.get("rounds", [])],
        )
