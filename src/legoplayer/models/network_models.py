"""Models for the unit network: nodes, edges and belt tiers."""
from dataclasses import dataclass, asdict
from enum import Enum
from functools import total_ordering
from typing import Any, Dict, Optional, Tuple


@total_ordering
class BeltTier(Enum):
    """Coarse progress classification, ordered white to black."""
    WHITE = "white"
    YELLOW = "yellow"
    ORANGE = "orange"
    GREEN = "green"
    BLUE = "blue"
    PURPLE = "purple"
    BROWN = "brown"
    BLACK = "black"

    @property
    def rank(self) -> int:
        return list(BeltTier).index(self)

    def __lt__(self, other: "BeltTier") -> bool:
        if not isinstance(other, BeltTier):
            return NotImplemented
        return self.rank < other.rank


@dataclass
class UnitNode:
    """A learned unit and its practice statistics."""
    id: str
    known_text: str
    target_text: str
    seed_id: str
    birth_belt_tier: BeltTier
    total_practices: int = 0
    mastery_score: float = 0.0
    is_eternal: bool = False
    used_in_phrases: int = 0  # Phrases of the course containing this unit

    def to_data(self) -> Dict[str, Any]:
        data = asdict(self)
        data["birth_belt_tier"] = self.birth_belt_tier.value
        return data


def edge_key(a: str, b: str) -> Tuple[str, str]:
    """Canonical key of the unordered pair (a, b)."""
    return (a, b) if a <= b else (b, a)


@dataclass
class UnitEdge:
    """Undirected co-occurrence edge between two units."""
    source_id: str
    target_id: str
    count: int = 1

    @property
    def key(self) -> Tuple[str, str]:
        return edge_key(self.source_id, self.target_id)

    def other(self, unit_id: str) -> Optional[str]:
        """Return the opposite end of the edge, or None if unit_id is not on it."""
        if unit_id == self.source_id:
            return self.target_id
        if unit_id == self.target_id:
            return self.source_id
        return None

    def to_data(self) -> Dict[str, Any]:
        return asdict(self)


class NetworkEventType(Enum):
    """Mutation notifications for incremental re-rendering."""
    NODE_ADDED = "node_added"
    EDGE_ADDED = "edge_added"
    EDGE_STRENGTHENED = "edge_strengthened"
    NODE_PROMOTED = "node_promoted"  # Unit became eternal


@dataclass
class NetworkEvent:
    """Event delivered to network listeners."""
    type: NetworkEventType
    node: Optional[UnitNode] = None
    edge: Optional[UnitEdge] = None


@dataclass
class NetworkStats:
    """Summary of a network's size and strength."""
    total_nodes: int
    total_edges: int
    total_edge_strength: int
    avg_edge_strength: float
    eternal_nodes: int


@dataclass(frozen=True)
class PhrasePath:
    """A phrase and the ordered units it decomposes into."""
    target_text: str
    unit_path: Tuple[str, ...]
