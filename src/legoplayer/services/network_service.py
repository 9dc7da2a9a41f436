"""Graph of learned units and their co-occurrence edges."""
import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from legoplayer.config import NetworkSettings, settings
from legoplayer.models.network_models import (
    BeltTier,
    NetworkEvent,
    NetworkEventType,
    NetworkStats,
    UnitEdge,
    UnitNode,
    edge_key,
)
from legoplayer.monitoring import edges_registered, eternal_promotions, nodes_registered

logger = logging.getLogger(__name__)

NetworkListener = Callable[[NetworkEvent], None]


class UnknownUnitError(ValueError):
    """Raised when an operation references a unit that was never registered."""

    def __init__(self, unit_id: str):
        super().__init__(f"Unknown unit: {unit_id}")
        self.unit_id = unit_id


def belt_tier_for(node_count: int, network_settings: Optional[NetworkSettings] = None) -> BeltTier:
    """Map a total unit count to the highest belt whose threshold it reaches."""
    config = network_settings or settings.network
    tier = config.belt_names[0]
    for name, threshold in zip(config.belt_names, config.belt_thresholds):
        if node_count >= threshold:
            tier = name
        else:
            break
    return BeltTier(tier)


def hero_scale(node_count: int, network_settings: Optional[NetworkSettings] = None) -> float:
    """Visual weight multiplier for the focused node of a small network."""
    config = network_settings or settings.network
    for max_count, scale in config.hero_scale_steps:
        if node_count <= max_count:
            return scale
    return 1.0


class NetworkModel:
    """Mutable graph of unit nodes and undirected co-occurrence edges.

    Nodes are keyed by unit id, edges by the sorted pair of their unit ids.
    Every mutation is reported to listeners as a NetworkEvent carrying a copy
    of the affected node or edge.
    """

    def __init__(self, network_settings: Optional[NetworkSettings] = None):
        self.settings = network_settings or settings.network
        self._nodes: Dict[str, UnitNode] = {}
        self._edges: Dict[Tuple[str, str], UnitEdge] = {}
        self._listeners: List[NetworkListener] = []

    # Listeners

    def add_listener(self, listener: NetworkListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: NetworkListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event_type: NetworkEventType, node: Optional[UnitNode] = None,
              edge: Optional[UnitEdge] = None) -> None:
        event = NetworkEvent(
            type=event_type,
            node=replace(node) if node else None,
            edge=replace(edge) if edge else None,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in network listener for {event_type.value}: {e}")

    # Policy

    def belt_tier_for(self, node_count: int) -> BeltTier:
        return belt_tier_for(node_count, self.settings)

    def hero_scale(self, node_count: int) -> float:
        return hero_scale(node_count, self.settings)

    # Mutations

    def register_node(self, unit_id: str, known_text: str, target_text: str, seed_id: str,
                      birth_belt_tier: BeltTier, used_in_phrases: int = 0) -> UnitNode:
        """Insert a node with zeroed stats; an existing node is returned untouched."""
        existing = self._nodes.get(unit_id)
        if existing is not None:
            return existing

        node = UnitNode(
            id=unit_id,
            known_text=known_text,
            target_text=target_text,
            seed_id=seed_id,
            birth_belt_tier=birth_belt_tier,
            used_in_phrases=used_in_phrases,
        )
        self._nodes[unit_id] = node
        nodes_registered.inc()
        logger.debug(f"Registered node {unit_id} ({birth_belt_tier.value}), total {len(self._nodes)}")
        self._emit(NetworkEventType.NODE_ADDED, node=node)
        return node

    def restore_node(self, restored: UnitNode) -> UnitNode:
        """Insert a node loaded from persisted progress.

        Stats of an already registered node only ever move forward.
        """
        existing = self._nodes.get(restored.id)
        if existing is None:
            node = replace(restored)
            self._nodes[node.id] = node
            nodes_registered.inc()
            self._emit(NetworkEventType.NODE_ADDED, node=node)
            return node

        existing.total_practices = max(existing.total_practices, restored.total_practices)
        existing.mastery_score = max(existing.mastery_score, restored.mastery_score)
        if restored.is_eternal and not existing.is_eternal:
            existing.is_eternal = True
            self._emit(NetworkEventType.NODE_PROMOTED, node=existing)
        return existing

    def register_edge(self, a: str, b: str) -> UnitEdge:
        """Create the edge between a and b, or strengthen it by one."""
        if a == b:
            raise ValueError(f"Cannot connect unit {a} to itself")
        for unit_id in (a, b):
            if unit_id not in self._nodes:
                raise UnknownUnitError(unit_id)

        key = edge_key(a, b)
        edge = self._edges.get(key)
        if edge is None:
            edge = UnitEdge(source_id=key[0], target_id=key[1], count=1)
            self._edges[key] = edge
            edges_registered.inc()
            self._emit(NetworkEventType.EDGE_ADDED, edge=edge)
        else:
            edge.count += 1
            self._emit(NetworkEventType.EDGE_STRENGTHENED, edge=edge)
        return edge

    def register_practice(self, unit_id: str, delta: int = 1) -> UnitNode:
        """Record practice of a unit and re-evaluate eternal promotion."""
        if delta < 0:
            raise ValueError("Practice delta cannot be negative")
        node = self._nodes.get(unit_id)
        if node is None:
            raise UnknownUnitError(unit_id)

        node.total_practices += delta
        node.mastery_score = min(1.0, node.mastery_score + self.settings.mastery_step * delta)

        if (not node.is_eternal
                and node.total_practices > self.settings.eternal_min_practices
                and node.mastery_score > self.settings.eternal_min_mastery):
            node.is_eternal = True
            eternal_promotions.inc()
            logger.info(f"Unit {unit_id} promoted to eternal after {node.total_practices} practices")
            self._emit(NetworkEventType.NODE_PROMOTED, node=node)
        return node

    # Queries

    def has_node(self, unit_id: str) -> bool:
        return unit_id in self._nodes

    def get_node(self, unit_id: str) -> Optional[UnitNode]:
        return self._nodes.get(unit_id)

    def get_edge(self, a: str, b: str) -> Optional[UnitEdge]:
        return self._edges.get(edge_key(a, b))

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def nodes(self) -> List[UnitNode]:
        return list(self._nodes.values())

    def edges(self) -> List[UnitEdge]:
        return list(self._edges.values())

    def neighbors(self, unit_id: str) -> List[Tuple[str, int]]:
        """Units connected to unit_id with their edge counts, strongest first."""
        result = []
        for edge in self._edges.values():
            other = edge.other(unit_id)
            if other is not None:
                result.append((other, edge.count))
        result.sort(key=lambda pair: (-pair[1], pair[0]))
        return result

    def stats(self) -> NetworkStats:
        total_strength = sum(e.count for e in self._edges.values())
        return NetworkStats(
            total_nodes=len(self._nodes),
            total_edges=len(self._edges),
            total_edge_strength=total_strength,
            avg_edge_strength=total_strength / len(self._edges) if self._edges else 0.0,
            eternal_nodes=sum(1 for n in self._nodes.values() if n.is_eternal),
        )

    def snapshot(self) -> Dict[str, List[dict]]:
        """Plain-data copy of the whole network."""
        return {
            "nodes": [n.to_data() for n in self._nodes.values()],
            "edges": [e.to_data() for e in self._edges.values()],
        }
