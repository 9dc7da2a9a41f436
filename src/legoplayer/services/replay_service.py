"""Accelerated replay of network growth from a learning item stream."""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from legoplayer.config import ReplaySettings, settings
from legoplayer.models.script_models import LearningItem
from legoplayer.models.network_models import UnitEdge
from legoplayer.monitoring import replay_steps, replays_running
from legoplayer.services.decomposer import PhraseIndex
from legoplayer.services.network_service import NetworkModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitInfo:
    """Display data for a unit, taken from its introducing round."""
    unit_id: str
    known_text: str
    target_text: str
    seed_id: str


@dataclass
class ReplayStep:
    """Progress notification sent after every replay step."""
    index: int
    item: LearningItem
    node_added: bool
    edges_added: int
    finished: bool = False


ReplayListener = Callable[[ReplayStep], None]


class ReplaySimulator:
    """Rebuilds a network from the full item queue on fixed timers.

    Steps fire every base_interval_ms / speed milliseconds. A speed change
    takes effect from the next scheduled step. Like the cycle orchestrator,
    every timer carries the generation it was scheduled under and is ignored
    once start(), stop() or seek_to() has moved the generation on.
    """

    def __init__(
        self,
        queue: Sequence[LearningItem],
        network: NetworkModel,
        edges: Iterable[UnitEdge] = (),
        unit_info: Optional[Mapping[str, UnitInfo]] = None,
        replay_settings: Optional[ReplaySettings] = None,
        phrase_index: Optional[PhraseIndex] = None,
    ):
        self.queue = list(queue)
        self.network = network
        self.unit_info = dict(unit_info or {})
        self.phrase_index = phrase_index
        self.settings = replay_settings or settings.replay
        self.base_interval_ms = self.settings.base_interval_ms

        self._adjacency: Dict[str, List[str]] = {}
        for edge in edges:
            self._adjacency.setdefault(edge.source_id, []).append(edge.target_id)
            self._adjacency.setdefault(edge.target_id, []).append(edge.source_id)

        self.index = 0
        self.speed = 1
        self.running = False
        self.steps = 0
        self.elapsed_ms = 0.0

        self._generation = 0
        self._pending: Set[asyncio.TimerHandle] = set()
        self._listeners: List[ReplayListener] = []
        self._done = asyncio.Event()
        self._done.set()

    @property
    def finished(self) -> bool:
        return self.index >= len(self.queue)

    @property
    def progress(self) -> float:
        return self.index / len(self.queue) if self.queue else 1.0

    @property
    def step_delay_ms(self) -> float:
        return self.base_interval_ms / self.speed

    def estimated_duration_ms(self) -> float:
        """Time left at the current speed."""
        return (len(self.queue) - self.index) * self.step_delay_ms

    def add_listener(self, listener: ReplayListener) -> None:
        self._listeners.append(listener)

    def set_speed(self, multiplier: int) -> None:
        """Change speed; applies from the next scheduled step."""
        if multiplier not in self.settings.speed_options:
            logger.warning(f"Invalid replay speed {multiplier}, using 1x")
            multiplier = 1
        self.speed = multiplier
        logger.debug(f"Replay speed set to {multiplier}x")

    def start(self, speed: Optional[int] = None) -> None:
        """Start or resume the replay. A finished replay starts over."""
        if self.running:
            if speed is not None:
                self.set_speed(speed)
            return
        if speed is not None:
            self.set_speed(speed)
        if self.finished:
            self.index = 0

        self._invalidate()
        self.running = True
        self._done.clear()
        replays_running.inc()
        logger.info(f"Replay started at item {self.index}/{len(self.queue)}, speed {self.speed}x")
        self._schedule_next(self._generation)

    def stop(self) -> None:
        """Stop the replay; registered nodes and edges stay in the network."""
        self._invalidate()
        if self.running:
            self.running = False
            replays_running.dec()
            logger.info(f"Replay stopped at item {self.index}/{len(self.queue)}")
        self._done.set()

    def reset(self) -> None:
        """Stop and rewind to the first item."""
        self.stop()
        self.index = 0
        self.steps = 0
        self.elapsed_ms = 0.0

    def seek_to(self, progress: float) -> None:
        """Jump to a progress point between 0 and 1.

        Every item before the new index is revealed at once, without timers
        or step notifications. Seeking backwards only moves the index: units
        already in the network stay there.
        """
        if not self.queue:
            return
        progress = max(0.0, min(1.0, progress))
        target = math.floor(progress * len(self.queue))
        for item in self.queue[:target]:
            self._reveal(item)
        self.index = target
        logger.info(f"Replay seeked to {round(progress * 100)}% (item {target}/{len(self.queue)})")

        if self.running:
            self._invalidate()
            self._schedule_next(self._generation)

    async def wait_until_done(self) -> None:
        await self._done.wait()

    def _invalidate(self) -> None:
        self._generation += 1
        for handle in self._pending:
            handle.cancel()
        self._pending.clear()

    def _schedule_next(self, token: int) -> None:
        if self.finished:
            self.stop()
            return

        delay = self.step_delay_ms
        handle: Optional[asyncio.TimerHandle] = None

        def fire() -> None:
            self._pending.discard(handle)
            if token != self._generation:
                return
            self.elapsed_ms += delay
            self._step(token)

        handle = asyncio.get_running_loop().call_later(delay / 1000, fire)
        self._pending.add(handle)

    def _step(self, token: int) -> None:
        item = self.queue[self.index]
        self.index += 1
        self.steps += 1
        replay_steps.inc()

        node_added, edges_added = self._reveal(item)
        step = ReplayStep(
            index=self.index - 1,
            item=item,
            node_added=node_added,
            edges_added=edges_added,
            finished=self.finished,
        )
        for listener in list(self._listeners):
            try:
                listener(step)
            except Exception as e:
                logger.error(f"Error in replay listener: {e}")

        if token != self._generation:
            return
        if self.finished:
            logger.info(f"Replay finished: {self.network.node_count} nodes, {self.network.edge_count} edges")
            self.stop()
            return
        self._schedule_next(token)

    def _reveal(self, item: LearningItem) -> Tuple[bool, int]:
        unit_id = item.unit_id
        if not unit_id or self.network.has_node(unit_id):
            return False, 0

        info = self.unit_info.get(unit_id)
        tier = self.network.belt_tier_for(self.network.node_count)
        self.network.register_node(
            unit_id,
            known_text=info.known_text if info else item.known_text,
            target_text=info.target_text if info else item.target_text,
            seed_id=info.seed_id if info else (item.seed_id or ""),
            birth_belt_tier=tier,
            used_in_phrases=self.phrase_index.usage(unit_id) if self.phrase_index else 0,
        )

        edges_added = 0
        for other in self._adjacency.get(unit_id, []):
            if self.network.has_node(other) and self.network.get_edge(unit_id, other) is None:
                self.network.register_edge(unit_id, other)
                edges_added += 1
        return True, edges_added
