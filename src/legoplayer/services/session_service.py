"""Learning session: wires the content provider, cycle and network together."""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from legoplayer.config import PlaybackSettings
from legoplayer.models.cycle_models import CycleEvent, CycleEventType
from legoplayer.models.network_models import PhrasePath, UnitEdge
from legoplayer.models.script_models import ItemType, LearningItem, Round, Script
from legoplayer.services.audio_service import AudioResolver, BaseAudioPlayer
from legoplayer.services.cycle_service import CycleOrchestrator
from legoplayer.services.decomposer import PhraseIndex, adjacent_pairs, build_edge_set, build_vocabulary, decompose
from legoplayer.services.network_service import NetworkModel
from legoplayer.services.progress_service import ProgressService
from legoplayer.services.replay_service import ReplaySimulator, UnitInfo
from legoplayer.services.script_cache import ScriptCache

logger = logging.getLogger(__name__)

# Item types whose target text is the unit itself
UNIT_ITEM_TYPES = (ItemType.INTRO, ItemType.DEBUT)


class ScriptValidationError(ValueError):
    """Raised when a script breaks the round ordering rules."""


class ContentProvider(ABC):
    """Generates curriculum scripts. The selection policy is opaque here."""

    @abstractmethod
    def generate_script(self, config: Dict[str, Any], max_units: int) -> Script:
        """Generate a script introducing at most max_units units."""


class JsonScriptProvider(ContentProvider):
    """Reads a pre-generated script from a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def generate_script(self, config: Dict[str, Any], max_units: int) -> Script:
        with self.path.open(encoding="utf-8") as f:
            data = json.load(f)
        script = Script.from_data(data)
        if config.get("course_code"):
            script.course_code = config["course_code"]
        script.rounds = script.rounds[:max_units]
        logger.info(f"Loaded {len(script.rounds)} rounds from {self.path}")
        return script


def flatten_rounds(rounds: Sequence[Round]) -> List[LearningItem]:
    """Flatten rounds into the play queue, checking round ordering."""
    queue: List[LearningItem] = []
    previous: Optional[int] = None
    for r in rounds:
        if previous is not None and r.round_number <= previous:
            raise ScriptValidationError(
                f"Round numbers must be strictly increasing: {r.round_number} follows {previous}"
            )
        previous = r.round_number
        queue.extend(r.items)
    return queue


def collect_units(rounds: Sequence[Round]) -> Dict[str, UnitInfo]:
    """Unit display data, taken from each round's intro or debut item."""
    units: Dict[str, UnitInfo] = {}
    for r in rounds:
        if not r.unit_id or r.unit_id in units:
            continue
        source = next((item for item in r.items if item.type in UNIT_ITEM_TYPES), None)
        units[r.unit_id] = UnitInfo(
            unit_id=r.unit_id,
            known_text=source.known_text if source else "",
            target_text=source.target_text if source else r.unit_id,
            seed_id=r.seed_id,
        )
    return units


class LearningSession:
    """One learner playing one course.

    Completed items feed the network: every unit found in the item's target
    text is registered on first encounter, practiced (intro items are only
    presented, not practiced) and linked to its neighbors in the phrase.
    """

    def __init__(
        self,
        course_code: str,
        provider: ContentProvider,
        resolver: AudioResolver,
        player: BaseAudioPlayer,
        network: Optional[NetworkModel] = None,
        cache: Optional[ScriptCache] = None,
        progress: Optional[ProgressService] = None,
        exploratory: bool = False,
        playback_settings: Optional[PlaybackSettings] = None,
    ):
        self.course_code = course_code
        self.provider = provider
        self.network = network or NetworkModel()
        self.cache = cache
        self.progress = progress
        self.orchestrator = CycleOrchestrator(resolver, player, playback_settings, exploratory=exploratory)
        self.orchestrator.add_listener(self._on_cycle_event)

        self.script: Optional[Script] = None
        self.queue: List[LearningItem] = []
        self.units: Dict[str, UnitInfo] = {}
        self.vocabulary: Dict[str, str] = {}
        self.edges: List[UnitEdge] = []
        self.phrase_index = PhraseIndex()

    def cache_key(self, max_units: int) -> str:
        return f"{self.course_code}-{max_units}"

    def load(self, config: Optional[Dict[str, Any]] = None, max_units: int = 50) -> Script:
        """Load the script through the cache and prepare the play queue."""
        config = dict(config or {})
        config.setdefault("course_code", self.course_code)
        key = self.cache_key(max_units)

        script = None
        if self.cache is not None:
            data = self.cache.get(key)
            if data is not None:
                try:
                    script = Script.from_data(data)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Ignoring unreadable cached script {key}: {e}")

        if script is None:
            script = self.provider.generate_script(config, max_units)
            self._prepare(script)
            if self.cache is not None:
                self.cache.put(key, script.to_data())
        else:
            self._prepare(script)

        if self.progress is not None:
            self.progress.restore_into(self.course_code, self.network)
            for node in self.network.nodes():
                node.used_in_phrases = self.phrase_index.usage(node.id)
        return script

    def _prepare(self, script: Script) -> None:
        self.queue = flatten_rounds(script.rounds)
        self.script = script
        self.units = collect_units(script.rounds)
        self.vocabulary = build_vocabulary((u.target_text, u.unit_id) for u in self.units.values())
        phrases = [item.target_text for item in self.queue if item.type not in UNIT_ITEM_TYPES]
        self.edges = build_edge_set(phrases, self.vocabulary)
        self.phrase_index = PhraseIndex.build(phrases, self.vocabulary)
        logger.info(
            f"Prepared {len(self.queue)} items, {len(self.units)} units, "
            f"{len(self.edges)} connections for {self.course_code}"
        )

    def start(self, start_index: int = 0) -> int:
        if self.script is None:
            raise RuntimeError("No script loaded; call load() first")
        return self.orchestrator.start(self.queue, start_index)

    def stop(self) -> None:
        self.orchestrator.stop()

    async def play(self, start_index: int = 0) -> None:
        """Play the queue to the end (or until stopped)."""
        self.start(start_index)
        await self.orchestrator.wait_until_idle()

    def create_replay(self, network: Optional[NetworkModel] = None) -> ReplaySimulator:
        """Replay simulator rebuilding network growth from this session's queue."""
        if self.script is None:
            raise RuntimeError("No script loaded; call load() first")
        return ReplaySimulator(
            self.queue,
            network if network is not None else NetworkModel(self.network.settings),
            edges=self.edges,
            unit_info=self.units,
            phrase_index=self.phrase_index,
        )

    def phrases_for(self, unit_id: str, limit: int = 20) -> List[PhrasePath]:
        """Course phrases using a unit, simplest first."""
        return self.phrase_index.phrases_for(unit_id, limit)

    def units_for(self, item: LearningItem) -> List[str]:
        """Units an item exercises, in phrase order."""
        unit_ids = decompose(item.target_text, self.vocabulary)
        if not unit_ids and item.unit_id:
            unit_ids = [item.unit_id]
        return unit_ids

    def record_item(self, item: LearningItem) -> None:
        """Apply a completed item to the network."""
        unit_ids = self.units_for(item)
        for unit_id in unit_ids:
            self._ensure_node(unit_id, item)

        if item.type is ItemType.INTRO:
            return

        for unit_id in unit_ids:
            self.network.register_practice(unit_id)
        for a, b in adjacent_pairs(unit_ids):
            self.network.register_edge(a, b)

    def _ensure_node(self, unit_id: str, item: LearningItem) -> None:
        if self.network.has_node(unit_id):
            return
        info = self.units.get(unit_id)
        self.network.register_node(
            unit_id,
            known_text=info.known_text if info else item.known_text,
            target_text=info.target_text if info else item.target_text,
            seed_id=info.seed_id if info else (item.seed_id or ""),
            birth_belt_tier=self.network.belt_tier_for(self.network.node_count),
            used_in_phrases=self.phrase_index.usage(unit_id),
        )

    def save_progress(self) -> None:
        if self.progress is not None:
            self.progress.save_network(self.course_code, self.network)

    def _on_cycle_event(self, event: CycleEvent) -> None:
        if event.type is CycleEventType.ITEM_COMPLETED and event.item is not None:
            self.record_item(event.item)
        elif event.type in (CycleEventType.FINISHED, CycleEventType.STOPPED):
            self.save_progress()
