"""Service driving learning items through the audio phase cycle."""
import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Set

from legoplayer.config import PlaybackSettings, settings
from legoplayer.models.audio_models import AudioReference, AudioRole
from legoplayer.models.cycle_models import TEXT_VISIBILITY, CycleEvent, CycleEventType, CyclePhase, TextVisibility
from legoplayer.models.script_models import ItemType, LearningItem
from legoplayer.monitoring import cycles_started, cycles_stopped, items_completed, phase_errors
from legoplayer.services.audio_service import AudioResolver, BaseAudioPlayer, MissingAudioError

logger = logging.getLogger(__name__)

CycleListener = Callable[[CycleEvent], None]
AudioDone = Callable[[int, Optional[BaseException]], None]


class CycleOrchestrator:
    """Plays a queue of learning items one cycle at a time.

    Each item runs Prompt -> Pause -> Voice1 -> Voice2, then a short gap
    before the next item. Intro items stop after Pause.

    Every asynchronous continuation (audio completion or timer) captures the
    generation that was current when it was scheduled and does nothing if the
    generation has moved on. start(), stop() and skip_phase() are the only
    places that move it, so a superseded cycle can never emit events or touch
    the player again.
    """

    def __init__(
        self,
        resolver: AudioResolver,
        player: BaseAudioPlayer,
        playback_settings: Optional[PlaybackSettings] = None,
        exploratory: bool = False,
    ):
        self.resolver = resolver
        self.player = player
        self.settings = playback_settings or settings.playback
        self.pause_multiplier = self.settings.exploratory_pause_multiplier if exploratory else 1.0

        self.phase = CyclePhase.IDLE
        self.queue: List[LearningItem] = []
        self.index = 0
        self.current_item: Optional[LearningItem] = None

        self._generation = 0
        self._pending: Set[asyncio.TimerHandle] = set()
        self._audio_task: Optional[asyncio.Future] = None
        self._listeners: List[CycleListener] = []
        self._idle = asyncio.Event()
        self._idle.set()

    # Public API

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_playing(self) -> bool:
        return self.phase is not CyclePhase.IDLE

    def add_listener(self, listener: CycleListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: CycleListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self, queue: Sequence[LearningItem], start_index: int = 0) -> int:
        """Invalidate any running cycle and start playing queue at start_index.

        Must be called from a running event loop. Returns the generation of
        the new run.
        """
        if start_index < 0 or start_index > len(queue):
            raise ValueError(f"start_index {start_index} out of range for queue of {len(queue)}")

        self._invalidate()
        self.phase = CyclePhase.IDLE
        self.queue = list(queue)
        self.index = start_index
        self.current_item = None
        self._idle.clear()

        token = self._generation
        cycles_started.inc()
        logger.info(f"Starting cycle run {token} with {len(self.queue) - start_index} items")
        self._begin_item(token)
        return token

    def stop(self) -> None:
        """Halt playback and timers synchronously and return to Idle."""
        was_active = self.phase is not CyclePhase.IDLE
        self._invalidate()
        if was_active:
            cycles_stopped.inc()
            logger.info(f"Cycle run stopped at item {self.index}")
            self._set_phase(CyclePhase.IDLE)
        self.current_item = None
        self._emit(CycleEventType.STOPPED)
        self._idle.set()

    def skip_phase(self) -> None:
        """Cut the current phase short and move on to the next one.

        Does nothing while idle or during the gap between items.
        """
        item = self.current_item
        if self.phase is CyclePhase.IDLE or item is None:
            return

        skipped = self.phase
        self._invalidate()
        token = self._generation
        logger.debug(f"Skipping {skipped.value} of item {item.id}")

        if skipped is CyclePhase.PROMPT:
            self._enter_pause(token)
        elif skipped is CyclePhase.PAUSE:
            if item.type is ItemType.INTRO:
                self._complete_item(token)
            else:
                self._enter_voice1(token)
        elif skipped is CyclePhase.VOICE_1:
            self._enter_voice2(token)
        else:
            self._complete_item(token)

    @property
    def text_visibility(self) -> TextVisibility:
        """Texts to show for the current phase."""
        return TEXT_VISIBILITY[self.phase]

    async def wait_until_idle(self) -> None:
        """Wait until the queue is exhausted or the run is stopped."""
        await self._idle.wait()

    def pause_duration_for(self, item: LearningItem) -> float:
        """Thinking gap in milliseconds for an item."""
        config = self.settings
        base = config.pause_duration_ms * self.pause_multiplier
        if not config.pause_adapts_to_phrase_length:
            return base

        extra_words = max(0, len(item.target_text.split()) - 3)
        adapted = base + extra_words * config.pause_per_extra_word_ms
        return min(max(adapted, config.min_pause_ms * self.pause_multiplier),
                   config.max_pause_ms * self.pause_multiplier)

    # Phase handlers

    def _begin_item(self, token: int) -> None:
        if self.index >= len(self.queue):
            self._finish()
            return

        item = self.queue[self.index]
        self.current_item = item
        if not self._enter(token, CyclePhase.PROMPT):
            return

        if item.type is ItemType.INTRO:
            ref = self.resolver.resolve(item.unit_id, AudioRole.INTRO)
        else:
            ref = self.resolver.resolve(item.known_text, AudioRole.KNOWN)

        if ref is None:
            logger.debug(f"No prompt audio for item {item.id}, continuing to pause")
            self._enter_pause(token)
            return
        self._play(token, ref, self._after_prompt)

    def _after_prompt(self, token: int, error: Optional[BaseException]) -> None:
        if error is not None:
            self._report_error(error)
            if not self._is_current(token):
                return
        self._enter_pause(token)

    def _enter_pause(self, token: int) -> None:
        if not self._enter(token, CyclePhase.PAUSE):
            return
        item = self.current_item
        follow_up = self._complete_item if item.type is ItemType.INTRO else self._enter_voice1
        self._schedule(token, self.pause_duration_for(item), follow_up)

    def _enter_voice1(self, token: int) -> None:
        if not self._enter(token, CyclePhase.VOICE_1):
            return
        item = self.current_item
        ref = self.resolver.resolve(item.target_text, AudioRole.TARGET1)
        if ref is None:
            self._abort(token, MissingAudioError(item.target_text, AudioRole.TARGET1))
            return
        self._play(token, ref, self._after_voice1)

    def _after_voice1(self, token: int, error: Optional[BaseException]) -> None:
        if error is not None:
            self._abort(token, error)
            return
        self._enter_voice2(token)

    def _enter_voice2(self, token: int) -> None:
        if not self._enter(token, CyclePhase.VOICE_2):
            return
        ref = self.resolver.resolve(self.current_item.target_text, AudioRole.TARGET2)
        if ref is None:
            logger.debug(f"No second voice for item {self.current_item.id}")
            self._complete_item(token)
            return
        self._play(token, ref, self._after_voice2)

    def _after_voice2(self, token: int, error: Optional[BaseException]) -> None:
        if error is not None:
            self._report_error(error)
            if not self._is_current(token):
                return
        self._complete_item(token)

    def _complete_item(self, token: int) -> None:
        item = self.current_item
        completed_index = self.index
        self.index += 1
        items_completed.labels(item_type=item.type.value).inc()
        self._emit(CycleEventType.ITEM_COMPLETED, item=item, index=completed_index)
        if not self._is_current(token):
            return
        self.current_item = None
        self._schedule(token, self.settings.transition_gap_ms, self._begin_item)

    def _finish(self) -> None:
        logger.info(f"Cycle run {self._generation} finished after {self.index} items")
        self.current_item = None
        self._set_phase(CyclePhase.IDLE)
        self._emit(CycleEventType.FINISHED)
        self._idle.set()

    def _abort(self, token: int, error: BaseException) -> None:
        """Voice1 is mandatory: report and stop the whole run."""
        self._report_error(error)
        if self._is_current(token):
            self.stop()

    # Plumbing

    def _is_current(self, token: int) -> bool:
        return token == self._generation

    def _enter(self, token: int, phase: CyclePhase) -> bool:
        """Switch phase and tell whether the run survived the listeners."""
        self._set_phase(phase)
        return self._is_current(token)

    def _set_phase(self, phase: CyclePhase) -> None:
        self.phase = phase
        self._emit(CycleEventType.PHASE_CHANGED, item=self.current_item)

    def _invalidate(self) -> None:
        self._generation += 1
        for handle in self._pending:
            handle.cancel()
        self._pending.clear()
        # A task that has not started yet must never reach player.play()
        if self._audio_task is not None and not self._audio_task.done():
            self._audio_task.cancel()
        self._audio_task = None
        self.player.stop()

    def _schedule(self, token: int, delay_ms: float, callback: Callable[[int], None]) -> None:
        loop = asyncio.get_running_loop()
        handle: Optional[asyncio.TimerHandle] = None

        def fire() -> None:
            self._pending.discard(handle)
            if not self._is_current(token):
                return
            callback(token)

        handle = loop.call_later(max(0.0, delay_ms) / 1000, fire)
        self._pending.add(handle)

    def _play(self, token: int, ref: AudioReference, on_done: AudioDone) -> None:
        try:
            future = asyncio.ensure_future(self.player.play(ref.url))
        except Exception as e:
            on_done(token, e)
            return
        self._audio_task = future

        def done(fut: asyncio.Future) -> None:
            if fut.cancelled():
                error: Optional[BaseException] = asyncio.CancelledError()
            else:
                error = fut.exception()
            if not self._is_current(token):
                logger.debug(f"Ignoring {ref.role.value} audio completion from stale run {token}")
                return
            self._audio_task = None
            on_done(token, error)

        future.add_done_callback(done)

    def _report_error(self, error: BaseException) -> None:
        phase_errors.labels(phase=self.phase.value).inc()
        item_id = self.current_item.id if self.current_item else None
        logger.warning(f"Audio error in {self.phase.value} for item {item_id}: {error!r}")
        self._emit(CycleEventType.ERROR, item=self.current_item, error=error)

    def _emit(self, event_type: CycleEventType, item: Optional[LearningItem] = None,
              index: Optional[int] = None, error: Optional[BaseException] = None) -> None:
        event = CycleEvent(
            type=event_type,
            phase=self.phase,
            item=item,
            index=self.index if index is None else index,
            error=error,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in cycle event listener: {e}")
