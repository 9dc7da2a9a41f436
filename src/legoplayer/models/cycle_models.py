"""Models for cycle-related data."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from legoplayer.models.script_models import LearningItem


class CyclePhase(Enum):
    """Phases of one prompt/response cycle."""
    IDLE = "idle"
    PROMPT = "prompt"  # Known audio plays
    PAUSE = "pause"  # Learner attempts the target
    VOICE_1 = "voice_1"  # First target rendition
    VOICE_2 = "voice_2"  # Second target rendition


class CycleEventType(Enum):
    """Events emitted by the cycle orchestrator."""
    PHASE_CHANGED = "phase_changed"
    ITEM_COMPLETED = "item_completed"
    ERROR = "error"
    FINISHED = "finished"  # Queue exhausted
    STOPPED = "stopped"  # stop() was called


@dataclass
class CycleEvent:
    """Event delivered to orchestrator listeners."""
    type: CycleEventType
    phase: CyclePhase
    item: Optional[LearningItem] = None
    index: int = 0
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class TextVisibility:
    """Which texts the learner may see during a phase."""
    known: bool
    target: bool


# Target text stays hidden until the second voice
TEXT_VISIBILITY = {
    CyclePhase.IDLE: TextVisibility(known=False, target=False),
    CyclePhase.PROMPT: TextVisibility(known=True, target=False),
    CyclePhase.PAUSE: TextVisibility(known=True, target=False),
    CyclePhase.VOICE_1: TextVisibility(known=True, target=False),
    CyclePhase.VOICE_2: TextVisibility(known=True, target=True),
}
