"""Models for audio references."""
from dataclasses import dataclass
from enum import Enum


class AudioRole(Enum):
    """Which rendition of a text an audio file holds."""
    KNOWN = "known"
    TARGET1 = "target1"
    TARGET2 = "target2"
    INTRO = "intro"  # Looked up by unit id, not text


class AudioSchema(Enum):
    """Storage schema an audio key came from."""
    CURRENT = "current"  # Storage path, used as-is
    LEGACY = "legacy"  # Bare UUID


@dataclass(frozen=True)
class AudioReference:
    """A resolved, playable audio file."""
    role: AudioRole
    url: str
    source_schema: AudioSchema
