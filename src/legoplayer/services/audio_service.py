"""Audio resolution and playback collaborators."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Optional, Tuple

from legoplayer.config import settings
from legoplayer.models.audio_models import AudioReference, AudioRole, AudioSchema

logger = logging.getLogger(__name__)


class MissingAudioError(LookupError):
    """Raised (or reported) when mandatory audio cannot be resolved."""

    def __init__(self, key: Optional[str], role: AudioRole):
        super().__init__(f"No {role.value} audio for {key!r}")
        self.key = key
        self.role = role


class AudioResolver:
    """Maps (text or unit id, role) to a playable URL.

    Keys registered under the current schema win; legacy keys are the
    fallback; anything else resolves to None.
    """

    def __init__(self, base_url: Optional[str] = None, legacy_prefix: Optional[str] = None):
        self.base_url = (base_url if base_url is not None else settings.audio.base_url).rstrip("/")
        self.legacy_prefix = legacy_prefix if legacy_prefix is not None else settings.audio.legacy_prefix
        self._tables: Dict[AudioSchema, Dict[Tuple[str, AudioRole], str]] = {
            AudioSchema.CURRENT: {},
            AudioSchema.LEGACY: {},
        }

    def add(self, key: str, role: AudioRole, audio_key: str, schema: AudioSchema = AudioSchema.CURRENT) -> None:
        """Register one audio key for a text (or, for intro audio, a unit id)."""
        if not key or not audio_key:
            return
        self._tables[schema][(key.strip(), role)] = audio_key

    def load_audio_map(self, audio_map: Mapping[str, Mapping[str, str]],
                       schema: AudioSchema = AudioSchema.CURRENT) -> int:
        """Load a {text: {role: audio key}} map; returns the number of keys added."""
        added = 0
        for key, roles in audio_map.items():
            for role_name, audio_key in roles.items():
                try:
                    role = AudioRole(role_name)
                except ValueError:
                    logger.debug(f"Ignoring unknown audio role {role_name!r} for {key!r}")
                    continue
                self.add(key, role, audio_key, schema)
                added += 1
        logger.debug(f"Loaded {added} {schema.value} audio keys")
        return added

    def build_url(self, audio_key: str, schema: AudioSchema) -> str:
        if schema is AudioSchema.LEGACY:
            return f"{self.base_url}/{self.legacy_prefix}/{audio_key.upper()}.mp3"
        return f"{self.base_url}/{audio_key}"

    def resolve(self, key: Optional[str], role: AudioRole) -> Optional[AudioReference]:
        """Resolve audio for a text or unit id, or None on a miss."""
        if not key:
            return None
        lookup = (key.strip(), role)
        for schema in (AudioSchema.CURRENT, AudioSchema.LEGACY):
            audio_key = self._tables[schema].get(lookup)
            if audio_key:
                return AudioReference(role=role, url=self.build_url(audio_key, schema), source_schema=schema)
        return None


class BaseAudioPlayer(ABC):
    """Single audio output owned by one orchestrator at a time."""

    @abstractmethod
    async def play(self, url: str) -> None:
        """Play url; return on natural end, raise on error."""

    @abstractmethod
    def stop(self) -> None:
        """Halt playback immediately. Must be idempotent."""


class SilentAudioPlayer(BaseAudioPlayer):
    """Player that only waits, for headless runs and demos."""

    def __init__(self, duration_s: float = 0.0):
        self.duration_s = duration_s
        self.played: List[str] = []
        self._current: Optional[asyncio.Future] = None

    async def play(self, url: str) -> None:
        self.played.append(url)
        logger.debug(f"Playing {url}")
        loop = asyncio.get_running_loop()
        self._current = loop.create_future()
        handle = loop.call_later(self.duration_s, self._finish, self._current)
        try:
            await self._current
        finally:
            handle.cancel()

    @staticmethod
    def _finish(future: asyncio.Future) -> None:
        if not future.done():
            future.set_result(None)

    def stop(self) -> None:
        if self._current is not None and not self._current.done():
            self._current.cancel()
        self._current = None
