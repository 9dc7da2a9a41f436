"""Tests for audio resolution and the silent player."""
import asyncio

import pytest

from legoplayer.models.audio_models import AudioRole, AudioSchema
from legoplayer.services.audio_service import AudioResolver, MissingAudioError, SilentAudioPlayer

UUID = "c3a1e7f0-5b2d-4e8a-9f10-2b7c4d6e8a90"


@pytest.fixture
def resolver() -> AudioResolver:
    return AudioResolver(base_url="https://cdn.test/", legacy_prefix="mastered")


def test_current_schema_wins_over_legacy(resolver: AudioResolver) -> None:
    resolver.add("quiero", AudioRole.TARGET1, UUID, AudioSchema.LEGACY)
    resolver.add("quiero", AudioRole.TARGET1, "t1/quiero.mp3")

    ref = resolver.resolve("quiero", AudioRole.TARGET1)

    assert ref.url == "https://cdn.test/t1/quiero.mp3"
    assert ref.source_schema is AudioSchema.CURRENT
    assert ref.role is AudioRole.TARGET1


def test_legacy_fallback_builds_uppercase_url(resolver: AudioResolver) -> None:
    resolver.add("hablar", AudioRole.TARGET2, UUID, AudioSchema.LEGACY)

    ref = resolver.resolve(" hablar ", AudioRole.TARGET2)

    assert ref.url == f"https://cdn.test/mastered/{UUID.upper()}.mp3"
    assert ref.source_schema is AudioSchema.LEGACY


def test_miss_returns_none(resolver: AudioResolver) -> None:
    resolver.add("quiero", AudioRole.TARGET1, "t1/quiero.mp3")

    assert resolver.resolve("quiero", AudioRole.TARGET2) is None
    assert resolver.resolve("hablar", AudioRole.TARGET1) is None
    assert resolver.resolve(None, AudioRole.TARGET1) is None
    assert resolver.resolve("", AudioRole.KNOWN) is None


def test_load_audio_map_ignores_unknown_roles(resolver: AudioResolver) -> None:
    added = resolver.load_audio_map({
        "quiero": {"known": "k/1.mp3", "target1": "t1/1.mp3", "subtitle": "x"},
        "S0001L01": {"intro": "i/1.mp3"},
    })

    assert added == 3
    assert resolver.resolve("S0001L01", AudioRole.INTRO).url == "https://cdn.test/i/1.mp3"
    assert resolver.resolve("quiero", AudioRole.KNOWN) is not None


def test_missing_audio_error_carries_context() -> None:
    error = MissingAudioError("quiero", AudioRole.TARGET1)
    assert isinstance(error, LookupError)
    assert error.key == "quiero"
    assert error.role is AudioRole.TARGET1
    assert "target1" in str(error)


@pytest.mark.asyncio
async def test_silent_player_plays_and_stops() -> None:
    player = SilentAudioPlayer(duration_s=0)
    await asyncio.wait_for(player.play("https://cdn.test/a.mp3"), timeout=1)
    assert player.played == ["https://cdn.test/a.mp3"]

    slow = SilentAudioPlayer(duration_s=10)
    task = asyncio.ensure_future(slow.play("https://cdn.test/b.mp3"))
    await asyncio.sleep(0)
    slow.stop()
    slow.stop()

    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, timeout=1)
