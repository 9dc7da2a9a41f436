"""Test configuration."""
import asyncio
import os
import tempfile
from typing import Callable, Generator, Iterable, List, Optional, Sequence

import pytest
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="legoplayer-test-"))

# Import after environment setup
from legoplayer.config import PlaybackSettings, ensure_directories
from legoplayer.models.audio_models import AudioRole
from legoplayer.models.base import Base, SessionLocal, engine, init_db
from legoplayer.models.script_models import ItemType, LearningItem, Round
from legoplayer.services.audio_service import AudioResolver, BaseAudioPlayer

fake = Faker()


class FakePlayer(BaseAudioPlayer):
    """Audio player that either finishes instantly or waits to be released."""

    def __init__(self, auto: bool = True, fail_on: Sequence[str] = ()):
        self.auto = auto
        self.fail_on = tuple(fail_on)
        self.played: List[str] = []
        self.pending: List[asyncio.Future] = []
        self.stop_calls = 0

    async def play(self, url: str) -> None:
        self.played.append(url)
        if any(marker in url for marker in self.fail_on):
            raise RuntimeError(f"cannot play {url}")
        if self.auto:
            return
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        # The clip outlives a cancelled play() call, like a real output device
        await asyncio.shield(future)

    def stop(self) -> None:
        self.stop_calls += 1

    def release_all(self) -> None:
        for future in self.pending:
            if not future.done():
                future.cancel()


def make_item(
    item_id: str,
    item_type: ItemType = ItemType.DEBUT,
    unit_id: Optional[str] = None,
    target_text: Optional[str] = None,
    known_text: Optional[str] = None,
    round_number: int = 1,
) -> LearningItem:
    return LearningItem(
        id=item_id,
        type=item_type,
        unit_id=unit_id,
        known_text=known_text if known_text is not None else fake.sentence(nb_words=3),
        target_text=target_text if target_text is not None else fake.sentence(nb_words=3),
        round_number=round_number,
    )


def resolver_for(items: Iterable[LearningItem], roles: Iterable[AudioRole] = tuple(AudioRole)) -> AudioResolver:
    """Resolver with audio registered for every item and role given."""
    resolver = AudioResolver(base_url="https://audio.test")
    roles = tuple(roles)
    for item in items:
        for role in roles:
            if role is AudioRole.INTRO:
                key = item.unit_id
            elif role is AudioRole.KNOWN:
                key = item.known_text
            else:
                key = item.target_text
            if key:
                resolver.add(key, role, f"{role.value}/{item.id}.mp3")
    return resolver


def sample_rounds() -> List[Round]:
    """Three rounds: 'quiero', 'hablar', then 'español'."""
    return [
        Round(
            round_number=1,
            unit_id="S0001L01",
            seed_id="S0001",
            items=[
                make_item("r1-intro", ItemType.INTRO, "S0001L01", "quiero", "I want", 1),
                make_item("r1-debut", ItemType.DEBUT, "S0001L01", "quiero", "I want", 1),
            ],
        ),
        Round(
            round_number=2,
            unit_id="S0001L02",
            seed_id="S0001",
            items=[
                make_item("r2-intro", ItemType.INTRO, "S0001L02", "hablar", "to speak", 2),
                make_item("r2-debut", ItemType.DEBUT, "S0001L02", "hablar", "to speak", 2),
                make_item("r2-phrase", ItemType.DEBUT_PHRASE, "S0001L02", "quiero hablar", "I want to speak", 2),
            ],
            spaced_rep_reviews=[1],
        ),
        Round(
            round_number=3,
            unit_id="S0002L01",
            seed_id="S0002",
            items=[
                make_item("r3-intro", ItemType.INTRO, "S0002L01", "español", "Spanish", 3),
                make_item("r3-debut", ItemType.DEBUT, "S0002L01", "español", "Spanish", 3),
                make_item("r3-phrase", ItemType.DEBUT_PHRASE, "S0002L01", "quiero hablar español",
                          "I want to speak Spanish", 3),
                make_item("r3-review", ItemType.SPACED_REP, "S0001L02", "hablar español", "to speak Spanish", 3),
            ],
            spaced_rep_reviews=[2],
        ),
    ]


async def wait_for(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll the event loop until condition() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def fast_playback() -> PlaybackSettings:
    """Playback settings without any waiting."""
    return PlaybackSettings(
        pause_duration_ms=0,
        min_pause_ms=0,
        max_pause_ms=0,
        pause_per_extra_word_ms=0,
        pause_adapts_to_phrase_length=False,
        transition_gap_ms=0,
        exploratory_pause_multiplier=2.0,
    )


@pytest.fixture
def db() -> Generator:
    """Create a fresh database session for each test."""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
