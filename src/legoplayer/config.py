"""Configuration settings for the player."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
SCRIPTS_DIR = DATA_DIR / "scripts"

# Belt settings
BELT_NAMES = ["white", "yellow", "orange", "green", "blue", "purple", "brown", "black"]
BELT_THRESHOLDS = [0, 8, 20, 40, 80, 150, 280, 400]  # units learned

# Visual weight of the newest node while the network is small: (max node count, scale)
HERO_SCALE_STEPS = [(1, 2.0), (3, 1.75), (6, 1.5), (10, 1.25), (20, 1.1)]

REPLAY_SPEED_OPTIONS = (1, 2, 4, 8, 16)


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        SCRIPTS_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


def _int_list(name: str, default: List[int]) -> List[int]:
    """Read a comma separated list of integers from the environment."""
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [int(value) for value in raw.split(",") if value.strip()]


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    scripts_dir: Path = SCRIPTS_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///legoplayer.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class PlaybackSettings:
    """Cycle timing settings."""
    pause_duration_ms: int = int(os.getenv("PAUSE_DURATION_MS", "3000"))
    min_pause_ms: int = int(os.getenv("MIN_PAUSE_MS", "1000"))
    max_pause_ms: int = int(os.getenv("MAX_PAUSE_MS", "10000"))
    pause_per_extra_word_ms: int = int(os.getenv("PAUSE_PER_EXTRA_WORD_MS", "300"))
    pause_adapts_to_phrase_length: bool = os.getenv("PAUSE_ADAPTS_TO_PHRASE_LENGTH", "true").lower() == "true"
    transition_gap_ms: int = int(os.getenv("TRANSITION_GAP_MS", "500"))
    exploratory_pause_multiplier: float = float(os.getenv("EXPLORATORY_PAUSE_MULTIPLIER", "2.0"))


@dataclass
class NetworkSettings:
    """Network model policy settings."""
    belt_names: List[str] = field(default_factory=lambda: list(BELT_NAMES))
    belt_thresholds: List[int] = field(default_factory=lambda: _int_list("BELT_THRESHOLDS", BELT_THRESHOLDS))
    mastery_step: float = float(os.getenv("MASTERY_STEP", "0.05"))
    eternal_min_practices: int = int(os.getenv("ETERNAL_MIN_PRACTICES", "30"))
    eternal_min_mastery: float = float(os.getenv("ETERNAL_MIN_MASTERY", "0.8"))
    hero_scale_steps: List[Tuple[int, float]] = field(default_factory=lambda: list(HERO_SCALE_STEPS))


@dataclass
class ReplaySettings:
    """Accelerated replay settings."""
    base_interval_ms: float = float(os.getenv("REPLAY_BASE_INTERVAL_MS", "35"))
    speed_options: Tuple[int, ...] = REPLAY_SPEED_OPTIONS


@dataclass
class AudioSettings:
    """Audio resolution settings."""
    base_url: str = os.getenv("AUDIO_BASE_URL", "https://ssi-audio-stage.s3.eu-west-1.amazonaws.com")
    legacy_prefix: str = os.getenv("AUDIO_LEGACY_PREFIX", "mastered")


@dataclass
class CacheSettings:
    """Script cache settings."""
    version: int = int(os.getenv("SCRIPT_CACHE_VERSION", "5"))
    ttl_hours: int = int(os.getenv("SCRIPT_CACHE_TTL_HOURS", "24"))


@dataclass
class MonitoringSettings:
    """Metrics exporter settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_playback_settings() -> PlaybackSettings:
    """Get playback settings."""
    return PlaybackSettings()


def get_network_settings() -> NetworkSettings:
    """Get network settings."""
    return NetworkSettings()


def get_replay_settings() -> ReplaySettings:
    """Get replay settings."""
    return ReplaySettings()


def get_audio_settings() -> AudioSettings:
    """Get audio settings."""
    return AudioSettings()


def get_cache_settings() -> CacheSettings:
    """Get cache settings."""
    return CacheSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    playback: PlaybackSettings = field(default_factory=get_playback_settings)
    network: NetworkSettings = field(default_factory=get_network_settings)
    replay: ReplaySettings = field(default_factory=get_replay_settings)
    audio: AudioSettings = field(default_factory=get_audio_settings)
    cache: CacheSettings = field(default_factory=get_cache_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if len(self.network.belt_thresholds) != len(self.network.belt_names):
            raise ValueError("BELT_THRESHOLDS must define one threshold per belt")

        if self.network.belt_thresholds[0] != 0:
            raise ValueError("BELT_THRESHOLDS must start at 0")

        if any(b <= a for a, b in zip(self.network.belt_thresholds, self.network.belt_thresholds[1:])):
            raise ValueError("BELT_THRESHOLDS must be strictly ascending")

        if self.network.mastery_step <= 0 or self.network.mastery_step > 1:
            raise ValueError("MASTERY_STEP must be in (0, 1]")

        if self.network.eternal_min_mastery < 0 or self.network.eternal_min_mastery > 1:
            raise ValueError("ETERNAL_MIN_MASTERY must be between 0 and 1")

        if self.playback.pause_duration_ms < 0 or self.playback.transition_gap_ms < 0:
            raise ValueError("Playback durations cannot be negative")

        if self.playback.min_pause_ms > self.playback.max_pause_ms:
            raise ValueError("MIN_PAUSE_MS cannot be greater than MAX_PAUSE_MS")

        if self.playback.exploratory_pause_multiplier <= 0:
            raise ValueError("EXPLORATORY_PAUSE_MULTIPLIER must be positive")

        if self.replay.base_interval_ms < 0:
            raise ValueError("REPLAY_BASE_INTERVAL_MS cannot be negative")

        if self.cache.ttl_hours < 1:
            raise ValueError("SCRIPT_CACHE_TTL_HOURS must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
