"""Best-effort, versioned cache of generated learning scripts."""
import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from legoplayer.config import CacheSettings, settings
from legoplayer.models.base import SessionLocal
from legoplayer.models.models import ScriptCacheEntry
from legoplayer.monitoring import script_cache_errors, script_cache_hits, script_cache_misses

logger = logging.getLogger(__name__)


class ScriptCache:
    """Key/value store for script data that never lets a failure escape.

    A failed read behaves like a miss and a failed write is dropped. Keys are
    prefixed with the cache version, so bumping the version makes every entry
    written under an older schema unreachable.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        cache_settings: Optional[CacheSettings] = None,
    ):
        self.session_factory = session_factory
        self.settings = cache_settings or settings.cache
        self.prefix = f"script-v{self.settings.version}-"
        self.ttl = timedelta(hours=self.settings.ttl_hours)

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return cached data for key, or None on a miss, expiry or error."""
        try:
            with self.session_factory() as db:
                entry = db.get(ScriptCacheEntry, self._full_key(key))
                if entry is None:
                    script_cache_misses.inc()
                    return None

                cached_at = entry.cached_at
                if cached_at.tzinfo is None:
                    cached_at = cached_at.replace(tzinfo=UTC)
                if datetime.now(UTC) - cached_at >= self.ttl:
                    logger.debug(f"Script cache entry {key} expired")
                    db.delete(entry)
                    db.commit()
                    script_cache_misses.inc()
                    return None

                data = json.loads(entry.payload)
            script_cache_hits.inc()
            logger.debug(f"Loaded script {key} from cache")
            return data
        except Exception as e:
            script_cache_errors.labels(operation="get").inc()
            logger.warning(f"Script cache read failed for {key}: {e}")
            return None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        """Store value under key; failures are logged and ignored."""
        try:
            payload = json.dumps(value)
            with self.session_factory() as db:
                full_key = self._full_key(key)
                entry = db.get(ScriptCacheEntry, full_key)
                if entry is None:
                    entry = ScriptCacheEntry(key=full_key, payload=payload, cached_at=datetime.now(UTC))
                    db.add(entry)
                else:
                    entry.payload = payload
                    entry.cached_at = datetime.now(UTC)
                db.commit()
            logger.debug(f"Saved script {key} to cache")
        except Exception as e:
            script_cache_errors.labels(operation="put").inc()
            logger.warning(f"Script cache write failed for {key}: {e}")

    def purge_stale(self) -> int:
        """Delete entries written under other cache versions."""
        try:
            with self.session_factory() as db:
                removed = (
                    db.query(ScriptCacheEntry)
                    .filter(~ScriptCacheEntry.key.startswith(self.prefix, autoescape=True))
                    .delete(synchronize_session=False)
                )
                db.commit()
            logger.info(f"Cleared {removed} stale scripts")
            return removed
        except Exception as e:
            script_cache_errors.labels(operation="purge").inc()
            logger.warning(f"Failed to clear stale scripts: {e}")
            return 0

    def clear(self) -> None:
        """Delete every cached script."""
        try:
            with self.session_factory() as db:
                db.query(ScriptCacheEntry).delete(synchronize_session=False)
                db.commit()
            logger.info("All cached scripts cleared")
        except Exception as e:
            script_cache_errors.labels(operation="clear").inc()
            logger.warning(f"Script cache reset failed: {e}")
