"""Database models for the player."""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from legoplayer.models.base import Base, TimestampMixin


class ScriptCacheEntry(Base, TimestampMixin):
    """Cached learning script, keyed by a versioned cache key."""

    __tablename__ = "script_cache_entries"

    key = Column(String, primary_key=True)
    payload = Column(Text, nullable=False)  # JSON encoded script data
    cached_at = Column(DateTime(timezone=True), nullable=False)


class UnitProgress(Base, TimestampMixin):
    """Persisted practice statistics for one unit of a course."""

    __tablename__ = "unit_progress"
    __table_args__ = (UniqueConstraint("course_code", "unit_id", name="uq_unit_progress_course_unit"),)

    id = Column(Integer, primary_key=True)
    course_code = Column(String, nullable=False, index=True)
    unit_id = Column(String, nullable=False)
    seed_id = Column(String, nullable=False, default="")
    known_text = Column(String, nullable=False, default="")
    target_text = Column(String, nullable=False, default="")
    birth_belt_tier = Column(String, nullable=False)  # e.g., "white"
    total_practices = Column(Integer, default=0)
    mastery_score = Column(Float, default=0.0)
    is_eternal = Column(Boolean, default=False)
