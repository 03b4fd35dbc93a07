"""Returns cache models - cached period-return reports and per-owner generations."""

from sqlalchemy import Column, DateTime, Integer, String, Text

from database import Base
from models.utils import generate_uuid, utc_now


class ReturnsCacheEntry(Base):
    """A computed report stored as JSON until ``valid_until``.

    Rows are deleted for an owner whenever that owner's snapshots change.
    ``generation`` is the owner's cache generation the report was computed
    under; an entry from an older generation is never served.
    """

    __tablename__ = "returns_cache_entries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(String, nullable=False, index=True)
    cache_key = Column(String, unique=True, index=True, nullable=False)
    payload = Column(Text, nullable=False)  # JSON-serialized report
    generation = Column(Integer, nullable=False, default=0)
    computed_at = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime, default=utc_now)


class ReturnsCacheGeneration(Base):
    """Counter bumped on every invalidation of an owner's cached reports."""

    __tablename__ = "returns_cache_generations"

    owner_id = Column(String, primary_key=True)
    generation = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
