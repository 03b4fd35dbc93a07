"""SQLAlchemy ORM models."""

from .account import Account
from .performance_snapshot import OVERALL_SCOPE, PerformanceSnapshot, PositionPerformance
from .returns_cache_entry import ReturnsCacheEntry, ReturnsCacheGeneration
from .utils import generate_uuid

__all__ = [
    "Account",
    "OVERALL_SCOPE",
    "PerformanceSnapshot",
    "PositionPerformance",
    "ReturnsCacheEntry",
    "ReturnsCacheGeneration",
    "generate_uuid",
]
