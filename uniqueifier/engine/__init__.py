"""Uniqueifier engines.

Two interchangeable engines hand out second offsets for event dates:
- Memory: bounded in-process history, lost on restart
- Db: history persisted through SQLAlchemy, survives restarts

``create_uniqueifier`` selects one from a configuration string.
"""

from .base import Assignment, UniqueifierBackend, candidate_dates
from .db_engine import DbUniqueifier
from .factory import UniqueifierType, create_uniqueifier, resolve_uniqueifier_type
from .memory_engine import MemoryUniqueifier

__all__ = [
    "Assignment",
    "UniqueifierBackend",
    "candidate_dates",
    "DbUniqueifier",
    "MemoryUniqueifier",
    "UniqueifierType",
    "create_uniqueifier",
    "resolve_uniqueifier_type",
]
