"""Abstract base class for uniqueifier engines."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

# Seconds available inside one minute bucket
MAX_OFFSETS = 60

# History may grow to this multiple of its capacity before a sweep runs
EVICTION_SLACK = 1.1


def utcnow() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def candidate_dates(date_bucket: str) -> List[str]:
    """All disambiguated event dates for a bucket, in the order they are tried."""
    return [f"{date_bucket}:{offset:02d}" for offset in range(MAX_OFFSETS)]


@dataclass(frozen=True)
class Assignment:
    """A disambiguated event date handed out for one subject."""

    event_date: str
    subject_id: str
    created: datetime = field(default_factory=utcnow, compare=False)

    @property
    def key(self) -> tuple:
        return (self.event_date, self.subject_id)


class UniqueifierBackend(ABC):
    """Abstract base class for uniqueifier engines.

    Every engine hands out second offsets for ``(date_bucket, subject_id)``
    keys, never reusing a live offset, and keeps its history bounded by
    ``history_length`` (``<= 0`` disables eviction).
    """

    def __init__(self, history_length: int, name: str):
        self.name = name
        self.history_length = history_length
        self.assignments = 0
        self.exhaustions = 0
        self.evictions = 0
        self.sweeps = 0
        self.errors = 0

    @abstractmethod
    async def uniquify(self, date_bucket: str, subject_id: str) -> str:
        """Return a unique event date for the bucket and subject.

        Raises:
            ExhaustionError: all offsets of the bucket are taken for the subject
        """
        pass

    @abstractmethod
    def size(self) -> int:
        """Number of live assignments in history."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the engine and release resources."""
        pass

    # Utility methods

    def _needs_sweep(self, size: int) -> bool:
        """Check whether history has grown past its slack allowance."""
        return self.history_length > 0 and size > self.history_length * EVICTION_SLACK

    def _record_assignment(self) -> None:
        self.assignments += 1

    def _record_exhaustion(self) -> None:
        self.exhaustions += 1

    def _record_sweep(self, removed: int) -> None:
        self.sweeps += 1
        self.evictions += removed

    def _record_error(self) -> None:
        self.errors += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        return {
            "backend": self.name,
            "history_length": self.history_length,
            "size": self.size(),
            "assignments": self.assignments,
            "exhaustions": self.exhaustions,
            "evictions": self.evictions,
            "sweeps": self.sweeps,
            "errors": self.errors,
        }
