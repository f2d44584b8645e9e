"""In-memory uniqueifier engine with bounded history."""

import asyncio
from collections import deque
from typing import Any, Deque, Dict, Set, Tuple

from uniqueifier.errors import ExhaustionError
from uniqueifier.utils.logger import log_debug
from .base import Assignment, UniqueifierBackend, candidate_dates


class MemoryUniqueifier(UniqueifierBackend):
    """Keeps assignment history in process memory; lost on restart."""

    def __init__(self, history_length: int = 1000, name: str = "memory"):
        super().__init__(history_length, name)
        # Set for lookups, queue for creation order
        self._entries: Set[Tuple[str, str]] = set()
        self._queue: Deque[Assignment] = deque()
        self._lock = asyncio.Lock()

    async def uniquify(self, date_bucket: str, subject_id: str) -> str:
        """Hand out the first free second offset of the bucket."""
        async with self._lock:
            for candidate in candidate_dates(date_bucket):
                if (candidate, subject_id) in self._entries:
                    continue

                assignment = Assignment(event_date=candidate, subject_id=subject_id)
                self._entries.add(assignment.key)
                self._queue.append(assignment)
                self._record_assignment()

                if self._needs_sweep(len(self._queue)):
                    self._sweep()

                return candidate

            self._record_exhaustion()
            raise ExhaustionError(date_bucket, subject_id)

    def _sweep(self) -> None:
        """Drop the oldest assignments until history is back at capacity."""
        removed = 0
        while len(self._queue) > self.history_length:
            self._entries.discard(self._queue.popleft().key)
            removed += 1

        self._record_sweep(removed)
        log_debug(
            "Memory history swept",
            removed=removed,
            size=len(self._queue),
            history_length=self.history_length,
        )

    def size(self) -> int:
        return len(self._queue)

    def snapshot(self) -> list:
        """Live assignments, oldest first."""
        return list(self._queue)

    def get_stats(self) -> Dict[str, Any]:
        return {**super().get_stats(), "persistent": False}

    async def close(self) -> None:
        """Clear in-memory history."""
        async with self._lock:
            self._entries.clear()
            self._queue.clear()
