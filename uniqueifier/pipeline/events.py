"""Data classes describing what a processing pass did with each file."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class FileAction(Enum):
    """Outcome of processing one file."""

    UNIQUIFIED = "uniquified"  # Event date rewritten and written to destination
    PASSED_THROUGH = "passed_through"  # XML moved unmodified after a processing error
    MOVED = "moved"  # Non-XML file moved unmodified
    SKIPPED = "skipped"  # Gone or locked; left for a later pass
    QUARANTINED = "quarantined"  # Moved to the error directory
    QUARANTINE_FAILED = "quarantine_failed"  # Could not even be quarantined


@dataclass
class FileEvent:
    """Reportable event for one file of a pass.

    Attributes:
        action: What happened to the file.
        source: Path the file was found at.
        destination: Where the file ended up, if it was relocated.
        event_date: The disambiguated event date, for ``UNIQUIFIED`` files.
        error: Description of the failure that led to a fallback or quarantine.
    """

    action: FileAction
    source: str
    destination: Optional[str] = None
    event_date: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        data = {"action": self.action.value, "source": self.source}
        if self.destination:
            data["destination"] = self.destination
        if self.event_date:
            data["event_date"] = self.event_date
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class PassResult:
    """Summary of one processing pass."""

    started: datetime = field(default_factory=datetime.now)
    finished: Optional[datetime] = None
    events: List[FileEvent] = field(default_factory=list)

    def add(self, event: FileEvent) -> None:
        self.events.append(event)

    def count(self, action: FileAction) -> int:
        return sum(1 for event in self.events if event.action == action)

    @property
    def files_seen(self) -> int:
        return len(self.events)

    @property
    def duration_seconds(self) -> float:
        if self.finished is None:
            return 0.0
        return (self.finished - self.started).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_seen": self.files_seen,
            "duration_seconds": self.duration_seconds,
            **{action.value: self.count(action) for action in FileAction},
        }
