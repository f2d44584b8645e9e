"""Directory pipeline that uniquifies XML records on their way downstream.

Each pass lists every file under the source directory and, file by file:
skips files that are gone or locked, rewrites the event date of XML records
with a unique one and writes them to the destination, moves anything it
cannot rewrite unmodified, and quarantines files it cannot place at all.
"""

import asyncio
import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from uniqueifier.content.xml_record import XmlRecord, has_seconds, is_xml_file
from uniqueifier.engine.base import UniqueifierBackend
from uniqueifier.errors import CollisionError, ConfigurationError, ContentError
from uniqueifier.utils.logger import log_debug, log_error, log_file_event, log_info
from .events import FileAction, FileEvent, PassResult

if os.name == "posix":
    import fcntl
else:
    fcntl = None

FileListener = Callable[[FileEvent], None]


def is_file_locked(path: Path) -> bool:
    """Probe whether another writer holds the file, without waiting.

    The file is opened for reading and writing and, where supported, an
    exclusive non-blocking lock is attempted and released right away.
    """
    try:
        with open(path, "r+b") as handle:
            if fcntl is not None:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    except OSError:
        return True
    return False


def _require_directory(path: Union[str, Path], name: str) -> Path:
    if not path:
        raise ConfigurationError(f"{name} parameter must refer to an existing directory")
    directory = Path(path).expanduser().resolve()
    if not directory.is_dir():
        raise ConfigurationError(
            f"{name} parameter must refer to an existing directory: {directory}"
        )
    return directory


class FileMover:
    """Moves files from a source to a destination directory, uniquifying XML."""

    def __init__(
        self,
        source: Union[str, Path],
        destination: Union[str, Path],
        error: Union[str, Path],
        uniqueifier: UniqueifierBackend,
        listeners: Optional[Iterable[FileListener]] = None,
    ):
        """Create the file mover.

        Args:
            source: Directory to read from
            destination: Directory to write to
            error: Directory to quarantine files to
            uniqueifier: Engine that makes event dates unique
            listeners: Callables notified of every file event

        Raises:
            ConfigurationError: a directory is missing
        """
        self.source_directory = _require_directory(source, "source")
        self.destination_directory = _require_directory(destination, "destination")
        self.error_directory = _require_directory(error, "error")
        self.uniqueifier = uniqueifier
        self.listeners: List[FileListener] = list(listeners or [])

        self._lock = asyncio.Lock()
        self._last_suffix = 0
        self._stats: Dict[str, int] = {"passes": 0, "passes_skipped": 0}
        for action in FileAction:
            self._stats[action.value] = 0

    @property
    def busy(self) -> bool:
        """Whether a pass is running right now."""
        return self._lock.locked()

    def add_listener(self, listener: FileListener) -> None:
        self.listeners.append(listener)

    async def process_files(self) -> Optional[PassResult]:
        """Process every file in the source directory.

        Returns:
            The pass summary, or None when another pass is still running and
            this one was dropped
        """
        # Only one pass at a time; never wait for the running one
        if self._lock.locked():
            self._stats["passes_skipped"] += 1
            log_debug("Processing pass already running, skipping")
            return None

        async with self._lock:
            result = PassResult()

            for path in self._list_files():
                event = await self._process_or_quarantine(path)
                result.add(event)
                self._report(event)

            result.finished = datetime.now()
            self._stats["passes"] += 1
            if result.files_seen:
                log_info("Processing pass completed", **result.to_dict())
            return result

    def _list_files(self) -> List[Path]:
        try:
            return sorted(p for p in self.source_directory.rglob("*") if p.is_file())
        except OSError as e:
            log_error(
                "Failed to list source directory",
                source=str(self.source_directory),
                error=str(e),
            )
            return []

    async def _process_or_quarantine(self, path: Path) -> FileEvent:
        try:
            return await self.process_file(path)
        except Exception as e:
            log_error("Error processing file", file=str(path), error=str(e))
            return self._quarantine(path, e)

    async def process_file(self, path: Path) -> FileEvent:
        """Process one file by uniquifying it if it is XML or just moving it.

        Raises:
            CollisionError: the destination already holds a file of this name
            OSError: the file could not be relocated
        """
        if not path.exists() or is_file_locked(path):
            # Next pass can pick it up
            return FileEvent(FileAction.SKIPPED, str(path))

        destination = self.destination_directory / path.name
        if destination.exists():
            raise CollisionError(str(destination))

        if not is_xml_file(path):
            self._relocate(path, destination)
            return FileEvent(FileAction.MOVED, str(path), str(destination))

        log_debug("Processing file", file=path.name)
        try:
            event_date = await self._uniquify_record(path, destination)
            return FileEvent(
                FileAction.UNIQUIFIED,
                str(path),
                str(destination),
                event_date=event_date,
            )
        except CollisionError:
            raise
        except Exception as e:
            log_debug(
                "XML file cannot be processed or made unique, moving to destination without modification",
                file=path.name,
                error=str(e),
            )
            self._relocate(path, destination)
            return FileEvent(
                FileAction.PASSED_THROUGH,
                str(path),
                str(destination),
                error=str(e),
            )

    async def _uniquify_record(self, path: Path, destination: Path) -> str:
        record = XmlRecord.load(path)
        patient_code = record.patient_code
        event_date = record.event_date

        if has_seconds(event_date):
            raise ContentError("XML file already has seconds", str(path))

        unique_date = await self.uniqueifier.uniquify(event_date, patient_code)
        record.event_date = unique_date

        # Write first, delete second: a crash in between keeps the source
        try:
            record.save(destination, staging_directory=self.error_directory)
        except FileExistsError as e:
            raise CollisionError(str(destination)) from e
        path.unlink()
        return unique_date

    @staticmethod
    def _relocate(path: Path, destination: Path) -> None:
        if destination.exists():
            raise CollisionError(str(destination))
        shutil.move(str(path), str(destination))

    def _next_suffix(self) -> int:
        """Strictly increasing nanosecond suffix for quarantined names."""
        self._last_suffix = max(time.time_ns(), self._last_suffix + 1)
        return self._last_suffix

    def _quarantine(self, path: Path, cause: Exception) -> FileEvent:
        target = self.error_directory / f"{path.name}.{self._next_suffix()}"
        try:
            log_debug("Moving file to error directory", file=path.name, target=str(target))
            shutil.move(str(path), str(target))
            return FileEvent(FileAction.QUARANTINED, str(path), str(target), error=str(cause))
        except Exception as e:
            log_error("Failed to move file to error directory", file=str(path), error=str(e))
            return FileEvent(
                FileAction.QUARANTINE_FAILED,
                str(path),
                error=f"{cause}; quarantine failed: {e}",
            )

    def _report(self, event: FileEvent) -> None:
        self._stats[event.action.value] += 1
        log_file_event(event)
        for listener in self.listeners:
            try:
                listener(event)
            except Exception as e:
                log_error("File event listener failed", listener=repr(listener), error=str(e))

    def get_stats(self) -> Dict[str, Any]:
        """Cumulative counters over all passes."""
        return {
            **self._stats,
            "busy": self.busy,
            "source": str(self.source_directory),
            "destination": str(self.destination_directory),
            "error": str(self.error_directory),
        }
