"""Directory pipeline and the timer that drives it."""

from .events import FileAction, FileEvent, PassResult
from .mover import FileMover, is_file_locked
from .scheduler import PassScheduler

__all__ = [
    "FileAction",
    "FileEvent",
    "PassResult",
    "FileMover",
    "is_file_locked",
    "PassScheduler",
]
