"""Error taxonomy for the uniqueifier service."""

from typing import Optional


class UniqueifierError(Exception):
    """Base class for all uniqueifier errors."""

    def __init__(self, message: str = "Uniqueifier error"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(UniqueifierError):
    """Raised at startup when required settings or directories are invalid."""


class ExhaustionError(UniqueifierError):
    """Raised when every second offset of a date bucket is taken for a subject."""

    def __init__(self, date_bucket: str, subject_id: str):
        self.date_bucket = date_bucket
        self.subject_id = subject_id
        super().__init__(
            f"Unique event date cannot be created for '{date_bucket}' "
            f"and subject '{subject_id}'"
        )


class ContentError(UniqueifierError):
    """Raised when a record is malformed, incomplete or already has seconds."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{message}: {path}" if path else message)


class CollisionError(UniqueifierError):
    """Raised when a file of the same name already exists at the destination."""

    def __init__(self, destination: str):
        self.destination = destination
        super().__init__(f"File already exists in the destination: {destination}")


class PersistenceError(UniqueifierError):
    """Raised when the durable store fails to commit an assignment."""
