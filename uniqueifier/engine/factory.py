"""Engine selection from a configuration string."""

from enum import Enum
from typing import Optional

from uniqueifier.utils.logger import log_info, log_warning
from .base import UniqueifierBackend
from .db_engine import DbUniqueifier
from .memory_engine import MemoryUniqueifier
from .models import DEFAULT_DATABASE_URL


class UniqueifierType(Enum):
    """Uniqueifier engine types."""

    DB = "db"
    MEMORY = "memory"


_ALIASES = {
    "db": UniqueifierType.DB,
    "database": UniqueifierType.DB,
    "durable": UniqueifierType.DB,
    "memory": UniqueifierType.MEMORY,
    "in-memory": UniqueifierType.MEMORY,
}


def resolve_uniqueifier_type(name: Optional[str]) -> UniqueifierType:
    """Map a case-insensitive engine name to its type; unknown names mean DB."""
    if not name or not name.strip():
        return UniqueifierType.DB

    resolved = _ALIASES.get(name.strip().lower())
    if resolved is None:
        log_warning("Unknown uniqueifier, falling back to db", uniqueifier=name)
        return UniqueifierType.DB
    return resolved


def create_uniqueifier(
    name: Optional[str],
    history_length: int,
    database_url: str = DEFAULT_DATABASE_URL,
) -> UniqueifierBackend:
    """Create the uniqueifier engine selected by ``name``."""
    engine_type = resolve_uniqueifier_type(name)

    if engine_type == UniqueifierType.MEMORY:
        engine = MemoryUniqueifier(history_length=history_length)
    else:
        engine = DbUniqueifier(history_length=history_length, database_url=database_url)

    log_info(
        "Uniqueifier engine created",
        backend=engine.name,
        history_length=history_length,
    )
    return engine
