"""SQLAlchemy models and engine factory for the durable history store."""

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .base import utcnow

DEFAULT_DATABASE_URL = "sqlite:///uniqueifier.db"

_IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


class CustomBase:
    def __repr__(self) -> str:
        class_name = self.__class__.__name__

        columns = [(c.name, getattr(self, c.name)) for c in self.__table__.columns]

        column_str = ", ".join(f"{name}={repr(value)}" for name, value in columns)

        return f"{class_name}({column_str})"


Base = declarative_base(cls=CustomBase)


class EventORM(Base):
    """One assigned event date for a patient."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_date = Column(String, nullable=False)
    patient_code = Column(String, nullable=False, index=True)
    created = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("patient_code", "event_date", name="event_patient_uq"),
    )


def make_engine(database_url: str = DEFAULT_DATABASE_URL) -> Engine:
    """Create the SQLAlchemy engine for a database URL.

    SQLite connections are shared with executor threads, and an in-memory
    SQLite database is pinned to a single connection so it outlives sessions.
    """
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in _IN_MEMORY_SQLITE_URLS:
            kwargs["poolclass"] = StaticPool

    return create_engine(database_url, **kwargs)
