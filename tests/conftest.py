"""Pytest configuration and fixtures for uniqueifier tests."""

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from uniqueifier.engine.base import UniqueifierBackend  # noqa: E402
from uniqueifier.engine.db_engine import DbUniqueifier  # noqa: E402
from uniqueifier.engine.memory_engine import MemoryUniqueifier  # noqa: E402

BUCKET = "2016-01-01T10:15"

RECORD_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<Record>
  <!-- exported by the ward system -->
  <Patient PatientCode="{patient}" Name="Test Patient" />
  <Event EventDate="{event_date}" Type="Visit" />
</Record>
"""


def record_xml(patient: str = "P1", event_date: str = BUCKET) -> str:
    """Sample XML record text."""
    return RECORD_TEMPLATE.format(patient=patient, event_date=event_date)


@pytest.fixture
def dirs(tmp_path):
    """Source, destination and error directories."""
    paths = SimpleNamespace(
        source=tmp_path / "source",
        destination=tmp_path / "destination",
        error=tmp_path / "error",
    )
    for path in vars(paths).values():
        path.mkdir()
    return paths


@pytest.fixture
def write_file(dirs):
    """Write a file into the source directory and return its path."""

    def _write(name: str, content, subdir: str = None) -> Path:
        directory = dirs.source / subdir if subdir else dirs.source
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest_asyncio.fixture(params=["memory", "db"])
async def engine_factory(request, tmp_path):
    """Build engines of each variant; every test using it runs for both."""
    created = []

    def _factory(history_length: int = 1000, database_url: str = None) -> UniqueifierBackend:
        if request.param == "memory":
            engine = MemoryUniqueifier(history_length=history_length)
        else:
            engine = DbUniqueifier(
                history_length=history_length,
                database_url=database_url or f"sqlite:///{tmp_path / 'history.db'}",
            )
        created.append(engine)
        return engine

    _factory.kind = request.param
    yield _factory

    for engine in created:
        await engine.close()


@pytest_asyncio.fixture
async def memory_engine():
    """In-memory engine with default history."""
    engine = MemoryUniqueifier(history_length=1000)
    yield engine
    await engine.close()


class SlowUniqueifier(UniqueifierBackend):
    """Wraps an engine and yields to the event loop before every call."""

    def __init__(self, inner: UniqueifierBackend, delay: float = 0.05):
        super().__init__(inner.history_length, f"slow_{inner.name}")
        self.inner = inner
        self.delay = delay
        self.calls = 0

    async def uniquify(self, date_bucket: str, subject_id: str) -> str:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return await self.inner.uniquify(date_bucket, subject_id)

    def size(self) -> int:
        return self.inner.size()

    async def close(self) -> None:
        await self.inner.close()
