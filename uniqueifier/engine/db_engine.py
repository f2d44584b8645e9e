"""Durable uniqueifier engine backed by a SQL database."""

import asyncio
from typing import Any, Dict, List, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from uniqueifier.errors import ExhaustionError, PersistenceError
from uniqueifier.utils.logger import log_debug, log_error, log_info
from .base import Assignment, UniqueifierBackend, candidate_dates, utcnow
from .models import DEFAULT_DATABASE_URL, Base, EventORM, make_engine


class DbUniqueifier(UniqueifierBackend):
    """Persists assignment history so occupancy survives restarts.

    Every ``uniquify`` call is one transaction: read the taken offsets, insert
    the new event, count, and delete evicted rows when history has outgrown
    its slack. Nothing is returned before the commit succeeds.
    """

    def __init__(
        self,
        history_length: int = 1000,
        database_url: str = DEFAULT_DATABASE_URL,
        name: str = "db",
    ):
        super().__init__(history_length, name)
        self.database_url = database_url
        self._lock = asyncio.Lock()

        try:
            self.engine = make_engine(database_url)
            Base.metadata.create_all(self.engine)
            self.SessionLocal = sessionmaker(
                autocommit=False, autoflush=False, bind=self.engine
            )
            # Sync the occupancy counter with what is already stored
            with self.SessionLocal() as session:
                self._event_count = self._count(session)
        except SQLAlchemyError as e:
            log_error("Failed to open history store", database_url=database_url, error=str(e))
            raise PersistenceError(f"Failed to open history store: {e}") from e

        log_info(
            "Database history loaded",
            database_url=database_url,
            events=self._event_count,
            history_length=history_length,
        )

    async def uniquify(self, date_bucket: str, subject_id: str) -> str:
        """Hand out the first free second offset of the bucket."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            try:
                chosen, count, removed = await loop.run_in_executor(
                    None, self._uniquify_sync, date_bucket, subject_id
                )
            except ExhaustionError:
                self._record_exhaustion()
                raise
            except PersistenceError:
                self._record_error()
                raise

            self._event_count = count
            self._record_assignment()
            if removed:
                self._record_sweep(removed)
                log_debug(
                    "Database history swept",
                    removed=removed,
                    size=count,
                    history_length=self.history_length,
                )
            return chosen

    def _uniquify_sync(self, date_bucket: str, subject_id: str) -> Tuple[str, int, int]:
        """Run one check-insert-evict unit of work.

        Returns:
            The chosen event date, the stored event count after commit and
            the number of evicted rows
        """
        candidates = candidate_dates(date_bucket)

        with self.SessionLocal() as session:
            try:
                taken = set(
                    session.scalars(
                        select(EventORM.event_date).where(
                            EventORM.patient_code == subject_id,
                            EventORM.event_date.in_(candidates),
                        )
                    ).all()
                )
                chosen = next((c for c in candidates if c not in taken), None)
                if chosen is None:
                    raise ExhaustionError(date_bucket, subject_id)

                session.add(
                    EventORM(event_date=chosen, patient_code=subject_id, created=utcnow())
                )
                session.flush()

                count = self._count(session)
                removed = 0
                if self._needs_sweep(count):
                    removed = self._sweep(session)
                    count = self._count(session)

                session.commit()
                return chosen, count, removed

            except ExhaustionError:
                session.rollback()
                raise
            except SQLAlchemyError as e:
                session.rollback()
                raise PersistenceError(
                    f"Failed to store event date for '{date_bucket}': {e}"
                ) from e

    def _sweep(self, session: Session) -> int:
        """Delete every event older than the newest ``history_length`` ones."""
        stale_ids = session.scalars(
            select(EventORM.id)
            .order_by(EventORM.created.desc(), EventORM.id.desc())
            .offset(self.history_length)
        ).all()
        if not stale_ids:
            return 0

        session.execute(
            delete(EventORM)
            .where(EventORM.id.in_(stale_ids))
            .execution_options(synchronize_session=False)
        )
        return len(stale_ids)

    @staticmethod
    def _count(session: Session) -> int:
        return session.scalar(select(func.count()).select_from(EventORM)) or 0

    def size(self) -> int:
        return self._event_count

    def snapshot(self) -> List[Assignment]:
        """Stored assignments, oldest first."""
        with self.SessionLocal() as session:
            rows = session.scalars(
                select(EventORM).order_by(EventORM.created.asc(), EventORM.id.asc())
            ).all()
            return [
                Assignment(event_date=row.event_date, subject_id=row.patient_code, created=row.created)
                for row in rows
            ]

    def get_stats(self) -> Dict[str, Any]:
        return {
            **super().get_stats(),
            "persistent": True,
            "database_url": self.database_url,
        }

    async def close(self) -> None:
        """Dispose of the connection pool."""
        async with self._lock:
            self.engine.dispose()
