"""SQLAlchemy-backed IndexingQueue.

Jobs live in ``search_indexing_jobs`` until completed or dead-lettered into
``search_indexing_dead_letters``. Reservation uses FOR UPDATE SKIP LOCKED so
several workers can share one table; SQLite ignores the locking clause and
relies on its single-writer transactions instead.
"""

import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, case, delete, func, insert, null, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indexsync.domain.indexing.model.job import (
    DeadLetterItem,
    EntityType,
    FailureResolution,
    IndexingEvent,
    IndexingJob,
    IndexingOperation,
    truncate_error,
)
from indexsync.domain.indexing.port.queue import BackoffStrategy, IndexingQueue, exponential_backoff
from indexsync.domain.shared.clock import Clock, ensure_utc, utc_now
from indexsync.domain.shared.error import ConfigurationError
from indexsync.infrastructure.persistence.tables import dead_letters_table, indexing_jobs_table

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5

_jobs = indexing_jobs_table
_dead = dead_letters_table


def _maybe_utc(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def _row_to_job(row: Row) -> IndexingJob:
    return IndexingJob(
        id=row.id,
        entity_type=EntityType(row.entity_type),
        entity_id=row.entity_id,
        operation=IndexingOperation(row.operation),
        cursor=_maybe_utc(row.cursor),
        available_at=ensure_utc(row.available_at),
        metadata=row._mapping["metadata"],
        attempts=row.attempts,
        max_attempts=row.max_attempts,
        last_error=row.last_error,
        reservation_id=row.reservation_id,
    )


def _row_to_dead_letter(row: Row) -> DeadLetterItem:
    return DeadLetterItem(
        id=row.id,
        job_id=row.job_id,
        entity_type=EntityType(row.entity_type),
        entity_id=row.entity_id,
        operation=IndexingOperation(row.operation),
        cursor=_maybe_utc(row.cursor),
        metadata=row._mapping["metadata"],
        attempts=row.attempts,
        error=row.error,
        failed_at=ensure_utc(row.failed_at),
    )


class SQLAlchemyIndexingQueue(IndexingQueue):
    """Durable queue over the relational store.

    Each operation runs in its own transaction obtained from the session
    factory, so the queue is safe to share between the subscriber and the
    worker.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: BackoffStrategy = exponential_backoff,
        clock: Clock = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._default_max_attempts = default_max_attempts
        self._backoff = backoff
        self._clock = clock

    async def enqueue(self, event: IndexingEvent) -> None:
        now = self._clock()
        values: dict[str, Any] = {
            "id": event.id,
            "entity_type": event.entity_type.value,
            "entity_id": event.entity_id,
            "operation": event.operation.value,
            "cursor": _maybe_utc(event.cursor),
            "available_at": _maybe_utc(event.available_at) or now,
            "metadata": event.metadata,
            "attempts": 0,
            "max_attempts": event.max_attempts or self._default_max_attempts,
            "last_error": None,
            "reserved_at": None,
            "reservation_id": None,
            "created_at": now,
            "updated_at": now,
        }

        async with self._session_factory.begin() as session:
            stmt = self._upsert_statement(session, values, event)
            await session.execute(stmt)

    def _upsert_statement(self, session: AsyncSession, values: dict[str, Any], event: IndexingEvent):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(_jobs).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(_jobs).values(**values)
        else:
            raise ConfigurationError(f"Unsupported database dialect for indexing queue: {dialect}")

        excluded = stmt.excluded
        newer_cursor = and_(
            _jobs.c.cursor.is_not(None),
            excluded.cursor.is_not(None),
            excluded.cursor > _jobs.c.cursor,
        )
        return stmt.on_conflict_do_update(
            index_elements=[_jobs.c.id],
            set_={
                "entity_type": excluded.entity_type,
                "entity_id": excluded.entity_id,
                "operation": excluded.operation,
                "cursor": excluded.cursor,
                "available_at": excluded.available_at,
                "metadata": excluded["metadata"],
                "attempts": case((newer_cursor, 0), else_=_jobs.c.attempts),
                "last_error": case((newer_cursor, null()), else_=_jobs.c.last_error),
                "max_attempts": (
                    excluded.max_attempts
                    if event.max_attempts is not None
                    else _jobs.c.max_attempts
                ),
                "reserved_at": None,
                "reservation_id": None,
                "updated_at": excluded.updated_at,
            },
        )

    async def reserve_batch(self, limit: int) -> list[IndexingJob]:
        if limit <= 0:
            return []

        now = self._clock()
        async with self._session_factory.begin() as session:
            stmt = (
                select(_jobs)
                .where(
                    _jobs.c.reserved_at.is_(None),
                    _jobs.c.available_at <= now,
                )
                .order_by(
                    func.coalesce(_jobs.c.cursor, _jobs.c.available_at).asc(),
                    _jobs.c.created_at.asc(),
                    _jobs.c.id.asc(),
                )
                .limit(limit)
                .with_for_update(skip_locked=True)
            )
            rows = (await session.execute(stmt)).fetchall()
            if not rows:
                return []

            reservation_id = str(uuid4())
            await session.execute(
                update(_jobs)
                .where(_jobs.c.id.in_([row.id for row in rows]))
                .values(
                    attempts=_jobs.c.attempts + 1,
                    reserved_at=now,
                    reservation_id=reservation_id,
                    updated_at=now,
                )
            )

        return [
            _row_to_job(row).model_copy(
                update={"attempts": row.attempts + 1, "reservation_id": reservation_id}
            )
            for row in rows
        ]

    async def complete(self, job_id: str, reservation_id: str | None = None) -> None:
        stmt = delete(_jobs).where(_jobs.c.id == job_id)
        if reservation_id is not None:
            stmt = stmt.where(_jobs.c.reservation_id == reservation_id)

        async with self._session_factory.begin() as session:
            result = await session.execute(stmt)
        if reservation_id is not None and not result.rowcount:
            logger.info(f"Job {job_id} was re-enqueued or removed while in flight; nothing deleted")

    async def fail(self, job: IndexingJob, error: Exception) -> FailureResolution:
        message = truncate_error(str(error))
        now = self._clock()

        async with self._session_factory.begin() as session:
            stmt = (
                select(_jobs.c.id, _jobs.c.reservation_id)
                .where(_jobs.c.id == job.id)
                .with_for_update()
            )
            current = (await session.execute(stmt)).first()
            if current is None:
                logger.warning(f"Job {job.id} no longer queued when failing; treating as dead-letter")
                return FailureResolution.DEAD_LETTER

            if job.reservation_id is not None and current.reservation_id != job.reservation_id:
                logger.info(f"Job {job.id} was re-enqueued while in flight; leaving the newer job")
                return FailureResolution.RETRY

            if job.attempts >= job.max_attempts:
                await session.execute(
                    insert(_dead).values(
                        id=str(uuid4()),
                        job_id=job.id,
                        entity_type=job.entity_type.value,
                        entity_id=job.entity_id,
                        operation=job.operation.value,
                        cursor=job.cursor,
                        metadata=job.metadata,
                        attempts=job.attempts,
                        error=message,
                        failed_at=now,
                    )
                )
                await session.execute(delete(_jobs).where(_jobs.c.id == job.id))
                return FailureResolution.DEAD_LETTER

            delay = timedelta(milliseconds=self._backoff(job.attempts))
            await session.execute(
                update(_jobs)
                .where(_jobs.c.id == job.id)
                .values(
                    available_at=now + delay,
                    last_error=message,
                    reserved_at=None,
                    reservation_id=None,
                    updated_at=now,
                )
            )
            return FailureResolution.RETRY

    async def dead_letters(self, limit: int | None = None) -> list[DeadLetterItem]:
        stmt = select(_dead).order_by(_dead.c.failed_at.desc(), _dead.c.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).fetchall()
        return [_row_to_dead_letter(row) for row in rows]

    async def release_stale(self, timeout_seconds: float) -> int:
        now = self._clock()
        cutoff = now - timedelta(seconds=timeout_seconds)

        async with self._session_factory.begin() as session:
            result = await session.execute(
                update(_jobs)
                .where(_jobs.c.reserved_at.is_not(None), _jobs.c.reserved_at < cutoff)
                .values(reserved_at=None, reservation_id=None, updated_at=now)
            )
        count = result.rowcount or 0
        if count > 0:
            logger.info(f"Released {count} stale reservations (older than {timeout_seconds}s)")
        return count

    async def pending_count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(_jobs))
            return result.scalar() or 0
