"""Process-local IndexingQueue for tests and single-node operation."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import uuid4

from indexsync.domain.indexing.model.job import (
    DeadLetterItem,
    FailureResolution,
    IndexingEvent,
    IndexingJob,
    truncate_error,
)
from indexsync.domain.indexing.port.queue import BackoffStrategy, IndexingQueue, exponential_backoff
from indexsync.domain.shared.clock import Clock, ensure_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


@dataclass
class _StoredJob:
    job: IndexingJob
    reserved_at: datetime | None = None

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.job.cursor or self.job.available_at, self.job.id)


class InMemoryIndexingQueue(IndexingQueue):
    """In-memory queue keyed by job id.

    State lives only as long as the process; dead letters are kept in
    insertion order and listed newest first.
    """

    def __init__(
        self,
        default_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: BackoffStrategy = exponential_backoff,
        clock: Clock = utc_now,
    ) -> None:
        self._jobs: dict[str, _StoredJob] = {}
        self._dead_letters: list[DeadLetterItem] = []
        self._default_max_attempts = default_max_attempts
        self._backoff = backoff
        self._clock = clock
        self._lock = asyncio.Lock()

    async def enqueue(self, event: IndexingEvent) -> None:
        async with self._lock:
            existing = self._jobs.get(event.id)
            cursor = ensure_utc(event.cursor) if event.cursor else None

            attempts = existing.job.attempts if existing else 0
            last_error = existing.job.last_error if existing else None
            if (
                existing is not None
                and existing.job.cursor is not None
                and cursor is not None
                and cursor > existing.job.cursor
            ):
                attempts = 0
                last_error = None

            max_attempts = event.max_attempts or (
                existing.job.max_attempts if existing else self._default_max_attempts
            )
            available_at = ensure_utc(event.available_at) if event.available_at else self._clock()

            self._jobs[event.id] = _StoredJob(
                job=IndexingJob(
                    id=event.id,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    operation=event.operation,
                    cursor=cursor,
                    available_at=available_at,
                    metadata=event.metadata,
                    attempts=attempts,
                    max_attempts=max_attempts,
                    last_error=last_error,
                )
            )

    async def reserve_batch(self, limit: int) -> list[IndexingJob]:
        if limit <= 0:
            return []

        async with self._lock:
            now = self._clock()
            ready = sorted(
                (
                    stored
                    for stored in self._jobs.values()
                    if stored.reserved_at is None and stored.job.available_at <= now
                ),
                key=lambda stored: stored.sort_key,
            )

            reservation_id = str(uuid4())
            reserved: list[IndexingJob] = []
            for stored in ready[:limit]:
                stored.job = stored.job.model_copy(
                    update={"attempts": stored.job.attempts + 1, "reservation_id": reservation_id}
                )
                stored.reserved_at = now
                reserved.append(stored.job)
            return reserved

    async def complete(self, job_id: str, reservation_id: str | None = None) -> None:
        async with self._lock:
            stored = self._jobs.get(job_id)
            if stored is None:
                return
            if reservation_id is not None and stored.job.reservation_id != reservation_id:
                logger.info(f"Job {job_id} was re-enqueued while in flight; keeping the newer job")
                return
            del self._jobs[job_id]

    async def fail(self, job: IndexingJob, error: Exception) -> FailureResolution:
        message = truncate_error(str(error))

        async with self._lock:
            stored = self._jobs.get(job.id)
            if stored is None:
                logger.warning(f"Job {job.id} no longer queued when failing; treating as dead-letter")
                return FailureResolution.DEAD_LETTER

            if job.reservation_id is not None and stored.job.reservation_id != job.reservation_id:
                logger.info(f"Job {job.id} was re-enqueued while in flight; leaving the newer job")
                return FailureResolution.RETRY

            if job.attempts >= job.max_attempts:
                del self._jobs[job.id]
                self._dead_letters.append(
                    DeadLetterItem(
                        id=str(uuid4()),
                        job_id=job.id,
                        entity_type=job.entity_type,
                        entity_id=job.entity_id,
                        operation=job.operation,
                        cursor=job.cursor,
                        metadata=job.metadata,
                        attempts=job.attempts,
                        error=message,
                        failed_at=self._clock(),
                    )
                )
                return FailureResolution.DEAD_LETTER

            delay = timedelta(milliseconds=self._backoff(job.attempts))
            stored.job = stored.job.model_copy(
                update={
                    "available_at": self._clock() + delay,
                    "last_error": message,
                    "reservation_id": None,
                }
            )
            stored.reserved_at = None
            return FailureResolution.RETRY

    async def dead_letters(self, limit: int | None = None) -> list[DeadLetterItem]:
        items = list(reversed(self._dead_letters))
        return items if limit is None else items[:limit]

    async def release_stale(self, timeout_seconds: float) -> int:
        async with self._lock:
            cutoff = self._clock() - timedelta(seconds=timeout_seconds)
            released = 0
            for stored in self._jobs.values():
                if stored.reserved_at is not None and stored.reserved_at < cutoff:
                    stored.reserved_at = None
                    stored.job = stored.job.model_copy(update={"reservation_id": None})
                    released += 1
            return released

    async def pending_count(self) -> int:
        return len(self._jobs)
