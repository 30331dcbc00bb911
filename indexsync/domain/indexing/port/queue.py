"""IndexingQueue port - durable or in-memory store of pending indexing jobs."""

from typing import Callable, Protocol

from indexsync.domain.indexing.model.job import (
    DeadLetterItem,
    FailureResolution,
    IndexingEvent,
    IndexingJob,
)

# Maps an attempt count to a retry delay in milliseconds.
BackoffStrategy = Callable[[int], int]

BASE_BACKOFF_MS = 1000


def exponential_backoff(attempt: int) -> int:
    """Default retry schedule: 0 for attempt <= 0, else 1s * 2^(attempt-1)."""
    if attempt <= 0:
        return 0
    return BASE_BACKOFF_MS * 2 ** (attempt - 1)


def no_backoff(attempt: int) -> int:
    return 0


class IndexingQueue(Protocol):
    """Queue of indexing jobs.

    Implementations must make ``reserve_batch`` atomic: a job handed to one
    caller is not handed to another until it is failed back or its
    reservation goes stale.
    """

    async def enqueue(self, event: IndexingEvent) -> None:
        """Insert or replace the live job with ``event.id``.

        Retry state (attempts, last error) survives the replacement unless the
        stored job and the incoming event both carry a cursor and the incoming
        one is strictly newer.
        """
        ...

    async def reserve_batch(self, limit: int) -> list[IndexingJob]:
        """Reserve up to ``limit`` ready jobs, incrementing their attempts.

        Returns jobs ordered by cursor ascending with a deterministic
        tiebreak. An empty list means nothing is ready.
        """
        ...

    async def complete(self, job_id: str, reservation_id: str | None = None) -> None:
        """Remove a job. No-op when it no longer exists.

        With ``reservation_id`` the job is removed only while that reservation
        is still current; a job re-enqueued in the meantime stays live.
        """
        ...

    async def fail(self, job: IndexingJob, error: Exception) -> FailureResolution:
        """Schedule a retry with backoff, or dead-letter an exhausted job.

        A job whose reservation was superseded by a re-enqueue is left as is
        and reported as ``RETRY``; it is picked up by a later reservation.
        """
        ...

    async def dead_letters(self, limit: int | None = None) -> list[DeadLetterItem]:
        """List dead-lettered items, most recent first."""
        ...

    async def release_stale(self, timeout_seconds: float) -> int:
        """Clear reservations older than ``timeout_seconds``.

        A released reservation can no longer complete or fail its job.

        Returns:
            Number of jobs made eligible again.
        """
        ...

    async def pending_count(self) -> int:
        """Number of live jobs, reserved or not."""
        ...
