"""Polling worker that drains the indexing queue."""

import asyncio
import logging

from indexsync.domain.indexing.model.job import FailureResolution, IndexingJob, JobResult
from indexsync.domain.indexing.port.handler import IndexingJobHandler
from indexsync.domain.indexing.port.queue import IndexingQueue
from indexsync.domain.indexing.service.metrics import IndexingMetrics

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_RESERVATION_TIMEOUT = 300.0
DEFAULT_STALE_CHECK_INTERVAL = 60.0


class IndexingWorker:
    """Single control loop: reserve a batch, dispatch each job in order, repeat.

    Sleeps ``poll_interval`` seconds whenever a reservation comes back empty.
    Stopping is cooperative: no new batch is reserved, but the batch in
    flight finishes. A companion task periodically releases reservations
    older than ``reservation_timeout`` so jobs held by a crashed worker
    become eligible again.

    Example:
        worker = IndexingWorker(queue, handler, metrics, batch_size=25)
        await worker.start()
        ...
        await worker.stop()
    """

    def __init__(
        self,
        queue: IndexingQueue,
        handler: IndexingJobHandler,
        metrics: IndexingMetrics,
        batch_size: int = DEFAULT_BATCH_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        reservation_timeout: float = DEFAULT_RESERVATION_TIMEOUT,
        stale_check_interval: float = DEFAULT_STALE_CHECK_INTERVAL,
    ) -> None:
        self._queue = queue
        self._handler = handler
        self._metrics = metrics
        self._batch_size = batch_size
        self._poll_interval = poll_interval
        self._reservation_timeout = reservation_timeout
        self._stale_check_interval = stale_check_interval
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._stale_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="indexing-worker")
        if self._stale_check_interval > 0:
            self._stale_task = asyncio.create_task(
                self._run_stale_release(), name="indexing-worker-stale-release"
            )
        logger.info(
            f"Indexing worker started (batch_size={self._batch_size}, "
            f"poll_interval={self._poll_interval}s)"
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the in-flight batch to finish."""
        if self._task is None:
            return

        self._stop_event.set()
        task, self._task = self._task, None
        stale_task, self._stale_task = self._stale_task, None

        if stale_task is not None and not stale_task.done():
            stale_task.cancel()
            try:
                await stale_task
            except asyncio.CancelledError:
                pass

        await task
        logger.info("Indexing worker stopped")

    async def process_next_batch(self) -> int:
        """Reserve and dispatch one batch.

        Returns:
            Number of jobs reserved; 0 means the queue had nothing ready.
        """
        jobs = await self._queue.reserve_batch(self._batch_size)
        for job in jobs:
            await self._dispatch(job)
        return len(jobs)

    async def _dispatch(self, job: IndexingJob) -> None:
        self._metrics.record_processed(job.entity_type)

        try:
            result = await self._handler.handle(job)
            await self._queue.complete(job.id, job.reservation_id)
        except Exception as e:
            await self._handle_failure(job, e)
            return

        if result is JobResult.SKIPPED:
            self._metrics.record_skipped(job.entity_type)
        else:
            self._metrics.record_success(job.entity_type)
        logger.debug(f"Indexing job {job.id} finished: {result.value}")

    async def _handle_failure(self, job: IndexingJob, error: Exception) -> None:
        try:
            resolution = await self._queue.fail(job, error)
        except Exception:
            # The reservation goes stale and the job comes back after reservation_timeout.
            logger.exception(f"Could not record failure of indexing job {job.id}: {error}")
            self._metrics.record_retry(job.entity_type, str(error))
            return

        if resolution is FailureResolution.RETRY:
            self._metrics.record_retry(job.entity_type, str(error))
            logger.warning(
                f"Indexing job {job.id} failed (attempt {job.attempts}/{job.max_attempts}); "
                f"scheduled for retry: {error}"
            )
            return

        self._metrics.record_dead_letter(job.entity_type, str(error))
        logger.error(
            f"Indexing job {job.id} failed after {job.attempts} attempts; "
            f"moved to dead-letter queue: {error}"
        )

    async def _run(self) -> None:
        """Main worker loop."""
        try:
            while not self._stop_event.is_set():
                try:
                    processed = await self.process_next_batch()
                except Exception as e:
                    logger.exception(f"Indexing worker poll failed: {e}")
                    processed = 0

                if self._stop_event.is_set():
                    break
                if processed == 0:
                    await self._idle(self._poll_interval)
        except asyncio.CancelledError:
            logger.info("Indexing worker cancelled")
            raise

    async def _idle(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early on stop."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _run_stale_release(self) -> None:
        """Periodically release reservations held past the timeout."""
        while not self._stop_event.is_set():
            await self._idle(self._stale_check_interval)
            if self._stop_event.is_set():
                break
            try:
                count = await self._queue.release_stale(self._reservation_timeout)
                if count > 0:
                    logger.info(f"Released {count} stale reservations")
            except Exception as e:
                logger.error(f"Stale reservation release failed: {e}")
