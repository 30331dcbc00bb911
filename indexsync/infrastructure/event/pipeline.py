"""ReviewIndexingPipeline - subscriber and worker under one start/stop surface."""

import logging

from indexsync.domain.indexing.handler import ReviewIndexingHandler
from indexsync.domain.indexing.port.queue import IndexingQueue
from indexsync.domain.indexing.port.repository import ReviewIndexingRepository
from indexsync.domain.indexing.port.search_engine import RefreshPolicy, SearchEngine
from indexsync.domain.indexing.service.metrics import IndexingMetrics
from indexsync.infrastructure.event.subscriber import (
    DEFAULT_CHANNEL,
    DEFAULT_RECONNECT_DELAY,
    Connector,
    PostgresChangeSubscriber,
)
from indexsync.infrastructure.event.worker import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RESERVATION_TIMEOUT,
    DEFAULT_STALE_CHECK_INTERVAL,
    IndexingWorker,
)

logger = logging.getLogger(__name__)


class ReviewIndexingPipeline:
    """Owns the change subscriber and the worker.

    ``start`` subscribes first so no notification is missed while the worker
    spins up; ``stop`` stops the worker before unsubscribing. Both are
    idempotent. Without a subscriber the pipeline only drains the queue.
    """

    def __init__(
        self,
        queue: IndexingQueue,
        worker: IndexingWorker,
        metrics: IndexingMetrics,
        subscriber: PostgresChangeSubscriber | None = None,
    ) -> None:
        self._queue = queue
        self._worker = worker
        self._metrics = metrics
        self._subscriber = subscriber
        self._running = False

    @property
    def queue(self) -> IndexingQueue:
        return self._queue

    @property
    def metrics(self) -> IndexingMetrics:
        return self._metrics

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return

        if self._subscriber is not None:
            await self._subscriber.start()
        await self._worker.start()
        self._running = True
        logger.info("Review indexing pipeline started")

    async def stop(self) -> None:
        if not self._running:
            return

        await self._worker.stop()
        if self._subscriber is not None:
            await self._subscriber.stop()
        self._running = False
        logger.info("Review indexing pipeline stopped")

    async def __aenter__(self) -> "ReviewIndexingPipeline":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.stop()


def create_review_indexing_pipeline(
    repository: ReviewIndexingRepository,
    client: SearchEngine,
    queue: IndexingQueue,
    index_name: str,
    connect: Connector | None = None,
    *,
    refresh: RefreshPolicy = RefreshPolicy.FALSE,
    delete_on_missing: bool = True,
    channel: str = DEFAULT_CHANNEL,
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    batch_size: int = DEFAULT_BATCH_SIZE,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    reservation_timeout: float = DEFAULT_RESERVATION_TIMEOUT,
    stale_check_interval: float = DEFAULT_STALE_CHECK_INTERVAL,
    metrics: IndexingMetrics | None = None,
) -> ReviewIndexingPipeline:
    """Wire handler, worker and (when ``connect`` is given) subscriber around ``queue``."""
    metrics = metrics or IndexingMetrics()
    handler = ReviewIndexingHandler(
        repository=repository,
        client=client,
        index_name=index_name,
        refresh=refresh,
        delete_on_missing=delete_on_missing,
    )
    worker = IndexingWorker(
        queue,
        handler,
        metrics,
        batch_size=batch_size,
        poll_interval=poll_interval,
        reservation_timeout=reservation_timeout,
        stale_check_interval=stale_check_interval,
    )
    subscriber = None
    if connect is not None:
        subscriber = PostgresChangeSubscriber(
            connect, queue, channel=channel, reconnect_delay=reconnect_delay
        )
    return ReviewIndexingPipeline(queue, worker, metrics, subscriber)
