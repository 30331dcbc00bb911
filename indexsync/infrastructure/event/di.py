import functools

import asyncpg
from dishka import Provider, Scope, provide

from indexsync.config import Config
from indexsync.domain.indexing.port.queue import IndexingQueue
from indexsync.domain.indexing.port.repository import ReviewIndexingRepository
from indexsync.domain.indexing.port.search_engine import SearchEngine
from indexsync.domain.indexing.service.metrics import IndexingMetrics
from indexsync.infrastructure.event.pipeline import (
    ReviewIndexingPipeline,
    create_review_indexing_pipeline,
)
from indexsync.infrastructure.persistence.database import to_asyncpg_dsn


class EventProvider(Provider):
    @provide(scope=Scope.APP)
    def get_metrics(self) -> IndexingMetrics:
        return IndexingMetrics()

    @provide(scope=Scope.APP)
    def get_pipeline(
        self,
        config: Config,
        repository: ReviewIndexingRepository,
        client: SearchEngine,
        queue: IndexingQueue,
        metrics: IndexingMetrics,
    ) -> ReviewIndexingPipeline:
        connect = None
        if config.subscriber.enabled:
            connect = functools.partial(asyncpg.connect, to_asyncpg_dsn(config.database.url))

        return create_review_indexing_pipeline(
            repository,
            client,
            queue,
            config.search.index_name,
            connect,
            refresh=config.search.refresh,
            delete_on_missing=config.worker.delete_on_missing,
            channel=config.subscriber.channel,
            reconnect_delay=config.subscriber.reconnect_delay,
            batch_size=config.worker.batch_size,
            poll_interval=config.worker.poll_interval,
            reservation_timeout=config.worker.reservation_timeout,
            stale_check_interval=config.worker.stale_check_interval,
            metrics=metrics,
        )
