from typing import AsyncIterable

from dishka import Provider, Scope, provide
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from indexsync.config import Config
from indexsync.domain.indexing.port.queue import IndexingQueue
from indexsync.domain.indexing.port.repository import ReviewIndexingRepository
from indexsync.infrastructure.persistence.database import (
    create_db_engine,
    create_session_factory,
)
from indexsync.infrastructure.persistence.repository.review import (
    SQLAlchemyReviewIndexingRepository,
)
from indexsync.infrastructure.queue.durable import SQLAlchemyIndexingQueue
from indexsync.infrastructure.queue.memory import InMemoryIndexingQueue


class PersistenceProvider(Provider):
    # Factories require method syntax
    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterable[AsyncEngine]:
        engine = create_db_engine(config.database)
        yield engine
        await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_factory(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return create_session_factory(engine)

    @provide(scope=Scope.APP)
    def get_review_repository(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> ReviewIndexingRepository:
        return SQLAlchemyReviewIndexingRepository(session_factory)

    @provide(scope=Scope.APP)
    def get_indexing_queue(
        self, config: Config, session_factory: async_sessionmaker[AsyncSession]
    ) -> IndexingQueue:
        if config.queue.backend == "memory":
            return InMemoryIndexingQueue(default_max_attempts=config.queue.default_max_attempts)
        return SQLAlchemyIndexingQueue(
            session_factory, default_max_attempts=config.queue.default_max_attempts
        )
