"""Global test fixtures."""

from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from indexsync.domain.indexing.model.job import (
    EntityType,
    IndexingEvent,
    IndexingJob,
    IndexingOperation,
)
from indexsync.domain.indexing.model.review import (
    ActivityCount,
    BoostPurchase,
    CategoryTier,
    ReviewAuthor,
    ReviewForIndexing,
)
from indexsync.infrastructure.persistence.database import create_session_factory
from indexsync.infrastructure.persistence.tables import metadata

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, milliseconds: float = 0) -> None:
        self.now += timedelta(seconds=seconds, milliseconds=milliseconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_review():
    def _make(
        review_id: str = "r1",
        *,
        updated_at: datetime = T0,
        priority: int | None = 50,
        activity: tuple[int, ...] = (),
        boosts: tuple[tuple[int, int], ...] = (),
    ) -> ReviewForIndexing:
        tier = (
            CategoryTier(id="tier-1", name="Electronics", priority=priority)
            if priority is not None
            else None
        )
        return ReviewForIndexing(
            id=review_id,
            user_id="u1",
            category_tier_id=tier.id if tier else None,
            title=f"Review {review_id}",
            content="Solid build, great battery.",
            rating=4,
            status="PUBLISHED",
            created_at=T0 - timedelta(days=1),
            updated_at=updated_at,
            user=ReviewAuthor(id="u1", display_name="Ada", email="ada@example.com"),
            category_tier=tier,
            activity_counts=tuple(
                ActivityCount(type="VIEW", quantity=quantity) for quantity in activity
            ),
            boost_purchases=tuple(
                BoostPurchase(id=f"b{i}", credits_purchased=p, credits_consumed=c)
                for i, (p, c) in enumerate(boosts)
            ),
        )

    return _make


@pytest.fixture
def make_event():
    def _make(
        event_id: str = "review:r1",
        entity_id: str = "r1",
        *,
        operation: IndexingOperation = IndexingOperation.UPSERT,
        cursor: datetime | None = None,
        available_at: datetime | None = None,
        max_attempts: int | None = None,
    ) -> IndexingEvent:
        return IndexingEvent(
            id=event_id,
            entity_type=EntityType.REVIEW,
            entity_id=entity_id,
            operation=operation,
            cursor=cursor,
            available_at=available_at,
            max_attempts=max_attempts,
        )

    return _make


@pytest.fixture
def make_job():
    def _make(
        job_id: str = "review:r1",
        entity_id: str = "r1",
        *,
        operation: IndexingOperation = IndexingOperation.UPSERT,
        cursor: datetime | None = None,
        attempts: int = 1,
        max_attempts: int = 5,
    ) -> IndexingJob:
        return IndexingJob(
            id=job_id,
            entity_type=EntityType.REVIEW,
            entity_id=entity_id,
            operation=operation,
            cursor=cursor,
            available_at=T0,
            attempts=attempts,
            max_attempts=max_attempts,
        )

    return _make


@pytest_asyncio.fixture
async def sqlite_engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return create_session_factory(sqlite_engine)
