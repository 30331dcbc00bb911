"""SQLAlchemy adapter implementing ReviewIndexingRepository."""

from collections import defaultdict
from typing import AsyncIterator

from sqlalchemy import and_, or_, select
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from indexsync.domain.indexing.model.review import (
    ActivityCount,
    BoostPurchase,
    CategoryTier,
    ReviewAuthor,
    ReviewForIndexing,
)
from indexsync.domain.indexing.port.repository import ReviewIndexingRepository
from indexsync.domain.shared.clock import ensure_utc
from indexsync.infrastructure.persistence.tables import (
    boost_purchases_table,
    category_tiers_table,
    review_activity_metrics_table,
    reviews_table,
    users_table,
)

_reviews = reviews_table
_users = users_table
_tiers = category_tiers_table


def _base_query():
    return (
        select(
            _reviews,
            _users.c.display_name.label("author_display_name"),
            _users.c.email.label("author_email"),
            _tiers.c.name.label("tier_name"),
            _tiers.c.priority.label("tier_priority"),
        )
        .join(_users, _reviews.c.user_id == _users.c.id)
        .outerjoin(_tiers, _reviews.c.category_tier_id == _tiers.c.id)
    )


class SQLAlchemyReviewIndexingRepository(ReviewIndexingRepository):
    """Loads review projections with their author, tier, activity and boosts.

    Each call opens its own short read transaction so the projection
    reflects the latest committed state.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, review_id: str) -> ReviewForIndexing | None:
        reviews = await self.list_by_ids([review_id])
        return reviews[0] if reviews else None

    async def list_by_ids(self, review_ids: list[str]) -> list[ReviewForIndexing]:
        if not review_ids:
            return []

        stmt = _base_query().where(_reviews.c.id.in_(review_ids))
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).fetchall()
            reviews = await self._hydrate(session, rows)

        by_id = {review.id: review for review in reviews}
        return [by_id[review_id] for review_id in review_ids if review_id in by_id]

    async def iter_all(self, page_size: int = 1000) -> AsyncIterator[ReviewForIndexing]:
        """Keyset-paginate over (updated_at, id)."""
        last_key = None
        while True:
            stmt = _base_query().order_by(_reviews.c.updated_at.asc(), _reviews.c.id.asc())
            if last_key is not None:
                last_updated_at, last_id = last_key
                stmt = stmt.where(
                    or_(
                        _reviews.c.updated_at > last_updated_at,
                        and_(
                            _reviews.c.updated_at == last_updated_at,
                            _reviews.c.id > last_id,
                        ),
                    )
                )
            stmt = stmt.limit(page_size)

            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).fetchall()
                page = await self._hydrate(session, rows)

            for review in page:
                yield review

            if len(rows) < page_size:
                return
            last_key = (rows[-1].updated_at, rows[-1].id)

    async def _hydrate(self, session: AsyncSession, rows: list[Row]) -> list[ReviewForIndexing]:
        if not rows:
            return []

        ids = [row.id for row in rows]
        activity: dict[str, list[ActivityCount]] = defaultdict(list)
        boosts: dict[str, list[BoostPurchase]] = defaultdict(list)

        activity_stmt = (
            select(review_activity_metrics_table)
            .where(review_activity_metrics_table.c.review_id.in_(ids))
            .order_by(review_activity_metrics_table.c.id)
        )
        for metric in (await session.execute(activity_stmt)).fetchall():
            activity[metric.review_id].append(
                ActivityCount(type=metric.type, quantity=metric.quantity)
            )

        boost_stmt = (
            select(boost_purchases_table)
            .where(boost_purchases_table.c.review_id.in_(ids))
            .order_by(boost_purchases_table.c.id)
        )
        for purchase in (await session.execute(boost_stmt)).fetchall():
            boosts[purchase.review_id].append(
                BoostPurchase(
                    id=purchase.id,
                    credits_purchased=purchase.credits_purchased,
                    credits_consumed=purchase.credits_consumed,
                )
            )

        return [
            self._to_model(row, activity.get(row.id, []), boosts.get(row.id, []))
            for row in rows
        ]

    def _to_model(
        self,
        row: Row,
        activity: list[ActivityCount],
        boosts: list[BoostPurchase],
    ) -> ReviewForIndexing:
        tier = None
        if row.category_tier_id is not None and row.tier_name is not None:
            tier = CategoryTier(
                id=row.category_tier_id,
                name=row.tier_name,
                priority=row.tier_priority,
            )

        return ReviewForIndexing(
            id=row.id,
            user_id=row.user_id,
            category_tier_id=row.category_tier_id,
            title=row.title,
            content=row.content,
            rating=row.rating,
            status=row.status,
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
            user=ReviewAuthor(
                id=row.user_id,
                display_name=row.author_display_name,
                email=row.author_email,
            ),
            category_tier=tier,
            activity_counts=tuple(activity),
            boost_purchases=tuple(boosts),
        )
