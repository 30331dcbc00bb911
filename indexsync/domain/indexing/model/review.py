"""ReviewForIndexing - denormalized read model loaded from the relational store."""

from datetime import datetime

from indexsync.domain.shared.model.value import ValueObject


class ReviewAuthor(ValueObject):
    id: str
    display_name: str
    email: str


class CategoryTier(ValueObject):
    id: str
    name: str
    priority: int


class ActivityCount(ValueObject):
    """One activity-count record attached to a review (e.g. type=VIEW, quantity=12)."""

    type: str
    quantity: int


class BoostPurchase(ValueObject):
    id: str
    credits_purchased: int
    credits_consumed: int


class ReviewForIndexing(ValueObject):
    """Projection of a review with everything the search document needs.

    Always re-fetched by id before indexing; never cached across jobs.
    """

    id: str
    user_id: str
    category_tier_id: str | None = None
    title: str
    content: str
    rating: int
    status: str
    created_at: datetime
    updated_at: datetime
    user: ReviewAuthor
    category_tier: CategoryTier | None = None
    activity_counts: tuple[ActivityCount, ...] = ()
    boost_purchases: tuple[BoostPurchase, ...] = ()
