"""Pure transform from ReviewForIndexing to ReviewSearchDocument."""

from datetime import datetime
from typing import Iterable

from indexsync.domain.indexing.model.document import (
    AdBoostStatus,
    CategoryTierLevel,
    DocumentAuthor,
    DocumentCategory,
    ReviewSearchDocument,
)
from indexsync.domain.indexing.model.review import (
    ActivityCount,
    BoostPurchase,
    ReviewForIndexing,
)
from indexsync.domain.shared.clock import ensure_utc

LOWER_TIER_MAX_PRIORITY = 33
MEDIUM_TIER_MAX_PRIORITY = 66


def category_tier_level(priority: int | None) -> CategoryTierLevel | None:
    if priority is None:
        return None
    if priority <= LOWER_TIER_MAX_PRIORITY:
        return CategoryTierLevel.LOWER
    if priority <= MEDIUM_TIER_MAX_PRIORITY:
        return CategoryTierLevel.MEDIUM
    return CategoryTierLevel.HIGHER


def activity_total_quantity(activity_counts: Iterable[ActivityCount]) -> int:
    return sum(activity.quantity for activity in activity_counts)


def boost_totals(boosts: Iterable[BoostPurchase]) -> tuple[int, int]:
    """Return (purchased, consumed) credits summed over the review's boosts."""
    purchased = 0
    consumed = 0
    for boost in boosts:
        purchased += boost.credits_purchased
        consumed += boost.credits_consumed
    return purchased, consumed


def ad_boost_status(remaining_credits: int) -> AdBoostStatus:
    return AdBoostStatus.BOOSTED if remaining_credits > 0 else AdBoostStatus.ORGANIC


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_review_document(review: ReviewForIndexing) -> ReviewSearchDocument:
    """Build the search document for a review.

    Deterministic: the same projection always yields the same document.
    """
    purchased, consumed = boost_totals(review.boost_purchases)
    remaining = max(purchased - consumed, 0)
    tier = review.category_tier

    return ReviewSearchDocument(
        id=review.id,
        user_id=review.user_id,
        category_tier_id=review.category_tier_id,
        category_tier_level=category_tier_level(tier.priority if tier else None),
        title=review.title,
        content=review.content,
        rating=review.rating,
        status=review.status,
        created_at=format_timestamp(review.created_at),
        updated_at=format_timestamp(review.updated_at),
        author=DocumentAuthor(
            id=review.user.id,
            display_name=review.user.display_name,
            email=review.user.email,
        ),
        category=(
            DocumentCategory(id=tier.id, name=tier.name, priority=tier.priority)
            if tier
            else None
        ),
        activity_total_quantity=activity_total_quantity(review.activity_counts),
        boost_credits_purchased=purchased,
        boost_credits_consumed=consumed,
        boost_credits_remaining=remaining,
        ad_boost_status=ad_boost_status(remaining),
    )
