"""ReviewSearchDocument - the shape written to the search index."""

from enum import Enum
from typing import Any

from indexsync.domain.shared.model.value import CamelValueObject


class CategoryTierLevel(str, Enum):
    LOWER = "lower"
    MEDIUM = "medium"
    HIGHER = "higher"


class AdBoostStatus(str, Enum):
    BOOSTED = "boosted"
    ORGANIC = "organic"


class DocumentAuthor(CamelValueObject):
    id: str
    display_name: str
    email: str


class DocumentCategory(CamelValueObject):
    id: str
    name: str
    priority: int


class ReviewSearchDocument(CamelValueObject):
    id: str
    user_id: str
    category_tier_id: str | None
    category_tier_level: CategoryTierLevel | None
    title: str
    content: str
    rating: int
    status: str
    created_at: str
    updated_at: str
    author: DocumentAuthor
    category: DocumentCategory | None
    activity_total_quantity: int
    boost_credits_purchased: int
    boost_credits_consumed: int
    boost_credits_remaining: int
    ad_boost_status: AdBoostStatus

    def to_body(self) -> dict[str, Any]:
        """Serialize with camelCase keys, as stored in the index."""
        return self.model_dump(mode="json", by_alias=True)
