"""Indexing domain models."""

from indexsync.domain.indexing.model.document import (
    AdBoostStatus,
    CategoryTierLevel,
    ReviewSearchDocument,
)
from indexsync.domain.indexing.model.job import (
    DeadLetterItem,
    EntityType,
    FailureResolution,
    IndexingEvent,
    IndexingJob,
    IndexingOperation,
    JobResult,
)
from indexsync.domain.indexing.model.review import (
    ActivityCount,
    BoostPurchase,
    CategoryTier,
    ReviewAuthor,
    ReviewForIndexing,
)

__all__ = [
    "ActivityCount",
    "AdBoostStatus",
    "BoostPurchase",
    "CategoryTier",
    "CategoryTierLevel",
    "DeadLetterItem",
    "EntityType",
    "FailureResolution",
    "IndexingEvent",
    "IndexingJob",
    "IndexingOperation",
    "JobResult",
    "ReviewAuthor",
    "ReviewForIndexing",
    "ReviewSearchDocument",
]
