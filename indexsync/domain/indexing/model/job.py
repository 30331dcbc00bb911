"""Queue entries, dead-letter records and the closed variants that describe them."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from indexsync.domain.shared.clock import utc_now
from indexsync.domain.shared.model.value import ValueObject


class EntityType(str, Enum):
    """Kinds of entity the pipeline indexes."""

    REVIEW = "review"


class IndexingOperation(str, Enum):
    UPSERT = "UPSERT"
    DELETE = "DELETE"


class JobResult(str, Enum):
    """Outcome of handling one job successfully."""

    INDEXED = "indexed"
    DELETED = "deleted"
    SKIPPED = "skipped"


class FailureResolution(str, Enum):
    """What the queue did with a failed job."""

    RETRY = "retry"
    DEAD_LETTER = "dead-letter"


class IndexingEvent(ValueObject):
    """Intent to index or delete one entity.

    Attributes:
        id: Producer-supplied job identifier; enqueueing the same id upserts.
        entity_type: Kind of entity.
        entity_id: Identifier of the entity in the relational store.
        operation: UPSERT or DELETE.
        cursor: Last-modified watermark of the state that produced the event.
        available_at: Earliest processing time; the queue defaults it to now.
        metadata: Opaque key-value bag carried through to dead letters.
        max_attempts: Retry budget; the queue defaults it when absent.
    """

    id: str = Field(min_length=1)
    entity_type: EntityType
    entity_id: str = Field(min_length=1)
    operation: IndexingOperation
    cursor: datetime | None = None
    available_at: datetime | None = None
    metadata: dict[str, Any] | None = None
    max_attempts: int | None = Field(default=None, ge=1)


class IndexingJob(ValueObject):
    """A live queue entry as handed to the worker by ``reserve_batch``.

    ``reservation_id`` identifies the reservation that produced this copy. A
    re-enqueue of the same id while the job is in flight clears it, so
    completing or failing a superseded reservation leaves the newer job live.
    """

    id: str
    entity_type: EntityType
    entity_id: str
    operation: IndexingOperation
    cursor: datetime | None = None
    available_at: datetime
    metadata: dict[str, Any] | None = None
    attempts: int = 0
    max_attempts: int
    last_error: str | None = None
    reservation_id: str | None = None


class DeadLetterItem(ValueObject):
    """Terminal record of a job that exhausted its retry budget."""

    id: str
    job_id: str
    entity_type: EntityType
    entity_id: str
    operation: IndexingOperation
    cursor: datetime | None = None
    metadata: dict[str, Any] | None = None
    attempts: int
    error: str
    failed_at: datetime = Field(default_factory=utc_now)


def truncate_error(message: str, limit: int = 1000) -> str:
    """Cap stored error text at ``limit`` characters."""
    if len(message) <= limit:
        return message
    return f"{message[:limit]}…"
