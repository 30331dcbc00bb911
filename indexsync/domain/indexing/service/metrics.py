"""IndexingMetrics - in-process counters for worker outcomes."""

from dataclasses import dataclass, field, replace
from datetime import datetime

from indexsync.domain.indexing.model.job import EntityType
from indexsync.domain.shared.clock import Clock, utc_now


@dataclass
class EntityCounters:
    processed: int = 0
    succeeded: int = 0
    retried: int = 0
    dead_lettered: int = 0
    skipped: int = 0

    @property
    def failed(self) -> int:
        return self.retried + self.dead_lettered


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time copy of the counters.

    Attributes:
        processed: Jobs reserved and dispatched.
        succeeded: Jobs that indexed or deleted a document.
        retried: Failures scheduled for retry.
        dead_lettered: Failures that exhausted their retry budget.
        skipped: Jobs that completed without touching the index.
        failed: retried + dead_lettered.
        per_entity: The same counters broken down by entity type.
        last_error: Message of the most recent failure.
        last_updated_at: When any counter last changed.
    """

    processed: int
    succeeded: int
    retried: int
    dead_lettered: int
    skipped: int
    failed: int
    per_entity: dict[EntityType, EntityCounters] = field(default_factory=dict)
    last_error: str | None = None
    last_updated_at: datetime | None = None


class IndexingMetrics:
    """Monotonic counters for operational visibility. Never reset."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._totals = EntityCounters()
        self._per_entity: dict[EntityType, EntityCounters] = {}
        self._last_error: str | None = None
        self._last_updated_at: datetime | None = None

    def record_processed(self, entity_type: EntityType) -> None:
        self._totals.processed += 1
        self._entity(entity_type).processed += 1
        self._touch()

    def record_success(self, entity_type: EntityType) -> None:
        self._totals.succeeded += 1
        self._entity(entity_type).succeeded += 1
        self._touch()

    def record_skipped(self, entity_type: EntityType) -> None:
        self._totals.skipped += 1
        self._entity(entity_type).skipped += 1
        self._touch()

    def record_retry(self, entity_type: EntityType, error: str) -> None:
        self._totals.retried += 1
        self._entity(entity_type).retried += 1
        self._touch(error)

    def record_dead_letter(self, entity_type: EntityType, error: str) -> None:
        self._totals.dead_lettered += 1
        self._entity(entity_type).dead_lettered += 1
        self._touch(error)

    def snapshot(self) -> MetricsSnapshot:
        return MetricsSnapshot(
            processed=self._totals.processed,
            succeeded=self._totals.succeeded,
            retried=self._totals.retried,
            dead_lettered=self._totals.dead_lettered,
            skipped=self._totals.skipped,
            failed=self._totals.failed,
            per_entity={k: replace(v) for k, v in self._per_entity.items()},
            last_error=self._last_error,
            last_updated_at=self._last_updated_at,
        )

    def _entity(self, entity_type: EntityType) -> EntityCounters:
        if entity_type not in self._per_entity:
            self._per_entity[entity_type] = EntityCounters()
        return self._per_entity[entity_type]

    def _touch(self, error: str | None = None) -> None:
        self._last_updated_at = self._clock()
        if error:
            self._last_error = error
