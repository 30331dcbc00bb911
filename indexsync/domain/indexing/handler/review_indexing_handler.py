"""ReviewIndexingHandler - resolves one job into an index mutation."""

import logging

import logfire

from indexsync.domain.indexing.model.job import IndexingJob, IndexingOperation, JobResult
from indexsync.domain.indexing.port.repository import ReviewIndexingRepository
from indexsync.domain.indexing.port.search_engine import RefreshPolicy, SearchEngine
from indexsync.domain.indexing.service.document_builder import build_review_document
from indexsync.domain.shared.clock import ensure_utc
from indexsync.domain.shared.error import SearchEngineError
from indexsync.domain.shared.service import Service

logger = logging.getLogger(__name__)


class ReviewIndexingHandler(Service):
    """Upserts or deletes the search document for a review job.

    UPSERT jobs never index the event payload: the review is re-fetched and
    the job is skipped when the fetched state is newer than the job's cursor.
    Out-of-order and duplicate deliveries therefore converge on the latest
    committed state.

    Attributes:
        repository: Loads the current review projection.
        client: Search engine receiving the writes.
        index_name: Target index or write alias.
        refresh: Refresh policy for index and delete calls.
        delete_on_missing: Turn UPSERTs for vanished reviews into deletes.
    """

    repository: ReviewIndexingRepository
    client: SearchEngine
    index_name: str
    refresh: RefreshPolicy = RefreshPolicy.FALSE
    delete_on_missing: bool = True

    async def handle(self, job: IndexingJob) -> JobResult:
        with logfire.span(
            "index {entity_type} {entity_id}",
            entity_type=job.entity_type.value,
            entity_id=job.entity_id,
            operation=job.operation.value,
            attempt=job.attempts,
        ):
            if job.operation is IndexingOperation.DELETE:
                return await self._delete(job)
            return await self._upsert(job)

    async def _upsert(self, job: IndexingJob) -> JobResult:
        review = await self.repository.get_by_id(job.entity_id)

        if review is None:
            if not self.delete_on_missing:
                logger.warning(
                    "Review %s missing during upsert; skipping (delete_on_missing=False)",
                    job.entity_id,
                )
                return JobResult.SKIPPED
            logger.info("Review %s missing; deleting stale document", job.entity_id)
            return await self._delete(job)

        # No cursor means no staleness assertion is possible; index current state.
        if job.cursor is not None and ensure_utc(review.updated_at) > ensure_utc(job.cursor):
            logger.debug(
                "Skipping stale job %s: review %s updated at %s, job cursor %s",
                job.id,
                review.id,
                review.updated_at.isoformat(),
                job.cursor.isoformat(),
            )
            return JobResult.SKIPPED

        document = build_review_document(review)
        await self.client.index_document(
            self.index_name, review.id, document.to_body(), refresh=self.refresh
        )
        return JobResult.INDEXED

    async def _delete(self, job: IndexingJob) -> JobResult:
        try:
            await self.client.delete_document(self.index_name, job.entity_id, refresh=self.refresh)
        except SearchEngineError as e:
            if e.is_not_found:
                logger.debug("Document %s already absent from index", job.entity_id)
                return JobResult.SKIPPED
            raise
        return JobResult.DELETED
