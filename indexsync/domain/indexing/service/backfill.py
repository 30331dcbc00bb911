"""Bulk (re)indexing of every review, independent of incremental events."""

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, TypeVar

import logfire

from indexsync.domain.indexing.model.job import EntityType, IndexingEvent, IndexingOperation
from indexsync.domain.indexing.model.review import ReviewForIndexing
from indexsync.domain.indexing.port.queue import IndexingQueue
from indexsync.domain.indexing.port.repository import ReviewIndexingRepository
from indexsync.domain.indexing.port.search_engine import RefreshPolicy, SearchEngine
from indexsync.domain.indexing.service.document_builder import build_review_document
from indexsync.domain.shared.error import SearchEngineError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 500
BULK_OPERATIONS = ("index", "create", "update", "delete")


@dataclass(frozen=True)
class BackfillResult:
    total: int
    indexed: int
    failed: int
    batches: int


async def _chunks(items: AsyncIterator[T], size: int) -> AsyncIterator[list[T]]:
    chunk: list[T] = []
    async for item in items:
        chunk.append(item)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def extract_bulk_item_error(item: dict[str, Any] | None) -> str | None:
    """Return the failure reason of one bulk response item, or None if it succeeded."""
    if not item:
        return None

    operation = next((item[op] for op in BULK_OPERATIONS if op in item), None)
    if not isinstance(operation, dict):
        return None

    error = operation.get("error")
    if not error:
        return None
    if isinstance(error, str):
        return error
    if isinstance(error, dict) and isinstance(error.get("reason"), str):
        return error["reason"]
    return json.dumps(error)


def build_bulk_actions(index_name: str, reviews: list[ReviewForIndexing]) -> list[dict[str, Any]]:
    actions: list[dict[str, Any]] = []
    for review in reviews:
        document = build_review_document(review)
        actions.append({"index": {"_index": index_name, "_id": document.id}})
        actions.append(document.to_body())
    return actions


async def run_review_backfill(
    repository: ReviewIndexingRepository,
    client: SearchEngine,
    index_name: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    page_size: int = 1000,
    refresh: RefreshPolicy = RefreshPolicy.FALSE,
) -> BackfillResult:
    """Index every review in fixed-size bulk chunks.

    Item-level failures are counted and logged; they never stop later chunks.
    A chunk whose bulk request is rejected outright counts every document in
    it as failed.

    Args:
        repository: Source of review projections, ordered by updated_at.
        client: Search engine receiving the bulk requests.
        index_name: Target index or write alias.
        chunk_size: Documents per bulk request.
        page_size: Rows per repository page.
        refresh: Refresh policy applied to each bulk request.

    Returns:
        Aggregate counts across all chunks.
    """
    if chunk_size < 1:
        raise ValidationError("chunk_size must be >= 1", field="chunk_size")

    total = 0
    indexed = 0
    failed = 0
    batches = 0

    async for chunk in _chunks(repository.iter_all(page_size=page_size), chunk_size):
        total += len(chunk)
        batches += 1

        with logfire.span("backfill chunk {batch}", batch=batches, size=len(chunk)):
            try:
                response = await client.bulk(build_bulk_actions(index_name, chunk), refresh=refresh)
            except SearchEngineError as e:
                failed += len(chunk)
                logger.error(
                    "Bulk request for backfill chunk %d rejected (%d documents): %s",
                    batches,
                    len(chunk),
                    e,
                )
                continue

        items = response.get("items") if isinstance(response, dict) else None
        if not isinstance(items, list) or not items:
            indexed += len(chunk)
            continue

        chunk_failures = 0
        for item in items:
            error = extract_bulk_item_error(item)
            if error:
                chunk_failures += 1
                logger.error("Failed to index review during backfill: %s (item=%s)", error, item)
            else:
                indexed += 1
        failed += chunk_failures

        if response.get("errors"):
            logger.warning(
                "Bulk backfill chunk %d completed with %d of %d document failures",
                batches,
                chunk_failures,
                len(chunk),
            )

    logger.info(
        "Backfill finished: total=%d indexed=%d failed=%d batches=%d",
        total,
        indexed,
        failed,
        batches,
    )
    return BackfillResult(total=total, indexed=indexed, failed=failed, batches=batches)


def backfill_job_id(review_id: str) -> str:
    return f"backfill:{EntityType.REVIEW.value}:{review_id}"


async def enqueue_review_backfill(
    repository: ReviewIndexingRepository,
    queue: IndexingQueue,
    page_size: int = 1000,
) -> int:
    """Enqueue one cursorless UPSERT job per review for the worker to index.

    Returns:
        Number of jobs enqueued.
    """
    count = 0
    async for review in repository.iter_all(page_size=page_size):
        await queue.enqueue(
            IndexingEvent(
                id=backfill_job_id(review.id),
                entity_type=EntityType.REVIEW,
                entity_id=review.id,
                operation=IndexingOperation.UPSERT,
                metadata={"source": "backfill"},
            )
        )
        count += 1
    logger.info("Enqueued %d review backfill jobs", count)
    return count
