"""Backfill command - (re)index every review."""

import asyncio
import sys

import cyclopts

from indexsync.application.di import create_container
from indexsync.cli.commands import load_config
from indexsync.cli.console import get_console
from indexsync.config import Config
from indexsync.domain.indexing.port.queue import IndexingQueue
from indexsync.domain.indexing.port.repository import ReviewIndexingRepository
from indexsync.domain.indexing.port.search_engine import SearchEngine
from indexsync.domain.indexing.service.backfill import (
    BackfillResult,
    enqueue_review_backfill,
    run_review_backfill,
)
from indexsync.domain.shared.error import InfrastructureError

app = cyclopts.App(name="backfill", help="Reindex all reviews from the relational store")


async def run_direct(config: Config) -> BackfillResult:
    container = create_container(config)
    try:
        return await run_review_backfill(
            await container.get(ReviewIndexingRepository),
            await container.get(SearchEngine),
            config.search.index_name,
            chunk_size=config.backfill.chunk_size,
            page_size=config.backfill.page_size,
            refresh=config.search.refresh,
        )
    finally:
        await container.close()


async def run_via_queue(config: Config) -> int:
    container = create_container(config)
    try:
        return await enqueue_review_backfill(
            await container.get(ReviewIndexingRepository),
            await container.get(IndexingQueue),
            page_size=config.backfill.page_size,
        )
    finally:
        await container.close()


@app.default
def backfill(via_queue: bool = False) -> None:
    """Index every review in bulk chunks.

    Args:
        via_queue: Enqueue one job per review for the worker instead of bulk indexing.
    """
    console = get_console()
    config = load_config()

    try:
        if via_queue:
            count = asyncio.run(run_via_queue(config))
            console.success(f"Enqueued {count} review jobs")
            return
        result = asyncio.run(run_direct(config))
    except InfrastructureError as e:
        console.error(f"Backfill failed: {e}")
        sys.exit(1)

    console.print(
        f"total={result.total} indexed={result.indexed} "
        f"failed={result.failed} batches={result.batches}"
    )
    if result.failed:
        console.warning(f"{result.failed} documents failed to index")
        sys.exit(1)
    console.success("Backfill complete")
