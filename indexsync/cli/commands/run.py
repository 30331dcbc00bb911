"""Run command - keep the index in sync until interrupted."""

import asyncio
import logging
import signal
import sys

import cyclopts

from indexsync.application.di import create_container
from indexsync.cli.commands import load_config
from indexsync.cli.console import get_console
from indexsync.config import Config
from indexsync.domain.indexing.port.search_engine import SearchEngine
from indexsync.domain.shared.error import SearchEngineError
from indexsync.infrastructure.event.pipeline import ReviewIndexingPipeline
from indexsync.infrastructure.search.bootstrap import ensure_search_infrastructure
from indexsync.infrastructure.search.di import IndexDefinitions

logger = logging.getLogger(__name__)

app = cyclopts.App(name="run", help="Run the change subscriber and indexing worker")


async def serve(config: Config) -> None:
    container = create_container(config)
    try:
        if config.bootstrap.on_startup:
            await ensure_search_infrastructure(
                await container.get(SearchEngine),
                await container.get(IndexDefinitions),
            )

        pipeline = await container.get(ReviewIndexingPipeline)
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        async with pipeline:
            logger.info("Indexing pipeline running; press Ctrl+C to stop")
            await stop.wait()

        snapshot = pipeline.metrics.snapshot()
        logger.info(
            f"Processed {snapshot.processed} jobs: succeeded={snapshot.succeeded} "
            f"skipped={snapshot.skipped} retried={snapshot.retried} "
            f"dead_lettered={snapshot.dead_lettered}"
        )
    finally:
        await container.close()


@app.default
def run() -> None:
    """Bootstrap (if enabled) and run the pipeline until SIGINT/SIGTERM."""
    console = get_console()
    config = load_config()

    try:
        asyncio.run(serve(config))
    except SearchEngineError as e:
        console.error(f"Startup failed: {e}")
        sys.exit(1)
