"""Dead-letters command - inspect jobs that exhausted their retries."""

import asyncio

import cyclopts

from indexsync.application.di import create_container
from indexsync.cli.commands import load_config
from indexsync.cli.console import get_console
from indexsync.config import Config
from indexsync.domain.indexing.model.job import DeadLetterItem
from indexsync.domain.indexing.port.queue import IndexingQueue

app = cyclopts.App(name="dead-letters", help="List dead-lettered indexing jobs")


async def fetch_dead_letters(config: Config, limit: int) -> list[DeadLetterItem]:
    container = create_container(config)
    try:
        queue = await container.get(IndexingQueue)
        return await queue.dead_letters(limit=limit)
    finally:
        await container.close()


@app.default
def dead_letters(limit: int = 20) -> None:
    """Show the most recent dead letters (newest first).

    Args:
        limit: Number of dead letters to show.
    """
    console = get_console()
    items = asyncio.run(fetch_dead_letters(load_config(), limit))

    if not items:
        console.info("No dead letters")
        return

    console.table(
        [
            {
                "failed_at": item.failed_at.isoformat(timespec="seconds"),
                "job_id": item.job_id,
                "entity": f"{item.entity_type.value}:{item.entity_id}",
                "operation": item.operation.value,
                "attempts": item.attempts,
                "error": item.error,
            }
            for item in items
        ],
        [
            ("failed_at", "Failed"),
            ("job_id", "Job"),
            ("entity", "Entity"),
            ("operation", "Op"),
            ("attempts", "Attempts"),
            ("error", "Error"),
        ],
        title=f"Dead letters ({len(items)})",
    )
