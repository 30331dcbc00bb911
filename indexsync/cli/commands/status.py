"""Status command - search cluster health and queue depth."""

import asyncio
import sys
from dataclasses import dataclass
from typing import Any

import cyclopts
from sqlalchemy.exc import SQLAlchemyError

from indexsync.application.di import create_container
from indexsync.cli.commands import load_config
from indexsync.cli.console import get_console
from indexsync.config import Config
from indexsync.domain.indexing.port.queue import IndexingQueue
from indexsync.domain.indexing.port.search_engine import SearchEngine
from indexsync.domain.shared.error import InfrastructureError

app = cyclopts.App(name="status", help="Show search cluster health and queue depth")

HEALTH_STYLES = {"green": "green", "yellow": "yellow", "red": "red"}


@dataclass(frozen=True)
class StatusReport:
    cluster: dict[str, Any]
    pending_jobs: int


async def collect_status(config: Config) -> StatusReport:
    container = create_container(config)
    try:
        client = await container.get(SearchEngine)
        queue = await container.get(IndexingQueue)
        return StatusReport(
            cluster=await client.cluster_health(),
            pending_jobs=await queue.pending_count(),
        )
    finally:
        await container.close()


@app.default
def status() -> None:
    """Show cluster health and the number of live indexing jobs.

    Exits 1 when the cluster is red or unreachable.
    """
    console = get_console()
    config = load_config()

    try:
        report = asyncio.run(collect_status(config))
    except (InfrastructureError, SQLAlchemyError) as e:
        console.error(f"Status check failed: {e}", hint=f"Search engine: {config.search.url}")
        sys.exit(1)

    health = report.cluster.get("status", "unknown")
    style = HEALTH_STYLES.get(health, "dim")
    console.print(
        f"[bold]Cluster:[/bold] {report.cluster.get('cluster_name', 'unknown')} "
        f"[{style}]{health}[/{style}]"
    )
    console.print(f"[bold]Pending jobs:[/bold] {report.pending_jobs:,}")

    if health == "red":
        sys.exit(1)
