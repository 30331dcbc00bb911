"""Bootstrap command - provision index templates and write aliases."""

import asyncio
import sys

import cyclopts

from indexsync.application.di import create_container
from indexsync.cli.commands import load_config
from indexsync.cli.console import get_console
from indexsync.config import Config
from indexsync.domain.indexing.port.search_engine import SearchEngine
from indexsync.domain.shared.error import SearchEngineError
from indexsync.infrastructure.search.bootstrap import BootstrapResult, ensure_search_infrastructure
from indexsync.infrastructure.search.di import IndexDefinitions

app = cyclopts.App(name="bootstrap", help="Provision search index templates and aliases")


async def run_bootstrap(config: Config) -> list[BootstrapResult]:
    container = create_container(config)
    try:
        client = await container.get(SearchEngine)
        definitions = await container.get(IndexDefinitions)
        return await ensure_search_infrastructure(client, definitions)
    finally:
        await container.close()


@app.default
def bootstrap() -> None:
    """Apply index templates and create the initial indices behind each alias."""
    console = get_console()
    config = load_config()

    try:
        results = asyncio.run(run_bootstrap(config))
    except SearchEngineError as e:
        console.error(f"Bootstrap failed: {e}", hint=f"Search engine: {config.search.url}")
        sys.exit(1)

    for result in results:
        if result.created_index:
            console.success(f"{result.alias} -> {result.created_index} (created)")
        else:
            console.success(f"{result.alias} already provisioned")
