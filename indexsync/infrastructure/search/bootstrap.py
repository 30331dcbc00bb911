"""Idempotent provisioning of index templates and write aliases.

Safe to run concurrently from several processes: a lost race on index
creation falls back to attaching the alias, and an alias that is already
attached is accepted as-is.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from indexsync.domain.indexing.port.search_engine import SearchEngine
from indexsync.domain.shared.error import SearchEngineError
from indexsync.infrastructure.search.indices import INDEX_DEFINITIONS, IndexDefinition

logger = logging.getLogger(__name__)

MANAGED_BY = "indexsync"


@dataclass(frozen=True)
class BootstrapResult:
    alias: str
    template_name: str
    created_index: str | None = None


async def _attach_alias(client: SearchEngine, index: str, alias: str) -> None:
    try:
        await client.update_aliases(
            [{"add": {"index": index, "alias": alias, "is_write_index": True}}]
        )
    except SearchEngineError as e:
        if not e.is_already_exists:
            raise
        logger.warning(f"Alias {alias} already attached to index {index}")
        return
    logger.info(f"Attached alias {alias} to existing index {index}")


async def _ensure_template(client: SearchEngine, definition: IndexDefinition) -> None:
    await client.put_index_template(
        definition.template_name, definition.template_body(managed_by=MANAGED_BY)
    )
    logger.info(f"Applied index template {definition.template_name} for alias {definition.alias}")


async def _ensure_backing_index(client: SearchEngine, definition: IndexDefinition) -> str | None:
    if await client.alias_exists(definition.alias):
        logger.info(f"Alias {definition.alias} already present")
        return None

    index = definition.initial_index
    try:
        await client.create_index(index, definition.index_body())
    except SearchEngineError as e:
        if not e.is_already_exists:
            raise
        logger.warning(f"Index {index} already exists, ensuring alias {definition.alias}")
        await _attach_alias(client, index, definition.alias)
        return index

    logger.info(f"Created index {index} with write alias {definition.alias}")
    return index


async def ensure_search_infrastructure(
    client: SearchEngine,
    definitions: Sequence[IndexDefinition] = INDEX_DEFINITIONS,
) -> list[BootstrapResult]:
    """Upsert every template, then create each initial index unless its alias exists.

    Unexpected errors propagate; callers treat them as fatal.
    """
    results: list[BootstrapResult] = []
    for definition in definitions:
        await _ensure_template(client, definition)
        created = await _ensure_backing_index(client, definition)
        results.append(
            BootstrapResult(
                alias=definition.alias,
                template_name=definition.template_name,
                created_index=created,
            )
        )
    return results
