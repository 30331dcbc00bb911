"""SearchEngine port - the document store operations the pipeline consumes."""

from enum import Enum
from typing import Any, Protocol


class RefreshPolicy(str, Enum):
    """When written documents become visible to search."""

    FALSE = "false"
    TRUE = "true"
    WAIT_FOR = "wait_for"


class SearchEngine(Protocol):
    """Search engine operations. Failures raise ``SearchEngineError``."""

    async def index_document(
        self,
        index: str,
        document_id: str,
        document: dict[str, Any],
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
    ) -> dict[str, Any]: ...

    async def delete_document(
        self,
        index: str,
        document_id: str,
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
    ) -> dict[str, Any]: ...

    async def bulk(
        self,
        actions: list[dict[str, Any]],
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
    ) -> dict[str, Any]:
        """Send action/document line pairs; returns the per-item response."""
        ...

    async def put_index_template(self, name: str, body: dict[str, Any]) -> None: ...

    async def alias_exists(self, alias: str) -> bool: ...

    async def create_index(self, index: str, body: dict[str, Any]) -> None: ...

    async def update_aliases(self, actions: list[dict[str, Any]]) -> None: ...

    async def cluster_health(self) -> dict[str, Any]: ...
