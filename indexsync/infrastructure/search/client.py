"""OpenSearch REST adapter implementing the SearchEngine port over httpx."""

import json
import logging
from typing import Any

import httpx

from indexsync.config import SearchConfig
from indexsync.domain.indexing.port.search_engine import RefreshPolicy, SearchEngine
from indexsync.domain.shared.error import SearchEngineError

logger = logging.getLogger(__name__)


def _error_details(body: Any) -> tuple[str | None, str | None]:
    """Pull ``error.type`` and ``error.reason`` out of an error response."""
    if not isinstance(body, dict):
        return None, None
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("type"), error.get("reason")
    if isinstance(error, str):
        return None, error
    return None, None


class OpenSearchClient(SearchEngine):
    """Thin async client for the handful of endpoints the pipeline needs.

    Owns its ``httpx.AsyncClient``; close it with ``aclose()`` or use the
    client as an async context manager.
    """

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    @classmethod
    def from_config(cls, config: SearchConfig) -> "OpenSearchClient":
        auth = None
        if config.username:
            auth = httpx.BasicAuth(config.username, config.password or "")
        http = httpx.AsyncClient(
            base_url=config.url.rstrip("/"),
            auth=auth,
            timeout=httpx.Timeout(config.timeout, connect=config.connect_timeout),
            verify=config.verify_tls,
        )
        return cls(http)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "OpenSearchClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        content: str | None = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        allowed: tuple[int, ...] = (),
    ) -> httpx.Response:
        try:
            response = await self._http.request(
                method,
                path,
                json=json_body,
                content=content,
                params=params,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise SearchEngineError(f"OpenSearch {method} {path} failed: {e}") from e

        if response.status_code >= 300 and response.status_code not in allowed:
            body: Any = None
            if response.content:
                try:
                    body = response.json()
                except ValueError:
                    body = response.text
            error_type, reason = _error_details(body)
            raise SearchEngineError(
                f"OpenSearch {method} {path} returned {response.status_code}: "
                f"{reason or error_type or body}",
                status_code=response.status_code,
                error_type=error_type,
                body=body,
            )
        return response

    async def index_document(
        self,
        index: str,
        document_id: str,
        document: dict[str, Any],
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
    ) -> dict[str, Any]:
        response = await self._request(
            "PUT",
            f"/{index}/_doc/{document_id}",
            json_body=document,
            params={"refresh": refresh.value},
        )
        return response.json()

    async def delete_document(
        self,
        index: str,
        document_id: str,
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
    ) -> dict[str, Any]:
        response = await self._request(
            "DELETE",
            f"/{index}/_doc/{document_id}",
            params={"refresh": refresh.value},
        )
        return response.json()

    async def bulk(
        self,
        actions: list[dict[str, Any]],
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
    ) -> dict[str, Any]:
        if not actions:
            return {"errors": False, "items": []}

        payload = "".join(f"{json.dumps(line)}\n" for line in actions)
        response = await self._request(
            "POST",
            "/_bulk",
            content=payload,
            params={"refresh": refresh.value},
            headers={"Content-Type": "application/x-ndjson"},
        )
        return response.json()

    async def put_index_template(self, name: str, body: dict[str, Any]) -> None:
        await self._request("PUT", f"/_index_template/{name}", json_body=body)

    async def alias_exists(self, alias: str) -> bool:
        response = await self._request("HEAD", f"/_alias/{alias}", allowed=(404,))
        return response.status_code == 200

    async def create_index(self, index: str, body: dict[str, Any]) -> None:
        await self._request("PUT", f"/{index}", json_body=body)

    async def update_aliases(self, actions: list[dict[str, Any]]) -> None:
        await self._request("POST", "/_aliases", json_body={"actions": actions})

    async def cluster_health(self) -> dict[str, Any]:
        response = await self._request("GET", "/_cluster/health")
        return response.json()
