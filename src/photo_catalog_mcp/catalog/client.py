"""
Asset catalog client for the Photo Catalog MCP Server.

``CatalogClient`` is the contract the reconciliation engine consumes: search,
read a collection, bulk membership changes and description updates.
``ImmichCatalogClient`` implements it over the Immich REST API with
``httpx.AsyncClient``. Every call is bounded by the configured timeout and
failures surface as ``CatalogError``.
"""

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from ..errors import CatalogError
from ..models.definition import SearchFilter
from ..models.results import BulkIdResult
from .models import Asset, Collection

logger = logging.getLogger(__name__)

# The smart search endpoint never returns more than this many items per page
SEARCH_PAGE_SIZE = 100
# Hard stop for paginated searches (50 * 100 = 5000 results)
SEARCH_MAX_PAGES = 50


@runtime_checkable
class CatalogClient(Protocol):
    """Operations the engine needs from the asset catalog."""

    async def search(self, spec: SearchFilter, max_results: int) -> list[str]: ...

    async def list_collections(self) -> list[Collection]: ...

    async def get_collection(self, collection_id: str) -> Collection: ...

    async def get_collection_contents(self, collection_id: str) -> list[str]: ...

    async def bulk_add(self, collection_id: str, ids: list[str]) -> BulkIdResult: ...

    async def bulk_remove(self, collection_id: str, ids: list[str]) -> BulkIdResult: ...

    async def create_collection(self, name: str, description: str = "") -> Collection: ...

    async def get_collection_description(self, collection_id: str) -> str: ...

    async def set_collection_description(self, collection_id: str, description: str) -> None: ...


class ImmichCatalogClient:
    """CatalogClient backed by the Immich REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key

        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ImmichCatalogClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # =========================================================================
    # CatalogClient implementation
    # =========================================================================

    async def search(self, spec: SearchFilter, max_results: int) -> list[str]:
        """Run a smart search, following pages until ``max_results`` ids are collected."""
        page_size = min(max_results, SEARCH_PAGE_SIZE) if max_results > 0 else SEARCH_PAGE_SIZE
        ids: list[str] = []
        page = 1

        while True:
            body = spec.to_payload()
            body["page"] = page
            body["size"] = page_size

            payload = await self._request("POST", "/api/search/smart", json=body)
            assets = (payload or {}).get("assets", {})
            items = assets.get("items") or []
            ids.extend(Asset.model_validate(item).id for item in items)

            if max_results > 0 and len(ids) >= max_results:
                return ids[:max_results]

            if assets.get("nextPage") is None or not items:
                return ids

            page += 1
            if page > SEARCH_MAX_PAGES:
                logger.warning("Smart search stopped after %d pages", SEARCH_MAX_PAGES)
                return ids

    async def list_collections(self) -> list[Collection]:
        payload = await self._request("GET", "/api/albums")
        return [Collection.model_validate(item) for item in payload or []]

    async def get_collection(self, collection_id: str) -> Collection:
        payload = await self._request(
            "GET", f"/api/albums/{collection_id}", params={"withoutAssets": "true"}
        )
        return Collection.model_validate(payload)

    async def get_collection_contents(self, collection_id: str) -> list[str]:
        payload = await self._request("GET", f"/api/albums/{collection_id}")
        return [Asset.model_validate(item).id for item in (payload or {}).get("assets") or []]

    async def bulk_add(self, collection_id: str, ids: list[str]) -> BulkIdResult:
        payload = await self._request(
            "PUT", f"/api/albums/{collection_id}/assets", json={"ids": ids}
        )
        return _partition_bulk_response(payload, ids)

    async def bulk_remove(self, collection_id: str, ids: list[str]) -> BulkIdResult:
        payload = await self._request(
            "DELETE", f"/api/albums/{collection_id}/assets", json={"ids": ids}
        )
        return _partition_bulk_response(payload, ids)

    async def create_collection(self, name: str, description: str = "") -> Collection:
        payload = await self._request(
            "POST", "/api/albums", json={"albumName": name, "description": description}
        )
        return Collection.model_validate(payload)

    async def get_collection_description(self, collection_id: str) -> str:
        return (await self.get_collection(collection_id)).description

    async def set_collection_description(self, collection_id: str, description: str) -> None:
        await self._request(
            "PATCH", f"/api/albums/{collection_id}", json={"description": description}
        )

    # =========================================================================
    # HTTP plumbing
    # =========================================================================

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        logger.debug("Calling catalog API: %s %s", method, url)
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise CatalogError(f"{method} {url} failed: {e!s}") from e

        logger.debug("Catalog API response: %s %s -> %d", method, url, response.status_code)

        if response.status_code >= 400:
            raise CatalogError(
                f"API error: status={response.status_code} body={response.text}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise CatalogError(f"failed to decode response from {method} {url}") from e


def _partition_bulk_response(payload: Any, requested: list[str]) -> BulkIdResult:
    """Split Immich's per-id bulk response into succeeded and failed ids.

    An empty body means the catalog accepted every id.
    """
    if not isinstance(payload, list):
        return BulkIdResult(succeeded=list(requested))

    result = BulkIdResult()
    for item in payload:
        if item.get("success"):
            result.succeeded.append(item["id"])
        else:
            result.failed.append(item["id"])
    return result
