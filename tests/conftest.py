"""Test configuration and fixtures for the Photo Catalog MCP Server.

1. Isolated definition stores - each test gets its own SQLite file
2. Configuration overrides - test-specific ServerConfig
3. An in-memory catalog implementing CatalogClient, with failure injection
4. A manual timer so scheduler tests advance virtual time instead of sleeping
"""

import asyncio
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from photo_catalog_mcp.catalog.models import Collection
from photo_catalog_mcp.config import ServerConfig, reset_config
from photo_catalog_mcp.database.definition_store import DefinitionStore
from photo_catalog_mcp.database.session import DatabaseManager
from photo_catalog_mcp.errors import CatalogError
from photo_catalog_mcp.livealbums.reconciler import Reconciler
from photo_catalog_mcp.livealbums.scheduler import Scheduler
from photo_catalog_mcp.livealbums.service import LiveAlbumService, set_live_album_service
from photo_catalog_mcp.models.definition import SearchDefinition, SearchFilter, SyncStrategy
from photo_catalog_mcp.models.results import BulkIdResult

# === Fake catalog ===


class FakeCatalog:
    """In-memory CatalogClient.

    ``matches`` is what every search returns unless ``matches_by_query`` has
    an entry for the search's free-text query. Set ``errors[method]`` to make
    a method raise, ``fail_add``/``fail_remove`` to make individual ids fail
    inside a bulk call, and ``gate`` to block searches until it is set.
    """

    def __init__(self) -> None:
        self.collections: dict[str, Collection] = {}
        self.contents: dict[str, list[str]] = {}
        self.matches: list[str] = []
        self.matches_by_query: dict[str, list[str]] = {}
        self.errors: dict[str, Exception] = {}
        self.fail_add: set[str] = set()
        self.fail_remove: set[str] = set()
        self.gate: asyncio.Event | None = None

        self.calls: list[tuple[str, ...]] = []
        self.search_specs: list[tuple[SearchFilter, int]] = []
        self.active_searches = 0
        self.max_active_searches = 0
        self._next_id = 1

    def add_collection(
        self, name: str, description: str = "", assets: list[str] | None = None
    ) -> Collection:
        collection = Collection(id=f"album-{self._next_id}", name=name, description=description)
        self._next_id += 1
        self.collections[collection.id] = collection
        self.contents[collection.id] = list(assets or [])
        return collection

    def _check(self, method: str, *args: str) -> None:
        self.calls.append((method, *args))
        if method in self.errors:
            raise self.errors[method]

    def _require(self, collection_id: str) -> None:
        if collection_id not in self.collections:
            raise CatalogError("API error: status=404 body=Not found", status_code=404)

    async def search(self, spec: SearchFilter, max_results: int) -> list[str]:
        self.active_searches += 1
        self.max_active_searches = max(self.max_active_searches, self.active_searches)
        try:
            if self.gate is not None:
                await self.gate.wait()
            self._check("search")
            self.search_specs.append((spec, max_results))
            ids = self.matches_by_query.get(spec.query or "", self.matches)
            return list(ids)[:max_results]
        finally:
            self.active_searches -= 1

    async def list_collections(self) -> list[Collection]:
        self._check("list_collections")
        return [self._with_count(c) for c in self.collections.values()]

    async def get_collection(self, collection_id: str) -> Collection:
        self._check("get_collection", collection_id)
        self._require(collection_id)
        return self._with_count(self.collections[collection_id])

    async def get_collection_contents(self, collection_id: str) -> list[str]:
        self._check("get_collection_contents", collection_id)
        self._require(collection_id)
        return list(self.contents[collection_id])

    async def bulk_add(self, collection_id: str, ids: list[str]) -> BulkIdResult:
        self._check("bulk_add", collection_id)
        self._require(collection_id)
        result = BulkIdResult()
        for asset_id in ids:
            if asset_id in self.fail_add:
                result.failed.append(asset_id)
                continue
            if asset_id not in self.contents[collection_id]:
                self.contents[collection_id].append(asset_id)
            result.succeeded.append(asset_id)
        return result

    async def bulk_remove(self, collection_id: str, ids: list[str]) -> BulkIdResult:
        self._check("bulk_remove", collection_id)
        self._require(collection_id)
        result = BulkIdResult()
        for asset_id in ids:
            if asset_id in self.fail_remove:
                result.failed.append(asset_id)
                continue
            if asset_id in self.contents[collection_id]:
                self.contents[collection_id].remove(asset_id)
            result.succeeded.append(asset_id)
        return result

    async def create_collection(self, name: str, description: str = "") -> Collection:
        self._check("create_collection", name)
        return self.add_collection(name, description)

    async def get_collection_description(self, collection_id: str) -> str:
        self._check("get_collection_description", collection_id)
        self._require(collection_id)
        return self.collections[collection_id].description

    async def set_collection_description(self, collection_id: str, description: str) -> None:
        self._check("set_collection_description", collection_id)
        self._require(collection_id)
        self.collections[collection_id] = self.collections[collection_id].model_copy(
            update={"description": description}
        )

    def _with_count(self, collection: Collection) -> Collection:
        return collection.model_copy(update={"asset_count": len(self.contents[collection.id])})


# === Manual timer ===


class ManualTimer:
    """Sleep replacement whose sleeps only end when the test calls ``fire``."""

    def __init__(self) -> None:
        self.intervals: list[float] = []
        self._waiters: list[asyncio.Future] = []

    async def sleep(self, seconds: float) -> None:
        self.intervals.append(seconds)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    @property
    def sleeping(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    def fire(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the loop until ``predicate`` holds (store writes run in threads)."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    return _wait_until


# === Configuration Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Each test gets its own definition store file."""
    return tmp_path / "smart_albums.db"


@pytest.fixture
def test_config(test_db_path: Path) -> Generator[ServerConfig, None, None]:
    """Test-specific server configuration."""
    reset_config()
    config = ServerConfig(
        database_path=test_db_path,
        immich_url="http://immich.test",
        immich_api_key="test-key",
        immich_timeout=5.0,
        live_album_update_interval=60.0,
        enable_live_albums=True,
    )
    yield config
    reset_config()


# === Engine Fixtures ===


@pytest.fixture
def db_manager(test_db_path: Path) -> Generator[DatabaseManager, None, None]:
    manager = DatabaseManager(f"sqlite:///{test_db_path}")
    yield manager
    manager.close()


@pytest.fixture
def store(db_manager: DatabaseManager) -> DefinitionStore:
    return DefinitionStore(db_manager)


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def reconciler(catalog: FakeCatalog) -> Reconciler:
    return Reconciler(catalog, call_timeout=5.0)


@pytest.fixture
def timer() -> ManualTimer:
    return ManualTimer()


@pytest.fixture
def scheduler(catalog, store, reconciler, timer) -> Scheduler:
    return Scheduler(catalog, store, reconciler, interval=60.0, sleep=timer.sleep)


@pytest.fixture
async def service(test_config, catalog, store, reconciler, scheduler):
    """LiveAlbumService wired to the fakes and installed as the global instance."""
    svc = LiveAlbumService(
        test_config, catalog, store, reconciler=reconciler, scheduler=scheduler
    )
    set_live_album_service(svc)
    yield svc
    await scheduler.stop(cancel_sweep=True)
    set_live_album_service(None)


@pytest.fixture
def make_definition() -> Callable[..., SearchDefinition]:
    """Build a valid smart search definition with overridable fields."""

    def _make(
        name: str = "Beach",
        query: str = "beach",
        collection_id: str = "",
        sync_strategy: SyncStrategy = SyncStrategy.ADD_ONLY,
        **fields,
    ) -> SearchDefinition:
        return SearchDefinition(
            name=name,
            search=SearchFilter(query=query),
            collection_id=collection_id,
            sync_strategy=sync_strategy,
            **fields,
        )

    return _make
