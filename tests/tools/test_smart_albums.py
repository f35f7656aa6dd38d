"""
Tests for the smart album tools.

These tests verify:
1. Input validation (camelCase and snake_case, id or name references)
2. Defining, updating and refreshing stored definitions
3. Error responses carry a machine-readable code
4. MCP protocol compliance of every response
"""

import asyncio

import pytest
from pydantic import ValidationError

from photo_catalog_mcp.models.definition import SearchType, SyncStrategy
from photo_catalog_mcp.tools.scheduler import run_sweep_handler
from photo_catalog_mcp.tools.smart_albums import (
    DefineSmartAlbumInput,
    RefreshSmartAlbumInput,
    define_smart_album_handler,
    delete_smart_album_handler,
    list_smart_albums_handler,
    refresh_smart_album_handler,
    set_smart_album_enabled_handler,
)

# =============================================================================
# INPUT VALIDATION TESTS
# =============================================================================


class TestSmartAlbumInputs:
    def test_camel_and_snake_case(self):
        camel = DefineSmartAlbumInput.model_validate(
            {"smartAlbumName": "Beach", "smartQuery": "beach", "syncStrategy": "full-sync"}
        )
        snake = DefineSmartAlbumInput(smart_album_name="Beach", smart_query="beach")

        assert camel.smart_album_name == snake.smart_album_name == "Beach"
        assert camel.sync_strategy == SyncStrategy.FULL_SYNC
        assert snake.create_album is True

    def test_reference_is_required(self):
        with pytest.raises(ValidationError):
            RefreshSmartAlbumInput.model_validate({"dryRun": True})

        with pytest.raises(ValidationError):
            RefreshSmartAlbumInput.model_validate({"smartAlbumName": "   "})

    def test_max_results_bounds(self):
        with pytest.raises(ValidationError):
            DefineSmartAlbumInput(smart_album_name="Beach", max_results=0)
        with pytest.raises(ValidationError):
            DefineSmartAlbumInput(smart_album_name="Beach", max_results=5001)


# =============================================================================
# HANDLER TESTS
# =============================================================================


def assert_mcp_result(response: dict) -> None:
    assert "content" in response
    assert response["content"][0]["type"] == "text"
    assert isinstance(response["content"][0]["text"], str)


class TestDefineSmartAlbum:
    async def test_define_creates_album_when_missing(self, service, catalog):
        response = await define_smart_album_handler(
            {"smartAlbumName": "Beach", "smartQuery": "beach", "albumName": "Beach Days"}
        )

        assert_mcp_result(response)
        assert "isError" not in response
        assert response["data"]["created"] is True
        assert response["data"]["albumCreated"] is True

        smart_album = response["data"]["smartAlbum"]
        assert smart_album["name"] == "Beach"
        assert smart_album["query"] == "beach"
        assert smart_album["searchType"] == "smart"
        assert catalog.collections[smart_album["collectionId"]].name == "Beach Days"

    async def test_define_reuses_album_by_name(self, service, catalog):
        album = catalog.add_collection("Beach Days")

        response = await define_smart_album_handler(
            {"smartAlbumName": "Beach", "smartQuery": "beach", "albumName": "beach days"}
        )

        assert response["data"]["albumCreated"] is False
        assert response["data"]["smartAlbum"]["collectionId"] == album.id

    async def test_missing_album_without_create(self, service):
        response = await define_smart_album_handler(
            {
                "smartAlbumName": "Beach",
                "smartQuery": "beach",
                "albumName": "Nowhere",
                "createAlbum": False,
            }
        )

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "destination_unresolved"

    async def test_update_keeps_unspecified_fields(self, service, catalog, store):
        album = catalog.add_collection("Dogs")
        await define_smart_album_handler(
            {
                "smartAlbumName": "Dogs",
                "smartQuery": "dogs",
                "albumId": album.id,
                "maxResults": 250,
                "syncStrategy": "full-sync",
            }
        )

        response = await define_smart_album_handler(
            {"smartAlbumName": "DOGS", "smartQuery": "puppies"}
        )

        assert response["data"]["created"] is False
        saved = store.get_by_name("dogs")
        assert saved.query == "puppies"
        assert saved.max_results == 250
        assert saved.sync_strategy == SyncStrategy.FULL_SYNC
        assert saved.collection_id == album.id
        assert len(store) == 1

    async def test_search_params_make_an_advanced_definition(self, service, catalog, store):
        album = catalog.add_collection("Porto")

        response = await define_smart_album_handler(
            {
                "smartAlbumName": "Porto favourites",
                "albumId": album.id,
                "searchParams": {"city": "Porto", "isFavorite": True, "unknownKey": 1},
            }
        )

        assert "isError" not in response
        saved = store.get_by_name("porto favourites")
        assert saved.search_type == SearchType.ADVANCED
        assert saved.search.to_payload() == {"city": "Porto", "isFavorite": True}

    async def test_new_definition_needs_a_search(self, service, catalog):
        album = catalog.add_collection("Empty")

        response = await define_smart_album_handler(
            {"smartAlbumName": "Empty", "albumId": album.id}
        )

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "invalid_definition"

    async def test_unknown_album_id(self, service):
        response = await define_smart_album_handler(
            {"smartAlbumName": "Beach", "smartQuery": "beach", "albumId": "missing"}
        )

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "not_found"

    async def test_invalid_parameters(self, service):
        response = await define_smart_album_handler({"smartQuery": "beach"})

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "invalid_parameters"


class TestRefreshSmartAlbum:
    @pytest.fixture
    async def beach(self, service, catalog):
        album = catalog.add_collection("Beach", assets=["A"])
        await define_smart_album_handler(
            {"smartAlbumName": "Beach", "smartQuery": "beach", "albumId": album.id}
        )
        return album

    async def test_dry_run_previews_without_changes(self, beach, catalog):
        catalog.matches = ["A", "B", "C"]

        response = await refresh_smart_album_handler({"smartAlbumName": "beach", "dryRun": True})

        assert_mcp_result(response)
        result = response["data"]["result"]
        assert result["status"] == "dry_run"
        assert result["toAddCount"] == 2
        assert result["previewAddIds"] == ["B", "C"]
        assert "No changes made" in response["content"][0]["text"]
        assert catalog.contents[beach.id] == ["A"]

    async def test_refresh_applies_and_reports_stats(self, beach, catalog):
        catalog.matches = ["A", "B", "C"]

        response = await refresh_smart_album_handler({"smartAlbumName": "Beach"})

        result = response["data"]["result"]
        assert result["status"] == "applied"
        assert result["addedCount"] == 2
        assert catalog.contents[beach.id] == ["A", "B", "C"]

        smart_album = response["data"]["smartAlbum"]
        assert smart_album["lastAddedCount"] == 2
        assert smart_album["lastResultCount"] == 3
        assert smart_album["lastRunAt"] is not None

    async def test_failed_refresh_is_an_error_result(self, beach, catalog):
        catalog.errors["search"] = RuntimeError("search backend down")

        response = await refresh_smart_album_handler({"smartAlbumName": "Beach"})

        assert response["isError"] is True
        assert response["data"]["result"]["errorCode"] == "search_failed"
        assert "search backend down" in response["data"]["smartAlbum"]["lastRunError"]

    async def test_disabled_definitions_can_still_be_refreshed(self, beach, catalog):
        catalog.matches = ["Z"]
        await set_smart_album_enabled_handler({"smartAlbumName": "Beach", "enabled": False})

        response = await refresh_smart_album_handler({"smartAlbumName": "Beach"})

        assert response["data"]["result"]["status"] == "applied"
        assert "Z" in catalog.contents[beach.id]

    async def test_unknown_definition(self, service):
        response = await refresh_smart_album_handler({"smartAlbumName": "nope"})

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "not_found"


class TestListEnableDelete:
    async def test_list_is_sorted(self, service, catalog):
        album = catalog.add_collection("Shared")
        for name in ["zoo", "Attic", "market"]:
            await define_smart_album_handler(
                {"smartAlbumName": name, "smartQuery": name, "albumId": album.id}
            )

        response = await list_smart_albums_handler({})

        assert response["data"]["count"] == 3
        assert [s["name"] for s in response["data"]["smartAlbums"]] == ["Attic", "market", "zoo"]
        assert "lastAssetIds" not in response["data"]["smartAlbums"][0]

    async def test_list_when_empty(self, service):
        response = await list_smart_albums_handler({})

        assert response["data"]["count"] == 0
        assert "No smart albums" in response["content"][0]["text"]

    async def test_set_enabled(self, service, catalog, store):
        album = catalog.add_collection("Beach")
        await define_smart_album_handler(
            {"smartAlbumName": "Beach", "smartQuery": "beach", "albumId": album.id}
        )

        response = await set_smart_album_enabled_handler(
            {"smartAlbumName": "beach", "enabled": False}
        )

        assert response["data"]["smartAlbum"]["enabled"] is False
        assert store.get_by_name("beach").enabled is False

    async def test_delete_keeps_the_album(self, service, catalog, store):
        album = catalog.add_collection("Beach", assets=["A"])
        await define_smart_album_handler(
            {"smartAlbumName": "Beach", "smartQuery": "beach", "albumId": album.id}
        )

        response = await delete_smart_album_handler({"smartAlbumName": "Beach"})

        assert response["data"]["deleted"]["name"] == "Beach"
        assert len(store) == 0
        assert catalog.contents[album.id] == ["A"]

        again = await delete_smart_album_handler({"smartAlbumName": "Beach"})
        assert again["isError"] is True


class TestWritesDuringSweep:
    """User writes wait for an in-flight sweep and are never undone by it."""

    @pytest.fixture
    async def held_sweep(self, service, catalog, wait_until):
        album = catalog.add_collection("Beach", assets=["A"])
        await define_smart_album_handler(
            {"smartAlbumName": "Beach", "smartQuery": "beach", "albumId": album.id}
        )
        catalog.matches = ["A", "B"]
        catalog.gate = asyncio.Event()

        sweep = asyncio.create_task(service.run_sweep())
        await wait_until(lambda: catalog.active_searches == 1)
        return sweep

    async def test_redefine_and_disable(self, held_sweep, catalog, store):
        redefine = asyncio.create_task(
            define_smart_album_handler(
                {
                    "smartAlbumName": "Beach",
                    "smartQuery": "mountains",
                    "syncStrategy": "full-sync",
                }
            )
        )
        disable = asyncio.create_task(
            set_smart_album_enabled_handler({"smartAlbumName": "Beach", "enabled": False})
        )
        await asyncio.sleep(0.05)
        assert not redefine.done()

        catalog.gate.set()
        sweep = await held_sweep
        await asyncio.gather(redefine, disable)

        assert sweep.results[0].status.value == "applied"
        saved = store.get_by_name("beach")
        assert saved.query == "mountains"
        assert saved.sync_strategy == SyncStrategy.FULL_SYNC
        assert saved.enabled is False
        assert saved.last_added_count == 1

    async def test_delete(self, held_sweep, catalog, store):
        deleting = asyncio.create_task(delete_smart_album_handler({"smartAlbumName": "Beach"}))
        await asyncio.sleep(0.05)
        assert not deleting.done()

        catalog.gate.set()
        await held_sweep
        response = await deleting

        assert "isError" not in response
        assert len(store) == 0
        assert store.find(name="beach") is None

        # A later sweep has nothing left to reconcile
        catalog.gate = None
        assert (await run_sweep_handler({}))["data"]["summary"]["processed"] == 0
