"""
Tests for the live album tools.

These tests verify:
1. Creating a live album writes its definition into the description
2. Converting refuses albums that are already live
3. Manual updates, enable/disable and status reporting
4. Error codes for missing and non-live albums
"""

import json

import pytest
from pydantic import ValidationError

from photo_catalog_mcp.errors import CatalogError
from photo_catalog_mcp.livealbums import metadata
from photo_catalog_mcp.models.definition import SearchDefinition, SearchFilter, SyncStrategy
from photo_catalog_mcp.tools.live_albums import (
    CreateLiveAlbumInput,
    convert_to_live_album_handler,
    create_live_album_handler,
    get_live_album_status_handler,
    list_live_albums_handler,
    set_live_album_enabled_handler,
    update_live_album_handler,
)


class TestLiveAlbumInputs:
    def test_search_is_required(self):
        with pytest.raises(ValidationError):
            CreateLiveAlbumInput.model_validate({"albumName": "Sunsets"})

        with pytest.raises(ValidationError):
            CreateLiveAlbumInput.model_validate({"albumName": "Sunsets", "searchQuery": "  "})

    def test_defaults(self):
        params = CreateLiveAlbumInput.model_validate(
            {"albumName": "Sunsets", "searchQuery": "sunset"}
        )

        assert params.enabled is True
        assert params.populate is True
        assert params.sync_strategy is None


class TestCreateLiveAlbum:
    async def test_create_embeds_definition_and_populates(self, service, catalog):
        catalog.matches = ["S1", "S2"]

        response = await create_live_album_handler(
            {"albumName": "Sunsets", "searchQuery": "sunset", "syncStrategy": "full-sync"}
        )

        assert "isError" not in response
        album_id = response["data"]["albumId"]
        assert catalog.contents[album_id] == ["S1", "S2"]
        assert response["data"]["initialRun"]["status"] == "applied"

        payload = json.loads(catalog.collections[album_id].description)
        assert payload["liveAlbum"] is True
        assert payload["searchQuery"] == "sunset"
        assert payload["syncStrategy"] == "full-sync"
        assert payload["updateCount"] == 1
        assert payload["lastAssetIds"] == ["S1", "S2"]

    async def test_create_uses_configured_defaults(self, service, catalog):
        response = await create_live_album_handler(
            {"albumName": "Cats", "searchQuery": "cats", "populate": False}
        )

        assert response["data"]["initialRun"] is None
        live = response["data"]["liveAlbum"]
        assert live["syncStrategy"] == "add-only"
        assert live["maxResults"] == 5000
        assert "search" not in [call[0] for call in catalog.calls]

    async def test_disabled_album_is_not_populated(self, service, catalog):
        catalog.matches = ["A"]

        response = await create_live_album_handler(
            {"albumName": "Later", "searchQuery": "later", "enabled": False}
        )

        assert response["data"]["initialRun"] is None
        assert catalog.contents[response["data"]["albumId"]] == []

    async def test_invalid_search_params_create_nothing(self, service, catalog):
        response = await create_live_album_handler(
            {"albumName": "Bad", "searchParams": {"rating": 42}}
        )

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "invalid_definition"
        assert catalog.collections == {}


class TestConvertToLiveAlbum:
    async def test_convert_replaces_description(self, service, catalog):
        album = catalog.add_collection("Holiday", "Photos from the trip", assets=["X"])

        response = await convert_to_live_album_handler(
            {"albumId": album.id, "searchParams": {"country": "Portugal"}}
        )

        assert "isError" not in response
        decoded = metadata.decode(catalog.collections[album.id].description)
        assert decoded.search.country == "Portugal"
        # Conversion does not populate
        assert catalog.contents[album.id] == ["X"]

    async def test_convert_refuses_live_albums(self, service, catalog):
        live = SearchDefinition(search=SearchFilter(query="sunset"))
        album = catalog.add_collection("Sunsets", metadata.encode(live))

        response = await convert_to_live_album_handler(
            {"albumId": album.id, "searchQuery": "dogs"}
        )

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "already_live"
        assert metadata.decode(catalog.collections[album.id].description).query == "sunset"

    async def test_convert_missing_album(self, service):
        response = await convert_to_live_album_handler(
            {"albumId": "missing", "searchQuery": "dogs"}
        )

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "not_found"


class TestUpdateAndStatus:
    @pytest.fixture
    def sunsets(self, catalog):
        definition = SearchDefinition(
            search=SearchFilter(query="sunset"), sync_strategy=SyncStrategy.FULL_SYNC
        )
        return catalog.add_collection("Sunsets", metadata.encode(definition), assets=["OLD"])

    async def test_dry_run(self, service, catalog, sunsets):
        catalog.matches = ["S1"]

        response = await update_live_album_handler({"albumId": sunsets.id, "dryRun": True})

        result = response["data"]["result"]
        assert result["status"] == "dry_run"
        assert result["previewAddIds"] == ["S1"]
        assert result["previewRemoveIds"] == ["OLD"]
        assert catalog.contents[sunsets.id] == ["OLD"]

    async def test_update_applies(self, service, catalog, sunsets):
        catalog.matches = ["S1"]

        response = await update_live_album_handler({"albumId": sunsets.id})

        assert response["data"]["result"]["addedCount"] == 1
        assert response["data"]["result"]["removedCount"] == 1
        assert catalog.contents[sunsets.id] == ["S1"]

    async def test_update_plain_album_is_not_live(self, service, catalog):
        album = catalog.add_collection("Plain", "Just an album")

        response = await update_live_album_handler({"albumId": album.id})

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "malformed_metadata"

    async def test_update_non_live_json(self, service, catalog):
        album = catalog.add_collection("Json", json.dumps({"liveAlbum": False}))

        response = await update_live_album_handler({"albumId": album.id})

        assert response["data"]["error"]["code"] == "not_live"

    async def test_failed_update_is_an_error_result(self, service, catalog, sunsets):
        catalog.errors["search"] = RuntimeError("search backend down")

        response = await update_live_album_handler({"albumId": sunsets.id})

        assert response["isError"] is True
        assert response["data"]["result"]["errorCode"] == "search_failed"

    async def test_status(self, service, catalog, sunsets):
        catalog.matches = ["S1", "S2"]
        await update_live_album_handler({"albumId": sunsets.id})

        response = await get_live_album_status_handler({"albumId": sunsets.id})

        assert response["data"]["assetCount"] == 2
        live = response["data"]["liveAlbum"]
        assert live["updateCount"] == 1
        assert live["lastAssetCount"] == 2
        assert "2 assets" in response["content"][0]["text"]

    async def test_set_enabled(self, service, catalog, sunsets):
        response = await set_live_album_enabled_handler({"albumId": sunsets.id, "enabled": False})

        assert response["data"]["liveAlbum"]["enabled"] is False
        assert metadata.decode(catalog.collections[sunsets.id].description).enabled is False


class TestListLiveAlbums:
    async def test_only_live_albums_are_listed(self, service, catalog):
        for name, query in [("zeta", "z"), ("Alpha", "a")]:
            catalog.add_collection(
                name, metadata.encode(SearchDefinition(search=SearchFilter(query=query)))
            )
        catalog.add_collection("Plain", "Holiday photos")

        response = await list_live_albums_handler({})

        assert response["data"]["count"] == 2
        assert [a["name"] for a in response["data"]["liveAlbums"]] == ["Alpha", "zeta"]

    async def test_catalog_failure(self, service, catalog):
        catalog.errors["list_collections"] = CatalogError("API error: status=502")

        response = await list_live_albums_handler({})

        assert response["isError"] is True
        assert response["data"]["error"]["code"] == "catalog_error"
