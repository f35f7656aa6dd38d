"""Tests for the live album metadata codec."""

import json
from datetime import UTC, datetime

import pytest

from photo_catalog_mcp.catalog.models import Collection
from photo_catalog_mcp.errors import InvalidDefinition, MalformedMetadata, NotLive
from photo_catalog_mcp.livealbums import metadata
from photo_catalog_mcp.models.definition import (
    SearchDefinition,
    SearchFilter,
    SearchType,
    SyncStrategy,
)


def _live_fields(definition: SearchDefinition) -> dict:
    return definition.model_dump(
        include={
            "search_type",
            "search",
            "sync_strategy",
            "max_results",
            "enabled",
            "updated_at",
            "update_count",
            "last_asset_ids",
            "last_run_at",
            "last_result_count",
            "last_added_count",
            "last_removed_count",
            "last_run_error",
        }
    )


class TestEncode:
    def test_wire_keys(self):
        definition = SearchDefinition(
            search=SearchFilter(query="sunset"),
            sync_strategy=SyncStrategy.FULL_SYNC,
            max_results=300,
        )

        payload = json.loads(metadata.encode(definition))

        assert payload["liveAlbum"] is True
        assert payload["searchType"] == "smart"
        assert payload["searchQuery"] == "sunset"
        assert payload["searchParams"] is None
        assert payload["syncStrategy"] == "full-sync"
        assert payload["maxResults"] == 300
        assert payload["enabled"] is True
        assert payload["updateCount"] == 0
        assert payload["lastAssetIds"] == []

    def test_advanced_search_params_are_camel_case(self):
        definition = SearchDefinition(
            search_type=SearchType.ADVANCED,
            search=SearchFilter(city="Porto", is_favorite=True, camera_make="Fujifilm"),
        )

        payload = json.loads(metadata.encode(definition))

        assert payload["searchParams"] == {"city": "Porto", "isFavorite": True, "make": "Fujifilm"}

    def test_invalid_definition_is_rejected(self):
        with pytest.raises(InvalidDefinition):
            metadata.encode(SearchDefinition(search=SearchFilter()))


class TestRoundTrip:
    @pytest.mark.parametrize(
        "definition",
        [
            SearchDefinition(search=SearchFilter(query="dogs playing")),
            SearchDefinition(
                search_type=SearchType.ADVANCED,
                search=SearchFilter(
                    query="mountains",
                    person_ids=["p1", "p2"],
                    taken_after="2024-01-01T00:00:00Z",
                    rating=4,
                ),
                sync_strategy=SyncStrategy.FULL_SYNC,
                max_results=1200,
                enabled=False,
            ),
            SearchDefinition(
                search=SearchFilter(query="cats", country="Japan"),
                updated_at=datetime(2025, 3, 1, 12, 30, tzinfo=UTC),
                last_run_at=datetime(2025, 3, 1, 12, 29, tzinfo=UTC),
                update_count=7,
                last_asset_ids=["a", "b", "c"],
                last_result_count=3,
                last_added_count=1,
                last_removed_count=2,
                last_run_error="1 assets failed to add",
            ),
        ],
    )
    def test_decode_reproduces_live_fields(self, definition):
        decoded = metadata.decode(metadata.encode(definition))

        assert _live_fields(decoded) == _live_fields(definition)

    def test_collection_supplies_identity(self):
        created = datetime(2024, 6, 1, tzinfo=UTC)
        collection = Collection(id="album-9", name="Sunsets", created_at=created)
        encoded = metadata.encode(SearchDefinition(search=SearchFilter(query="sunset")))

        decoded = metadata.decode(encoded, collection)

        assert decoded.id == "album-9"
        assert decoded.collection_id == "album-9"
        assert decoded.name == "Sunsets"
        assert decoded.created_at == created


class TestNotLive:
    @pytest.mark.parametrize("description", ["", "Summer trip with family", "{not json"])
    def test_free_text_is_malformed(self, description):
        with pytest.raises(MalformedMetadata):
            metadata.decode(description)
        assert metadata.is_live(description) is False

    def test_json_without_marker_is_not_live(self):
        description = json.dumps({"searchQuery": "dogs", "liveAlbum": False})

        with pytest.raises(NotLive):
            metadata.decode(description)
        assert metadata.is_live(description) is False

    def test_wrong_field_type_is_malformed(self):
        description = json.dumps({"liveAlbum": True, "syncStrategy": "sometimes"})

        with pytest.raises(MalformedMetadata):
            metadata.decode(description)

    def test_unknown_search_keys_are_ignored(self):
        description = json.dumps(
            {
                "liveAlbum": True,
                "searchType": "advanced",
                "searchParams": {"city": "Oslo", "colourOfSky": "blue"},
                "maxResults": 50,
            }
        )

        decoded = metadata.decode(description)

        assert decoded.search.to_payload() == {"city": "Oslo"}
        assert metadata.is_live(description) is True
