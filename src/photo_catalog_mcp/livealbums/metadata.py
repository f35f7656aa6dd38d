"""
Metadata codec for live albums.

A live album carries its own definition: the search, sync settings and run
bookkeeping are serialized to JSON and stored as the album's description.
The ``liveAlbum`` marker distinguishes such descriptions from ordinary
free text, so any album description can be scanned with ``is_live``.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..catalog.models import Collection
from ..errors import MalformedMetadata, NotLive
from ..models.definition import SearchDefinition, SearchFilter, SearchType, SyncStrategy


class LiveAlbumMetadata(BaseModel):
    """Wire shape of the JSON stored in a live album's description."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    live_album: bool = False
    search_type: SearchType = SearchType.SMART
    search_query: str = ""
    search_params: dict[str, Any] | None = None
    sync_strategy: SyncStrategy = SyncStrategy.ADD_ONLY
    max_results: int = 0
    last_updated: datetime | None = None
    enabled: bool = True
    update_count: int = 0
    last_asset_ids: list[str] = Field(default_factory=list)

    last_run_at: datetime | None = None
    last_result_count: int = 0
    last_added_count: int = 0
    last_removed_count: int = 0
    last_run_error: str = ""


def encode(definition: SearchDefinition) -> str:
    """
    Serialize a definition's live album fields to a description string.

    Raises:
        InvalidDefinition: If the definition fails validation
    """
    definition.validate_definition()

    search = definition.search
    if definition.search_type == SearchType.ADVANCED:
        search_params = search.to_payload()
    elif search.has_structured_filters():
        search_params = search.with_query(None).to_payload()
    else:
        search_params = None

    metadata = LiveAlbumMetadata(
        live_album=True,
        search_type=definition.search_type,
        search_query=definition.query,
        search_params=search_params,
        sync_strategy=definition.sync_strategy,
        max_results=definition.max_results,
        last_updated=definition.updated_at,
        enabled=definition.enabled,
        update_count=definition.update_count,
        last_asset_ids=list(definition.last_asset_ids),
        last_run_at=definition.last_run_at,
        last_result_count=definition.last_result_count,
        last_added_count=definition.last_added_count,
        last_removed_count=definition.last_removed_count,
        last_run_error=definition.last_run_error,
    )
    return metadata.model_dump_json(by_alias=True)


def decode_metadata(description: str) -> LiveAlbumMetadata:
    """
    Parse a description into its metadata.

    Raises:
        MalformedMetadata: If the description is not valid live album JSON
        NotLive: If it parses but lacks the live album marker
    """
    try:
        metadata = LiveAlbumMetadata.model_validate_json(description or "")
    except ValidationError as e:
        raise MalformedMetadata(f"failed to parse live album metadata: {e}") from e

    if not metadata.live_album:
        raise NotLive("description does not describe a live album")
    return metadata


def decode(description: str, collection: Collection | None = None) -> SearchDefinition:
    """
    Rebuild a definition from a live album description.

    When the owning collection is known its id and name fill in the
    definition's identity and destination.

    Raises:
        MalformedMetadata: If the description is not valid live album JSON
        NotLive: If it parses but lacks the live album marker
    """
    metadata = decode_metadata(description)

    try:
        search = SearchFilter.from_params(metadata.search_params)
    except ValidationError as e:
        raise MalformedMetadata(f"invalid search params in live album metadata: {e}") from e
    if metadata.search_query:
        search = search.with_query(metadata.search_query)

    definition = SearchDefinition(
        search_type=metadata.search_type,
        search=search,
        max_results=metadata.max_results,
        sync_strategy=metadata.sync_strategy,
        enabled=metadata.enabled,
        updated_at=metadata.last_updated,
        update_count=metadata.update_count,
        last_asset_ids=metadata.last_asset_ids,
        last_run_at=metadata.last_run_at,
        last_result_count=metadata.last_result_count,
        last_added_count=metadata.last_added_count,
        last_removed_count=metadata.last_removed_count,
        last_run_error=metadata.last_run_error,
    )

    if collection is not None:
        definition = definition.model_copy(
            update={
                "id": collection.id,
                "name": collection.name,
                "collection_id": collection.id,
                "collection_name": collection.name,
                "created_at": collection.created_at,
            }
        )
    return definition


def is_live(description: str) -> bool:
    """True if the description decodes and carries the live album marker."""
    try:
        decode(description)
    except (MalformedMetadata, NotLive):
        return False
    return True
