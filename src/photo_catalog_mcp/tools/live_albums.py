"""Live Album Tools - Self-Describing Albums

A live album stores its own search definition, serialized as JSON in the
album description. No local state is involved: any album whose description
carries the live album marker is picked up by scheduled sweeps.

Tools:
- create_live_album: Create and populate a new live album
- convert_to_live_album: Attach a search definition to an existing album
- update_live_album: Refresh one live album now (optionally as a dry run)
- list_live_albums: All live albums with their settings and last run
- set_live_album_enabled: Include or exclude a live album from sweeps
- get_live_album_status: Settings and last-run bookkeeping for one album
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..errors import CatalogError, LiveAlbumError
from ..livealbums.service import get_live_album_service
from ..models.definition import SyncStrategy
from ..observability import trace_tool
from .responses import (
    describe_run,
    engine_error_response,
    format_definition,
    format_error_response,
)

logger = logging.getLogger(__name__)


class _ToolInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AlbumRef(_ToolInput):
    """Reference to an existing album."""

    album_id: str = Field(..., description="ID of the album", min_length=1)


class LiveSearchInput(_ToolInput):
    """Search and sync settings shared by create and convert."""

    search_query: str | None = Field(
        default=None,
        description="Smart search query (e.g. 'sunset photos', 'dogs playing')",
        max_length=500,
    )

    search_params: dict[str, Any] | None = Field(
        default=None,
        description="Structured search filters (camelCase); makes this an advanced search",
    )

    sync_strategy: SyncStrategy | None = Field(
        default=None,
        description="'add-only' (only add new matches) or 'full-sync' (add new, remove non-matches)",
    )

    max_results: int | None = Field(
        default=None,
        description="Maximum number of search results to include",
        ge=1,
    )

    enabled: bool = Field(default=True, description="Whether scheduled sweeps update the album")

    @field_validator("search_query")
    @classmethod
    def strip_whitespace(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
            if not v:
                return None
        return v

    @model_validator(mode="after")
    def require_search(self) -> "LiveSearchInput":
        if not self.search_query and not self.search_params:
            raise ValueError("either searchQuery or searchParams must be provided")
        return self


# =============================================================================
# create_live_album
# =============================================================================


class CreateLiveAlbumInput(LiveSearchInput):
    """Input schema for the create_live_album tool."""

    album_name: str = Field(..., description="Name for the new album", min_length=1, max_length=200)

    populate: bool = Field(
        default=True,
        description="Run the search once right away to fill the new album",
    )


@trace_tool("create_live_album")
async def create_live_album_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Create a live album and run its first update.

    Client calls: tool.call("create_live_album", {"albumName": "...", "searchQuery": "..."})
    """
    try:
        try:
            params = CreateLiveAlbumInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid create_live_album parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        try:
            outcome = await get_live_album_service().create_live_album(
                name=params.album_name,
                query=params.search_query,
                search_params=params.search_params,
                sync_strategy=params.sync_strategy,
                max_results=params.max_results,
                enabled=params.enabled,
                populate=params.populate,
            )
        except (LiveAlbumError, CatalogError) as e:
            logger.info("create_live_album failed: %s", e)
            return engine_error_response(e)

        message = f"Created live album '{outcome.collection.name}'"
        data: dict[str, Any] = {
            "albumId": outcome.collection.id,
            "liveAlbum": format_definition(outcome.definition),
            "initialRun": None,
        }
        if outcome.initial_run is not None:
            message += f". {describe_run(outcome.initial_run)}"
            data["initialRun"] = outcome.initial_run.to_response()

        return {"content": [{"type": "text", "text": message}], "data": data}

    except Exception as e:
        logger.exception("Unexpected error in create_live_album tool")
        return format_error_response("Unexpected error", str(e))


create_live_album = {
    "name": "create_live_album",
    "description": (
        "Create a new live album that automatically updates based on search criteria. "
        "The search definition is stored in the album description."
    ),
    "inputSchema": CreateLiveAlbumInput.model_json_schema(),
    "handler": create_live_album_handler,
}


# =============================================================================
# convert_to_live_album
# =============================================================================


class ConvertToLiveAlbumInput(LiveSearchInput, AlbumRef):
    """Input schema for the convert_to_live_album tool."""


@trace_tool("convert_to_live_album")
async def convert_to_live_album_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Turn an existing regular album into a live album."""
    try:
        try:
            params = ConvertToLiveAlbumInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid convert_to_live_album parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        try:
            definition = await get_live_album_service().convert_to_live_album(
                collection_id=params.album_id,
                query=params.search_query,
                search_params=params.search_params,
                sync_strategy=params.sync_strategy,
                max_results=params.max_results,
                enabled=params.enabled,
            )
        except (LiveAlbumError, CatalogError) as e:
            logger.info("convert_to_live_album failed: %s", e)
            return engine_error_response(e)

        return {
            "content": [
                {
                    "type": "text",
                    "text": (
                        f"Album '{definition.name}' is now a live album. "
                        "Run update_live_album to populate it now."
                    ),
                }
            ],
            "data": {"liveAlbum": format_definition(definition)},
        }

    except Exception as e:
        logger.exception("Unexpected error in convert_to_live_album tool")
        return format_error_response("Unexpected error", str(e))


convert_to_live_album = {
    "name": "convert_to_live_album",
    "description": (
        "Convert an existing regular album into a live album. The album description "
        "is replaced by the live album definition."
    ),
    "inputSchema": ConvertToLiveAlbumInput.model_json_schema(),
    "handler": convert_to_live_album_handler,
}


# =============================================================================
# update_live_album
# =============================================================================


class UpdateLiveAlbumInput(AlbumRef):
    """Input schema for the update_live_album tool."""

    dry_run: bool = Field(
        default=False,
        description="When true, compute differences without modifying the album",
    )

    max_results: int | None = Field(
        default=None,
        description="Override the album's maximum number of search results for this run",
        ge=1,
    )

    preview_limit: int | None = Field(
        default=None,
        description="Number of asset IDs returned as a preview (0-200, default 25)",
    )


@trace_tool("update_live_album")
async def update_live_album_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Manually trigger an update of one live album."""
    try:
        try:
            params = UpdateLiveAlbumInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid update_live_album parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        try:
            result = await get_live_album_service().update_live_album(
                collection_id=params.album_id,
                dry_run=params.dry_run,
                max_results=params.max_results,
                preview_limit=params.preview_limit,
            )
        except (LiveAlbumError, CatalogError) as e:
            logger.info("update_live_album failed: %s", e)
            return engine_error_response(e)

        response: dict[str, Any] = {
            "content": [{"type": "text", "text": describe_run(result)}],
            "data": {"result": result.to_response()},
        }
        if not result.succeeded:
            response["isError"] = True
        return response

    except Exception as e:
        logger.exception("Unexpected error in update_live_album tool")
        return format_error_response("Unexpected error", str(e))


update_live_album = {
    "name": "update_live_album",
    "description": "Manually trigger an update of a live album. Use dryRun to preview changes.",
    "inputSchema": UpdateLiveAlbumInput.model_json_schema(),
    "handler": update_live_album_handler,
}


# =============================================================================
# list_live_albums / get_live_album_status / set_live_album_enabled
# =============================================================================


@trace_tool("list_live_albums")
async def list_live_albums_handler(arguments: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    """List all live albums with their configuration."""
    try:
        try:
            definitions = await get_live_album_service().list_live_albums()
        except CatalogError as e:
            return engine_error_response(e)

        if not definitions:
            message = "No live albums found."
        else:
            lines = [f"Found {len(definitions)} live album(s):"]
            for d in definitions:
                state = "enabled" if d.enabled else "disabled"
                lines.append(
                    f"- {d.name} ({d.search_type.value}: {d.query or 'structured filter'}, "
                    f"{d.sync_strategy.value}, {state}, updates: {d.update_count})"
                )
            message = "\n".join(lines)

        return {
            "content": [{"type": "text", "text": message}],
            "data": {
                "liveAlbums": [format_definition(d) for d in definitions],
                "count": len(definitions),
            },
        }

    except Exception as e:
        logger.exception("Unexpected error in list_live_albums tool")
        return format_error_response("Unexpected error", str(e))


list_live_albums = {
    "name": "list_live_albums",
    "description": "List all live albums with their search settings and last update.",
    "inputSchema": {"type": "object", "properties": {}},
    "handler": list_live_albums_handler,
}


@trace_tool("get_live_album_status")
async def get_live_album_status_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Report a live album's settings and bookkeeping."""
    try:
        try:
            params = AlbumRef.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid get_live_album_status parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        try:
            collection, definition = await get_live_album_service().get_live_album_status(
                params.album_id
            )
        except (LiveAlbumError, CatalogError) as e:
            return engine_error_response(e)

        last = definition.updated_at
        message = (
            f"Live album '{collection.name}': {collection.asset_count} assets, "
            f"{definition.update_count} updates, "
            f"last updated {last.isoformat() if last else 'never'}"
        )
        if definition.last_run_error:
            message += f". Last error: {definition.last_run_error}"

        return {
            "content": [{"type": "text", "text": message}],
            "data": {
                "liveAlbum": format_definition(definition),
                "assetCount": collection.asset_count,
            },
        }

    except Exception as e:
        logger.exception("Unexpected error in get_live_album_status tool")
        return format_error_response("Unexpected error", str(e))


get_live_album_status = {
    "name": "get_live_album_status",
    "description": "Get the status and configuration of a live album.",
    "inputSchema": AlbumRef.model_json_schema(),
    "handler": get_live_album_status_handler,
}


class SetLiveAlbumEnabledInput(AlbumRef):
    """Input schema for the set_live_album_enabled tool."""

    enabled: bool = Field(..., description="True to enable automatic updates, false to disable")


@trace_tool("set_live_album_enabled")
async def set_live_album_enabled_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Enable or disable automatic updates for a live album."""
    try:
        try:
            params = SetLiveAlbumEnabledInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid set_live_album_enabled parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        try:
            definition = await get_live_album_service().set_live_album_enabled(
                collection_id=params.album_id, enabled=params.enabled
            )
        except (LiveAlbumError, CatalogError) as e:
            return engine_error_response(e)

        state = "enabled" if definition.enabled else "disabled"
        return {
            "content": [
                {"type": "text", "text": f"Live album '{definition.name}' automatic updates {state}"}
            ],
            "data": {"liveAlbum": format_definition(definition)},
        }

    except Exception as e:
        logger.exception("Unexpected error in set_live_album_enabled tool")
        return format_error_response("Unexpected error", str(e))


set_live_album_enabled = {
    "name": "set_live_album_enabled",
    "description": "Enable or disable automatic updates for a live album.",
    "inputSchema": SetLiveAlbumEnabledInput.model_json_schema(),
    "handler": set_live_album_enabled_handler,
}
