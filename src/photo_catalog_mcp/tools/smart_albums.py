"""Smart Album Tools - Stored Search Definitions

Smart albums are saved searches kept in the definition store, each linked
to a destination album that the reconciler keeps populated.

Tools:
- define_smart_album: Create or update a definition
- refresh_smart_album: Run one definition now (optionally as a dry run)
- list_smart_albums: Definitions with their last-run statistics
- set_smart_album_enabled: Include or exclude a definition from sweeps
- delete_smart_album: Remove a definition (the album itself is kept)
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
    """Accepts both camelCase (wire) and snake_case argument names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SmartAlbumRef(_ToolInput):
    """Reference to one stored definition, by id or by name."""

    smart_album_id: str | None = Field(
        default=None,
        description="Identifier of the smart album definition",
    )

    smart_album_name: str | None = Field(
        default=None,
        description="Name of the smart album definition (case-insensitive) when no id is given",
        max_length=200,
    )

    @field_validator("smart_album_id", "smart_album_name")
    @classmethod
    def strip_whitespace(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
            if not v:
                return None
        return v

    @model_validator(mode="after")
    def require_reference(self) -> "SmartAlbumRef":
        if not self.smart_album_id and not self.smart_album_name:
            raise ValueError("either smartAlbumId or smartAlbumName must be provided")
        return self


# =============================================================================
# define_smart_album
# =============================================================================


class DefineSmartAlbumInput(SmartAlbumRef):
    """Input schema for the define_smart_album tool."""

    description: str | None = Field(
        default=None,
        description="Optional description for the smart album definition",
        max_length=1000,
    )

    album_id: str | None = Field(
        default=None,
        description="Existing album ID that should receive assets",
    )

    album_name: str | None = Field(
        default=None,
        description="Album name to target, or create if albumId is not provided",
        max_length=200,
    )

    album_description: str | None = Field(
        default=None,
        description="Description to apply if a new album is created",
        max_length=1000,
    )

    create_album: bool = Field(
        default=True,
        description="Create the album when it does not already exist",
    )

    smart_query: str | None = Field(
        default=None,
        description="Smart search free-form query text",
        max_length=500,
        examples=["sunset at the beach", "birthday cake"],
    )

    search_params: dict[str, Any] | None = Field(
        default=None,
        description=(
            "Structured search filters (camelCase): personIds, city, country, make, model, "
            "takenAfter, takenBefore, isFavorite, type, rating, ... Unknown keys are ignored"
        ),
    )

    max_results: int | None = Field(
        default=None,
        description="Maximum number of search matches per refresh (1-5000, default 500)",
        ge=1,
        le=5000,
    )

    sync_strategy: SyncStrategy | None = Field(
        default=None,
        description="'add-only' (only add new matches) or 'full-sync' (also remove non-matches)",
    )

    enabled: bool | None = Field(
        default=None,
        description="Whether scheduled sweeps refresh this definition",
    )


@trace_tool("define_smart_album")
async def define_smart_album_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Create or update a stored smart album definition.

    Client calls: tool.call("define_smart_album", {"smartAlbumName": "...", "smartQuery": "..."})
    """
    try:
        try:
            params = DefineSmartAlbumInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid define_smart_album parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        service = get_live_album_service()
        try:
            outcome = await service.define_smart_album(
                definition_id=params.smart_album_id,
                name=params.smart_album_name,
                description=params.description,
                query=params.smart_query,
                search_params=params.search_params,
                collection_id=params.album_id,
                collection_name=params.album_name,
                collection_description=params.album_description,
                create_collection=params.create_album,
                max_results=params.max_results,
                sync_strategy=params.sync_strategy,
                enabled=params.enabled,
            )
        except (LiveAlbumError, CatalogError) as e:
            logger.info("define_smart_album failed: %s", e)
            return engine_error_response(e)

        definition = outcome.definition
        verb = "Created" if outcome.created else "Updated"
        message = (
            f"{verb} smart album '{definition.name}' targeting album "
            f"'{definition.collection_name or definition.collection_id}'"
        )
        if outcome.collection_created:
            message += " (album created)"

        return {
            "content": [{"type": "text", "text": message}],
            "data": {
                "smartAlbum": format_definition(definition),
                "created": outcome.created,
                "albumCreated": outcome.collection_created,
            },
        }

    except Exception as e:
        logger.exception("Unexpected error in define_smart_album tool")
        return format_error_response("Unexpected error", str(e))


define_smart_album = {
    "name": "define_smart_album",
    "description": (
        "Create or update a smart album definition: a stored smart search linked to a "
        "destination album. Reference an existing definition by smartAlbumId or "
        "smartAlbumName; fields you omit keep their stored values."
    ),
    "inputSchema": DefineSmartAlbumInput.model_json_schema(),
    "handler": define_smart_album_handler,
}


# =============================================================================
# refresh_smart_album
# =============================================================================


class RefreshSmartAlbumInput(SmartAlbumRef):
    """Input schema for the refresh_smart_album tool."""

    dry_run: bool = Field(
        default=False,
        description="When true, compute differences without modifying the album",
    )

    max_results: int | None = Field(
        default=None,
        description="Override the stored maximum number of search matches for this run",
        ge=1,
    )

    # Out-of-range values are clamped by the service, not rejected
    preview_limit: int | None = Field(
        default=None,
        description="Number of asset IDs returned as a preview (0-200, default 25)",
    )


@trace_tool("refresh_smart_album")
async def refresh_smart_album_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Run one stored definition against its destination album.

    A failed run is reported with isError and the run's structured result.

    Client calls: tool.call("refresh_smart_album", {"smartAlbumName": "...", "dryRun": true})
    """
    try:
        try:
            params = RefreshSmartAlbumInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid refresh_smart_album parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        service = get_live_album_service()
        try:
            result = await service.refresh_smart_album(
                definition_id=params.smart_album_id,
                name=params.smart_album_name,
                dry_run=params.dry_run,
                max_results=params.max_results,
                preview_limit=params.preview_limit,
            )
        except (LiveAlbumError, CatalogError) as e:
            logger.info("refresh_smart_album failed: %s", e)
            return engine_error_response(e)

        smart_album = service.get_smart_album(definition_id=result.definition_id)
        response: dict[str, Any] = {
            "content": [{"type": "text", "text": describe_run(result)}],
            "data": {
                "result": result.to_response(),
                "smartAlbum": format_definition(smart_album),
            },
        }
        if not result.succeeded:
            response["isError"] = True
        return response

    except Exception as e:
        logger.exception("Unexpected error in refresh_smart_album tool")
        return format_error_response("Unexpected error", str(e))


refresh_smart_album = {
    "name": "refresh_smart_album",
    "description": (
        "Run a stored smart album definition now and sync its matches into the "
        "destination album. Use dryRun to preview the assets that would be added or removed."
    ),
    "inputSchema": RefreshSmartAlbumInput.model_json_schema(),
    "handler": refresh_smart_album_handler,
}


# =============================================================================
# list_smart_albums
# =============================================================================


@trace_tool("list_smart_albums")
async def list_smart_albums_handler(arguments: dict[str, Any]) -> dict[str, Any]:  # noqa: ARG001
    """List every stored definition with its last-run statistics."""
    try:
        definitions = get_live_album_service().list_smart_albums()

        if not definitions:
            message = "No smart albums defined."
        else:
            lines = [f"Found {len(definitions)} smart album(s):"]
            for d in definitions:
                state = "enabled" if d.enabled else "disabled"
                last_run = d.last_run_at.isoformat() if d.last_run_at else "never"
                lines.append(
                    f"- {d.name} -> {d.collection_name or d.collection_id} "
                    f"({d.sync_strategy.value}, {state}, last run: {last_run})"
                )
            message = "\n".join(lines)

        return {
            "content": [{"type": "text", "text": message}],
            "data": {
                "smartAlbums": [format_definition(d) for d in definitions],
                "count": len(definitions),
            },
        }

    except Exception as e:
        logger.exception("Unexpected error in list_smart_albums tool")
        return format_error_response("Unexpected error", str(e))


list_smart_albums = {
    "name": "list_smart_albums",
    "description": "List stored smart album definitions with their last-run statistics.",
    "inputSchema": {"type": "object", "properties": {}},
    "handler": list_smart_albums_handler,
}


# =============================================================================
# set_smart_album_enabled / delete_smart_album
# =============================================================================


class SetSmartAlbumEnabledInput(SmartAlbumRef):
    """Input schema for the set_smart_album_enabled tool."""

    enabled: bool = Field(..., description="True to include in scheduled sweeps, false to skip")


@trace_tool("set_smart_album_enabled")
async def set_smart_album_enabled_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Enable or disable a stored definition."""
    try:
        try:
            params = SetSmartAlbumEnabledInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid set_smart_album_enabled parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        try:
            definition = await get_live_album_service().set_smart_album_enabled(
                enabled=params.enabled,
                definition_id=params.smart_album_id,
                name=params.smart_album_name,
            )
        except LiveAlbumError as e:
            return engine_error_response(e)

        state = "enabled" if definition.enabled else "disabled"
        return {
            "content": [{"type": "text", "text": f"Smart album '{definition.name}' {state}"}],
            "data": {"smartAlbum": format_definition(definition)},
        }

    except Exception as e:
        logger.exception("Unexpected error in set_smart_album_enabled tool")
        return format_error_response("Unexpected error", str(e))


set_smart_album_enabled = {
    "name": "set_smart_album_enabled",
    "description": "Enable or disable a smart album definition for scheduled sweeps.",
    "inputSchema": SetSmartAlbumEnabledInput.model_json_schema(),
    "handler": set_smart_album_enabled_handler,
}


@trace_tool("delete_smart_album")
async def delete_smart_album_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Delete a stored definition. The destination album keeps its assets."""
    try:
        try:
            params = SmartAlbumRef.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid delete_smart_album parameters: %s", e)
            return format_error_response("Invalid parameters", str(e), "invalid_parameters")

        try:
            definition = await get_live_album_service().delete_smart_album(
                definition_id=params.smart_album_id, name=params.smart_album_name
            )
        except LiveAlbumError as e:
            return engine_error_response(e)

        return {
            "content": [
                {
                    "type": "text",
                    "text": f"Deleted smart album '{definition.name}'. The album itself was not changed.",
                }
            ],
            "data": {"deleted": format_definition(definition)},
        }

    except Exception as e:
        logger.exception("Unexpected error in delete_smart_album tool")
        return format_error_response("Unexpected error", str(e))


delete_smart_album = {
    "name": "delete_smart_album",
    "description": "Delete a smart album definition. The destination album and its assets are kept.",
    "inputSchema": SmartAlbumRef.model_json_schema(),
    "handler": delete_smart_album_handler,
}
