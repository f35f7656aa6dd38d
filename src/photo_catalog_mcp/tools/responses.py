"""Response shaping shared by the live and smart album tools."""

import logging
from typing import Any

from ..errors import CatalogError, LiveAlbumError
from ..models.definition import SearchDefinition
from ..models.results import ReconcileResult, RunStatus

logger = logging.getLogger(__name__)


def format_error_response(error_type: str, details: str, code: str | None = None) -> dict[str, Any]:
    """Format error responses consistently across all tools."""
    response: dict[str, Any] = {
        "isError": True,
        "content": [{"type": "text", "text": f"{error_type}: {details}"}],
    }
    if code:
        response["data"] = {"error": {"code": code, "message": details}}
    return response


def engine_error_response(error: LiveAlbumError | CatalogError) -> dict[str, Any]:
    """Error response for a known engine or catalog failure."""
    if isinstance(error, CatalogError):
        return format_error_response("Catalog error", str(error), error.code)
    return format_error_response("Operation failed", str(error), error.code)


def format_definition(definition: SearchDefinition) -> dict[str, Any]:
    """camelCase view of a definition for tool responses."""
    data = definition.model_dump(mode="json", by_alias=True, exclude={"last_asset_ids"})
    data["search"] = definition.search.to_payload()
    data["query"] = definition.query
    data["lastAssetCount"] = len(definition.last_asset_ids)
    return data


def describe_run(result: ReconcileResult) -> str:
    """One-line human summary of a reconciliation result."""
    label = result.definition_name or result.collection_id

    if result.status == RunStatus.FAILED:
        return f"Refresh of '{label}' failed: {result.error}"
    if result.status == RunStatus.DRY_RUN:
        message = (
            f"Dry run for '{label}': {result.total_matches} matches, "
            f"{result.to_add_count} would be added"
        )
        if result.to_remove_count:
            message += f", {result.to_remove_count} would be removed"
        return message + ". No changes made."
    if result.status == RunStatus.NO_CHANGES:
        message = f"'{label}' is up to date ({result.total_matches} matches)."
    else:
        message = (
            f"Updated '{label}': added {len(result.added_ids)}, "
            f"removed {len(result.removed_ids)} of {result.total_matches} matches."
        )
        if result.failed_count:
            message += f" {result.failed_count} assets could not be changed."

    if result.persist_error:
        message += f" Warning: run statistics were not saved ({result.persist_error})."
    return message
