"""
Reconciliation of one definition against its destination collection.

A pass runs the saved search, reads what the collection currently holds,
and applies the difference through the catalog's best-effort bulk calls:

    to_add    = target - current
    to_remove = current - target        (full-sync only)

Membership, not history, drives the diff, so re-running a pass against an
unchanged catalog is a no-op and a pass interrupted mid-way is safe to
repeat. Additions are applied before removals and are never rolled back if
the removal phase fails.

Where the run statistics are written depends on the carrier: stored smart
albums go back to the definition store, live albums re-encode their
metadata into the collection description.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Protocol, TypeVar

import logfire

from ..catalog.client import CatalogClient
from ..catalog.models import Collection
from ..database.definition_store import DefinitionStore
from ..errors import (
    ApplyFailed,
    DestinationUnresolved,
    FetchCurrentFailed,
    LiveAlbumError,
    PersistenceFailed,
    SearchFailed,
)
from ..models.definition import SearchDefinition, SyncStrategy, utcnow
from ..models.results import BulkIdResult, ReconcileResult, RunStatus
from ..observability.metrics import record_reconcile_result
from . import metadata

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# CARRIERS
# =============================================================================


class DefinitionCarrier(Protocol):
    """Where a definition lives and how its run statistics are written back."""

    kind: str
    keeps_asset_ids: bool
    definition: SearchDefinition

    async def refresh(self) -> SearchDefinition: ...

    async def persist(self, definition: SearchDefinition) -> SearchDefinition: ...


class StoredCarrier:
    """A smart album definition held in the definition store."""

    kind = "store"
    keeps_asset_ids = False

    def __init__(self, store: DefinitionStore, definition: SearchDefinition):
        self.store = store
        self.definition = definition

    async def refresh(self) -> SearchDefinition:
        """
        Re-read the stored record, picking up edits made since it was listed.

        Raises:
            DefinitionNotFound: If the definition has been deleted
        """
        self.definition = self.store.get_by_id(self.definition.id)
        return self.definition

    async def persist(self, definition: SearchDefinition) -> SearchDefinition:
        # Only the statistics are written; the store blocks on its own lock
        saved = await asyncio.to_thread(self.store.record_run, definition)
        self.definition = saved
        return saved


class EmbeddedCarrier:
    """A live album whose definition is encoded in the collection description."""

    kind = "embedded"
    keeps_asset_ids = True

    def __init__(self, catalog: CatalogClient, definition: SearchDefinition):
        self.catalog = catalog
        self.definition = definition

    @classmethod
    def from_collection(cls, catalog: CatalogClient, collection: Collection) -> "EmbeddedCarrier":
        """
        Raises:
            MalformedMetadata: If the description is not valid live album JSON
            NotLive: If the collection is not a live album
        """
        return cls(catalog, metadata.decode(collection.description, collection))

    async def refresh(self) -> SearchDefinition:
        """The description was decoded when the sweep listed albums."""
        return self.definition

    async def persist(self, definition: SearchDefinition) -> SearchDefinition:
        stamped = definition.model_copy(update={"updated_at": utcnow()})
        try:
            description = metadata.encode(stamped)
            await self.catalog.set_collection_description(stamped.collection_id, description)
        except Exception as e:
            raise PersistenceFailed(f"failed to update album metadata: {e!s}") from e
        self.definition = stamped
        return stamped


# =============================================================================
# RECONCILER
# =============================================================================


def _unique(ids: list[str]) -> list[str]:
    """De-duplicate while keeping first-occurrence order."""
    return list(dict.fromkeys(ids))


class Reconciler:
    """
    Executes reconciliation passes. Holds no state between calls.

    Args:
        catalog: Asset catalog client
        clock: Source of the current time, injectable for tests
        call_timeout: Deadline in seconds for each catalog call, None for no deadline
        max_results_ceiling: Upper bound for any search size
        preview_limit: Default number of ids included in previews
    """

    def __init__(
        self,
        catalog: CatalogClient,
        *,
        clock: Callable[[], datetime] = utcnow,
        call_timeout: float | None = None,
        max_results_ceiling: int = 5000,
        preview_limit: int = 25,
    ):
        self.catalog = catalog
        self.clock = clock
        self.call_timeout = call_timeout
        self.max_results_ceiling = max_results_ceiling
        self.preview_limit = preview_limit

    async def bounded(self, awaitable: Awaitable[T]) -> T:
        """Await a catalog call under the per-call deadline."""
        async with asyncio.timeout(self.call_timeout):
            return await awaitable

    async def reconcile(
        self,
        carrier: DefinitionCarrier,
        *,
        dry_run: bool = False,
        max_results: int | None = None,
        preview_limit: int | None = None,
    ) -> ReconcileResult:
        """
        Run one reconciliation pass for the carrier's definition.

        Args:
            carrier: The definition and where to write its statistics
            dry_run: Compute the plan without mutating anything
            max_results: One-shot override of the definition's search size
            preview_limit: Number of ids to include in previews

        Returns:
            A result whose ``status`` tells apart no-op, applied, partial and failed runs
        """
        definition = carrier.definition
        result = ReconcileResult(
            definition_id=definition.id,
            definition_name=definition.label,
            carrier=carrier.kind,
            collection_id=definition.collection_id,
            collection_name=definition.collection_name,
            dry_run=dry_run,
        )
        limit = self.preview_limit if preview_limit is None else max(preview_limit, 0)

        with logfire.span(
            "livealbum.reconcile",
            definition_id=definition.id,
            carrier=carrier.kind,
            sync_strategy=definition.sync_strategy.value,
            dry_run=dry_run,
        ) as span:
            try:
                await self._run(carrier, result, dry_run, max_results, limit)
            except LiveAlbumError as e:
                await self._record_failure(carrier, result, e, dry_run)

            span.set_attribute("status", result.status.value)
            span.set_attribute("added", len(result.added_ids))
            span.set_attribute("removed", len(result.removed_ids))

        record_reconcile_result(result)
        return result

    async def _run(
        self,
        carrier: DefinitionCarrier,
        result: ReconcileResult,
        dry_run: bool,
        max_results: int | None,
        preview_limit: int,
    ) -> None:
        definition = carrier.definition
        definition.validate_definition()
        collection_id = await self._resolve_destination(definition)
        if collection_id != definition.collection_id:
            definition = definition.model_copy(update={"collection_id": collection_id})
            carrier.definition = definition
            result.collection_id = collection_id

        size = max_results if max_results and max_results > 0 else definition.max_results
        size = min(size, self.max_results_ceiling)

        logger.info(
            "Reconciling '%s' into album %s (strategy=%s, size=%d, dry_run=%s)",
            definition.label,
            collection_id,
            definition.sync_strategy.value,
            size,
            dry_run,
        )

        try:
            matches = await self.bounded(self.catalog.search(definition.search, size))
        except Exception as e:
            raise SearchFailed(f"smart search failed: {e!s}") from e

        try:
            current = await self.bounded(self.catalog.get_collection_contents(collection_id))
        except Exception as e:
            raise FetchCurrentFailed(f"failed to read existing album assets: {e!s}") from e

        target = _unique(matches)
        target_set = set(target)
        current = _unique(current)
        current_set = set(current)

        to_add = [asset_id for asset_id in target if asset_id not in current_set]
        to_remove: list[str] = []
        if definition.sync_strategy == SyncStrategy.FULL_SYNC:
            to_remove = [asset_id for asset_id in current if asset_id not in target_set]

        result.total_matches = len(target)
        result.already_present = len(target) - len(to_add)
        result.to_add_count = len(to_add)
        result.to_remove_count = len(to_remove)
        result.preview_add_ids = to_add[:preview_limit]
        result.preview_remove_ids = to_remove[:preview_limit]

        if dry_run:
            result.status = RunStatus.DRY_RUN
            return

        added = BulkIdResult()
        if to_add:
            try:
                added = await self.bounded(self.catalog.bulk_add(collection_id, to_add))
            except Exception as e:
                raise ApplyFailed(f"failed to add assets to album: {e!s}") from e
            result.added_ids = sorted(added.succeeded)
            result.failed_add_ids = sorted(added.failed)

        removed = BulkIdResult()
        if to_remove:
            logger.info(
                "Removing %d assets from album %s (full-sync mode)", len(to_remove), collection_id
            )
            try:
                removed = await self.bounded(self.catalog.bulk_remove(collection_id, to_remove))
            except Exception as e:
                raise ApplyFailed(f"failed to remove assets from album: {e!s}") from e
            result.removed_ids = sorted(removed.succeeded)
            result.failed_remove_ids = sorted(removed.failed)

        notes = []
        if added.failed:
            notes.append(f"{len(added.failed)} assets failed to add")
        if removed.failed:
            notes.append(f"{len(removed.failed)} assets failed to remove")

        if notes:
            result.status = RunStatus.PARTIAL
            logger.warning("Partial update of '%s': %s", definition.label, "; ".join(notes))
        elif added.succeeded or removed.succeeded:
            result.status = RunStatus.APPLIED
        else:
            result.status = RunStatus.NO_CHANGES

        now = self.clock()
        result.run_at = now
        update = {
            "last_run_at": now,
            "last_result_count": len(target),
            "last_added_count": len(added.succeeded),
            "last_removed_count": len(removed.succeeded),
            "last_run_error": "; ".join(notes),
            "update_count": definition.update_count + 1,
        }
        if carrier.keeps_asset_ids:
            update["last_asset_ids"] = target

        await self._persist(carrier, definition.model_copy(update=update), result)

        logger.info(
            "Reconciled '%s': added %d, removed %d, failed %d, total %d",
            definition.label,
            len(result.added_ids),
            len(result.removed_ids),
            result.failed_count,
            len(target),
        )

    async def _resolve_destination(self, definition: SearchDefinition) -> str:
        if definition.collection_id:
            return definition.collection_id

        if definition.collection_name:
            try:
                collections = await self.bounded(self.catalog.list_collections())
            except Exception as e:
                raise DestinationUnresolved(f"failed to list albums: {e!s}") from e

            wanted = definition.collection_name.strip().lower()
            for collection in collections:
                if collection.name.strip().lower() == wanted:
                    return collection.id

            raise DestinationUnresolved(f"album '{definition.collection_name}' not found")

        raise DestinationUnresolved(f"'{definition.label}' has no destination album")

    async def _record_failure(
        self,
        carrier: DefinitionCarrier,
        result: ReconcileResult,
        error: LiveAlbumError,
        dry_run: bool,
    ) -> None:
        result.status = RunStatus.FAILED
        result.error = str(error)
        result.error_code = error.code
        logger.error("Reconciliation of '%s' failed: %s", carrier.definition.label, error)

        if dry_run:
            return

        now = self.clock()
        result.run_at = now
        failed = carrier.definition.record_failure(str(error), now)
        if result.added_ids:
            # The add phase already happened; keep its count
            failed = failed.model_copy(
                update={
                    "last_added_count": len(result.added_ids),
                    "last_result_count": result.total_matches,
                }
            )
        await self._persist(carrier, failed, result)

    async def _persist(
        self, carrier: DefinitionCarrier, definition: SearchDefinition, result: ReconcileResult
    ) -> None:
        try:
            await carrier.persist(definition)
        except LiveAlbumError as e:
            result.persist_error = str(e)
            result.persist_error_code = e.code
            logger.error(
                "Failed to record run statistics for '%s': %s", definition.label, e
            )
