"""
Operations exposed to the MCP tool layer.

``LiveAlbumService`` wires the catalog client, the definition store, the
reconciler and the scheduler together and implements every user-facing
operation on smart albums (stored definitions) and live albums (definitions
embedded in the collection description).

Validation and lookup problems raise ``LiveAlbumError`` subclasses; catalog
transport problems raise ``CatalogError``. Reconciliation outcomes are
returned as ``ReconcileResult`` rather than raised, so callers can tell
"nothing to do", "partial" and "failed" apart from ``status``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ..catalog.client import CatalogClient, ImmichCatalogClient
from ..catalog.models import Collection
from ..config import ServerConfig, get_config
from ..database.definition_store import DefinitionStore
from ..database.session import get_db_manager
from ..errors import (
    AlreadyLive,
    CatalogError,
    DefinitionNotFound,
    DestinationUnresolved,
    InvalidDefinition,
    NotLive,
)
from ..models.definition import SearchDefinition, SearchFilter, SearchType, SyncStrategy
from ..models.results import ReconcileResult, SweepResult
from . import metadata
from .reconciler import EmbeddedCarrier, Reconciler, StoredCarrier
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class DefineOutcome:
    """Result of define_smart_album."""

    definition: SearchDefinition
    created: bool
    collection_created: bool


@dataclass
class CreateLiveOutcome:
    """Result of create_live_album; ``initial_run`` is None when population was skipped."""

    definition: SearchDefinition
    collection: Collection
    initial_run: ReconcileResult | None


def build_search(
    query: str | None, search_params: dict[str, Any] | None
) -> tuple[SearchType, SearchFilter]:
    """
    Turn tool input into a structured filter.

    Raises:
        InvalidDefinition: If ``search_params`` has an unusable value
    """
    try:
        search = SearchFilter.from_params(search_params)
    except ValidationError as e:
        raise InvalidDefinition(f"invalid searchParams: {e}") from e

    search_type = SearchType.ADVANCED if search_params else SearchType.SMART
    if query:
        search = search.with_query(query)
    return search_type, search


class LiveAlbumService:
    """Facade over the reconciliation engine."""

    def __init__(
        self,
        config: ServerConfig,
        catalog: CatalogClient,
        store: DefinitionStore,
        *,
        reconciler: Reconciler | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.config = config
        self.catalog = catalog
        self.store = store
        self.reconciler = reconciler or Reconciler(
            catalog,
            call_timeout=config.immich_timeout,
            max_results_ceiling=config.max_results_ceiling,
            preview_limit=config.preview_limit_default,
        )
        self.scheduler = scheduler or Scheduler(
            catalog,
            store,
            self.reconciler,
            interval=config.live_album_update_interval,
            enabled=config.enable_live_albums,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _preview_limit(self, requested: int | None) -> int:
        if requested is None:
            return self.config.preview_limit_default
        return max(0, min(requested, self.config.preview_limit_max))

    async def _get_collection(self, collection_id: str) -> Collection:
        try:
            return await self.catalog.get_collection(collection_id)
        except CatalogError as e:
            if e.status_code in (400, 404):
                raise DefinitionNotFound(f"album not found: {collection_id}") from e
            raise

    async def _find_collection_by_name(self, name: str) -> Collection | None:
        wanted = name.strip().lower()
        for collection in await self.catalog.list_collections():
            if collection.name.strip().lower() == wanted:
                return collection
        return None

    def _resolve_stored(self, definition_id: str | None, name: str | None) -> SearchDefinition:
        if definition_id:
            return self.store.get_by_id(definition_id)
        if name:
            return self.store.get_by_name(name)
        raise InvalidDefinition("either smartAlbumId or smartAlbumName must be provided")

    async def _get_live(self, collection_id: str) -> tuple[Collection, SearchDefinition]:
        collection = await self._get_collection(collection_id)
        try:
            definition = metadata.decode(collection.description, collection)
        except NotLive as e:
            raise NotLive(f"album is not a live album: {collection.name}") from e
        return collection, definition

    # =========================================================================
    # Smart albums (definition store)
    # =========================================================================

    async def define_smart_album(
        self,
        *,
        definition_id: str | None = None,
        name: str | None = None,
        description: str | None = None,
        query: str | None = None,
        search_params: dict[str, Any] | None = None,
        collection_id: str | None = None,
        collection_name: str | None = None,
        collection_description: str | None = None,
        create_collection: bool = True,
        max_results: int | None = None,
        sync_strategy: SyncStrategy | None = None,
        enabled: bool | None = None,
    ) -> DefineOutcome:
        """
        Create or update a smart album definition.

        An existing definition is found by id, else by name. Fields that are
        not supplied keep their stored values.

        Raises:
            InvalidDefinition: If required fields are missing or the search is unusable
            DefinitionNotFound: If ``definition_id`` or ``collection_id`` is unknown
            DestinationUnresolved: If no destination album can be determined
        """
        if not definition_id and not name:
            raise InvalidDefinition("either smartAlbumId or smartAlbumName must be provided")

        async with self.scheduler.exclusive():
            return await self._define_smart_album(
                definition_id=definition_id,
                name=name,
                description=description,
                query=query,
                search_params=search_params,
                collection_id=collection_id,
                collection_name=collection_name,
                collection_description=collection_description,
                create_collection=create_collection,
                max_results=max_results,
                sync_strategy=sync_strategy,
                enabled=enabled,
            )

    async def _define_smart_album(
        self,
        *,
        definition_id: str | None,
        name: str | None,
        description: str | None,
        query: str | None,
        search_params: dict[str, Any] | None,
        collection_id: str | None,
        collection_name: str | None,
        collection_description: str | None,
        create_collection: bool,
        max_results: int | None,
        sync_strategy: SyncStrategy | None,
        enabled: bool | None,
    ) -> DefineOutcome:
        existing = (
            self.store.get_by_id(definition_id) if definition_id else self.store.find(name=name)
        )

        name = name or (existing.name if existing else "")
        if not name.strip():
            raise InvalidDefinition("smartAlbumName is required")

        if search_params:
            search_type, search = build_search(query, search_params)
        elif existing:
            search_type, search = existing.search_type, existing.search
            if query:
                search = search.with_query(query)
        else:
            if not query:
                raise InvalidDefinition(
                    "either smartQuery or searchParams must be provided for new smart albums"
                )
            search_type, search = build_search(query, None)

        max_results = self.config.clamp_max_results(
            max_results, existing.max_results if existing else None
        )

        collection_created = False
        if collection_id:
            collection = await self._get_collection(collection_id)
        elif collection_name:
            collection = await self._find_collection_by_name(collection_name)
            if collection is None:
                if not create_collection:
                    raise DestinationUnresolved(
                        f"album '{collection_name}' not found and createAlbum is false"
                    )
                collection = await self.catalog.create_collection(
                    collection_name, collection_description or ""
                )
                collection_created = True
                logger.info("Created album '%s' (%s)", collection.name, collection.id)
        elif existing and existing.collection_id:
            collection = Collection(
                id=existing.collection_id,
                name=existing.collection_name,
                description=existing.collection_description,
            )
        else:
            raise DestinationUnresolved(
                "an albumId or albumName must be provided to link the smart album"
            )

        fields = {
            "name": name.strip(),
            "collection_id": collection.id,
            "collection_name": collection.name,
            "collection_description": collection.description,
            "search_type": search_type,
            "search": search,
            "max_results": max_results,
        }
        if description is not None:
            fields["description"] = description
        if sync_strategy is not None:
            fields["sync_strategy"] = sync_strategy
        if enabled is not None:
            fields["enabled"] = enabled

        definition = existing.model_copy(update=fields) if existing else SearchDefinition(**fields)
        saved = await asyncio.to_thread(self.store.save, definition)

        logger.info(
            "%s smart album '%s' (%s) -> album %s",
            "Updated" if existing else "Defined",
            saved.name,
            saved.id,
            saved.collection_id,
        )
        return DefineOutcome(
            definition=saved, created=existing is None, collection_created=collection_created
        )

    async def refresh_smart_album(
        self,
        *,
        definition_id: str | None = None,
        name: str | None = None,
        dry_run: bool = False,
        max_results: int | None = None,
        preview_limit: int | None = None,
    ) -> ReconcileResult:
        """
        Reconcile one stored definition now, regardless of its enabled flag.

        Raises:
            InvalidDefinition: If neither id nor name is given
            DefinitionNotFound: If no definition matches
        """
        definition = self._resolve_stored(definition_id, name)
        async with self.scheduler.exclusive():
            # Re-read under the lock; a sweep may have just updated it
            definition = self.store.get_by_id(definition.id)
            return await self.reconciler.reconcile(
                StoredCarrier(self.store, definition),
                dry_run=dry_run,
                max_results=max_results,
                preview_limit=self._preview_limit(preview_limit),
            )

    def list_smart_albums(self) -> list[SearchDefinition]:
        return self.store.list()

    def get_smart_album(
        self, definition_id: str | None = None, name: str | None = None
    ) -> SearchDefinition:
        return self._resolve_stored(definition_id, name)

    async def set_smart_album_enabled(
        self, *, enabled: bool, definition_id: str | None = None, name: str | None = None
    ) -> SearchDefinition:
        async with self.scheduler.exclusive():
            definition = self._resolve_stored(definition_id, name)
            updated = definition.model_copy(update={"enabled": enabled})
            saved = await asyncio.to_thread(self.store.save, updated)
        logger.info("Smart album '%s' %s", saved.name, "enabled" if enabled else "disabled")
        return saved

    async def delete_smart_album(
        self, *, definition_id: str | None = None, name: str | None = None
    ) -> SearchDefinition:
        """Delete a definition. The destination album and its assets are left untouched."""
        async with self.scheduler.exclusive():
            definition = self._resolve_stored(definition_id, name)
            deleted = await asyncio.to_thread(self.store.delete, definition.id)
        logger.info("Deleted smart album '%s' (%s)", deleted.name, deleted.id)
        return deleted

    # =========================================================================
    # Live albums (embedded metadata)
    # =========================================================================

    def _live_definition(
        self,
        query: str | None,
        search_params: dict[str, Any] | None,
        sync_strategy: SyncStrategy | None,
        max_results: int | None,
        enabled: bool,
    ) -> SearchDefinition:
        search_type, search = build_search(query, search_params)
        definition = SearchDefinition(
            search_type=search_type,
            search=search,
            sync_strategy=sync_strategy or SyncStrategy(self.config.live_album_sync_strategy),
            max_results=self.config.clamp_max_results(
                max_results, self.config.live_album_max_results
            ),
            enabled=enabled,
        )
        return definition.validate_definition()

    async def create_live_album(
        self,
        *,
        name: str,
        query: str | None = None,
        search_params: dict[str, Any] | None = None,
        sync_strategy: SyncStrategy | None = None,
        max_results: int | None = None,
        enabled: bool = True,
        populate: bool = True,
    ) -> CreateLiveOutcome:
        """
        Create a new album whose description carries its live definition.

        The definition is validated before anything is created. When
        ``populate`` is set and the album is enabled, an initial
        reconciliation fills it.

        Raises:
            InvalidDefinition: If the search or sync settings are unusable
        """
        if not name or not name.strip():
            raise InvalidDefinition("albumName is required")

        definition = self._live_definition(query, search_params, sync_strategy, max_results, enabled)
        collection = await self.catalog.create_collection(name.strip(), metadata.encode(definition))
        definition = definition.model_copy(
            update={
                "id": collection.id,
                "name": collection.name,
                "collection_id": collection.id,
                "collection_name": collection.name,
                "created_at": collection.created_at,
            }
        )
        logger.info("Created live album '%s' (%s)", collection.name, collection.id)

        initial_run = None
        if populate and enabled:
            async with self.scheduler.exclusive():
                carrier = EmbeddedCarrier(self.catalog, definition)
                initial_run = await self.reconciler.reconcile(carrier)
                definition = carrier.definition

        return CreateLiveOutcome(
            definition=definition, collection=collection, initial_run=initial_run
        )

    async def convert_to_live_album(
        self,
        *,
        collection_id: str,
        query: str | None = None,
        search_params: dict[str, Any] | None = None,
        sync_strategy: SyncStrategy | None = None,
        max_results: int | None = None,
        enabled: bool = True,
    ) -> SearchDefinition:
        """
        Turn an existing album into a live album. Its description is replaced.

        Raises:
            DefinitionNotFound: If the album does not exist
            AlreadyLive: If the album is already a live album
            InvalidDefinition: If the search or sync settings are unusable
        """
        collection = await self._get_collection(collection_id)
        if metadata.is_live(collection.description):
            raise AlreadyLive(f"album is already a live album: {collection.name}")

        definition = self._live_definition(query, search_params, sync_strategy, max_results, enabled)
        await self.catalog.set_collection_description(collection.id, metadata.encode(definition))
        logger.info("Converted album '%s' (%s) to a live album", collection.name, collection.id)

        return definition.model_copy(
            update={
                "id": collection.id,
                "name": collection.name,
                "collection_id": collection.id,
                "collection_name": collection.name,
                "created_at": collection.created_at,
            }
        )

    async def update_live_album(
        self,
        *,
        collection_id: str,
        dry_run: bool = False,
        max_results: int | None = None,
        preview_limit: int | None = None,
    ) -> ReconcileResult:
        """
        Reconcile one live album now, regardless of its enabled flag.

        Raises:
            DefinitionNotFound: If the album does not exist
            NotLive: If the album is not a live album
            MalformedMetadata: If its metadata cannot be decoded
        """
        async with self.scheduler.exclusive():
            _, definition = await self._get_live(collection_id)
            return await self.reconciler.reconcile(
                EmbeddedCarrier(self.catalog, definition),
                dry_run=dry_run,
                max_results=max_results,
                preview_limit=self._preview_limit(preview_limit),
            )

    async def list_live_albums(self) -> list[SearchDefinition]:
        """Every album whose description decodes as live album metadata, sorted by name."""
        definitions = []
        for collection in await self.catalog.list_collections():
            if metadata.is_live(collection.description):
                definitions.append(metadata.decode(collection.description, collection))
        return sorted(definitions, key=lambda d: (d.name.lower(), d.id or ""))

    async def set_live_album_enabled(self, *, collection_id: str, enabled: bool) -> SearchDefinition:
        """
        Raises:
            DefinitionNotFound: If the album does not exist
            NotLive: If the album is not a live album
            PersistenceFailed: If the description could not be updated
        """
        async with self.scheduler.exclusive():
            _, definition = await self._get_live(collection_id)
            carrier = EmbeddedCarrier(self.catalog, definition)
            saved = await carrier.persist(definition.model_copy(update={"enabled": enabled}))
        logger.info("Live album '%s' %s", saved.name, "enabled" if enabled else "disabled")
        return saved

    async def get_live_album_status(self, collection_id: str) -> tuple[Collection, SearchDefinition]:
        return await self._get_live(collection_id)

    # =========================================================================
    # Scheduler
    # =========================================================================

    async def start_scheduler(self) -> bool:
        return await self.scheduler.start()

    async def stop_scheduler(self, *, cancel_sweep: bool = False) -> None:
        await self.scheduler.stop(cancel_sweep=cancel_sweep)

    def scheduler_status(self) -> dict[str, Any]:
        return self.scheduler.status()

    async def run_sweep(self) -> SweepResult:
        return await self.scheduler.run_now()

    async def close(self) -> None:
        """Stop the scheduler and release the catalog and database connections."""
        await self.scheduler.stop(cancel_sweep=True)
        self.store.close()
        aclose = getattr(self.catalog, "aclose", None)
        if aclose is not None:
            await aclose()


# =============================================================================
# GLOBAL SERVICE INSTANCE
# =============================================================================

_service: LiveAlbumService | None = None


def get_live_album_service() -> LiveAlbumService:
    """Get or build the process-wide service from configuration."""
    global _service  # noqa: PLW0603 - Singleton pattern, as get_db_manager

    if _service is None:
        config = get_config()
        catalog = ImmichCatalogClient(
            config.immich_url, config.immich_api_key, timeout=config.immich_timeout
        )
        store = DefinitionStore(get_db_manager(config.get_database_url()))
        _service = LiveAlbumService(config, catalog, store)

    return _service


def set_live_album_service(service: LiveAlbumService | None) -> None:
    """Install a service instance (tests use this to inject fakes)."""
    global _service  # noqa: PLW0603
    _service = service
