"""
Search definition models for the Photo Catalog MCP Server.

A search definition links a saved catalog search to a destination collection.
The same shape is carried in two places:
- the definition store (smart albums with persistent run history)
- the destination collection's own description (live albums)

"Smart" search is the degenerate case of "advanced" search where only the
free-text field of the structured filter is set, so both are modelled by one
``SearchFilter`` type.
"""

import enum
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..errors import InvalidDefinition

# Fields the reconciler owns; everything else belongs to whoever defined the search
RUN_STATISTICS_FIELDS = (
    "last_run_at",
    "last_result_count",
    "last_added_count",
    "last_removed_count",
    "last_run_error",
    "update_count",
    "last_asset_ids",
)


class SearchType(str, enum.Enum):
    """How a definition's search was authored."""

    SMART = "smart"
    ADVANCED = "advanced"


class SyncStrategy(str, enum.Enum):
    """How the reconciler treats assets that stop matching the search."""

    ADD_ONLY = "add-only"
    FULL_SYNC = "full-sync"


def utcnow() -> datetime:
    """Timezone-aware current time used for every definition timestamp."""
    return datetime.now(UTC)


class SearchFilter(BaseModel):
    """
    Structured catalog search filter.

    Each known filter dimension is an optional field. Keys the catalog does
    not understand are dropped when a filter is parsed from a raw payload.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    # Free text ("smart" search)
    query: str | None = None
    query_asset_id: str | None = None
    language: str | None = None

    # People, albums and tags
    album_ids: list[str] | None = None
    person_ids: list[str] | None = None
    tag_ids: list[str] | None = None

    # Places
    city: str | None = None
    state: str | None = None
    country: str | None = None

    # Camera
    camera_make: str | None = Field(default=None, alias="make")
    camera_model: str | None = Field(default=None, alias="model")
    lens_model: str | None = None
    device_id: str | None = None
    library_id: str | None = None

    # Asset kind
    asset_type: str | None = Field(
        default=None,
        alias="type",
        pattern=r"^(IMAGE|VIDEO|AUDIO|OTHER)$",
    )
    visibility: str | None = Field(
        default=None,
        pattern=r"^(archive|timeline|hidden|locked)$",
    )

    # Time ranges (ISO-8601 strings, passed through to the catalog)
    created_after: str | None = None
    created_before: str | None = None
    taken_after: str | None = None
    taken_before: str | None = None
    updated_after: str | None = None
    updated_before: str | None = None
    trashed_after: str | None = None
    trashed_before: str | None = None

    # Flags
    is_favorite: bool | None = None
    is_encoded: bool | None = None
    is_motion: bool | None = None
    is_offline: bool | None = None
    is_not_in_album: bool | None = None
    with_deleted: bool | None = None
    with_exif: bool | None = None

    rating: int | None = Field(default=None, ge=-1, le=5)

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        """Treat empty strings and empty lists as "not set"."""
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v not in ("", [], None)}
        return data

    @classmethod
    def from_params(cls, params: dict[str, Any] | None) -> "SearchFilter":
        """Build a filter from a raw camelCase payload, ignoring unknown keys."""
        return cls.model_validate(params or {})

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the catalog's camelCase wire shape, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def with_query(self, query: str | None) -> "SearchFilter":
        """Return a copy whose free-text query is replaced."""
        return self.model_copy(update={"query": query or None})

    def is_empty(self) -> bool:
        """True when no filter dimension is set."""
        return not self.to_payload()

    def has_structured_filters(self) -> bool:
        """True when any dimension other than the free-text query is set."""
        payload = self.to_payload()
        payload.pop("query", None)
        return bool(payload)


class SearchDefinition(BaseModel):
    """
    A saved search plus sync configuration for one destination collection.

    Run statistics (``last_run_at`` and the ``last_*`` counters) are written
    by the reconciler after every attempt. ``update_count`` and
    ``last_asset_ids`` are bookkeeping carried by live albums.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    id: str | None = None
    name: str = ""
    description: str = ""

    collection_id: str = ""
    collection_name: str = ""
    collection_description: str = ""

    search_type: SearchType = SearchType.SMART
    search: SearchFilter = Field(default_factory=SearchFilter)
    max_results: int = 500
    sync_strategy: SyncStrategy = SyncStrategy.ADD_ONLY
    enabled: bool = True

    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_run_at: datetime | None = None
    last_result_count: int = 0
    last_added_count: int = 0
    last_removed_count: int = 0
    last_run_error: str = ""

    update_count: int = 0
    last_asset_ids: list[str] = Field(default_factory=list)

    @property
    def query(self) -> str:
        """Free-text part of the search, empty when unset."""
        return self.search.query or ""

    @property
    def label(self) -> str:
        """Human-readable label for logs and responses."""
        return self.name or self.collection_name or self.id or self.collection_id

    def validate_definition(self) -> "SearchDefinition":
        """
        Check the rules every definition must satisfy before it is persisted.

        Raises:
            InvalidDefinition: If the search or sync settings are unusable
        """
        if self.search_type == SearchType.SMART and not self.query.strip():
            raise InvalidDefinition("search query is required for smart search")

        if self.search_type == SearchType.ADVANCED and self.search.is_empty():
            raise InvalidDefinition("search params are required for advanced search")

        if self.max_results <= 0:
            raise InvalidDefinition("max results must be greater than 0")

        return self

    def record_failure(self, message: str, at: datetime) -> "SearchDefinition":
        """Copy with the statistics of a run that failed before mutating anything."""
        return self.model_copy(
            update={
                "last_run_at": at,
                "last_run_error": message,
                "last_result_count": 0,
                "last_added_count": 0,
                "last_removed_count": 0,
            }
        )

    def with_run_statistics(self, run: "SearchDefinition") -> "SearchDefinition":
        """Copy of this definition carrying the run statistics recorded on ``run``."""
        update = {field: getattr(run, field) for field in RUN_STATISTICS_FIELDS}
        if not self.collection_id and self.collection_name == run.collection_name:
            # Destination was resolved by name during the run
            update["collection_id"] = run.collection_id
        return self.model_copy(update=update)
