"""Catalog-side shapes consumed by the reconciliation engine."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Asset(BaseModel):
    """Subset of a catalog asset the engine cares about."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str | None = None
    original_file_name: str | None = Field(default=None, alias="originalFileName")


class Collection(BaseModel):
    """A catalog album, the destination of a definition."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    name: str = Field(default="", alias="albumName")
    description: str = ""
    asset_count: int = Field(default=0, alias="assetCount")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
