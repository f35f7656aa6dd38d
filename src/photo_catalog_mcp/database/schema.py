"""
SQLAlchemy database schema for the Photo Catalog MCP Server.

The definition store keeps one row per smart album definition. The full
definition is serialized into ``payload``; the remaining columns exist so
rows can be located and ordered without decoding every payload.
"""

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlalchemy.orm import declarative_base

# Base class for all SQLAlchemy models
Base = declarative_base()


class SmartAlbumRecord(Base):
    """
    Smart album definitions table.

    MCP Usage:
    - Tools: define_smart_album writes, refresh_smart_album updates run statistics
    - Scheduler: every sweep lists all rows through the definition store
    """

    __tablename__ = "smart_album_definitions"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False, default="")
    # Lower-cased name, the key of the case-insensitive name index
    name_key = Column(String(200), nullable=False, default="")
    collection_id = Column(String(64), nullable=False, default="")
    payload = Column(Text, nullable=False)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    # When this row last took ownership of its name in the name index
    name_claimed_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_smart_album_name_key", "name_key"),
        Index("idx_smart_album_name_claimed_at", "name_claimed_at"),
    )

    def __repr__(self) -> str:
        return f"<SmartAlbumRecord(id='{self.id}', name='{self.name}')>"
