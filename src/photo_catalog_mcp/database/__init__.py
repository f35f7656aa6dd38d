"""
Database package for the Photo Catalog MCP Server.

This package provides:
- SQLAlchemy schema for smart album definitions (schema.py)
- Session management and connection handling (session.py)
- The concurrency-safe definition store (definition_store.py)
"""

from .definition_store import DefinitionStore, ReadWriteLock
from .schema import Base, SmartAlbumRecord
from .session import DatabaseManager, get_db_manager

__all__ = [
    "Base",
    "DatabaseManager",
    "DefinitionStore",
    "ReadWriteLock",
    "SmartAlbumRecord",
    "get_db_manager",
]
