"""
Photo Catalog MCP Server Models.

Pydantic models shared by the reconciliation engine and the tool layer:
- SearchFilter / SearchDefinition: saved searches and their sync settings
- ReconcileResult / SweepResult: structured run outcomes
"""

from .definition import SearchDefinition, SearchFilter, SearchType, SyncStrategy, utcnow
from .results import BulkIdResult, ReconcileResult, RunStatus, SweepResult

__all__ = [
    "BulkIdResult",
    "ReconcileResult",
    "RunStatus",
    "SearchDefinition",
    "SearchFilter",
    "SearchType",
    "SweepResult",
    "SyncStrategy",
    "utcnow",
]
