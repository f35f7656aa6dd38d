"""
Photo Catalog MCP Server Package.

An MCP server that keeps photo albums in sync with saved searches against an
Immich asset catalog.

Key Components:
- models: Pydantic models for definitions and run results
- catalog: The asset catalog contract and its Immich REST client
- database: SQLAlchemy-backed store for smart album definitions
- livealbums: Metadata codec, reconciler, scheduler and service facade
- tools: MCP tools (operations with side effects)
- config: Configuration management with Pydantic v2
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
