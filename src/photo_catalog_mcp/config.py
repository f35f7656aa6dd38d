"""Configuration management for the Photo Catalog MCP Server.

Configuration is split into four concerns:
1. Protocol Metadata - Server identification for the MCP handshake
2. Catalog Connection - Where the asset catalog lives and how long calls may take
3. Live Albums - Scheduling and default sync settings for the reconciliation engine
4. Validation - Type-safe configuration with Pydantic v2
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """MCP Server configuration.

    Every field can be supplied through a ``PHOTO_CATALOG_`` prefixed
    environment variable or a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        # Use PHOTO_CATALOG_ prefix for all env vars
        env_prefix="PHOTO_CATALOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    # === Server Metadata (Required by MCP Protocol) ===

    server_name: str = Field(
        default="photo-catalog",
        description="MCP server name used in protocol handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version for capability negotiation",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    transport: str = Field(
        default="stdio",
        description="Primary transport mechanism",
        pattern=r"^(stdio|streamable_http)$",
    )

    # === Catalog Connection ===

    immich_url: str = Field(
        default="http://localhost:2283",
        description="Base URL of the Immich asset catalog",
    )

    immich_api_key: str | None = Field(
        default=None,
        description="API key sent as x-api-key on every catalog request",
        repr=False,
    )

    immich_timeout: float = Field(
        default=30.0,
        description="Deadline in seconds for a single catalog call",
        gt=0,
        le=600,
    )

    # === Definition Store ===

    database_path: Path = Field(
        default=Path("data/smart_albums.db"),
        description="SQLite file backing the smart album definition store",
    )

    # === Live Albums ===

    enable_live_albums: bool = Field(
        default=True,
        description="Allow the periodic live album scheduler to run",
    )

    live_album_update_interval: float = Field(
        default=3600.0,
        description="Seconds between scheduled reconciliation sweeps",
        ge=1,
    )

    live_album_sync_strategy: str = Field(
        default="add-only",
        description="Default sync strategy for newly created live albums",
        pattern=r"^(add-only|full-sync)$",
    )

    live_album_max_results: int = Field(
        default=5000,
        description="Default search size for newly created live albums",
        ge=1,
        le=10000,
    )

    max_results_ceiling: int = Field(
        default=5000,
        description="Upper bound applied to every definition's maxResults",
        ge=1,
    )

    default_max_results: int = Field(
        default=500,
        description="maxResults used for smart albums that do not specify one",
        ge=1,
    )

    preview_limit_default: int = Field(
        default=25,
        description="Number of asset ids included in a refresh preview",
        ge=0,
    )

    preview_limit_max: int = Field(
        default=200,
        description="Largest preview a caller may request",
        ge=0,
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging for protocol messages",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Ensure the store directory exists so the first save can succeed."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("immich_url")
    @classmethod
    def validate_immich_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("immich_url must start with http:// or https://")
        return v.rstrip("/")

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        """Get server information for MCP handshake."""
        return {
            "name": self.server_name,
            "version": self.server_version,
            "transport": self.transport,
        }

    def clamp_max_results(self, value: int | None, fallback: int | None = None) -> int:
        """Resolve a requested maxResults against defaults and the ceiling."""
        if value is None or value <= 0:
            value = fallback if fallback and fallback > 0 else self.default_max_results
        return min(value, self.max_results_ceiling)

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL for the definition store."""
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
