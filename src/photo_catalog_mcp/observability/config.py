"""Configuration for Logfire observability."""

import os

from pydantic import BaseModel, Field


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class ObservabilityConfig(BaseModel):
    """Configuration for Logfire observability."""

    token: str = Field(default_factory=lambda: os.getenv("LOGFIRE_TOKEN", ""))
    service_name: str = "photo-catalog-mcp"
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))

    enabled: bool = Field(default_factory=lambda: _env_flag("LOGFIRE_ENABLED", "true"))
    console_output: bool = Field(default_factory=lambda: _env_flag("LOGFIRE_CONSOLE", "false"))
    # Nothing leaves the process unless a token is configured
    send_to_logfire: bool = Field(default_factory=lambda: _env_flag("LOGFIRE_SEND", "false"))
