"""Photo Catalog MCP Server - FastMCP Implementation

Exposes live and smart album management as MCP tools. Clients connect via
stdio transport; the live album scheduler runs for the lifetime of the
server.

Features exposed:
- Smart albums: stored search definitions linked to destination albums
- Live albums: albums whose description carries their own search definition
- Scheduler: periodic and on-demand sweeps over every enabled definition
"""

import logging
import signal
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from .config import get_config
from .livealbums.service import get_live_album_service
from .observability import initialize_observability
from .tools import all_tools

# Initialize logging - stderr for logs, stdout for MCP protocol
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:  # noqa: ARG001
    """Run the live album scheduler while the server is up."""
    service = get_live_album_service()
    await service.start_scheduler()
    try:
        yield
    finally:
        # Finish the current album, skip the rest of a sweep in progress
        await service.close()
        logger.info("Shutdown complete")


mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Photo Catalog MCP Server - keeps photo albums in sync with saved searches. "
        "Smart albums are stored search definitions linked to an album; live albums "
        "carry their search definition in the album description. Use dryRun to "
        "preview changes before applying them."
    ),
    lifespan=lifespan,
)

# Register all tools with the MCP server
for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    try:
        mcp.tool(
            name=tool["name"],
            description=tool["description"],
        )(tool["handler"])
    except Exception:
        logger.exception("Failed to register tool %s", tool["name"])
        raise

logger.info("Registered %d tools", len(all_tools))


def run_stdio_server() -> None:
    """Run the MCP server using stdio transport.

    Stdin receives JSON-RPC requests, stdout sends responses.
    """
    logger.info("Starting server: %s", config.server_info)

    if config.is_development:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled - verbose protocol logging active")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        logger.info("MCP Server ready and waiting for connections...")
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)


def main() -> None:
    """Main entry point for the MCP server."""
    try:
        logger.info("=" * 60)
        logger.info("Photo Catalog MCP Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Catalog: %s", config.immich_url)
        logger.info("Live albums: %s", "enabled" if config.enable_live_albums else "disabled")
        logger.info("=" * 60)

        initialize_observability()

        if config.transport == "stdio":
            run_stdio_server()
        else:
            logger.error("Unsupported transport: %s", config.transport)
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
