"""FastMCP server initialization for pg-mcp.

This module initializes the MCP server and manages the connection registry via
the lifespan context. All tool implementations are in the tools module.

Following the official Anthropic Python SDK patterns:
- Lifespan context manager for resource initialization and cleanup
- Context injection for tool access to shared resources
- FastMCP server with stdio transport
"""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from .config import load_settings
from .context import AppContext, AppContextType
from .engine import ConnectionRegistry
from .engine.target import redact_dsn

logger = logging.getLogger(__name__)

# =============================================================================
# Shared Resources and Lifespan Management
# =============================================================================


@asynccontextmanager
async def app_lifespan(_server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage application lifecycle with resource initialization and cleanup.

    This lifespan context manager:
    1. Loads settings from the environment
    2. Creates the connection registry (empty; connections are opened by tools)
    3. Yields context to make the registry available to tools
    4. On shutdown, closes every registered pool before exit

    Environment Variables:
        DATABASE_URL: Fallback connection URL for pg_connect
        PG_MCP_POOL_MAX_SIZE, PG_MCP_POOL_IDLE_TIMEOUT, PG_MCP_CONNECT_TIMEOUT:
            Pool settings applied to every connection

    Args:
        _server: FastMCP server instance (unused, required by FastMCP signature)

    Yields:
        AppContext with the connection registry
    """
    logger.info("Initializing MCP server resources...")

    settings = load_settings()
    pool_options = settings.pool_options()
    registry = ConnectionRegistry(pool_options=pool_options)

    logger.info(
        f"Pool settings: max_size={pool_options.max_size}, "
        f"idle_timeout={pool_options.idle_timeout}s, "
        f"connect_timeout={pool_options.connect_timeout}s"
    )
    if settings.database_url:
        logger.info(f"Fallback DATABASE_URL: {redact_dsn(settings.database_url)}")
    else:
        logger.debug("No DATABASE_URL configured; pg_connect requires url or parameters")

    try:
        yield AppContext(registry=registry, settings=settings)
    finally:
        logger.info("Shutting down MCP server...")
        await registry.shutdown_all()
        logger.info("Connection registry closed")


# Initialize MCP server with lifespan management
# Following Python MCP naming convention: {service}_mcp
mcp = FastMCP("pg_mcp", lifespan=app_lifespan)


# =============================================================================
# Server Entry Point
# =============================================================================


def main() -> None:
    """Entry point for running the MCP server.

    This function is called when the server is run directly via:
    - python -m pg_mcp
    - pg-mcp (console script entry point)

    Defaults to stdio transport for MCP protocol communication.
    """
    settings = load_settings()

    # Configure logging to stderr (MCP requirement)
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    logger.info("PostgreSQL MCP server running on stdio (press Ctrl+C to stop)...")

    try:
        # anyio.run() (used internally by mcp.run()) raises KeyboardInterrupt on
        # SIGINT after the lifespan has closed every pool
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down gracefully...")
    except Exception as e:
        logger.exception(f"Server error: {e}")
        sys.exit(1)

    logger.info("Server shutdown complete")


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "mcp",
    "main",
    "app_lifespan",
    "AppContext",
    "AppContextType",
]
