"""Shared context types for MCP server.

This module contains context types used across server and tools modules,
separated to avoid circular imports.
"""

from dataclasses import dataclass, field

from mcp.server.fastmcp import Context
from mcp.server.session import ServerSession

from .config import Settings
from .engine import ConnectionRegistry


@dataclass
class AppContext:
    """Application context containing shared resources for MCP tools.

    Created during server startup by the lifespan and made available to all
    tools via the Context parameter. The registry lives exactly as long as the
    server process.
    """

    registry: ConnectionRegistry
    settings: Settings = field(default_factory=Settings)


# Type alias for MCP tool context parameter
AppContextType = Context[ServerSession, AppContext]


__all__ = ["AppContext", "AppContextType"]
