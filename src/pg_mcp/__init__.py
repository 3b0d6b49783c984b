"""pg-mcp: PostgreSQL gateway MCP server with named connections and read-only guards."""

__version__ = "1.0.0"
