"""local_mcp: a repo-scoped MCP tool server and its process controller."""

__version__ = "0.1.0"
