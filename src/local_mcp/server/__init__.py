"""MCP server surface: tool registry, typed results, and FastMCP binding."""
