"""Core library: configuration, path-confined tools, git, and lifecycle.

Primary namespaces:
- ``local_mcp.lib.meta.tools`` for path-confined file/command/script tools.
- ``local_mcp.lib.vcs`` for read-only git queries.
- ``local_mcp.lib.lifecycle`` for pid-record driven start/stop.
"""
