"""Shared meta-layer utilities used across ``local_mcp.lib``.

The ``meta`` namespace holds reusable infrastructure helpers. It currently
exports ``tools`` for path-safe runtime tool operations.
"""

from local_mcp.lib.meta import tools

__all__ = ["tools"]
