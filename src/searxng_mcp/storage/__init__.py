"""Storage layer for SearXNG-MCP."""

from searxng_mcp.storage.cache import ContentCache

__all__ = ["ContentCache"]
