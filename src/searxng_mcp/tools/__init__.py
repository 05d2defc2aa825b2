"""MCP Tools for SearXNG-MCP.

Tool names match the wire names clients already use.
"""

from searxng_mcp.tools.search import register_search_tools
from searxng_mcp.tools.url_read import register_url_read_tools

__all__ = [
    "register_search_tools",
    "register_url_read_tools",
]
