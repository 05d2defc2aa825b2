"""SearXNG-MCP: web search and URL reading over the Model Context Protocol.

A Model Context Protocol server that searches the web through a SearXNG
instance and reads pages as Markdown.

Key features:
- searxng_web_search: SearXNG JSON API search with pagination and filters
- web_url_read: URL to Markdown with section/paragraph/character paging
- Short-lived content cache shared across sessions
- stdio or streamable HTTP transport with per-session multiplexing
- HTTP(S) proxy support honouring NO_PROXY
"""

__version__ = "0.1.0"

from searxng_mcp.server import SearXNGServer, create_server, run_server

__all__ = ["SearXNGServer", "create_server", "run_server", "__version__"]
