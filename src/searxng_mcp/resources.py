"""MCP resources: server configuration snapshot and usage guide."""

from __future__ import annotations

import json
import os
import platform
from typing import TYPE_CHECKING

from searxng_mcp.logging_config import get_current_log_level
from searxng_mcp.web.proxy import NO_PROXY_VARS, PROXY_VARS

if TYPE_CHECKING:
    from searxng_mcp.server import SearXNGServer

CONFIG_RESOURCE_URI = "config://server-config"
HELP_RESOURCE_URI = "help://usage-guide"


def create_config_resource(server: SearXNGServer, env: dict[str, str] | None = None) -> str:
    """JSON snapshot of the running configuration. Secrets are never included."""
    if env is None:
        env = dict(os.environ)

    config = server.config
    cache_stats = server.cache.get_stats()

    snapshot = {
        "serverInfo": {
            "name": server.name,
            "version": server.version,
        },
        "environment": {
            "searxngUrl": config.searxng_url or "(not configured)",
            "hasAuth": config.has_auth,
            "hasProxy": any(env.get(var) for var in PROXY_VARS),
            "hasNoProxy": any(env.get(var) for var in NO_PROXY_VARS),
            "pythonVersion": platform.python_version(),
            "currentLogLevel": get_current_log_level(),
        },
        "cache": {
            "ttlMs": server.cache.ttl_ms,
            "entries": cache_stats.size,
        },
        "capabilities": {
            "tools": ["searxng_web_search", "web_url_read"],
            "logging": True,
            "resources": True,
            "transports": ["http", "stdio"],
            "activeTransport": config.transport,
        },
    }
    return json.dumps(snapshot, indent=2)


def create_help_resource() -> str:
    """Markdown usage guide for the tools."""
    return """# SearXNG MCP Server Help

## Tools

### searxng_web_search
Search the web through a SearXNG instance.

- `query` (required): search terms
- `pageno`: result page, starting at 1
- `time_range`: `day`, `month` or `year`
- `language`: language code such as `en`, or `all` (default)
- `safesearch`: `0` off, `1` moderate, `2` strict

### web_url_read
Fetch a page and return it as Markdown.

- `url` (required): absolute http(s) URL
- `start_char` / `max_length`: read a character window
- `section`: only the section under a heading containing this text
- `paragraph_range`: paragraphs such as `3`, `2-5` or `4-`
- `read_headings`: list the page headings only

Fetched pages are cached for a short time, so paging through the same
URL with different options does not refetch it.

## Configuration

- `SEARXNG_URL`: SearXNG instance URL (required)
- `AUTH_USERNAME` / `AUTH_PASSWORD`: HTTP Basic credentials
- `USER_AGENT`: User-Agent header for outbound requests
- `HTTP_PROXY` / `HTTPS_PROXY` / `NO_PROXY`: outbound proxy settings
- `MCP_HTTP_PORT`: serve the streamable HTTP transport on this port
  instead of stdio
"""


def register_resources(server: SearXNGServer) -> None:
    """Register MCP resources."""

    @server.mcp.resource(
        CONFIG_RESOURCE_URI,
        name="Server Configuration",
        description="Current server configuration and environment",
        mime_type="application/json",
    )
    def server_config() -> str:
        return create_config_resource(server)

    @server.mcp.resource(
        HELP_RESOURCE_URI,
        name="Usage Guide",
        description="How to use the SearXNG MCP server",
        mime_type="text/markdown",
    )
    def usage_guide() -> str:
        return create_help_resource()
