"""SearXNG-MCP Server.

A Model Context Protocol server exposing SearXNG web search and
URL-to-Markdown reading, over stdio or the streamable HTTP transport.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, TypeVar

import httpx
import uvicorn
from mcp import types
from mcp.server.fastmcp import FastMCP

from searxng_mcp import __version__
from searxng_mcp.config import ServerConfig, load_config, validate_config
from searxng_mcp.logging_config import (
    StructuredLogger,
    configure_logging,
    correlation_id_var,
    set_log_level,
)
from searxng_mcp.storage import ContentCache

logger = StructuredLogger(__name__)

# Type for tool handlers
T = TypeVar("T")

SERVER_NAME = "searxng-mcp"

INSTRUCTIONS = (
    "Use searxng_web_search to search the web through SearXNG and "
    "web_url_read to read a page as Markdown. Long pages can be read in "
    "pieces with start_char/max_length, section, paragraph_range or "
    "read_headings; repeated reads of the same URL are served from cache."
)


class SearXNGServer:
    """SearXNG-MCP server: one FastMCP instance shared by every session.

    The server holds no per-session state. The content cache is shared by
    all callers because fetched pages are not session specific.
    """

    name = SERVER_NAME
    version = __version__

    def __init__(self, config: ServerConfig | None = None):
        self.config = config or load_config()

        # MCP server instance
        self.mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS)

        # URL content cache (sweep thread starts here, stops in stop())
        self.cache = ContentCache(
            ttl_ms=self.config.cache_ttl_ms,
            sweep_interval_ms=self.config.cache_sweep_interval_ms,
        )

        # Outbound transport override; None means real network (tests inject)
        self.http_transport: httpx.AsyncBaseTransport | None = None

        self._register_tools()
        self._register_resources()
        self._register_logging()

    async def start(self) -> None:
        """Start the server."""
        issues = validate_config(self.config)
        if issues:
            logger.warning(issues)
        logger.info(
            "Server started",
            version=self.version,
            transport=self.config.transport,
        )

    async def stop(self) -> None:
        """Stop the server."""
        self.cache.destroy()
        logger.info("Server stopped")

    def _register_tools(self) -> None:
        """Register all MCP tools."""
        from searxng_mcp.tools.search import register_search_tools
        from searxng_mcp.tools.url_read import register_url_read_tools

        register_search_tools(self)
        register_url_read_tools(self)

    def _register_resources(self) -> None:
        from searxng_mcp.resources import register_resources

        register_resources(self)

    def _register_logging(self) -> None:
        """Handle MCP logging/setLevel from clients."""

        @self.mcp._mcp_server.set_logging_level()
        async def handle_set_level(level: types.LoggingLevel) -> None:
            if set_log_level(level):
                logger.info(f"Client log level set to {level}")
            else:
                logger.warning(f"Ignoring unsupported client log level: {level}")

    def tool(self, name: str):
        """Register a tool under its wire name (e.g. "web_url_read")."""
        return self.mcp.tool(name=name)


def tool_handler(operation: str):
    """Decorator for tool handlers with correlation IDs and structured logging.

    Failures are logged with their duration and re-raised unchanged.

    Args:
        operation: Tool name (e.g., "searxng_web_search")
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(server: SearXNGServer, **kwargs: Any) -> Any:
            # Set correlation ID for this operation
            correlation_id = str(uuid.uuid4())
            token = correlation_id_var.set(correlation_id)

            start_time = time.time()

            logger.info(
                f"Starting {operation}",
                operation=operation,
                input_keys=list(kwargs.keys())
            )

            try:
                result = await func(server, **kwargs)
                duration_ms = int((time.time() - start_time) * 1000)

                logger.info(
                    f"Completed {operation}",
                    operation=operation,
                    duration_ms=duration_ms,
                    success=True
                )
                return result

            except Exception as e:
                duration_ms = int((time.time() - start_time) * 1000)

                logger.error(
                    f"Failed {operation}: {str(e)}",
                    operation=operation,
                    duration_ms=duration_ms,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise

            finally:
                correlation_id_var.reset(token)

        return wrapper
    return decorator


@asynccontextmanager
async def create_server(config: ServerConfig | None = None):
    """Create and manage server lifecycle."""
    server = SearXNGServer(config)
    await server.start()
    try:
        yield server
    finally:
        await server.stop()


async def serve_http(server: SearXNGServer) -> None:
    """Serve the streamable HTTP transport with uvicorn."""
    from searxng_mcp.transport import create_http_app

    app = create_http_app(server)
    uvicorn_config = uvicorn.Config(
        app,
        host=server.config.http_host,
        port=server.config.http_port,
        log_level=server.config.log_level.lower(),
    )
    logger.info(
        f"HTTP transport listening on {server.config.http_host}:{server.config.http_port}",
        operation="serve_http",
    )
    await uvicorn.Server(uvicorn_config).serve()


async def run_server() -> None:
    """Run the MCP server over stdio or HTTP."""
    config = load_config()

    # Configure logging before starting server
    configure_logging(
        log_level=config.log_level,
        structured=config.structured_logging,
        log_file=config.log_file
    )

    async with create_server(config) as server:
        if config.http_port:
            await serve_http(server)
        else:
            await server.mcp.run_stdio_async()


def main() -> None:
    """Entry point."""
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
