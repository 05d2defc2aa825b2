"""Starlette application serving the MCP streamable HTTP transport."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from searxng_mcp.transport.multiplexer import SessionMultiplexer

if TYPE_CHECKING:
    from searxng_mcp.server import SearXNGServer

MCP_PATH = "/mcp"
HEALTH_PATH = "/health"


class MCPEndpoint:
    """ASGI endpoint handing /mcp requests to the multiplexer."""

    def __init__(self, multiplexer: SessionMultiplexer):
        self.multiplexer = multiplexer

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.multiplexer.handle(scope, receive, send)


def create_http_app(
    server: SearXNGServer,
    multiplexer: SessionMultiplexer | None = None,
) -> Starlette:
    """Build the HTTP app: /mcp (POST, GET, DELETE) and /health.

    Args:
        server: Started SearXNG server whose MCP instance is shared by
            every session
        multiplexer: Optional pre-built multiplexer (tests)
    """
    if multiplexer is None:
        multiplexer = SessionMultiplexer(
            server.mcp._mcp_server,
            json_response=server.config.json_response,
        )

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "healthy",
            "server": server.name,
            "version": server.version,
            "transport": "http",
        })

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with multiplexer.run():
            yield

    app = Starlette(
        routes=[
            Route(MCP_PATH, endpoint=MCPEndpoint(multiplexer), methods=["GET", "POST", "DELETE"]),
            Route(HEALTH_PATH, endpoint=health, methods=["GET"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["GET", "POST", "DELETE"],
                allow_headers=["Content-Type", "mcp-session-id"],
                expose_headers=["Mcp-Session-Id"],
            ),
        ],
        lifespan=lifespan,
    )
    app.state.multiplexer = multiplexer
    return app
