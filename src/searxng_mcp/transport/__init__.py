"""Streamable HTTP transport: session multiplexing over one shared MCP server."""

from searxng_mcp.transport.http_app import create_http_app
from searxng_mcp.transport.multiplexer import SessionMultiplexer
from searxng_mcp.transport.session import (
    SessionRegistry,
    SessionTransport,
    StreamableSessionTransport,
    is_initialization_request,
)

__all__ = [
    "SessionMultiplexer",
    "SessionRegistry",
    "SessionTransport",
    "StreamableSessionTransport",
    "create_http_app",
    "is_initialization_request",
]
