"""Session transport multiplexer for the streamable HTTP boundary.

Routes every inbound /mcp request to the transport owning its
Mcp-Session-Id, creates a transport for a handshake that carries no id,
and rejects everything else with a structured 400 response.

Concurrency Model:
- One anyio task group (entered via run()) hosts every session loop
- Registry access is lock-guarded, so lookups from worker threads are safe
- Each transport serializes the frames of its own session
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import partial
from typing import Any

import anyio
from anyio.abc import TaskGroup
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.types import Message, Receive, Scope, Send

from searxng_mcp.logging_config import StructuredLogger
from searxng_mcp.transport.session import (
    SessionRegistry,
    SessionTransport,
    StreamableSessionTransport,
    TransportFactory,
    is_initialization_request,
)

logger = StructuredLogger(__name__)

# JSON-RPC "invalid request" class error used for session rejections
INVALID_SESSION_CODE = -32000
INVALID_SESSION_MESSAGE = "Bad Request: No valid session ID provided"
MISSING_SESSION_MESSAGE = "Invalid or missing session ID"


class SessionMultiplexer:
    """Owns the live sessions of one HTTP server instance.

    Args:
        server: Shared low-level MCP server; stateless across sessions
        transport_factory: Builds a PENDING transport given its
            id-confirmation callback. Defaults to StreamableSessionTransport.
        json_response: Answer POSTs with JSON instead of an SSE stream
    """

    def __init__(
        self,
        server: Server,
        *,
        transport_factory: TransportFactory | None = None,
        json_response: bool = False,
    ):
        self.server = server
        self.registry = SessionRegistry()
        self._transport_factory: TransportFactory = transport_factory or partial(
            StreamableSessionTransport, json_response=json_response
        )
        self._pending: set[SessionTransport] = set()
        self._task_group: TaskGroup | None = None

    @property
    def session_count(self) -> int:
        return len(self.registry)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # --- Lifecycle ---

    @asynccontextmanager
    async def run(self) -> AsyncIterator[SessionMultiplexer]:
        """Host session loops until exit, then close every session."""
        if self._task_group is not None:
            raise RuntimeError("SessionMultiplexer is already running")

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            logger.info("Session multiplexer started")
            try:
                yield self
            finally:
                with anyio.CancelScope(shield=True):
                    await self.close_all()
                tg.cancel_scope.cancel()
                self._task_group = None
                logger.info("Session multiplexer stopped")

    async def close_all(self) -> None:
        """Close every registered and pending transport."""
        transports = list(self.registry.snapshot().values()) + list(self._pending)
        for transport in transports:
            try:
                await transport.close()
            except Exception as e:
                logger.warning(
                    f"Failed to close session: {e}",
                    session_id=transport.session_id,
                    error=str(e),
                )

    # --- Routing ---

    async def route(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Route a client-to-server message (HTTP POST)."""
        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if session_id:
            transport = self.registry.get(session_id)
            if transport is not None:
                logger.debug("Reusing session", session_id=session_id)
                await self._forward(transport, request, scope, receive, send)
                return

        body = await request.body()
        payload = _parse_json(body)
        if not session_id and is_initialization_request(payload):
            logger.info("Creating new HTTP session")
            transport = await self._open_session()
            await self._forward(transport, request, scope, _replay(body, receive), send)
            return

        logger.warning(
            "POST request rejected - invalid request",
            session_id=session_id,
            **_client_info(request),
            has_initialize_request=is_initialization_request(payload),
        )
        response = JSONResponse(
            {
                "jsonrpc": "2.0",
                "error": {"code": INVALID_SESSION_CODE, "message": INVALID_SESSION_MESSAGE},
                "id": None,
            },
            status_code=400,
        )
        await response(scope, receive, send)

    async def route_notification(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Open the server-to-client SSE stream of a session (HTTP GET)."""
        request = Request(scope, receive)
        transport = await self._require_session(request, scope, receive, send)
        if transport is not None:
            await self._forward(transport, request, scope, receive, send)

    async def terminate(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Terminate a session at the client's request (HTTP DELETE)."""
        request = Request(scope, receive)
        transport = await self._require_session(request, scope, receive, send)
        if transport is None:
            return

        status: list[int] = []

        async def capture_status(message: Message) -> None:
            if message["type"] == "http.response.start":
                status.append(message["status"])
            await send(message)

        await self._forward(transport, request, scope, receive, capture_status)

        if status and 200 <= status[0] < 300:
            await transport.close()

    async def handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI entry point dispatching on the HTTP method."""
        method = scope.get("method", "")
        if method == "POST":
            await self.route(scope, receive, send)
        elif method == "GET":
            await self.route_notification(scope, receive, send)
        elif method == "DELETE":
            await self.terminate(scope, receive, send)
        else:
            response = PlainTextResponse("Method Not Allowed", status_code=405)
            await response(scope, receive, send)

    # --- Internals ---

    async def _open_session(self) -> SessionTransport:
        """Create a PENDING transport and connect it to the shared server.

        The registry entry is added by the transport's confirmation
        callback and removed by its close callback.
        """
        task_group = self._require_task_group()
        transport: SessionTransport

        def on_session_initialized(session_id: str) -> None:
            self._pending.discard(transport)
            self.registry.register(session_id, transport)
            logger.debug("Session initialized", session_id=session_id)

        transport = self._transport_factory(on_session_initialized)
        transport.on_close = partial(self._on_transport_closed, transport)
        self._pending.add(transport)

        await transport.connect(self.server, task_group)
        return transport

    def _on_transport_closed(self, transport: SessionTransport) -> None:
        self._pending.discard(transport)
        if transport.session_id and self.registry.remove(transport.session_id, transport):
            logger.debug("Session closed", session_id=transport.session_id)

    def _require_task_group(self) -> TaskGroup:
        if self._task_group is None:
            raise RuntimeError("SessionMultiplexer.run() must be entered before routing")
        return self._task_group

    async def _require_session(
        self,
        request: Request,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> SessionTransport | None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        transport = self.registry.get(session_id) if session_id else None
        if transport is not None:
            return transport

        logger.warning(
            f"{request.method} request rejected - missing or invalid session ID",
            session_id=session_id,
            **_client_info(request),
        )
        response = PlainTextResponse(MISSING_SESSION_MESSAGE, status_code=400)
        await response(scope, receive, send)
        return None

    async def _forward(
        self,
        transport: SessionTransport,
        request: Request,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        try:
            await transport.handle_request(scope, receive, send)
        except Exception as e:
            logger.warning(
                f"{request.method} request failed: {e}",
                session_id=transport.session_id,
                **_client_info(request),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise


def _parse_json(body: bytes) -> Any:
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def _replay(body: bytes, receive: Receive) -> Receive:
    """Receive callable that yields an already-read body once."""
    delivered = False

    async def replay() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


def _client_info(request: Request) -> dict[str, Any]:
    return {
        "client_ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "content_type": request.headers.get("content-type"),
        "accept": request.headers.get("accept"),
    }
