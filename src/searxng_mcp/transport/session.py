"""Per-session transports and the session registry.

A session transport is created PENDING, becomes ACTIVE only when it
confirms its session id (when its initialization response is a 2xx),
and ends CLOSED. The close callback fires exactly once, whichever path
ends the session: explicit close, client termination, or the server
loop exiting on error.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Protocol
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from mcp.types import InitializeRequestParams, JSONRPCRequest
from pydantic import ValidationError
from starlette.types import Message, Receive, Scope, Send

from searxng_mcp.logging_config import StructuredLogger
from searxng_mcp.models import SessionState

logger = StructuredLogger(__name__)

SessionIdGenerator = Callable[[], str]
SessionInitializedCallback = Callable[[str], None]


def generate_session_id() -> str:
    """Opaque, collision-resistant session id."""
    return uuid4().hex


def is_initialization_request(payload: Any) -> bool:
    """Whether a JSON-RPC payload is an MCP initialize request."""
    if not isinstance(payload, dict) or payload.get("method") != "initialize":
        return False
    try:
        request = JSONRPCRequest.model_validate(payload)
        InitializeRequestParams.model_validate(request.params or {})
    except ValidationError:
        return False
    return True


class SessionTransport(Protocol):
    """What the multiplexer needs from a per-session transport."""

    session_id: str | None
    state: SessionState
    on_close: Callable[[], None] | None

    async def connect(self, server: Server, task_group: TaskGroup) -> None:
        """Start serving `server` over this transport."""
        ...

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process one HTTP request for this session."""
        ...

    async def close(self) -> None:
        """Terminate the session and fire on_close."""
        ...


TransportFactory = Callable[[SessionInitializedCallback], SessionTransport]


class StreamableSessionTransport:
    """Session transport backed by the MCP SDK streamable HTTP transport.

    The shared low-level server runs in the multiplexer's task group for
    as long as the session lives.
    """

    def __init__(
        self,
        on_session_initialized: SessionInitializedCallback,
        *,
        session_id_generator: SessionIdGenerator = generate_session_id,
        json_response: bool = False,
    ):
        self._on_session_initialized = on_session_initialized
        self._issued_id = session_id_generator()
        self._http = StreamableHTTPServerTransport(
            mcp_session_id=self._issued_id,
            is_json_response_enabled=json_response,
        )
        self.session_id: str | None = None
        self.state = SessionState.PENDING
        self.on_close: Callable[[], None] | None = None

    async def connect(self, server: Server, task_group: TaskGroup) -> None:
        await task_group.start(self._run_server, server)

    async def _run_server(
        self,
        server: Server,
        *,
        task_status: anyio.abc.TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        try:
            async with self._http.connect() as (read_stream, write_stream):
                task_status.started()
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                    stateless=False,
                )
        except Exception as e:
            logger.error(
                f"Session loop failed: {e}",
                session_id=self.session_id or self._issued_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            self._mark_closed()

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self.state is not SessionState.PENDING:
            await self._http.handle_request(scope, receive, send)
            return

        status: list[int] = []

        async def confirm_on_success(message: Message) -> None:
            # The id must be registered before the client can see it
            if message["type"] == "http.response.start":
                status.append(message["status"])
                if 200 <= message["status"] < 300 and self.state is SessionState.PENDING:
                    self._confirm()
            await send(message)

        try:
            await self._http.handle_request(scope, receive, confirm_on_success)
        except BaseException:
            if self.state is SessionState.PENDING:
                with anyio.CancelScope(shield=True):
                    await self.close()
            raise

        if self.state is SessionState.PENDING:
            logger.warning(
                "Handshake rejected, discarding session",
                session_id=self._issued_id,
                status=status[0] if status else None,
            )
            await self.close()

    async def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        await self._http.terminate()
        self._mark_closed()

    def _confirm(self) -> None:
        self.session_id = self._issued_id
        self.state = SessionState.ACTIVE
        self._on_session_initialized(self._issued_id)

    def _mark_closed(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        if self.on_close is not None:
            self.on_close()


class SessionRegistry:
    """Session id -> transport map, safe for concurrent use.

    Registration and removal are the only mutations; removal is
    idempotent.
    """

    def __init__(self) -> None:
        self._transports: dict[str, SessionTransport] = {}
        self._lock = threading.Lock()

    def register(self, session_id: str, transport: SessionTransport) -> None:
        with self._lock:
            if session_id in self._transports:
                raise ValueError(f"Session already registered: {session_id}")
            self._transports[session_id] = transport

    def get(self, session_id: str) -> SessionTransport | None:
        with self._lock:
            return self._transports.get(session_id)

    def remove(self, session_id: str, transport: SessionTransport | None = None) -> bool:
        """Remove a session.

        Args:
            session_id: Session to remove
            transport: If given, only remove when the id maps to this transport

        Returns:
            True if an entry was removed
        """
        with self._lock:
            current = self._transports.get(session_id)
            if current is None:
                return False
            if transport is not None and current is not transport:
                return False
            del self._transports[session_id]
            return True

    def snapshot(self) -> dict[str, SessionTransport]:
        with self._lock:
            return dict(self._transports)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._transports

    def __len__(self) -> int:
        with self._lock:
            return len(self._transports)
