"""Tests for the HTTP application (/mcp and /health)."""

from __future__ import annotations

import json

import httpx
import pytest

from searxng_mcp.server import SearXNGServer
from searxng_mcp.transport import SessionMultiplexer, create_http_app
from session_fakes import INIT_REQUEST, FakeTransportFactory

MCP_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, text/event-stream",
}


def client_for(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.mark.asyncio
async def test_health_endpoint(server: SearXNGServer):
    app = create_http_app(server)

    async with client_for(app) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "server": "searxng-mcp",
        "version": server.version,
        "transport": "http",
    }


@pytest.mark.asyncio
async def test_cors_exposes_session_header(server: SearXNGServer):
    app = create_http_app(server)

    async with client_for(app) as client:
        response = await client.get("/health", headers={"Origin": "http://example.com"})

    assert response.headers["access-control-allow-origin"] == "*"
    assert "mcp-session-id" in response.headers["access-control-expose-headers"].lower()


@pytest.mark.asyncio
async def test_cors_preflight_allows_session_header(server: SearXNGServer):
    app = create_http_app(server)

    async with client_for(app) as client:
        response = await client.options(
            "/mcp",
            headers={
                "Origin": "http://example.com",
                "Access-Control-Request-Method": "DELETE",
                "Access-Control-Request-Headers": "mcp-session-id, content-type",
            },
        )

    assert response.status_code == 200
    assert "DELETE" in response.headers["access-control-allow-methods"]
    assert "mcp-session-id" in response.headers["access-control-allow-headers"].lower()


@pytest.mark.asyncio
async def test_post_without_session_rejected(server: SearXNGServer):
    app = create_http_app(server)

    async with client_for(app) as client:
        response = await client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
            headers=MCP_HEADERS,
        )

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == -32000
    assert body["id"] is None


@pytest.mark.asyncio
async def test_get_and_delete_without_session_rejected(server: SearXNGServer):
    app = create_http_app(server)

    async with client_for(app) as client:
        get_response = await client.get("/mcp")
        delete_response = await client.delete("/mcp", headers={"mcp-session-id": "unknown"})

    assert get_response.status_code == 400
    assert get_response.text == "Invalid or missing session ID"
    assert delete_response.status_code == 400
    assert app.state.multiplexer.session_count == 0


@pytest.mark.asyncio
async def test_session_lifecycle_over_http(server: SearXNGServer):
    factory = FakeTransportFactory()
    mux = SessionMultiplexer(object(), transport_factory=factory)
    app = create_http_app(server, mux)

    async with mux.run(), client_for(app) as client:
        response = await client.post("/mcp", json=INIT_REQUEST, headers=MCP_HEADERS)
        assert response.status_code == 200
        session_id = response.headers["mcp-session-id"]
        assert mux.session_count == 1

        response = await client.delete("/mcp", headers={"mcp-session-id": session_id})
        assert response.status_code == 200
        assert mux.session_count == 0


@pytest.mark.asyncio
async def test_sdk_transport_handshake_and_tools(server: SearXNGServer, sample_search_results):
    """Full handshake against the real MCP session loop (JSON responses)."""
    server.http_transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json=sample_search_results)
    )
    mux = SessionMultiplexer(server.mcp._mcp_server, json_response=True)
    app = create_http_app(server, mux)

    async with mux.run(), client_for(app) as client:
        response = await client.post("/mcp", json=INIT_REQUEST, headers=MCP_HEADERS)
        assert response.status_code == 200
        assert response.json()["result"]["serverInfo"]["name"] == "searxng-mcp"

        session_id = response.headers["mcp-session-id"]
        assert mux.session_count == 1
        session_headers = {**MCP_HEADERS, "mcp-session-id": session_id}

        response = await client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "method": "notifications/initialized"},
            headers=session_headers,
        )
        assert response.status_code == 202

        response = await client.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 2, "method": "tools/list", "params": {}},
            headers=session_headers,
        )
        assert response.status_code == 200
        names = {tool["name"] for tool in response.json()["result"]["tools"]}
        assert names == {"searxng_web_search", "web_url_read"}

        response = await client.post(
            "/mcp",
            json={
                "jsonrpc": "2.0",
                "id": 3,
                "method": "tools/call",
                "params": {"name": "searxng_web_search", "arguments": {"query": "python"}},
            },
            headers=session_headers,
        )
        assert response.status_code == 200
        result = response.json()["result"]
        assert not result.get("isError")
        assert "Title: Python.org" in result["content"][0]["text"]

        response = await client.delete("/mcp", headers=session_headers)
        assert response.status_code == 200
        assert mux.session_count == 0


@pytest.mark.asyncio
async def test_sdk_rejected_handshake_not_registered(server: SearXNGServer):
    """A handshake the SDK refuses leaves no session behind."""
    mux = SessionMultiplexer(server.mcp._mcp_server)
    app = create_http_app(server, mux)
    bad_accept = {**MCP_HEADERS, "Accept": "text/plain"}

    async with mux.run(), client_for(app) as client:
        for _ in range(3):
            response = await client.post("/mcp", json=INIT_REQUEST, headers=bad_accept)
            assert response.status_code == 406

        assert mux.session_count == 0
        assert mux.pending_count == 0


@pytest.mark.asyncio
async def test_sdk_handshake_with_wrong_content_type_not_registered(server: SearXNGServer):
    mux = SessionMultiplexer(server.mcp._mcp_server, json_response=True)
    app = create_http_app(server, mux)

    async with mux.run(), client_for(app) as client:
        response = await client.post(
            "/mcp",
            content=json.dumps(INIT_REQUEST),
            headers={**MCP_HEADERS, "Content-Type": "text/plain"},
        )

        assert 400 <= response.status_code < 500
        assert mux.session_count == 0
        assert mux.pending_count == 0
