"""Test fixtures for SearXNG-MCP."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
import pytest_asyncio

from searxng_mcp.config import ServerConfig
from searxng_mcp.logging_config import set_log_level
from searxng_mcp.server import SearXNGServer, create_server


class FakeClock:
    """Manually advanced clock (seconds) for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


@pytest.fixture(autouse=True)
def reset_client_log_level():
    """Client log level is process-wide; keep tests independent."""
    set_log_level("info")
    yield
    set_log_level("info")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> ServerConfig:
    """Create test configuration."""
    return ServerConfig(
        searxng_url="http://searx.test",
        user_agent="searxng-mcp-tests/1.0",
        fetch_timeout_ms=2_000,
        search_timeout_ms=2_000,
    )


@pytest_asyncio.fixture
async def server(config: ServerConfig) -> AsyncGenerator[SearXNGServer, None]:
    """Create test server."""
    async with create_server(config) as srv:
        yield srv


# --- Sample Content Fixtures ---

@pytest.fixture
def sample_html() -> str:
    """Small article page with nested headings."""
    return (
        "<!DOCTYPE html>\n<html>\n<head><title>Sample Article</title>"
        "<style>body { color: red; }</style>"
        "<script>console.log('tracking');</script></head>\n<body>"
        "<h1>Sample Article</h1>"
        "<p>Intro paragraph about the article.</p>"
        "<h2>Installation</h2>"
        "<p>Run the installer.</p>"
        "<p>Then configure it.</p>"
        "<h3>Advanced Options</h3>"
        "<p>Tune the settings.</p>"
        "<h2>Usage</h2>"
        "<p>Call the tool.</p>"
        "</body>\n</html>\n"
    )


@pytest.fixture
def sample_search_results() -> dict:
    """SearXNG JSON API response with two hits."""
    return {
        "query": "python",
        "results": [
            {
                "title": "Python.org",
                "content": "The official home of the Python language.",
                "url": "https://www.python.org/",
                "score": 0.95,
            },
            {
                "title": "Python (programming language)",
                "content": "Python is a high-level programming language.",
                "url": "https://en.wikipedia.org/wiki/Python_(programming_language)",
                "score": 1.5,
            },
        ],
    }
