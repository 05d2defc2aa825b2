"""Tests for the URL reader: fetch, conversion, caching and pagination."""

import anyio
import httpx
import pytest

from searxng_mcp.errors import (
    ContentError,
    FetchTimeoutError,
    NetworkError,
    ServerError,
    URLFormatError,
)
from searxng_mcp.models import PaginationOptions
from searxng_mcp.storage import ContentCache
from searxng_mcp.web.markdown import html_to_markdown
from searxng_mcp.web.reader import (
    apply_character_pagination,
    apply_pagination,
    extract_headings,
    extract_paragraph_range,
    extract_section,
    fetch_and_convert_to_markdown,
    validate_url,
)

DOC = """# Guide

Welcome text.

## Install

Step one.

Step two.

### Extras

Optional bits.

## Use

Run it."""

URL = "https://docs.example.com/guide"


@pytest.fixture
def cache(clock):
    c = ContentCache(ttl_ms=60_000, sweep_interval_ms=3_600_000, clock=clock)
    yield c
    c.destroy()


class CountingHandler:
    """MockTransport handler serving fixed HTML and counting requests."""

    def __init__(self, html: str, status_code: int = 200):
        self.html = html
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            text=self.html,
            headers={"Content-Type": "text/html; charset=utf-8"},
        )


# --- Pagination helpers ---

def test_character_pagination():
    assert apply_character_pagination("abcdefghij", 2, 3) == "cde"
    assert apply_character_pagination("abcdefghij", 8) == "ij"
    assert apply_character_pagination("abcdefghij", 0, 100) == "abcdefghij"
    assert apply_character_pagination("abcdefghij", 50, 5) == ""


def test_extract_section_stops_at_same_level_heading():
    section = extract_section(DOC, "install")

    assert section.startswith("## Install")
    assert "### Extras" in section
    assert "Optional bits." in section
    assert "## Use" not in section


def test_extract_section_subsection_only():
    assert extract_section(DOC, "Extras") == "### Extras\n\nOptional bits.\n"


def test_extract_section_missing():
    assert extract_section(DOC, "Nonexistent") == ""


def test_extract_paragraph_range_forms():
    assert extract_paragraph_range(DOC, "2") == "Welcome text."
    assert extract_paragraph_range(DOC, "3-4") == "## Install\n\nStep one."
    assert extract_paragraph_range(DOC, "8-") == "## Use\n\nRun it."
    assert extract_paragraph_range(DOC, "10-") == ""


@pytest.mark.parametrize("bad_range", ["0", "abc", "4-2", "99", "-3", "1-2-3"])
def test_extract_paragraph_range_invalid(bad_range):
    assert extract_paragraph_range(DOC, bad_range) == ""


def test_extract_headings():
    assert extract_headings(DOC) == "# Guide\n## Install\n### Extras\n## Use"
    assert extract_headings("just text") == "No headings found in the content."


def test_apply_pagination_order():
    options = PaginationOptions(section="Install", paragraph_range="2-3", max_length=8)

    assert apply_pagination(DOC, options) == "Step one"


def test_apply_pagination_headings_take_precedence():
    options = PaginationOptions(read_headings=True, section="Install", start_char=5)

    assert apply_pagination(DOC, options) == extract_headings(DOC)


def test_apply_pagination_messages():
    assert apply_pagination(DOC, PaginationOptions(section="Missing")) == (
        "Section 'Missing' not found in the content."
    )
    assert apply_pagination(DOC, PaginationOptions(paragraph_range="50")) == (
        "Paragraph range '50' is invalid or out of bounds."
    )


def test_apply_pagination_without_options():
    assert apply_pagination(DOC, None) == DOC
    assert apply_pagination(DOC, PaginationOptions()) == DOC


# --- Conversion ---

def test_html_to_markdown_strips_scripts_and_styles(sample_html):
    markdown = html_to_markdown(sample_html)

    assert markdown.startswith("# Sample Article")
    assert "## Installation" in markdown
    assert "### Advanced Options" in markdown
    assert "Run the installer." in markdown
    assert "console.log" not in markdown
    assert "color: red" not in markdown
    assert "\n\n\n" not in markdown


# --- URL validation ---

@pytest.mark.parametrize(
    "url",
    [
        "not a url",
        "ftp://example.com/file",
        "example.com",
        "https://",
        "",
        "http://:8080/",
        "http://example.com:99999/",
        "https://example.com:port/",
    ],
)
def test_validate_url_rejects(url):
    with pytest.raises(URLFormatError, match="URL Format Error"):
        validate_url(url)


def test_validate_url_accepts_http_and_https():
    assert validate_url("http://example.com") == "http://example.com"
    assert validate_url(" https://example.com/a?b=1 ") == "https://example.com/a?b=1"


# --- Fetch ---

@pytest.mark.asyncio
async def test_fetch_converts_and_caches(cache, sample_html):
    handler = CountingHandler(sample_html)

    result = await fetch_and_convert_to_markdown(
        URL, cache=cache, transport=httpx.MockTransport(handler)
    )

    assert result.startswith("# Sample Article")
    entry = cache.get(URL)
    assert entry is not None
    assert entry.html_content == sample_html
    assert entry.markdown_content == result


@pytest.mark.asyncio
async def test_pagination_variants_share_one_fetch(cache, sample_html):
    """Different pagination of the same URL hits the network once."""
    handler = CountingHandler(sample_html)
    transport = httpx.MockTransport(handler)

    full = await fetch_and_convert_to_markdown(URL, cache=cache, transport=transport)
    window = await fetch_and_convert_to_markdown(
        URL,
        cache=cache,
        options=PaginationOptions(start_char=0, max_length=10),
        transport=transport,
    )
    section = await fetch_and_convert_to_markdown(
        URL,
        cache=cache,
        options=PaginationOptions(section="Usage"),
        transport=transport,
    )

    assert len(handler.requests) == 1
    assert window == full[:10]
    assert section == "## Usage\n\nCall the tool."


@pytest.mark.asyncio
async def test_expired_entry_refetched(cache, clock, sample_html):
    handler = CountingHandler(sample_html)
    transport = httpx.MockTransport(handler)

    await fetch_and_convert_to_markdown(URL, cache=cache, transport=transport)
    clock.advance_ms(61_000)
    await fetch_and_convert_to_markdown(URL, cache=cache, transport=transport)

    assert len(handler.requests) == 2


@pytest.mark.asyncio
async def test_user_agent_sent(cache, sample_html):
    handler = CountingHandler(sample_html)

    await fetch_and_convert_to_markdown(
        URL,
        cache=cache,
        user_agent="reader-test/2.0",
        transport=httpx.MockTransport(handler),
    )

    assert handler.requests[0].headers["user-agent"] == "reader-test/2.0"


@pytest.mark.asyncio
async def test_fetch_timeout(cache):
    async def slow(request: httpx.Request) -> httpx.Response:
        await anyio.sleep(5)
        return httpx.Response(200, text="<p>late</p>")

    with pytest.raises(FetchTimeoutError, match="took longer than 50ms") as exc_info:
        await fetch_and_convert_to_markdown(
            URL, cache=cache, timeout_ms=50, transport=httpx.MockTransport(slow)
        )

    assert exc_info.value.timeout_ms == 50
    assert cache.get(URL) is None


@pytest.mark.asyncio
async def test_fetch_http_error_status(cache):
    handler = CountingHandler("<p>missing</p>", status_code=404)

    with pytest.raises(ServerError, match="Server Error \\(404\\)") as exc_info:
        await fetch_and_convert_to_markdown(
            URL, cache=cache, transport=httpx.MockTransport(handler)
        )

    assert exc_info.value.status == 404
    assert cache.get(URL) is None


@pytest.mark.asyncio
async def test_fetch_connection_failure(cache):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(NetworkError) as exc_info:
        await fetch_and_convert_to_markdown(
            URL, cache=cache, transport=httpx.MockTransport(refuse)
        )

    assert exc_info.value.kind == "Connection"


@pytest.mark.asyncio
async def test_fetch_empty_body(cache):
    handler = CountingHandler("")

    with pytest.raises(ContentError, match="empty content"):
        await fetch_and_convert_to_markdown(
            URL, cache=cache, transport=httpx.MockTransport(handler)
        )


@pytest.mark.asyncio
async def test_fetch_page_without_text_returns_warning(cache):
    handler = CountingHandler("<html><head><script>app()</script></head><body></body></html>")

    result = await fetch_and_convert_to_markdown(
        URL, cache=cache, transport=httpx.MockTransport(handler)
    )

    assert result.startswith("Content Warning")
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_invalid_url_never_fetched(cache):
    handler = CountingHandler("<p>x</p>")

    with pytest.raises(URLFormatError):
        await fetch_and_convert_to_markdown(
            "notaurl", cache=cache, transport=httpx.MockTransport(handler)
        )

    assert handler.requests == []


@pytest.mark.asyncio
async def test_out_of_range_port_never_fetched(cache):
    handler = CountingHandler("<p>x</p>")

    with pytest.raises(URLFormatError, match="example.com:99999"):
        await fetch_and_convert_to_markdown(
            "http://example.com:99999/", cache=cache, transport=httpx.MockTransport(handler)
        )

    assert handler.requests == []
    assert len(cache) == 0
