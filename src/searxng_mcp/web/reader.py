"""URL reader: fetch a page, convert it to Markdown, serve slices of it.

The expensive part (network fetch plus conversion) is memoized in the
ContentCache under the URL alone. Every pagination option is applied to
the cached Markdown afterwards, so reading a long page piece by piece
costs one fetch.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

import anyio
import httpx

from searxng_mcp.errors import (
    ContentError,
    ConversionError,
    FetchTimeoutError,
    NetworkError,
    ServerError,
    URLFormatError,
    empty_content_warning,
)
from searxng_mcp.logging_config import StructuredLogger
from searxng_mcp.models import PaginationOptions
from searxng_mcp.storage.cache import ContentCache
from searxng_mcp.web.markdown import html_to_markdown
from searxng_mcp.web.proxy import create_http_client

logger = StructuredLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000

_HEADING = re.compile(r"^(#{1,6})\s")
_PARAGRAPH_RANGE = re.compile(r"^(\d+)(?:-(\d*))?$")


# --- Pagination ---

def apply_character_pagination(
    content: str,
    start_char: int = 0,
    max_length: int | None = None,
) -> str:
    if start_char >= len(content):
        return ""
    start = max(0, start_char)
    end = len(content) if max_length is None else min(len(content), start + max_length)
    return content[start:end]


def extract_section(markdown: str, heading: str) -> str:
    """Return the first section whose heading contains `heading`.

    The section runs until the next heading of the same or a higher level.
    Empty string when no heading matches.
    """
    lines = markdown.split("\n")
    needle = heading.lower()

    start = None
    level = 0
    for i, line in enumerate(lines):
        match = _HEADING.match(line)
        if match and needle in line.lower():
            start = i
            level = len(match.group(1))
            break

    if start is None:
        return ""

    end = len(lines)
    for i in range(start + 1, len(lines)):
        match = _HEADING.match(lines[i])
        if match and len(match.group(1)) <= level:
            end = i
            break

    return "\n".join(lines[start:end])


def extract_paragraph_range(markdown: str, paragraph_range: str) -> str:
    """Select paragraphs by 1-based range: "3", "2-5" or "4-".

    Empty string for a malformed or out-of-bounds range.
    """
    paragraphs = [p for p in markdown.split("\n\n") if p.strip()]
    match = _PARAGRAPH_RANGE.match(paragraph_range.strip())
    if not match:
        return ""

    start = int(match.group(1)) - 1
    end_text = match.group(2)
    if start < 0 or start >= len(paragraphs):
        return ""

    if end_text is None:
        return paragraphs[start]
    if end_text == "":
        return "\n\n".join(paragraphs[start:])

    end = int(end_text)
    if end <= start:
        return ""
    return "\n\n".join(paragraphs[start:end])


def extract_headings(markdown: str) -> str:
    headings = [line for line in markdown.split("\n") if _HEADING.match(line)]
    if not headings:
        return "No headings found in the content."
    return "\n".join(headings)


def apply_pagination(markdown: str, options: PaginationOptions | None) -> str:
    """Apply presentation options to a cached Markdown document."""
    if options is None:
        return markdown

    if options.read_headings:
        return extract_headings(markdown)

    result = markdown
    if options.section:
        result = extract_section(result, options.section)
        if not result:
            return f"Section '{options.section}' not found in the content."

    if options.paragraph_range:
        result = extract_paragraph_range(result, options.paragraph_range)
        if not result:
            return f"Paragraph range '{options.paragraph_range}' is invalid or out of bounds."

    if options.slices_characters:
        result = apply_character_pagination(result, options.start_char, options.max_length)

    return result


# --- Fetch ---

def validate_url(url: str) -> str:
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise URLFormatError(url)
    try:
        parts.port
    except ValueError as e:
        raise URLFormatError(url) from e
    return parts.geturl()


async def fetch_and_convert_to_markdown(
    url: str,
    *,
    cache: ContentCache,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    options: PaginationOptions | None = None,
    user_agent: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Fetch a URL as Markdown, using the cache when possible.

    Args:
        url: Absolute http(s) URL
        cache: Shared content cache (keyed by URL only)
        timeout_ms: Upper bound for the network fetch
        options: Pagination applied after the cache lookup
        user_agent: Optional User-Agent header
        transport: Optional httpx transport (tests)

    Raises:
        URLFormatError, FetchTimeoutError, NetworkError, ServerError,
        ContentError, ConversionError
    """
    url = validate_url(url)

    cached = cache.get(url)
    if cached is not None:
        logger.debug("Cache hit", operation="web_url_read", url=url)
        return apply_pagination(cached.markdown_content, options)

    html = await _fetch_html(url, timeout_ms=timeout_ms, user_agent=user_agent, transport=transport)

    if not html.strip():
        raise ContentError("Website returned empty content.", url)

    try:
        markdown = html_to_markdown(html)
    except Exception as e:
        raise ConversionError(e, url, html_length=len(html)) from e

    if not markdown.strip():
        return empty_content_warning(url, len(html), html)

    cache.set(url, html, markdown)
    logger.debug(
        "Fetched and cached page",
        operation="web_url_read",
        url=url,
        html_chars=len(html),
        markdown_chars=len(markdown),
    )

    return apply_pagination(markdown, options)


async def _fetch_html(
    url: str,
    *,
    timeout_ms: int,
    user_agent: str | None,
    transport: httpx.AsyncBaseTransport | None,
) -> str:
    headers = {"Accept": "text/html,application/xhtml+xml,*/*;q=0.8"}
    if user_agent:
        headers["User-Agent"] = user_agent

    async with create_http_client(
        url,
        timeout_s=timeout_ms / 1000,
        headers=headers,
        transport=transport,
    ) as client:
        try:
            with anyio.fail_after(timeout_ms / 1000):
                response = await client.get(url)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise FetchTimeoutError(timeout_ms, url) from e
        except httpx.InvalidURL as e:
            raise URLFormatError(url) from e
        except httpx.HTTPError as e:
            raise NetworkError.from_exception(e, url=url, timeout_ms=timeout_ms) from e

    if response.is_error:
        raise ServerError(
            response.status_code,
            response.reason_phrase,
            response.text[:500],
            url=url,
        )

    return response.text
