"""SearXNG search client.

Queries the instance's JSON API and renders results as plain text
blocks the model can read directly.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx

from searxng_mcp.config import ServerConfig
from searxng_mcp.errors import (
    ConfigurationError,
    DataError,
    JSONParseError,
    NetworkError,
    ServerError,
    no_results_message,
)
from searxng_mcp.logging_config import StructuredLogger
from searxng_mcp.web.proxy import create_http_client

logger = StructuredLogger(__name__)

VALID_TIME_RANGES = ("day", "month", "year")
VALID_SAFESEARCH = ("0", "1", "2")


def build_search_url(searxng_url: str | None) -> str:
    """Resolve the /search endpoint, keeping any sub-path of the instance.

    Raises:
        ConfigurationError: URL missing or not an absolute http(s) URL
    """
    if not searxng_url:
        raise ConfigurationError(
            "SEARXNG_URL not configured. Set it to your SearXNG instance "
            "(e.g. http://localhost:8080)."
        )

    parts = urlsplit(searxng_url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigurationError(f"Invalid SEARXNG_URL format: {searxng_url}")

    path = parts.path.rstrip("/") + "/search"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def build_search_params(
    query: str,
    pageno: int = 1,
    time_range: str | None = None,
    language: str = "all",
    safesearch: str | None = None,
) -> dict[str, str]:
    """Query string for the SearXNG JSON API.

    Optional filters are only sent when they hold a value SearXNG accepts.
    """
    params = {"q": query, "pageno": str(pageno), "format": "json"}

    if time_range in VALID_TIME_RANGES:
        params["time_range"] = time_range
    if language and language != "all":
        params["language"] = language
    if safesearch is not None and str(safesearch) in VALID_SAFESEARCH:
        params["safesearch"] = str(safesearch)

    return params


def format_results(results: list[dict[str, Any]]) -> str:
    blocks = []
    for result in results:
        score = result.get("score") or 0
        blocks.append(
            f"Title: {result.get('title', '')}\n"
            f"Description: {result.get('content', '')}\n"
            f"URL: {result.get('url', '')}\n"
            f"Relevance Score: {float(score):.3f}"
        )
    return "\n\n".join(blocks)


async def perform_web_search(
    config: ServerConfig,
    query: str,
    pageno: int = 1,
    time_range: str | None = None,
    language: str = "all",
    safesearch: str | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Run a search against the configured SearXNG instance.

    Args:
        config: Server configuration (instance URL, credentials, user agent)
        query: Search terms
        pageno: 1-based result page
        time_range: day, month or year
        language: Language code, "all" for no filter
        safesearch: "0" (off), "1" (moderate) or "2" (strict)
        transport: Optional httpx transport (tests)

    Returns:
        Formatted results, or a "No results found" message
    """
    url = build_search_url(config.searxng_url)
    params = build_search_params(query, pageno, time_range, language, safesearch)

    headers: dict[str, str] = {"Accept": "application/json"}
    if config.user_agent:
        headers["User-Agent"] = config.user_agent

    auth = None
    if config.has_auth:
        auth = httpx.BasicAuth(config.auth_username, config.auth_password)

    logger.debug(
        "Querying SearXNG",
        operation="searxng_web_search",
        url=url,
        pageno=pageno,
    )

    async with create_http_client(
        url,
        timeout_s=config.search_timeout_ms / 1000,
        headers=headers,
        transport=transport,
    ) as client:
        try:
            response = await client.get(url, params=params, auth=auth)
        except httpx.HTTPError as e:
            raise NetworkError.from_exception(
                e,
                url=url,
                searxng_url=config.searxng_url,
                username=config.auth_username,
            ) from e

    if response.is_error:
        raise ServerError(
            response.status_code,
            response.reason_phrase,
            response.text,
            url=url,
        )

    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise JSONParseError(response.text, url=url) from e

    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        raise DataError(url=url)

    results = data["results"]
    if not results:
        return no_results_message(query)

    logger.debug(
        "SearXNG returned results",
        operation="searxng_web_search",
        count=len(results),
    )
    return format_results(results)
