"""Custom exceptions for SearXNG-MCP with user-friendly context."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

import httpx


class SearXNGError(Exception):
    """Base error for SearXNG-MCP."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context."""
        parts = [self.message]

        if self.context:
            ctx_parts = [f"{k}={v}" for k, v in self.context.items() if v is not None]
            if ctx_parts:
                parts.append(f"({', '.join(ctx_parts)})")

        return " ".join(parts)


class ConfigurationError(SearXNGError):
    """Server configuration is missing or invalid."""

    def __init__(self, detail: str, **context: Any):
        super().__init__(f"Configuration Error: {detail}", **context)


class NetworkError(SearXNGError):
    """Request never produced an HTTP response."""

    def __init__(self, kind: str, detail: str, **context: Any):
        self.kind = kind
        super().__init__(f"{kind} Error: {detail}", **context)

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        url: str | None = None,
        searxng_url: str | None = None,
        **context: Any,
    ) -> NetworkError:
        """Classify a transport failure into a readable error.

        Args:
            exc: Exception raised by the HTTP client
            url: URL that was requested
            searxng_url: Set when the target was the SearXNG instance
        """
        target = "SearXNG server" if searxng_url else "website"
        location = searxng_url or url
        text = str(exc)
        lowered = text.lower()
        code = getattr(exc, "code", None) or getattr(exc, "errno", None)

        if isinstance(exc, httpx.TimeoutException) or code == "ETIMEDOUT":
            return cls(
                "Timeout",
                f"The {target} is too slow to respond",
                url=url, **context,
            )
        if code in ("ENOTFOUND", "EAI_NONAME") or _looks_like_dns_failure(lowered):
            hostname = urlsplit(location).hostname if location else None
            return cls(
                "DNS",
                f"Cannot resolve hostname '{hostname or location}'",
                url=url, **context,
            )
        if "certificate" in lowered or "ssl" in lowered:
            return cls(
                "SSL",
                f"Certificate problem with the {target}",
                url=url, **context,
            )
        if code == "ECONNREFUSED" or isinstance(exc, httpx.ConnectError):
            return cls(
                "Connection",
                f"Cannot connect to the {target} at '{location}'",
                url=url, **context,
            )
        return cls("Network", text or "Unknown network error", url=url, **context)


def _looks_like_dns_failure(text: str) -> bool:
    markers = (
        "name or service not known",
        "nodename nor servname",
        "getaddrinfo failed",
        "temporary failure in name resolution",
        "no address associated with hostname",
    )
    return any(marker in text for marker in markers)


class ServerError(SearXNGError):
    """Remote server answered with a non-success status."""

    def __init__(
        self,
        status: int,
        reason: str = "",
        body: str = "",
        **context: Any,
    ):
        self.status = status
        self.body = body

        if status == 403:
            detail = "Access blocked (bot detection or geo-restriction)"
        elif status == 404:
            detail = "Page not found"
        elif status == 429:
            detail = "Rate limit exceeded, try again later"
        elif status >= 500:
            detail = "Internal server error"
        else:
            detail = reason or "Unexpected response"

        super().__init__(f"Server Error ({status}): {detail}", **context)


class JSONParseError(SearXNGError):
    """SearXNG answered with something that is not JSON."""

    def __init__(self, response_text: str, **context: Any):
        preview = response_text[:100]
        super().__init__(
            f"JSON Error: SearXNG returned invalid JSON. Response: '{preview}'",
            **context,
        )


class DataError(SearXNGError):
    """SearXNG JSON is missing the results array."""

    def __init__(self, **context: Any):
        super().__init__(
            "Data Error: SearXNG response is missing the results array",
            **context,
        )


class URLFormatError(SearXNGError):
    """URL handed to the reader is not an absolute http(s) URL."""

    def __init__(self, url: str):
        super().__init__(f"URL Format Error: Invalid URL '{url}'")


class ContentError(SearXNGError):
    """Fetched page is unusable (for example empty)."""

    def __init__(self, detail: str, url: str):
        super().__init__(f"Content Error: {detail}", url=url)


class ConversionError(SearXNGError):
    """HTML to Markdown conversion failed."""

    def __init__(self, exc: BaseException, url: str, html_length: int | None = None):
        super().__init__(
            f"Conversion Error: Cannot convert HTML to Markdown ({exc})",
            url=url,
            html_length=html_length,
        )


class FetchTimeoutError(SearXNGError):
    """Fetch did not finish within the caller supplied timeout."""

    def __init__(self, timeout_ms: int, url: str):
        self.timeout_ms = timeout_ms
        hostname = urlsplit(url).hostname or url
        super().__init__(
            f"Timeout Error: {hostname} took longer than {timeout_ms}ms to respond",
            url=url,
        )


def no_results_message(query: str) -> str:
    """Message returned to the client when a search has no hits."""
    return (
        f"No results found for '{query}'. Try different search terms "
        f"or check that the SearXNG search engines are working."
    )


def empty_content_warning(url: str, html_length: int, html_preview: str) -> str:
    """Message returned when a page converts to empty Markdown."""
    preview = html_preview[:200].strip()
    return (
        f"Content Warning: Page fetched but appears empty after conversion ({url}).\n"
        f"Page size: {html_length} chars\n"
        f"Content preview: {preview}\n"
        f"The page may rely on JavaScript to render its content."
    )
