"""Core data models for SearXNG-MCP.

Identifier semantics:
- url: Cache key for fetched content; pagination never participates
- session_id: Opaque MCP session identifier issued by the HTTP transport
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TimeRange = Literal["day", "month", "year"]
SafeSearch = Literal["0", "1", "2"]


class CacheEntry(BaseModel):
    """Fetched page plus its Markdown rendering."""
    model_config = ConfigDict(frozen=True)

    url: str
    html_content: str
    markdown_content: str
    created_at: float  # Cache clock reading (seconds)


class CacheEntryStats(BaseModel):
    url: str
    age_ms: int


class CacheStats(BaseModel):
    """Diagnostic snapshot of live cache entries."""
    size: int
    entries: list[CacheEntryStats] = Field(default_factory=list)


class SessionState(str, Enum):
    """Lifecycle of a session transport: PENDING -> ACTIVE -> CLOSED."""
    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"


class WebSearchArgs(BaseModel):
    """Arguments for searxng_web_search."""
    query: str = Field(min_length=1)
    pageno: int = Field(default=1, ge=1)
    time_range: TimeRange | None = None
    language: str = "all"
    safesearch: SafeSearch | None = None


class PaginationOptions(BaseModel):
    """Presentation options applied to cached Markdown.

    Order of application: read_headings, section, paragraph_range,
    then start_char/max_length.
    """
    start_char: int = Field(default=0, ge=0)
    max_length: int | None = Field(default=None, ge=1)
    section: str | None = None
    paragraph_range: str | None = None
    read_headings: bool = False

    @property
    def slices_characters(self) -> bool:
        return self.start_char > 0 or self.max_length is not None


class UrlReadArgs(PaginationOptions):
    """Arguments for web_url_read."""
    url: str = Field(min_length=1)

    def pagination(self) -> PaginationOptions:
        return PaginationOptions(**self.model_dump(exclude={"url"}))
