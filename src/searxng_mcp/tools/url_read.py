"""URL reading tool: web_url_read

Pages are fetched once per cache TTL; pagination is applied to the
cached Markdown, so paging through a document costs one fetch.
"""

from typing import TYPE_CHECKING, Annotated

from mcp.server.fastmcp import Context
from pydantic import Field

from searxng_mcp.logging_config import log_to_client
from searxng_mcp.models import UrlReadArgs
from searxng_mcp.server import tool_handler
from searxng_mcp.web.reader import fetch_and_convert_to_markdown

if TYPE_CHECKING:
    from searxng_mcp.server import SearXNGServer


def register_url_read_tools(server: "SearXNGServer") -> None:
    """Register URL reading tools."""

    @server.tool("web_url_read")
    async def web_url_read(
        ctx: Context,
        url: str,
        start_char: Annotated[int, Field(ge=0)] = 0,
        max_length: Annotated[int, Field(ge=1)] | None = None,
        section: str | None = None,
        paragraph_range: str | None = None,
        read_headings: bool = False,
    ) -> str:
        """Read a URL and return its content as Markdown.

        Args:
            url: Absolute http(s) URL
            start_char: Character offset to start reading from
            max_length: Maximum number of characters to return
            section: Only return the section under the heading containing this text
            paragraph_range: Paragraphs to return, 1-based ("3", "2-5", "4-")
            read_headings: Only return the page's headings
        """
        await log_to_client(ctx, "info", f"Reading URL: {url}")
        return await _url_read(
            server,
            url=url,
            start_char=start_char,
            max_length=max_length,
            section=section,
            paragraph_range=paragraph_range,
            read_headings=read_headings,
        )


@tool_handler("web_url_read")
async def _url_read(
    server: "SearXNGServer",
    url: str,
    start_char: int = 0,
    max_length: int | None = None,
    section: str | None = None,
    paragraph_range: str | None = None,
    read_headings: bool = False,
) -> str:
    """Validate arguments and read the URL through the cache."""
    args = UrlReadArgs(
        url=url,
        start_char=start_char,
        max_length=max_length,
        section=section,
        paragraph_range=paragraph_range,
        read_headings=read_headings,
    )
    return await fetch_and_convert_to_markdown(
        args.url,
        cache=server.cache,
        timeout_ms=server.config.fetch_timeout_ms,
        options=args.pagination(),
        user_agent=server.config.user_agent,
        transport=server.http_transport,
    )
