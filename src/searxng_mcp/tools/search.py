"""Search tool: searxng_web_search"""

from typing import TYPE_CHECKING, Annotated

from mcp.server.fastmcp import Context
from pydantic import Field

from searxng_mcp.logging_config import log_to_client
from searxng_mcp.models import SafeSearch, TimeRange, WebSearchArgs
from searxng_mcp.server import tool_handler
from searxng_mcp.web.search import perform_web_search

if TYPE_CHECKING:
    from searxng_mcp.server import SearXNGServer


def register_search_tools(server: "SearXNGServer") -> None:
    """Register search tools."""

    @server.tool("searxng_web_search")
    async def searxng_web_search(
        ctx: Context,
        query: str,
        pageno: Annotated[int, Field(ge=1)] = 1,
        time_range: TimeRange | None = None,
        language: str = "all",
        safesearch: SafeSearch | None = None,
    ) -> str:
        """Search the web through SearXNG. Use for general queries, news,
        articles and other online content; returns titles, snippets and URLs.

        Args:
            query: Search query
            pageno: Result page number, starting at 1
            time_range: Limit results to the last day, month or year
            language: Language code (e.g. "en", "fr"), "all" for any
            safesearch: Filter level, "0" off, "1" moderate, "2" strict
        """
        await log_to_client(ctx, "info", f"Searching for: {query}")
        return await _web_search(
            server,
            query=query,
            pageno=pageno,
            time_range=time_range,
            language=language,
            safesearch=safesearch,
        )


@tool_handler("searxng_web_search")
async def _web_search(
    server: "SearXNGServer",
    query: str,
    pageno: int = 1,
    time_range: str | None = None,
    language: str = "all",
    safesearch: str | None = None,
) -> str:
    """Validate arguments and run the search."""
    args = WebSearchArgs(
        query=query,
        pageno=pageno,
        time_range=time_range,
        language=language,
        safesearch=safesearch,
    )
    return await perform_web_search(
        server.config,
        args.query,
        pageno=args.pageno,
        time_range=args.time_range,
        language=args.language,
        safesearch=args.safesearch,
        transport=server.http_transport,
    )
