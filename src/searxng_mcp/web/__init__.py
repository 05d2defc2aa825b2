"""Outbound web access: SearXNG search and URL reading."""

from searxng_mcp.web.reader import fetch_and_convert_to_markdown
from searxng_mcp.web.search import perform_web_search

__all__ = ["fetch_and_convert_to_markdown", "perform_web_search"]
