"""HTML to Markdown conversion for fetched pages."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup
from markdownify import ATX, MarkdownConverter

# Elements that never carry readable text
STRIP_TAGS = ("script", "style", "noscript", "template", "iframe", "svg", "head")

_BLANK_RUNS = re.compile(r"\n{3,}")


def html_to_markdown(html: str) -> str:
    """Convert an HTML document to Markdown with ATX headings."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIP_TAGS):
        tag.decompose()

    markdown = MarkdownConverter(heading_style=ATX, bullets="-").convert_soup(soup)

    lines = [line.rstrip() for line in markdown.splitlines()]
    return _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip()
