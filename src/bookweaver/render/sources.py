"""URL harvesting for the "sources cited per section" appendix."""

from __future__ import annotations

import re

from bookweaver.markdown.fences import split_lines
from bookweaver.models.chapter import ChapterNode, iter_nodes

_URL_RE = re.compile(r"https?://[^\s)\]>]+", re.IGNORECASE)
_SOURCES_HEADING_RE = re.compile(r"^\s*(?:#{1,6}\s+(?:sources|references|fuentes)\b|(?:sources|references|fuentes)\s*:?\s*$)", re.IGNORECASE)
_ANY_HEADING_RE = re.compile(r"^\s*#{1,6}\s+")

# Lines read after a "Sources" heading before giving up on the section.
_SOURCES_WINDOW = 40
# URLs taken from the whole text when no sources section exists.
_GLOBAL_LIMIT = 5

APPENDIX_HEADING = "## Appendix: sources cited per section"


def _add(urls: list[str], url: str) -> None:
    url = url.rstrip(".,;:")
    if url.lower() not in (u.lower() for u in urls):
        urls.append(url)


def extract_sources(content: str) -> list[str]:
    """URLs listed under a "Sources" section, or the first few URLs anywhere in the text."""

    urls: list[str] = []
    if not content.strip():
        return urls

    budget = 0
    for line in split_lines(content):
        if _SOURCES_HEADING_RE.match(line):
            budget = _SOURCES_WINDOW
            continue
        if budget <= 0:
            continue
        for m in _URL_RE.finditer(line):
            _add(urls, m.group(0))
        budget -= 1
        if _ANY_HEADING_RE.match(line):
            budget = 0

    if not urls:
        for m in _URL_RE.finditer(content):
            _add(urls, m.group(0))
            if len(urls) >= _GLOBAL_LIMIT:
                break
    return urls


def build_sources_appendix(nodes: list[ChapterNode]) -> str:
    """Markdown appendix listing URLs per section; empty when no section cites any."""

    lines: list[str] = []
    for node in iter_nodes(nodes):
        urls = extract_sources(node.content)
        if not urls:
            continue
        lines.append(f"- {node.label}")
        lines.extend(f"  - {u}" for u in urls)
    if not lines:
        return ""
    return "\n".join([APPENDIX_HEADING, "", *lines])
