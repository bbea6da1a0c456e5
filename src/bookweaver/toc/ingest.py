"""Outline ingestion.

An outline arrives as free text in one of three shapes, tried in order:

1. Markdown headings (`#` is the book title, `##` a chapter, `###` a section, ...);
2. a dash bullet list, two spaces of indentation per level;
3. numbered lines (`1 Title`, `1.2 Title`), where the dot count gives the depth.

Any non-structural text directly under an entry becomes that entry's summary. The tree is
returned unnumbered; numbering happens once the outline is final.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Literal

from bookweaver.errors import NoStructureFoundError, StructureProposalError
from bookweaver.logging import get_logger
from bookweaver.markdown.fences import FenceTracker, split_lines
from bookweaver.models.chapter import ChapterNode, count_nodes
from bookweaver.utils.json_extract import extract_json_array, extract_json_object

logger = get_logger(__name__)

MAX_DEPTH = 5

_HEADING_RE = re.compile(r"^\s{0,3}(#{1,6})\s+(.*\S)\s*$")
_BULLET_RE = re.compile(r"^(\s*)-\s+(.*\S)\s*$")
_NUMBERED_RE = re.compile(r"^\s*(\d+(?:\.\d+)*)\.?\s+(.*\S)\s*$")

_CHAPTER_PREFIX_RE = re.compile(r"^\s*(?:chapter|cap[ií]tulo)\s+\d+(?:\s*[:\-.])?\s*(.+)$", re.IGNORECASE)
_NUMBER_PREFIX_RE = re.compile(r"^\s*\d+(?:\.\d+)*\.?\s+")

Strategy = Literal["headings", "bullets", "numbered"]
Boundary = Callable[[str], bool]


@dataclass
class TocParseResult:
    """A parsed outline."""

    chapters: list[ChapterNode]
    strategy: Strategy
    title: str = ""
    manual_summary: str = ""
    stats: dict[int, int] = field(default_factory=dict)


def clean_heading_text(text: str, depth: int) -> str:
    """Strip authored numbering from an outline entry.

    Chapters (depth 1) also lose a `Chapter N:` prefix; every entry loses a leading dotted
    number such as `1.2 `.
    """

    if not text or not text.strip():
        return text
    if depth == 1:
        m = _CHAPTER_PREFIX_RE.match(text)
        if m:
            return m.group(1).strip()
    return _NUMBER_PREFIX_RE.sub("", text).strip()


def _is_heading(line: str) -> bool:
    return _HEADING_RE.match(line) is not None


def _is_bullet(line: str) -> bool:
    return _BULLET_RE.match(line) is not None


def _is_numbered(line: str) -> bool:
    return _NUMBERED_RE.match(line) is not None


def _capture_block(lines: list[str], start: int, boundary: Boundary, *, strip_lines: bool = False) -> str:
    """Collect the text block that starts at `start`.

    Leading blank lines are skipped; capture stops at the first line `boundary` accepts.
    Fenced code is kept verbatim (blank lines included); elsewhere blank lines are dropped.
    """

    k = start
    while k < len(lines) and not lines[k].strip():
        k += 1

    tracker = FenceTracker()
    buf: list[str] = []
    while k < len(lines):
        line = lines[k]
        protected = tracker.feed(line)
        if not protected and boundary(line):
            break
        if protected:
            buf.append(line)
        elif line.strip():
            buf.append(line.strip() if strip_lines else line.rstrip())
        k += 1
    return "\n".join(buf).strip()


class _TreeBuilder:
    """Attach nodes by depth, keeping the open ancestor chain."""

    def __init__(self) -> None:
        self.chapters: list[ChapterNode] = []
        self._stack: list[ChapterNode] = []

    def add(self, node: ChapterNode, depth: int) -> int:
        depth = max(1, min(depth, MAX_DEPTH))
        # A skipped level attaches to the deepest open ancestor.
        depth = min(depth, len(self._stack) + 1)
        if depth == 1:
            self.chapters.append(node)
        else:
            self._stack[depth - 2].sub_chapters.append(node)
        del self._stack[depth - 1 :]
        self._stack.append(node)
        return depth


def _depth_stats(chapters: list[ChapterNode]) -> dict[int, int]:
    stats: dict[int, int] = {}

    def walk(nodes: list[ChapterNode], depth: int) -> None:
        for n in nodes:
            stats[depth] = stats.get(depth, 0) + 1
            walk(n.sub_chapters, depth + 1)

    walk(chapters, 1)
    return stats


def _book_header(lines: list[str], boundary: Boundary) -> tuple[str, str, int | None]:
    """Find the first H1 and the description under it."""

    tracker = FenceTracker()
    for i, line in enumerate(lines):
        if tracker.feed(line):
            continue
        m = _HEADING_RE.match(line)
        if m and len(m.group(1)) == 1:
            title = clean_heading_text(m.group(2).strip(), 0)
            return title, _capture_block(lines, i + 1, boundary), i
    return "", "", None


def _parse_headings(lines: list[str]) -> list[ChapterNode]:
    builder = _TreeBuilder()
    tracker = FenceTracker()
    for i, line in enumerate(lines):
        if tracker.feed(line):
            continue
        m = _HEADING_RE.match(line.rstrip())
        if not m:
            continue
        level = len(m.group(1))
        if level == 1:
            continue
        depth = level - 1
        node = ChapterNode(title=clean_heading_text(m.group(2).strip(), depth))
        builder.add(node, depth)
        node.summary = _capture_block(lines, i + 1, _is_heading)
    return builder.chapters


def _parse_bullets(lines: list[str]) -> list[ChapterNode]:
    builder = _TreeBuilder()
    tracker = FenceTracker()
    base_indent: int | None = None

    def boundary(line: str) -> bool:
        return _is_heading(line) or _is_bullet(line)

    for i, line in enumerate(lines):
        if tracker.feed(line):
            continue
        m = _BULLET_RE.match(line)
        if not m:
            continue
        indent = len(m.group(1).expandtabs(2))
        if base_indent is None:
            base_indent = indent
        depth = 1 + max(0, indent - base_indent) // 2
        node = ChapterNode(title=clean_heading_text(m.group(2).strip(), min(depth, MAX_DEPTH)))
        builder.add(node, depth)
        node.summary = _capture_block(lines, i + 1, boundary, strip_lines=True)
    return builder.chapters


def _parse_numbered(lines: list[str]) -> list[ChapterNode]:
    builder = _TreeBuilder()
    tracker = FenceTracker()

    def boundary(line: str) -> bool:
        return _is_heading(line) or _is_bullet(line) or _is_numbered(line)

    for i, line in enumerate(lines):
        if tracker.feed(line):
            continue
        m = _NUMBERED_RE.match(line)
        if not m:
            continue
        depth = m.group(1).count(".") + 1
        node = ChapterNode(title=clean_heading_text(m.group(2).strip(), min(depth, MAX_DEPTH)))
        builder.add(node, depth)
        node.summary = _capture_block(lines, i + 1, boundary, strip_lines=True)
    return builder.chapters


_STRATEGIES: list[tuple[Strategy, Callable[[list[str]], list[ChapterNode]], Boundary]] = [
    ("headings", _parse_headings, _is_heading),
    ("bullets", _parse_bullets, lambda ln: _is_heading(ln) or _is_bullet(ln)),
    ("numbered", _parse_numbered, lambda ln: _is_heading(ln) or _is_bullet(ln) or _is_numbered(ln)),
]


def parse_outline(text: str) -> TocParseResult:
    """Parse an outline, trying headings, then bullets, then numbered lines.

    Raises:
        NoStructureFoundError: no strategy produced a top-level entry.
    """

    lines = split_lines(text or "")
    for strategy, parse, boundary in _STRATEGIES:
        chapters = parse(lines)
        if not chapters:
            continue
        title, manual_summary, _ = _book_header(lines, boundary)
        stats = _depth_stats(chapters)
        logger.info(
            "Outline parsed",
            extra={"strategy": strategy, "nodes": count_nodes(chapters), "per_depth": stats},
        )
        return TocParseResult(
            chapters=chapters,
            strategy=strategy,
            title=title,
            manual_summary=manual_summary,
            stats=stats,
        )

    raise NoStructureFoundError("outline has no headings, bullets or numbered lines")


def load_outline_file(path: Path) -> TocParseResult:
    """Read an outline file (UTF-8) and parse it."""

    text = path.read_text(encoding="utf-8")
    logger.info("Outline file loaded", extra={"path": str(path), "chars": len(text)})
    return parse_outline(text)


def _node_from_json(item: object) -> ChapterNode | None:
    if isinstance(item, str):
        title = item.strip()
        return ChapterNode(title=clean_heading_text(title, 1)) if title else None
    if not isinstance(item, dict):
        return None
    title = str(item.get("title") or "").strip()
    if not title:
        return None
    node = ChapterNode(title=title, summary=str(item.get("summary") or "").strip())
    children = item.get("subchapters") or item.get("sub_chapters") or item.get("children") or []
    if isinstance(children, list):
        for child in children:
            sub = _node_from_json(child)
            if sub is not None:
                node.sub_chapters.append(sub)
    return node


def parse_structure_proposal(text: str) -> list[ChapterNode]:
    """Parse a model-proposed structure: a JSON array of `{"title", "subchapters"}` objects.

    A top-level object with a `chapters` array is accepted too.

    Raises:
        StructureProposalError: the text holds no usable JSON tree.
    """

    items = extract_json_array(text)
    if items is None:
        obj = extract_json_object(text)
        if obj is not None and isinstance(obj.get("chapters"), list):
            items = obj["chapters"]
    if items is None:
        raise StructureProposalError("structure proposal is not a JSON array")

    chapters = [n for n in (_node_from_json(item) for item in items) if n is not None]
    if not chapters:
        raise StructureProposalError("structure proposal contains no titled chapters")
    return chapters
