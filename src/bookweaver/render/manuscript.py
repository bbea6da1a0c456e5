"""Manuscript rendering.

The renderer turns a :class:`BookSpecification` into Markdown. Each save is a full re-render
of the current tree, so saving after every generated section is safe and repeatable.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from bookweaver.config import NormalizationOptions
from bookweaver.logging import get_logger
from bookweaver.markdown.pipeline import normalize_markdown
from bookweaver.markdown.sanitize import sanitize_headings, strip_assistant_meta
from bookweaver.models.book import BookSpecification
from bookweaver.models.chapter import ChapterNode, iter_nodes
from bookweaver.models.diagram import DiagramPlanItem
from bookweaver.render.store import Destination, ManuscriptStore

logger = get_logger(__name__)

MAX_NODE_HEADING_LEVEL = 4


def node_heading_level(node: ChapterNode) -> int:
    """Chapters render as `##`, sections as `###`, anything deeper as `####`."""

    return min(node.level + 1, MAX_NODE_HEADING_LEVEL)


def diagram_marker(item: DiagramPlanItem) -> str:
    return f"[Diagram: {item.name} ({item.format.value}, {item.placement})]"


def append_diagram_markers(content: str, diagrams: list[DiagramPlanItem]) -> str:
    """Append one marker paragraph per planned diagram after the node content.

    The planned placement is carried inside the marker text only; markers keep plan order.
    """

    if not diagrams:
        return content
    markers = [diagram_marker(item) for item in diagrams]
    body = content.strip()
    return "\n\n".join([body, *markers] if body else markers)


@dataclass
class ManuscriptRenderer:
    """Serializes the book and persists it through a :class:`ManuscriptStore`."""

    store: ManuscriptStore
    options: NormalizationOptions = field(default_factory=NormalizationOptions)

    def _node_body(self, node: ChapterNode) -> str:
        level = node_heading_level(node)
        body = strip_assistant_meta(node.content or "")
        body = sanitize_headings(body, node, level, trust_numbering=self.options.trust_numbering)
        return append_diagram_markers(body, node.diagrams)

    def _append_content(self, out: list[str], nodes: list[ChapterNode]) -> None:
        for node in iter_nodes(nodes):
            out.append(f"{'#' * node_heading_level(node)} {node.label}")
            out.append("")
            body = self._node_body(node)
            if body.strip():
                out.append(body.strip())
                out.append("")

    def render_full(self, spec: BookSpecification) -> str:
        """Title, brief, introduction, TOC listing, summaries, then the full content."""

        out: list[str] = [f"# {spec.title}", ""]
        if spec.manual_summary.strip():
            out.extend([spec.manual_summary.strip(), ""])
        out.extend([f"**Target audience:** {spec.target_audience}", f"**Topic:** {spec.topic}", ""])

        if spec.introduction.strip():
            out.extend(["## Introduction", "", spec.introduction.strip(), ""])

        out.extend(["## Table of Contents", ""])
        for node in iter_nodes(spec.table_of_contents):
            out.append(f"{'  ' * (node.level - 1)}- {node.label}")
        out.append("")

        summarized = [n for n in iter_nodes(spec.table_of_contents) if n.summary.strip()]
        if summarized:
            out.extend(["## Section Summaries", ""])
            for node in summarized:
                out.extend([f"**{node.label}**", "", node.summary.strip(), ""])

        out.extend(["---", ""])
        self._append_content(out, spec.table_of_contents)
        return "\n".join(out).rstrip() + "\n"

    def render_chapters_only(self, spec: BookSpecification) -> str:
        """Title, introduction and content; no summaries or TOC listing."""

        out: list[str] = [f"# {spec.title}", ""]
        if spec.introduction.strip():
            out.extend([spec.introduction.strip(), ""])
        self._append_content(out, spec.table_of_contents)
        return "\n".join(out).rstrip() + "\n"

    def save(self, spec: BookSpecification, final: bool = False) -> None:
        """Persist the manuscript.

        A non-final save writes the raw preview only. The final save writes the normalized
        manuscript and the chapters-only variant.
        """

        if not final:
            self.store.write(Destination.MANUSCRIPT, self.render_full(spec))
            return
        self.store.write(Destination.MANUSCRIPT, normalize_markdown(self.render_full(spec), self.options))
        self.store.write(Destination.CHAPTERS, normalize_markdown(self.render_chapters_only(spec), self.options))
        logger.info("Final manuscript saved", extra={"root": str(self.store.root)})

    def save_diagram_suggestions(self, text: str) -> None:
        self.store.write(Destination.DIAGRAMS, normalize_markdown(text, self.options))
