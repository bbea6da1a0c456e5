"""Explicit per-run context handed to the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from bookweaver.models.chapter import ChapterNode

NONE_SUMMARY = "(none)"


@dataclass
class RunContext:
    """State that is stable for the whole run once the outline is final."""

    run_id: str
    run_dir: Path | None = None
    # Title, audience, topic and the numbered TOC; sent as a cacheable prompt segment.
    book_context: str = ""


@dataclass(frozen=True)
class AncestorContext:
    """What a node inherits from the nodes above it during content generation."""

    parent_summary: str = NONE_SUMMARY
    chapter_summary: str = ""

    @classmethod
    def for_chapter(cls, chapter: ChapterNode) -> AncestorContext:
        """Context handed to the children of a top-level chapter."""

        return cls(chapter_summary=chapter.summary.strip()).for_children(chapter)

    def for_children(self, parent: ChapterNode) -> AncestorContext:
        """Context for the children of `parent`, once its own content exists.

        Children see the parent's summary; without one, the overview just generated for the
        parent; then the enclosing chapter's summary; then the "(none)" placeholder.
        """

        summary = parent.summary.strip() or parent.content.strip() or self.chapter_summary or NONE_SUMMARY
        return AncestorContext(parent_summary=summary, chapter_summary=self.chapter_summary)
