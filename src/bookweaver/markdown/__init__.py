"""Markdown repair for generated content."""

from __future__ import annotations

from bookweaver.markdown.pipeline import build_pipeline, normalize_markdown
from bookweaver.markdown.sanitize import sanitize_headings, strip_assistant_meta

__all__ = ["build_pipeline", "normalize_markdown", "sanitize_headings", "strip_assistant_meta"]
