"""Table-of-contents sources: outline files, the demo tree, model proposals."""

from __future__ import annotations

from bookweaver.toc.demo import build_demo_toc
from bookweaver.toc.ingest import (
    TocParseResult,
    clean_heading_text,
    load_outline_file,
    parse_outline,
    parse_structure_proposal,
)

__all__ = [
    "TocParseResult",
    "build_demo_toc",
    "clean_heading_text",
    "load_outline_file",
    "parse_outline",
    "parse_structure_proposal",
]
