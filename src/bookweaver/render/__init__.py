"""Manuscript rendering and persistence."""

from __future__ import annotations

from bookweaver.render.manuscript import ManuscriptRenderer, diagram_marker, node_heading_level
from bookweaver.render.sources import build_sources_appendix, extract_sources
from bookweaver.render.store import Destination, ManuscriptStore

__all__ = [
    "Destination",
    "ManuscriptRenderer",
    "ManuscriptStore",
    "build_sources_appendix",
    "diagram_marker",
    "extract_sources",
    "node_heading_level",
]
