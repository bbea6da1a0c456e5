"""Pydantic models used across the project."""

from __future__ import annotations

from bookweaver.models.book import BookSpecification
from bookweaver.models.chapter import (
    ChapterNode,
    build_toc_string,
    find_node,
    iter_nodes,
    number_nodes,
)
from bookweaver.models.diagram import DiagramFormat, DiagramPlanItem

__all__ = [
    "BookSpecification",
    "ChapterNode",
    "DiagramFormat",
    "DiagramPlanItem",
    "build_toc_string",
    "find_node",
    "iter_nodes",
    "number_nodes",
]
