"""Diagram plan models."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, field_validator

_PLACEMENT_RE = re.compile(r"^(start|end|(?:before|after)_para:\d+)$")


class DiagramFormat(str, Enum):
    """Source language of a proposed diagram."""

    PLANTUML = "plantuml"
    MERMAID = "mermaid"
    TEXT = "text"


class DiagramPlanItem(BaseModel):
    """A diagram proposed for a section.

    `placement` is `start`, `end`, or `before_para:N` / `after_para:N`. It is a hint for the
    author: the manuscript always appends the marker after the section content and shows the
    placement inside it.
    """

    name: str
    purpose: str = ""
    format: DiagramFormat = DiagramFormat.TEXT
    placement: str = "end"
    code: str = ""

    @field_validator("format", mode="before")
    @classmethod
    def _coerce_format(cls, value: object) -> object:
        if isinstance(value, DiagramFormat):
            return value
        raw = str(value or "").strip().lower()
        if raw in {"plantuml", "puml"}:
            return DiagramFormat.PLANTUML
        if raw == "mermaid":
            return DiagramFormat.MERMAID
        return DiagramFormat.TEXT

    @field_validator("placement", mode="before")
    @classmethod
    def _coerce_placement(cls, value: object) -> str:
        raw = str(value or "").strip().lower().replace(" ", "")
        return raw if _PLACEMENT_RE.match(raw) else "end"
