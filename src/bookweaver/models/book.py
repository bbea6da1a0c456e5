"""Book-level model."""

from __future__ import annotations

from pydantic import BaseModel, Field

from bookweaver.models.chapter import ChapterNode


class BookSpecification(BaseModel):
    """The brief plus the whole chapter tree; the unit handed to the renderer."""

    title: str = ""
    target_audience: str = ""
    topic: str = ""
    manual_summary: str = ""
    introduction: str = ""
    table_of_contents: list[ChapterNode] = Field(default_factory=list)
