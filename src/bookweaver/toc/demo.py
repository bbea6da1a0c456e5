"""Built-in minimal outline used in demo mode."""

from __future__ import annotations

from bookweaver.models.chapter import ChapterNode


def build_demo_toc() -> list[ChapterNode]:
    """Two chapters with two sections each."""

    return [
        ChapterNode(
            title="Core concepts",
            sub_chapters=[ChapterNode(title="Introduction"), ChapterNode(title="First steps")],
        ),
        ChapterNode(
            title="Practical application",
            sub_chapters=[ChapterNode(title="Guided example"), ChapterNode(title="Best practices")],
        ),
    ]
