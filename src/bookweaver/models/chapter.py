"""Chapter tree model and the pure operations over it."""

from __future__ import annotations

from typing import Iterator

from pydantic import BaseModel, Field

from bookweaver.models.diagram import DiagramPlanItem


class ChapterNode(BaseModel):
    """A node of the document tree.

    `number` and `level` are not authored: they are assigned by :func:`number_nodes` once the
    tree is final. A node without sub-chapters is a leaf and gets detail content; any other
    node gets an overview.
    """

    title: str
    number: str = ""
    level: int = Field(default=1, ge=1)

    summary: str = ""
    content: str = ""

    sub_chapters: list["ChapterNode"] = Field(default_factory=list)
    diagrams: list[DiagramPlanItem] = Field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.sub_chapters

    @property
    def label(self) -> str:
        """`"<number> <title>"`, or just the title before numbering."""

        return f"{self.number} {self.title}".strip()


def number_nodes(nodes: list[ChapterNode], prefix: str = "", level: int = 1) -> None:
    """Assign dotted numbers and depth levels in place.

    Siblings are numbered 1..N and prefixed by the parent's number. The result depends only on
    sibling position, so renumbering an unchanged tree is a no-op.
    """

    for i, node in enumerate(nodes, start=1):
        node.number = f"{prefix}{i}"
        node.level = level
        if node.sub_chapters:
            number_nodes(node.sub_chapters, f"{node.number}.", level + 1)


def iter_nodes(nodes: list[ChapterNode]) -> Iterator[ChapterNode]:
    """Yield nodes in pre-order."""

    for node in nodes:
        yield node
        yield from iter_nodes(node.sub_chapters)


def count_nodes(nodes: list[ChapterNode]) -> int:
    return sum(1 for _ in iter_nodes(nodes))


def max_depth(nodes: list[ChapterNode]) -> int:
    if not nodes:
        return 0
    return 1 + max(max_depth(n.sub_chapters) for n in nodes)


def find_node(
    nodes: list[ChapterNode], number: str, parent: ChapterNode | None = None
) -> tuple[ChapterNode | None, ChapterNode | None]:
    """Find a node by dotted number.

    Returns:
        `(node, parent)`; parent is None for top-level chapters. `(None, None)` when absent.
    """

    for node in nodes:
        if node.number == number:
            return node, parent
        found, found_parent = find_node(node.sub_chapters, number, node)
        if found is not None:
            return found, found_parent
    return None, None


def build_toc_string(nodes: list[ChapterNode], indent: str = "") -> str:
    """Render the tree as an indented `number title` listing for prompts."""

    lines: list[str] = []
    for node in nodes:
        lines.append(f"{indent}{node.label}")
        if node.sub_chapters:
            lines.append(build_toc_string(node.sub_chapters, indent + "  "))
    return "\n".join(line for line in lines if line)


# Tree edits. They are used while reviewing the outline, before numbering is final;
# callers renumber afterwards.


def rename_node(nodes: list[ChapterNode], number: str, title: str) -> bool:
    node, _ = find_node(nodes, number)
    if node is None or not title.strip():
        return False
    node.title = title.strip()
    return True


def remove_node(nodes: list[ChapterNode], number: str) -> bool:
    node, parent = find_node(nodes, number)
    if node is None:
        return False
    siblings = parent.sub_chapters if parent is not None else nodes
    siblings.remove(node)
    return True


def add_child(nodes: list[ChapterNode], number: str, title: str) -> ChapterNode | None:
    node, _ = find_node(nodes, number)
    if node is None or not title.strip():
        return None
    child = ChapterNode(title=title.strip())
    node.sub_chapters.append(child)
    return child


def add_chapter(nodes: list[ChapterNode], title: str) -> ChapterNode | None:
    if not title.strip():
        return None
    chapter = ChapterNode(title=title.strip())
    nodes.append(chapter)
    return chapter
