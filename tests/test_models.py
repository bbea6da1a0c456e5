"""Tests for the chapter tree and diagram models."""

from __future__ import annotations

from bookweaver.models.chapter import (
    ChapterNode,
    add_chapter,
    add_child,
    build_toc_string,
    count_nodes,
    find_node,
    iter_nodes,
    max_depth,
    number_nodes,
    remove_node,
    rename_node,
)
from bookweaver.models.diagram import DiagramFormat, DiagramPlanItem


def _tree() -> list[ChapterNode]:
    return [
        ChapterNode(
            title="Basics",
            sub_chapters=[
                ChapterNode(title="Setup"),
                ChapterNode(title="Usage", sub_chapters=[ChapterNode(title="CLI")]),
            ],
        ),
        ChapterNode(title="Advanced"),
    ]


def test_number_nodes_assigns_dotted_numbers_and_levels() -> None:
    """It should number siblings 1..N under the parent's prefix and set depth levels."""

    toc = _tree()
    number_nodes(toc)

    assert [(n.number, n.level) for n in iter_nodes(toc)] == [
        ("1", 1),
        ("1.1", 2),
        ("1.2", 2),
        ("1.2.1", 3),
        ("2", 1),
    ]


def test_number_nodes_is_idempotent() -> None:
    """It should give identical numbering when run twice on an unchanged tree."""

    toc = _tree()
    number_nodes(toc)
    first = [(n.number, n.level) for n in iter_nodes(toc)]
    number_nodes(toc)
    assert [(n.number, n.level) for n in iter_nodes(toc)] == first


def test_find_node_returns_parent() -> None:
    """It should return the node with its parent, and (None, None) when absent."""

    toc = _tree()
    number_nodes(toc)

    node, parent = find_node(toc, "1.2.1")
    assert node is not None and node.title == "CLI"
    assert parent is not None and parent.title == "Usage"

    top, top_parent = find_node(toc, "2")
    assert top is not None and top_parent is None

    assert find_node(toc, "9.9") == (None, None)


def test_build_toc_string_indents_by_depth() -> None:
    """It should list `number title` lines with two spaces per depth level."""

    toc = _tree()
    number_nodes(toc)
    assert build_toc_string(toc) == "1 Basics\n  1.1 Setup\n  1.2 Usage\n    1.2.1 CLI\n2 Advanced"


def test_tree_edits_then_renumber() -> None:
    """It should rename, remove and add nodes, keeping numbering consistent after renumbering."""

    toc = _tree()
    number_nodes(toc)

    assert rename_node(toc, "1.1", "Installation")
    assert remove_node(toc, "1.2")
    assert add_child(toc, "2", "Tuning") is not None
    assert add_chapter(toc, "Appendix") is not None
    assert not remove_node(toc, "7")
    assert add_child(toc, "7", "Nowhere") is None
    assert add_chapter(toc, "   ") is None

    number_nodes(toc)
    assert build_toc_string(toc) == "1 Basics\n  1.1 Installation\n2 Advanced\n  2.1 Tuning\n3 Appendix"
    assert count_nodes(toc) == 5
    assert max_depth(toc) == 2


def test_label_and_leaf() -> None:
    """It should expose `number title` as the label and report leaves."""

    node = ChapterNode(title="Setup", number="1.1")
    assert node.label == "1.1 Setup"
    assert node.is_leaf
    assert ChapterNode(title="Unnumbered").label == "Unnumbered"


def test_diagram_item_coerces_unknown_values() -> None:
    """It should map format aliases and fall back to text / end for unknown values."""

    assert DiagramPlanItem(name="a", format="PUML").format is DiagramFormat.PLANTUML
    assert DiagramPlanItem(name="a", format="Mermaid").format is DiagramFormat.MERMAID
    assert DiagramPlanItem(name="a", format="graphviz").format is DiagramFormat.TEXT

    assert DiagramPlanItem(name="a", placement="after_para:2").placement == "after_para:2"
    assert DiagramPlanItem(name="a", placement="Before_Para: 3").placement == "before_para:3"
    assert DiagramPlanItem(name="a", placement="middle").placement == "end"
    assert DiagramPlanItem(name="a", placement=None).placement == "end"
