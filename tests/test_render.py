"""Tests for manuscript rendering, persistence and the sources appendix."""

from __future__ import annotations

from pathlib import Path

from bookweaver.markdown.pipeline import normalize_markdown
from bookweaver.models.book import BookSpecification
from bookweaver.models.chapter import ChapterNode, number_nodes
from bookweaver.models.diagram import DiagramPlanItem
from bookweaver.render.manuscript import (
    ManuscriptRenderer,
    append_diagram_markers,
    diagram_marker,
    node_heading_level,
)
from bookweaver.render.sources import build_sources_appendix, extract_sources
from bookweaver.render.store import Destination, ManuscriptStore


def _spec() -> BookSpecification:
    toc = [
        ChapterNode(
            title="Alpha",
            summary="Sum A",
            content="Overview A",
            sub_chapters=[ChapterNode(title="One", content="Detail one")],
        )
    ]
    number_nodes(toc)
    return BookSpecification(
        title="Guide",
        target_audience="Engineers",
        topic="Testing",
        manual_summary="Whole book.",
        introduction="Intro.",
        table_of_contents=toc,
    )


def test_render_full_layout(tmp_path: Path) -> None:
    """It should emit brief, introduction, TOC, summaries and content in that order."""

    renderer = ManuscriptRenderer(ManuscriptStore(tmp_path))
    assert renderer.render_full(_spec()) == (
        "# Guide\n\n"
        "Whole book.\n\n"
        "**Target audience:** Engineers\n**Topic:** Testing\n\n"
        "## Introduction\n\nIntro.\n\n"
        "## Table of Contents\n\n- 1 Alpha\n  - 1.1 One\n\n"
        "## Section Summaries\n\n**1 Alpha**\n\nSum A\n\n"
        "---\n\n"
        "## 1 Alpha\n\nOverview A\n\n"
        "### 1.1 One\n\nDetail one\n"
    )


def test_render_chapters_only(tmp_path: Path) -> None:
    """It should keep the title, introduction and content only."""

    renderer = ManuscriptRenderer(ManuscriptStore(tmp_path))
    assert renderer.render_chapters_only(_spec()) == (
        "# Guide\n\nIntro.\n\n## 1 Alpha\n\nOverview A\n\n### 1.1 One\n\nDetail one\n"
    )


def test_node_bodies_are_sanitized(tmp_path: Path) -> None:
    """It should drop the echoed title and assistant offers from a section body."""

    spec = _spec()
    spec.table_of_contents[0].sub_chapters[0].content = (
        "## 1.1 One\n\nDetail one\n# Inner\n\nWould you like me to add examples?"
    )
    text = ManuscriptRenderer(ManuscriptStore(tmp_path)).render_chapters_only(spec)
    assert text.endswith("### 1.1 One\n\nDetail one\n\n#### Inner\n")


def test_preview_and_final_saves(tmp_path: Path) -> None:
    """It should write only the raw manuscript on preview and both normalized files on final."""

    store = ManuscriptStore(tmp_path / "run")
    renderer = ManuscriptRenderer(store)
    spec = _spec()

    renderer.save(spec)
    assert store.read(Destination.MANUSCRIPT) == renderer.render_full(spec)
    assert store.read(Destination.CHAPTERS) is None

    renderer.save(spec, final=True)
    assert store.read(Destination.MANUSCRIPT) == normalize_markdown(renderer.render_full(spec))
    assert store.read(Destination.CHAPTERS) == normalize_markdown(renderer.render_chapters_only(spec))


def test_store_write_failure_returns_none(tmp_path: Path) -> None:
    """It should log and return None instead of raising when the target cannot be written."""

    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    store = ManuscriptStore(blocker)

    assert store.write(Destination.MANUSCRIPT, "text") is None
    assert ManuscriptStore(tmp_path).write(Destination.MANUSCRIPT, "text") == tmp_path / "manuscript.md"


def test_node_heading_level_is_capped() -> None:
    """It should render chapters as H2, sections as H3 and deeper nodes as H4."""

    assert [node_heading_level(ChapterNode(title="x", level=lv)) for lv in (1, 2, 3, 5)] == [2, 3, 4, 4]


def test_diagram_markers_follow_node_content() -> None:
    """It should append markers after the content in plan order, whatever their placement."""

    content = "P1\n\nP2\n\n```\na\n\nb\n```"
    items = [
        DiagramPlanItem(name="S", placement="start"),
        DiagramPlanItem(name="A1", placement="after_para:1"),
        DiagramPlanItem(name="B3", format="mermaid", placement="before_para:3"),
        DiagramPlanItem(name="E"),
    ]
    m = {item.name: diagram_marker(item) for item in items}

    assert m["B3"] == "[Diagram: B3 (mermaid, before_para:3)]"
    assert append_diagram_markers(content, items) == "\n\n".join([content, m["S"], m["A1"], m["B3"], m["E"]])
    assert append_diagram_markers("", [items[-1]]) == m["E"]
    assert append_diagram_markers(content, []) == content


def test_start_placement_marker_does_not_precede_content() -> None:
    """It should keep the first paragraph first even when the diagram asks for the start."""

    out = append_diagram_markers(
        "First para.\n\nSecond para.", [DiagramPlanItem(name="Flow", format="mermaid", placement="start")]
    )

    assert out.startswith("First para.")
    assert out == "First para.\n\nSecond para.\n\n[Diagram: Flow (mermaid, start)]"


def test_extract_sources_prefers_sources_section() -> None:
    """It should read URLs under a Sources heading, deduplicated and without trailing punctuation."""

    content = (
        "Intro https://a.com/x.\n\n## Sources\n- https://b.com/1,\n- HTTPS://B.com/1\n"
        "- https://c.com/2\n## Next\nhttps://d.com"
    )
    assert extract_sources(content) == ["https://b.com/1", "https://c.com/2"]
    assert extract_sources("See https://a.com/x. and https://a.com/x") == ["https://a.com/x"]
    assert extract_sources("") == []


def test_build_sources_appendix() -> None:
    """It should list cited URLs per section and be empty when nothing is cited."""

    toc = [
        ChapterNode(title="Alpha", content="References:\n- https://b.com/1"),
        ChapterNode(title="Beta", content="No links."),
    ]
    number_nodes(toc)

    assert build_sources_appendix(toc) == (
        "## Appendix: sources cited per section\n\n- 1 Alpha\n  - https://b.com/1"
    )
    assert build_sources_appendix(toc[1:]) == ""
