"""Tests for per-section heading sanitization and assistant-meta stripping."""

from __future__ import annotations

from bookweaver.markdown.sanitize import sanitize_headings, strip_assistant_meta
from bookweaver.models.chapter import ChapterNode


def _leaf(title: str = "Setup", number: str = "1.1") -> ChapterNode:
    return ChapterNode(title=title, number=number, level=2)


def test_drops_own_title_and_relevels_headings() -> None:
    """It should remove the echoed section title and push inner headings below the section."""

    content = "## 1.1 Setup\n\nIntro text.\n# Details\nMore text.\n```\n# not heading\n```"
    assert sanitize_headings(content, _leaf(), 3) == (
        "Intro text.\n\n#### Details\n\nMore text.\n```\n# not heading\n```"
    )


def test_own_title_variants_are_dropped_case_insensitively() -> None:
    """It should recognize bold, separator and bare-title echoes of the section title."""

    node = _leaf()
    for echo in ["**1.1 - Setup**", "1.1: setup", "SETUP:", "### Setup"]:
        assert sanitize_headings(f"{echo}\nBody.", node, 3) == "Body."


def test_splits_heading_glued_to_prose() -> None:
    """It should move a heading that trails a sentence onto its own line."""

    content = "Some prose ends here. ## Next part\nBody"
    assert sanitize_headings(content, _leaf(title="Other"), 3) == (
        "Some prose ends here.\n\n#### Next part\n\nBody"
    )


def test_heading_level_is_capped_at_six() -> None:
    """It should never emit more than six hashes."""

    assert sanitize_headings("### Deep", _leaf(title="Other"), 6) == "###### Deep"


def test_untrusted_numbering_promotes_numbered_lines_and_section_words() -> None:
    """It should turn bare numbered lines and section words into headings when asked."""

    content = "Overview\nText here.\n1.2.3 Some numbered line\nMore."
    node = ChapterNode(title="Parent", number="1", level=1, sub_chapters=[_leaf()])

    assert sanitize_headings(content, node, 2, trust_numbering=False) == (
        "### Overview\n\nText here.\n\n### 1.2.3 Some numbered line\n\nMore."
    )
    assert sanitize_headings(content, node, 2) == content


def test_leaf_list_leads_become_headings() -> None:
    """It should promote a short stand-alone line that introduces a bullet list in a leaf."""

    content = "Intro paragraph.\n\nKey points\n- one\n- two"
    assert sanitize_headings(content, _leaf(title="Other"), 2) == (
        "Intro paragraph.\n\n### Key points\n\n- one\n- two"
    )
    glued = "Some text\nShort lead\n- a"
    assert sanitize_headings(glued, _leaf(title="Other"), 2) == glued


def test_strip_assistant_meta_removes_offer_and_following_list() -> None:
    """It should drop the offer paragraph together with the bullet list it introduces."""

    content = (
        "Real content.\n\nIf you want, I can also:\n- write tests\n- add docs\n\nClosing line."
    )
    assert strip_assistant_meta(content) == "Real content.\n\nClosing line."


def test_strip_assistant_meta_variants() -> None:
    """It should handle trailing questions, bullet offers and Spanish phrasing."""

    assert strip_assistant_meta("Body.\n\nWould you like me to expand this section?") == "Body."
    assert strip_assistant_meta("- Item one\n- Let me know if you need more.\n\nNext paragraph.") == (
        "- Item one\n\nNext paragraph."
    )
    assert strip_assistant_meta("Texto.\n\nSi quieres, puedo añadir ejemplos.") == "Texto."


def test_strip_assistant_meta_leaves_clean_text_and_fences() -> None:
    """It should return untouched input when there is nothing to remove."""

    assert strip_assistant_meta("Plain text.\n") == "Plain text.\n"
    fenced = "```\nIf you want, I can help\n```"
    assert strip_assistant_meta(fenced) == fenced


def test_strip_assistant_meta_offer_with_three_bullets() -> None:
    """It should keep only the paragraph that follows an offer and its bullet list."""

    content = "If you want, I can provide a table\n- a\n- b\n- c\n\nNormal paragraph."
    assert strip_assistant_meta(content) == "Normal paragraph."
