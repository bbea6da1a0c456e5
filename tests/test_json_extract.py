"""Tests for tolerant JSON extraction from model output."""

from __future__ import annotations

import pytest

from bookweaver.utils.json_extract import extract_json_array, extract_json_object


@pytest.mark.parametrize(
    "text",
    [
        '{"a": 1}',
        'Sure! ```json\n{"a": 1}\n``` Anything else?',
        '```\n{"a": 1}\n```',
        'The result is {"a": 1} as requested.',
    ],
)
def test_extract_json_object_variants(text: str) -> None:
    """It should find the object in plain, fenced and prose-wrapped output."""

    assert extract_json_object(text) == {"a": 1}


def test_braces_inside_strings_do_not_end_the_span() -> None:
    """It should honor JSON strings while balancing braces."""

    text = 'Here: {"code": "if (x) { y(); }", "n": "quote \\" }"} trailing'
    assert extract_json_object(text) == {"code": "if (x) { y(); }", "n": 'quote " }'}


def test_extract_json_object_returns_none_for_unusable_text() -> None:
    """It should return None rather than raise."""

    assert extract_json_object("") is None
    assert extract_json_object("no json") is None
    assert extract_json_object("[1, 2]") is None
    assert extract_json_object("{broken") is None


def test_extract_json_array() -> None:
    """It should extract arrays the same way and give up when the first bracketed span is not JSON."""

    assert extract_json_array('Result:\n[{"title": "A"}]') == [{"title": "A"}]
    assert extract_json_array('[note] then [1, 2]') is None
    assert extract_json_array('{"a": 1}') is None
