"""Whole-document Markdown transforms.

Every transform is a pure `str -> str` function that is safe on already-clean input
(`f(f(x)) == f(x)`) and never alters lines inside fenced code blocks.
"""

from __future__ import annotations

import re

import mdformat

from bookweaver.logging import get_logger
from bookweaver.markdown.fences import FenceTracker, iter_protected, split_lines

logger = get_logger(__name__)

_PIPE_ROW_RE = re.compile(r"^\s*\|.*\|\s*$")
_PIPE_SEP_RE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)+\|?\s*$")
_GRID_BORDER_RE = re.compile(r"^\s*\+[-=:+]+\+\s*$")

_EMPTY_REF_RE = re.compile(r"^\s*\[\s*\]\s*:.*$")

_LETTERS = "A-Za-zÁÉÍÓÚÜáéíóúÑñ"
_GLUED_HASH_RE = re.compile(rf"\b([{_LETTERS}]+)#([{_LETTERS}0-9])")
_HASH_AT_END_RE = re.compile(rf"\b([{_LETTERS}]+)#[ \t]*$")
# Chord roots: English letter names and fixed-do solfège.
NOTE_ROOTS = frozenset({"a", "b", "c", "d", "e", "f", "g", "do", "re", "mi", "fa", "sol", "la", "si"})

_BULLET_RE = re.compile(r"^(\s*)[-*+]\s+")

_INLINE_LINK_RE = re.compile(r"(?<!!)\[([^\]\n]+)\]\((?:[^()\s]+|[^()\s]*\([^()\s]*\)[^()\s]*)(?:\s+\"[^\"]*\")?\)")
_REF_LINK_RE = re.compile(r"(?<!!)\[([^\]\n]+)\]\[[^\]\n]*\]")
_LINK_DEF_RE = re.compile(r"^\s{0,3}\[[^\]\n]+\]:\s*\S+.*$")
_AUTOLINK_RE = re.compile(r"<(?:https?|ftp)://[^>\s]+>|<mailto:[^>\s]+>")
_BARE_URL_RE = re.compile(r"(?<![\w(/\[])(?:https?://|www\.)[^\s<>()\[\]]+[^\s<>()\[\].,;:!?'\"]")


def has_pipe_table(text: str) -> bool:
    lines = split_lines(text)
    return any(_PIPE_ROW_RE.match(ln) for ln in lines) and any(_PIPE_SEP_RE.match(ln) for ln in lines)


def has_grid_table(text: str) -> bool:
    lines = split_lines(text)
    return any(_GRID_BORDER_RE.match(ln) for ln in lines) and any(_PIPE_ROW_RE.match(ln) for ln in lines)


def reflow(text: str) -> str:
    """Parse and re-emit Markdown in canonical form.

    Skipped when the document holds a pipe or grid table; the formatter would flatten
    tables it does not understand.
    """

    if not text.strip() or has_pipe_table(text) or has_grid_table(text):
        return text
    try:
        return mdformat.text(text)
    except Exception:
        logger.warning("Markdown reflow failed; keeping text as is", exc_info=True)
        return text


def clean_artifacts(text: str) -> str:
    """Drop empty link-reference definitions (`[]: ...`) and end with exactly one newline."""

    if not text.strip():
        return text
    kept = [ln for ln, protected in iter_protected(split_lines(text)) if protected or not _EMPTY_REF_RE.match(ln)]
    return "\n".join(kept).rstrip("\n") + "\n"


def _is_table_line(line: str) -> bool:
    return bool(_PIPE_ROW_RE.match(line) or _GRID_BORDER_RE.match(line) or _PIPE_SEP_RE.match(line))


def _is_table_block(block: list[str]) -> bool:
    return any(_PIPE_SEP_RE.match(ln) for ln in block) or any(_GRID_BORDER_RE.match(ln) for ln in block)


def ensure_table_spacing(text: str) -> str:
    """Surround every pipe or grid table with exactly one blank line."""

    core = text.rstrip("\n")
    tail = text[len(core):]
    lines = split_lines(core)
    tracker = FenceTracker()
    out: list[str] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if tracker.feed(line) or not _is_table_line(line):
            out.append(line)
            i += 1
            continue

        j = i
        while j < len(lines) and _is_table_line(lines[j]):
            j += 1
        block = lines[i:j]
        if not _is_table_block(block):
            out.extend(block)
            i = j
            continue

        while out and not out[-1].strip():
            out.pop()
        if out:
            out.append("")
        out.extend(block)

        k = j
        while k < len(lines) and not lines[k].strip():
            k += 1
        if k < len(lines):
            out.append("")
        i = k
    return "\n".join(out) + tail


def ensure_fence_spacing(text: str) -> str:
    """Put a blank line before each opening fence and after each closing fence."""

    lines = split_lines(text)
    tracker = FenceTracker()
    out: list[str] = []
    for i, line in enumerate(lines):
        was_in_fence = tracker.in_fence
        tracker.feed(line)
        opened = not was_in_fence and tracker.in_fence
        closed = was_in_fence and not tracker.in_fence
        if opened and out and out[-1].strip():
            out.append("")
        out.append(line)
        if closed and i + 1 < len(lines) and lines[i + 1].strip():
            out.append("")
    return "\n".join(out)


def _inside_code_span_or_url(line: str, pos: int) -> bool:
    if line.count("`", 0, pos) % 2 == 1:
        return True
    token_start = max(line.rfind(" ", 0, pos), line.rfind("\t", 0, pos)) + 1
    return "://" in line[token_start:pos] or line[token_start:pos].startswith("www.")


def space_after_inline_hash(text: str) -> str:
    """Separate a `#` glued between a word and a letter/digit (`foo#bar` -> `foo# bar`).

    Musical notation is preserved: when the word is a note root (`F#7`, `Do#m7`) the
    sequence is left alone. A word ending in `#` at end of line always gets a trailing space.
    """

    if not text:
        return text

    def fix(line: str) -> str:
        def glued(m: re.Match[str]) -> str:
            if m.group(1).lower() in NOTE_ROOTS or _inside_code_span_or_url(line, m.start()):
                return m.group(0)
            return f"{m.group(1)}# {m.group(2)}"

        def at_end(m: re.Match[str]) -> str:
            if _inside_code_span_or_url(line, m.start()):
                return m.group(0)
            return f"{m.group(1)}# "

        line = _GLUED_HASH_RE.sub(glued, line)
        return _HASH_AT_END_RE.sub(at_end, line)

    return "\n".join(ln if protected else fix(ln) for ln, protected in iter_protected(split_lines(text)))


def fix_colon_spacing(text: str) -> str:
    """Force a blank line after a line that ends with a colon.

    Generated text often glues a code block or list directly under an explanatory colon.
    """

    lines = split_lines(text)
    tracker = FenceTracker()
    out: list[str] = []
    for i, line in enumerate(lines):
        protected = tracker.feed(line)
        out.append(line)
        if protected or not line.rstrip().endswith(":"):
            continue
        if i + 1 < len(lines) and lines[i + 1].strip():
            out.append("")
    return "\n".join(out)


def beautify_lists(text: str) -> str:
    """Insert blank lines so that lists render as lists.

    - before a bullet list that directly follows a non-list paragraph;
    - before a deeper sub-list only when its parent bullet ends with a colon.
    """

    lines = split_lines(text)
    tracker = FenceTracker()
    out: list[str] = []
    prev_line = ""
    prev_is_bullet = False
    prev_indent = -1
    last_blank = True

    for line in lines:
        if tracker.feed(line):
            out.append(line)
            prev_line, prev_is_bullet, prev_indent = line, False, -1
            last_blank = False
            continue

        m = _BULLET_RE.match(line)
        if m and prev_line.strip() and not last_blank:
            indent = len(m.group(1))
            if not prev_is_bullet:
                out.append("")
            elif indent > prev_indent and prev_line.rstrip().endswith(":"):
                out.append("")

        out.append(line)
        last_blank = not line.strip()
        if not line.strip():
            continue
        if m is None and prev_is_bullet and line[:1] in (" ", "\t"):
            # wrapped continuation of the previous item
            prev_line = line
            continue
        prev_line = line
        prev_is_bullet = m is not None
        prev_indent = len(m.group(1)) if m else -1

    return "\n".join(out)


def strip_links(text: str) -> str:
    """Remove hyperlink markup for print output.

    `[text](url)` and `[text][ref]` keep their text, link definitions are dropped,
    autolinks and bare URLs are removed. Images are left alone.
    """

    out: list[str] = []
    for line, protected in iter_protected(split_lines(text)):
        if protected:
            out.append(line)
            continue
        if _LINK_DEF_RE.match(line):
            continue
        new = _INLINE_LINK_RE.sub(r"\1", line)
        new = _REF_LINK_RE.sub(r"\1", new)
        new = _AUTOLINK_RE.sub("", new)
        new = _BARE_URL_RE.sub("", new)
        if new != line:
            indent = new[: len(new) - len(new.lstrip())]
            new = indent + re.sub(r"[ \t]{2,}", " ", new.strip())
            new = re.sub(r"\s+([.,;:!?])", r"\1", new).rstrip()
        out.append(new)
    return "\n".join(out)
