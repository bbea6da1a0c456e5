"""Per-section clean-up of generated content.

These passes run on a single node's content before the manuscript is assembled: they know the
node's own number/title and the heading level its content sits under.
"""

from __future__ import annotations

import re

from bookweaver.markdown.fences import FenceTracker, iter_protected, split_lines
from bookweaver.models.chapter import ChapterNode

_HEADING_RE = re.compile(r"^\s{0,3}(#{1,6})\s+(.*?)(?:\s+#+)?\s*$")
_GLUED_HEADING_RE = re.compile(r"^(?P<before>\S.*?[.!?:;)])\s+(?P<hashes>#{2,6})\s+(?P<title>\S.*)$")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
_BULLET_RE = re.compile(r"^\s*[-*+]\s+")
_NUMBERED_LINE_RE = re.compile(r"^\s*(\d+(?:\.\d+)+)\.?\s+(\S.{0,100})$")
_TABLE_RE = re.compile(r"^\s*[|+]")

SECTION_WORDS = frozenset(
    {
        "summary",
        "overview",
        "introduction",
        "conclusion",
        "conclusions",
        "key takeaways",
        "resumen",
        "introducción",
        "conclusión",
        "conclusiones",
    }
)

_LIST_LEAD_KEYWORDS = re.compile(
    r"^(examples?|steps|key (?:points|ideas|concepts)|benefits|advantages|disadvantages|"
    r"requirements|best practices|tips|common (?:mistakes|pitfalls)|ejemplos?|pasos|ventajas|"
    r"desventajas|requisitos|buenas prácticas|consejos)\b",
    re.IGNORECASE,
)

_META_OFFER_RE = re.compile(
    r"^(?:if you(?:'d| would)? (?:like|want|prefer|wish)\b|would you like\b|do you want me to\b|"
    r"want me to\b|shall i\b|let me know if\b|i can also\b|i could also\b|"
    r"feel free to ask\b|si (?:quieres|lo deseas|te interesa|deseas)\b|¿(?:quieres|te gustaría|deseas) que\b|"
    r"(?:también puedo|puedo también)\b)",
    re.IGNORECASE,
)


def _plain(line: str) -> str:
    """Strip list markers and emphasis wrappers for phrase matching."""

    text = _LIST_ITEM_RE.sub("", line.strip(), count=1)
    return text.strip("*_ ").strip()


def _own_title_re(node: ChapterNode) -> re.Pattern[str]:
    title = re.escape(node.title.strip())
    number = re.escape(node.number) if node.number else ""
    number_part = rf"(?:{number}\.?\s*[-—–:.]?\s*)?" if number else ""
    return re.compile(
        rf"^\s*(?:#{{1,6}}\s*)?(?:\*\*|__)?\s*{number_part}{title}\s*(?:\*\*|__)?\s*[:.]?\s*$",
        re.IGNORECASE,
    )


def _split_glued_headings(lines: list[str]) -> list[str]:
    out: list[str] = []
    for line, protected in iter_protected(lines):
        m = None if protected else _GLUED_HEADING_RE.match(line)
        if m is None:
            out.append(line)
            continue
        out.extend([m.group("before").rstrip(), "", f"{m.group('hashes')} {m.group('title').strip()}"])
    return out


def _drop_own_title(lines: list[str], node: ChapterNode) -> list[str]:
    if not node.title.strip():
        return lines
    pattern = _own_title_re(node)
    return [ln for ln, protected in iter_protected(lines) if protected or not pattern.match(ln)]


def _promote_untrusted_numbering(lines: list[str], hashes: str) -> list[str]:
    out: list[str] = []
    for line, protected in iter_protected(lines):
        if protected or _HEADING_RE.match(line):
            out.append(line)
            continue
        plain = line.strip().rstrip(":").strip("*_ ").strip()
        if plain.lower() in SECTION_WORDS:
            out.append(f"{hashes} {plain}")
        elif _NUMBERED_LINE_RE.match(line):
            out.append(f"{hashes} {line.strip()}")
        else:
            out.append(line)
    return out


def _looks_like_list_lead(line: str) -> bool:
    text = line.strip()
    if not text or _HEADING_RE.match(text) or _LIST_ITEM_RE.match(text) or _TABLE_RE.match(text):
        return False
    if text[0] in ">[!<":
        return False
    plain = text.strip("*_ ").strip()
    if plain.endswith(":") and len(plain) <= 100:
        return True
    if _LIST_LEAD_KEYWORDS.match(plain) and len(plain) <= 100:
        return True
    return len(plain) <= 60 and not plain.endswith((".", "!", "?", ",", ";"))


def _promote_list_leads(lines: list[str], hashes: str) -> list[str]:
    """Turn a stand-alone short line that introduces a bullet list into a heading."""

    protected = [p for _, p in iter_protected(lines)]
    out = list(lines)
    for i, line in enumerate(lines):
        if protected[i] or not _looks_like_list_lead(line):
            continue
        if i > 0 and lines[i - 1].strip():
            continue
        j = i + 1
        if j < len(lines) and not lines[j].strip():
            j += 1
        if j >= len(lines) or protected[j] or not _BULLET_RE.match(lines[j]):
            continue
        title = line.strip().strip("*_ ").strip().rstrip(":").strip()
        if title:
            out[i] = f"{hashes} {title}"
    return out


def _relevel_headings(lines: list[str], hashes: str) -> list[str]:
    tracker = FenceTracker()
    out: list[str] = []
    for i, line in enumerate(lines):
        if tracker.feed(line):
            out.append(line)
            continue
        m = _HEADING_RE.match(line)
        if m is None or not m.group(2):
            out.append(line)
            continue
        if out and out[-1].strip():
            out.append("")
        out.append(f"{hashes} {m.group(2)}")
        if i + 1 < len(lines) and lines[i + 1].strip():
            out.append("")
    return out


def _trim_blank_edges(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def sanitize_headings(
    content: str,
    node: ChapterNode,
    parent_heading_level: int,
    *,
    trust_numbering: bool = True,
    is_leaf: bool | None = None,
) -> str:
    """Make a section's internal headings consistent with where it sits in the book.

    Args:
        content: Generated Markdown for the node.
        node: The node the content belongs to (its number and title are removed if echoed).
        parent_heading_level: Heading level the renderer uses for the node itself.
        trust_numbering: When False, bare numbered lines and unlabeled section words
            ("Summary", "Overview", ...) are turned into headings.
        is_leaf: Defaults to `node.is_leaf`; leaves get list-lead promotion.
    """

    if not content.strip():
        return content
    hashes = "#" * min(parent_heading_level + 1, 6)
    leaf = node.is_leaf if is_leaf is None else is_leaf

    lines = split_lines(content)
    lines = _split_glued_headings(lines)
    lines = _drop_own_title(lines, node)
    if not trust_numbering:
        lines = _promote_untrusted_numbering(lines, hashes)
    if leaf:
        lines = _promote_list_leads(lines, hashes)
    lines = _relevel_headings(lines, hashes)
    return "\n".join(_trim_blank_edges(lines))


def strip_assistant_meta(content: str) -> str:
    """Remove chat-assistant offers ("If you want, I can...") from generated prose.

    The offer paragraph goes, together with the bullet block that immediately follows it.
    """

    if not content.strip():
        return content

    lines = split_lines(content)
    protected = [p for _, p in iter_protected(lines)]
    out: list[str] = []
    removed = False
    i = 0
    while i < len(lines):
        line = lines[i]
        if protected[i] or not _META_OFFER_RE.match(_plain(line)):
            out.append(line)
            i += 1
            continue

        removed = True
        is_bullet_offer = _LIST_ITEM_RE.match(line) is not None
        ends_with_colon = line.rstrip().endswith(":")
        i += 1
        if not is_bullet_offer:
            # rest of the offer paragraph
            while i < len(lines) and lines[i].strip() and not protected[i] and not _LIST_ITEM_RE.match(lines[i]):
                ends_with_colon = lines[i].rstrip().endswith(":")
                i += 1
        if not is_bullet_offer or ends_with_colon:
            j = i
            while j < len(lines) and not lines[j].strip():
                j += 1
            if j < len(lines) and not protected[j] and _LIST_ITEM_RE.match(lines[j]):
                i = j
                while i < len(lines) and not protected[i] and (
                    _LIST_ITEM_RE.match(lines[i]) or (lines[i].strip() and lines[i][:1] in (" ", "\t"))
                ):
                    i += 1
        while i < len(lines) and not lines[i].strip() and (not out or not out[-1].strip()):
            i += 1

    if not removed:
        return content
    return "\n".join(_trim_blank_edges(out))
