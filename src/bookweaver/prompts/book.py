from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from bookweaver.models.book import BookSpecification
from bookweaver.models.chapter import ChapterNode, build_toc_string, iter_nodes
from bookweaver.models.diagram import DiagramFormat

NONE_TEXT = "(none)"

SYSTEM_PROMPT = (
    "You are an expert author of technical documentation, manuals and proposals. "
    "You write clear, well-structured content adapted to the target audience. "
    "Key rules:\n"
    "- Keep the chapter and section structure you are given; never rename or renumber sections.\n"
    "- Write the content itself. Do not address the reader about what you could do next, "
    "do not offer follow-ups, do not ask questions.\n"
    "- When JSON output is requested, return ONLY the JSON, without markdown code fences "
    "and without any surrounding text."
)

INDEX_PROMPT = (
    "Propose a hierarchical structure of chapters and sections for a technical document with "
    "the given TITLE, TOPIC and TARGET AUDIENCE.\n\n"
    '- Title: "{title}"\n'
    "- Topic: {topic}\n"
    "- Target audience: {audience}\n\n"
    "Return a JSON array of objects. Each object has a 'title' key (string) and optionally a "
    "'subchapters' key (an array of objects of the same shape).\n"
    "Structure rules:\n"
    "- A chapter has between 0 and 6 sections.\n"
    "- Do not nest deeper than 2 levels (chapters and sections).\n"
    "- Do not number the titles."
)

INTRODUCTION_PROMPT = (
    "Based on the following structure of a technical document, write a single introduction "
    "paragraph (between 100 and 200 words) explaining what the reader will learn or find in "
    "the document.\n\n"
    '- Title: "{title}"\n'
    "- Topic: {topic}\n"
    "- Target audience: {audience}\n"
    "- Chapter structure:\n{toc}\n\n"
    "Return only the introduction paragraph, without headings."
)

SUMMARIES_PROMPT = (
    "For the following chapter and all of its sections, write a summary for each one.\n\n"
    "General context:\n"
    '- Document title: "{title}"\n'
    "- Target audience: {audience}\n"
    "- Summary of the previous chapter:\n{previous_summary}\n\n"
    "Block to summarize:\n"
    "- Chapter: {number} {chapter_title}\n"
    "- Sections of this chapter:\n{sections}\n\n"
    'Return a single JSON object. Keys are the section numbers (e.g. "1", "1.1", "1.2") and '
    "values are their summaries (between 150 and 300 words each). Include the chapter itself "
    "and every section listed above."
)

# Section number -> summary text.
SUMMARIES_SCHEMA: dict[str, Any] = {"type": "object", "additionalProperties": {"type": "string"}}

OVERVIEW_PROMPT = (
    "Write the overview of **{label}**, a part of the document whose details are covered by "
    "its sections.\n\n"
    "Document context:\n"
    '- Title: "{title}"\n'
    "- Topic: {topic}\n"
    "- Target audience: {audience}\n"
    "- Summary of this part:\n{summary}\n"
    "- Summary of the enclosing part:\n{parent_summary}\n"
    "- Sections covered below (for your orientation only):\n{children}\n\n"
    "Requirements:\n"
    "- {length_rule}\n"
    "- Flowing prose: no headings, no bullet lists.\n"
    "- Do not list or repeat the section titles; they follow after this overview.\n"
    "- Do not repeat the title; start directly with the content."
)

OVERVIEW_RETRY_INSTRUCTION = (
    "Additional instruction: the previous text was too short. Expand it with more contextual "
    "detail and, if it helps, add a short Markdown table summarizing relevant comparisons or "
    "categories. Do not enumerate the section titles."
)

DETAIL_PROMPT = (
    "Write the content of section **{label}**.\n\n"
    "Document context:\n"
    '- Title: "{title}"\n'
    "- Topic: {topic}\n"
    "- Target audience: {audience}\n"
    "- Summary of this section:\n{summary}\n"
    "- Summary of the parent chapter:\n{parent_summary}\n\n"
    "Requirements:\n"
    "- Clear and accurate technical content adapted to the audience.\n"
    "- {length_rule}\n"
    "- Markdown output. For internal subsections use at most fourth-level headings (####).\n"
    "- Do not repeat the section title; start directly with the content."
)

DIAGRAM_PLAN_PROMPT = (
    "Review the sections of the document below and propose diagrams that would help the "
    "reader.\n\n"
    '- Title: "{title}"\n'
    "- Topic: {topic}\n"
    "- Target audience: {audience}\n\n"
    "Sections:\n{sections}\n\n"
    'Return a single JSON object: {{"diagrams": [{{"section_number": "1.2", "name": "...", '
    '"purpose": "...", "format": "plantuml|mermaid|text", '
    '"placement": "start|end|before_para:N|after_para:N", "code": "..."}}]}}. '
    "Propose at most one diagram per section, and only where a diagram adds information. "
    "Use an empty list when none is useful."
)

DIAGRAM_PLAN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "diagrams": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "section_number": {"type": "string"},
                    "name": {"type": "string"},
                    "purpose": {"type": "string"},
                    "format": {"type": "string", "enum": [f.value for f in DiagramFormat]},
                    "placement": {"type": "string"},
                    "code": {"type": "string"},
                },
                "required": ["section_number", "name"],
            },
        }
    },
    "required": ["diagrams"],
}

DIAGRAM_SUGGESTIONS_PROMPT = (
    "Review the sections of the document below and write a Markdown document suggesting "
    "diagrams for it.\n\n"
    '- Title: "{title}"\n'
    "- Topic: {topic}\n"
    "- Target audience: {audience}\n\n"
    "Sections:\n{sections}\n\n"
    "For each suggested diagram give: the section number and title, a name, its purpose, the "
    "format (PlantUML, Mermaid or plain text) and a draft in a fenced code block. "
    "Skip sections where a diagram would not help."
)


def _or_none(text: str | None) -> str:
    return text.strip() if text and text.strip() else NONE_TEXT


def _length_rule(words: int) -> str:
    if words > 0:
        return f"Target length: about {words} words."
    return "Length: as long as the topic requires."


def build_book_context(spec: BookSpecification) -> str:
    """Stable per-run context: brief plus the numbered table of contents."""

    return (
        "Book context (stable for this run):\n"
        f"- Title: {spec.title}\n"
        f"- Audience: {spec.target_audience}\n"
        f"- Topic: {spec.topic}\n"
        "- TOC:\n"
        f"{build_toc_string(spec.table_of_contents)}"
    )


def index_prompt(spec: BookSpecification) -> str:
    return INDEX_PROMPT.format(title=spec.title, topic=spec.topic, audience=spec.target_audience)


def introduction_prompt(spec: BookSpecification) -> str:
    return INTRODUCTION_PROMPT.format(
        title=spec.title,
        topic=spec.topic,
        audience=spec.target_audience,
        toc=build_toc_string(spec.table_of_contents),
    )


def summaries_prompt(spec: BookSpecification, chapter: ChapterNode, previous_summary: str) -> str:
    descendants = list(iter_nodes(chapter.sub_chapters))
    sections = "\n".join(f"- {n.label}" for n in descendants) or NONE_TEXT
    return SUMMARIES_PROMPT.format(
        title=spec.title,
        audience=spec.target_audience,
        previous_summary=_or_none(previous_summary),
        number=chapter.number,
        chapter_title=chapter.title,
        sections=sections,
    )


def overview_prompt(spec: BookSpecification, node: ChapterNode, parent_summary: str, words: int) -> str:
    children = "\n".join(f"- {c.title}" for c in node.sub_chapters) or NONE_TEXT
    return OVERVIEW_PROMPT.format(
        label=node.label or spec.title,
        title=spec.title,
        topic=spec.topic,
        audience=spec.target_audience,
        summary=_or_none(node.summary),
        parent_summary=_or_none(parent_summary),
        children=children,
        length_rule=_length_rule(words),
    )


def overview_retry_prompt(base_prompt: str) -> str:
    return f"{base_prompt}\n\n{OVERVIEW_RETRY_INSTRUCTION}"


def detail_prompt(spec: BookSpecification, node: ChapterNode, parent_summary: str, words: int) -> str:
    return DETAIL_PROMPT.format(
        label=node.label,
        title=spec.title,
        topic=spec.topic,
        audience=spec.target_audience,
        summary=_or_none(node.summary),
        parent_summary=_or_none(parent_summary),
        length_rule=_length_rule(words),
    )


def _sections_digest(nodes: Iterable[ChapterNode], *, excerpt_chars: int = 600) -> str:
    parts: list[str] = []
    for n in nodes:
        excerpt = " ".join((n.content or "").split())[:excerpt_chars]
        parts.append(f"### {n.label}\nSummary: {_or_none(n.summary)}\nExcerpt: {excerpt or NONE_TEXT}")
    return "\n\n".join(parts)


def diagram_plan_prompt(spec: BookSpecification) -> str:
    return DIAGRAM_PLAN_PROMPT.format(
        title=spec.title,
        topic=spec.topic,
        audience=spec.target_audience,
        sections=_sections_digest(iter_nodes(spec.table_of_contents)),
    )


def diagram_suggestions_prompt(spec: BookSpecification) -> str:
    return DIAGRAM_SUGGESTIONS_PROMPT.format(
        title=spec.title,
        topic=spec.topic,
        audience=spec.target_audience,
        sections=_sections_digest(iter_nodes(spec.table_of_contents)),
    )
