"""Book generation orchestrator.

The flow for one run:

1. establish the outline (outline file, demo tree, or a structure proposed by the model);
2. number the tree and freeze the book context;
3. introduction, per-chapter summaries, whole-book overview;
4. content for every node in strict pre-order: an overview for nodes with sections, detail
   for leaves, saving the preview after each node;
5. final save and, optionally, diagram planning.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal

from bookweaver.config import GenerationOptions
from bookweaver.errors import (
    BookWeaverError,
    ContentProviderError,
    EmptySectionError,
    NoStructureFoundError,
    StructureProposalError,
    StructureUnavailableError,
)
from bookweaver.events import ContentType, EventType
from bookweaver.llm.client import ContentProvider
from bookweaver.logging import get_logger, set_step
from bookweaver.markdown.transforms import ensure_fence_spacing
from bookweaver.models.book import BookSpecification
from bookweaver.models.chapter import (
    ChapterNode,
    add_chapter,
    add_child,
    count_nodes,
    find_node,
    number_nodes,
    remove_node,
    rename_node,
)
from bookweaver.models.diagram import DiagramPlanItem
from bookweaver.orchestrator.context import AncestorContext, RunContext
from bookweaver.prompts import book as prompts
from bookweaver.recording.file_recorder import EventEmitter
from bookweaver.render.manuscript import ManuscriptRenderer
from bookweaver.render.sources import build_sources_appendix
from bookweaver.toc.demo import build_demo_toc
from bookweaver.toc.ingest import parse_outline, parse_structure_proposal
from bookweaver.ui import ConsoleUI
from bookweaver.utils.json_extract import extract_json_object

logger = get_logger(__name__)

WEAK_OVERVIEW_MIN_CHARS = 60
NO_SUGGESTIONS_TEXT = "(No diagram suggestions were generated.)"

TocSource = Literal["outline", "demo", "proposal"]


@dataclass(frozen=True)
class ParsedSummaries:
    """Summaries keyed by section number."""

    values: dict[str, str]


@dataclass(frozen=True)
class ParseFailed:
    reason: str


def parse_summaries(text: str) -> ParsedSummaries | ParseFailed:
    """Read a summaries response: one JSON object mapping section numbers to text.

    Non-string values and blank summaries are ignored rather than failing the whole chapter.
    """

    if not text or not text.strip():
        return ParseFailed("empty response")
    obj = extract_json_object(text)
    if obj is None:
        return ParseFailed("response is not a JSON object")
    values = {
        str(k).strip(): v.strip()
        for k, v in obj.items()
        if isinstance(v, str) and v.strip() and str(k).strip()
    }
    return ParsedSummaries(values)


def is_overview_weak(content: str, node: ChapterNode) -> bool:
    """True when an overview is too short once lines echoing child labels are removed.

    A line echoes a child when it is exactly `number title`, bare or as a heading.
    """

    if not content or not content.strip():
        return True
    echoes = [
        re.compile(rf"^\s*(?:#{{1,6}}\s+)?{re.escape(child.number)}\s+{re.escape(child.title)}\s*$")
        for child in node.sub_chapters
    ]
    kept = [
        line
        for line in content.replace("\r\n", "\n").split("\n")
        if not any(rx.match(line) for rx in echoes)
    ]
    return len("\n".join(kept).strip()) < WEAK_OVERVIEW_MIN_CHARS


@dataclass
class BookGenerator:
    """Drives the content provider over the chapter tree.

    One provider call at a time, in a fixed order; the renderer is asked to save after every
    node so a crash never loses more than the section in flight.
    """

    spec: BookSpecification
    provider: ContentProvider
    renderer: ManuscriptRenderer
    options: GenerationOptions
    context: RunContext
    ui: ConsoleUI = field(default_factory=lambda: ConsoleUI(interactive=False))
    events: EventEmitter | None = None

    # ---- helpers ---------------------------------------------------------------------------

    def _ask(self, user: str, *, json_schema: dict[str, Any] | None = None) -> str:
        return self.provider.ask(
            prompts.SYSTEM_PROMPT,
            user,
            context=self.context.book_context or None,
            model=self.options.model,
            max_tokens=self.options.max_tokens,
            json_schema=json_schema,
        )

    def _emit(
        self,
        content_type: ContentType,
        data: str | dict | list | None = None,
        *,
        event_type: EventType = EventType.SYSTEM,
        **metadata: str | int | float | bool | None,
    ) -> None:
        if self.events is not None:
            self.events.emit(event_type, content_type, data, metadata=metadata)

    def _save(self, *, final: bool = False) -> None:
        self.renderer.save(self.spec, final=final)
        self._emit(ContentType.SAVED, final=final)

    # ---- outline ---------------------------------------------------------------------------

    def generate_toc(self, outline_text: str | None = None) -> TocSource:
        """Establish the chapter tree.

        Raises:
            StructureUnavailableError: no outline parsed, demo mode off, and the model's
                structure proposal was unusable.
        """

        set_step("toc")
        if outline_text is not None:
            try:
                parsed = parse_outline(outline_text)
            except NoStructureFoundError:
                logger.warning("Outline has no recognizable structure; falling back")
                self.ui.warn("The outline has no headings, bullets or numbered lines; ignoring it.")
            else:
                self.spec.table_of_contents = parsed.chapters
                if parsed.title and not self.spec.title:
                    self.spec.title = parsed.title
                if parsed.manual_summary and not self.spec.manual_summary:
                    self.spec.manual_summary = parsed.manual_summary
                self._toc_ready("outline", strategy=parsed.strategy)
                return "outline"

        if self.options.demo_mode:
            self.spec.table_of_contents = build_demo_toc()
            self._toc_ready("demo")
            return "demo"

        self.ui.step("Proposing a document structure...")
        try:
            text = self._ask(prompts.index_prompt(self.spec))
            self.spec.table_of_contents = parse_structure_proposal(text)
        except (ContentProviderError, StructureProposalError) as exc:
            raise StructureUnavailableError(f"no table of contents could be established: {exc}") from exc
        self._toc_ready("proposal")
        return "proposal"

    def _toc_ready(self, source: TocSource, **metadata: str) -> None:
        number_nodes(self.spec.table_of_contents)
        nodes = count_nodes(self.spec.table_of_contents)
        logger.info("Table of contents ready", extra={"source": source, "nodes": nodes, **metadata})
        self._emit(ContentType.TOC_READY, source=source, nodes=nodes)

    def review_toc(self) -> None:
        """Let the user edit the outline: `edit N`, `delete N`, `add N`, `new`, `done`."""

        toc = self.spec.table_of_contents
        while True:
            number_nodes(toc)
            self.ui.show_toc(toc)
            self.ui.info("Commands: edit <num> | delete <num> | add <num> | new | done")
            action, _, target = self.ui.ask("> ").lower().partition(" ")
            target = target.strip()

            if action == "done":
                break
            if action == "new":
                add_chapter(toc, self.ui.ask("Title of the new chapter"))
                continue
            if action not in ("edit", "delete", "add"):
                self.ui.warn(f"Unknown command: {action or '(empty)'}")
                continue

            node, _ = find_node(toc, target)
            if node is None:
                self.ui.warn(f"Section not found: {target or '(none)'}")
                continue
            if action == "edit":
                rename_node(toc, target, self.ui.ask(f"New title for '{node.title}'"))
            elif action == "delete":
                remove_node(toc, target)
            else:
                add_child(toc, target, self.ui.ask(f"Title of the new section under '{node.label}'"))

        number_nodes(toc)
        logger.info("Table of contents confirmed", extra={"nodes": count_nodes(toc)})

    def prepare(self) -> None:
        """Number the final tree and freeze the book context for every later prompt."""

        number_nodes(self.spec.table_of_contents)
        self.context.book_context = prompts.build_book_context(self.spec)
        logger.info("Book context prepared", extra={"chars": len(self.context.book_context)})

    # ---- preparatory passes ----------------------------------------------------------------

    def generate_introduction(self) -> None:
        set_step("introduction")
        self.ui.step("Generating the introduction...")
        self.spec.introduction = self._ask(prompts.introduction_prompt(self.spec)).strip()
        logger.info("Introduction generated", extra={"chars": len(self.spec.introduction)})
        self._emit(ContentType.INTRODUCTION_DONE, event_type=EventType.LLM, chars=len(self.spec.introduction))

    def generate_summaries(self) -> int:
        """Fill empty summaries, one provider call per top-level chapter.

        Summaries already present (for example from the outline file) are kept. A chapter whose
        response cannot be parsed is skipped with a warning.

        Returns:
            Number of summaries filled.
        """

        self.ui.step("Generating summaries for the final structure...")
        filled = 0
        previous = ""
        for chapter in self.spec.table_of_contents:
            set_step(f"summaries:{chapter.number}")
            self.ui.progress(f"Summaries for chapter {chapter.label}")
            text = self._ask(
                prompts.summaries_prompt(self.spec, chapter, previous), json_schema=prompts.SUMMARIES_SCHEMA
            )
            parsed = parse_summaries(text)
            if isinstance(parsed, ParseFailed):
                logger.warning(
                    "Summaries response unusable; chapter left as is",
                    extra={"chapter": chapter.number, "reason": parsed.reason},
                )
                self.ui.warn(f"Could not read summaries for chapter {chapter.number}: {parsed.reason}")
            else:
                updated = self._apply_summaries(parsed.values)
                filled += updated
                logger.info("Summaries applied", extra={"chapter": chapter.number, "updated": updated})
            previous = chapter.summary
        self._emit(ContentType.SUMMARIES_DONE, event_type=EventType.LLM, filled=filled)
        return filled

    def _apply_summaries(self, values: dict[str, str]) -> int:
        updated = 0
        for number, summary in values.items():
            node, _ = find_node(self.spec.table_of_contents, number)
            if node is not None and not node.summary.strip():
                node.summary = summary
                updated += 1
        return updated

    def generate_manual_overview(self) -> None:
        """Synthesize the whole-book summary from the chapter summaries, unless one exists."""

        if self.spec.manual_summary.strip():
            return
        set_step("manual_overview")
        root = ChapterNode(title=self.spec.title, sub_chapters=self.spec.table_of_contents)
        try:
            text = self._ask(
                prompts.overview_prompt(self.spec, root, prompts.NONE_TEXT, self.options.node_summary_words)
            )
        except ContentProviderError:
            logger.warning("Manual overview failed; continuing without it", exc_info=True)
            return
        self.spec.manual_summary = text.strip()
        self._emit(ContentType.MANUAL_OVERVIEW_DONE, event_type=EventType.LLM, chars=len(self.spec.manual_summary))

    # ---- content ---------------------------------------------------------------------------

    def generate_content(self) -> None:
        """Generate every node in strict pre-order."""

        self.ui.step("Generating the full document content...")
        for chapter in self.spec.table_of_contents:
            self._generate_node(chapter, AncestorContext())

    def _generate_node(self, node: ChapterNode, ancestors: AncestorContext) -> None:
        set_step(node.number)
        self.ui.progress(f"Generating {node.label}")
        self._emit(ContentType.NODE_STARTED, number=node.number, leaf=node.is_leaf)

        if node.is_leaf:
            node.content = self._generate_detail(node, ancestors.parent_summary)
        else:
            node.content = self._generate_overview(node, ancestors.parent_summary)

        logger.info("Section content received", extra={"section": node.number, "chars": len(node.content)})
        self._emit(ContentType.NODE_DONE, event_type=EventType.LLM, number=node.number, chars=len(node.content))
        self._save()

        if node.sub_chapters:
            child_ctx = (
                AncestorContext.for_chapter(node) if node.level == 1 else ancestors.for_children(node)
            )
            for child in node.sub_chapters:
                self._generate_node(child, child_ctx)

    def _generate_overview(self, node: ChapterNode, parent_summary: str) -> str:
        prompt = prompts.overview_prompt(self.spec, node, parent_summary, self.options.node_summary_words)
        content = self._ask(prompt)
        if is_overview_weak(content, node):
            logger.info("Weak overview; retrying once with an expanded instruction", extra={"section": node.number})
            self._emit(ContentType.OVERVIEW_RETRY, number=node.number)
            content = self._ask(prompts.overview_retry_prompt(prompt))
            if is_overview_weak(content, node):
                logger.warning("Overview still weak after retry; keeping it", extra={"section": node.number})
        return content.strip()

    def _generate_detail(self, node: ChapterNode, parent_summary: str) -> str:
        prompt = prompts.detail_prompt(self.spec, node, parent_summary, self.options.node_detail_words)
        content = self._ask(prompt)
        if not content.strip():
            logger.error("Empty content for leaf section", extra={"section": node.number, "title": node.title})
            self._emit(
                ContentType.MESSAGE,
                "empty leaf content",
                event_type=EventType.ERROR,
                number=node.number,
            )
            raise EmptySectionError(node.number, node.title)
        return content.strip()

    # ---- diagrams --------------------------------------------------------------------------

    def plan_diagrams(self) -> None:
        """Attach diagram plans to nodes and write the suggestions document.

        Both halves are best-effort: a failure is logged and the run goes on.
        """

        set_step("diagrams")
        self.ui.step("Planning diagrams...")
        applied = 0
        try:
            plan = self._ask(prompts.diagram_plan_prompt(self.spec), json_schema=prompts.DIAGRAM_PLAN_SCHEMA)
            applied = self.apply_diagram_plan(plan)
        except BookWeaverError:
            logger.warning("Diagram plan failed; no markers will be inserted", exc_info=True)
        if applied:
            self._save(final=True)

        try:
            suggestions = self._ask(prompts.diagram_suggestions_prompt(self.spec)).strip()
        except BookWeaverError:
            logger.warning("Diagram suggestions failed", exc_info=True)
            return
        document = suggestions or NO_SUGGESTIONS_TEXT
        appendix = build_sources_appendix(self.spec.table_of_contents)
        if appendix:
            document = f"{document}\n\n{appendix}"
        self.renderer.save_diagram_suggestions(ensure_fence_spacing(document))
        self._emit(ContentType.DIAGRAM_SUGGESTIONS_SAVED, chars=len(document))

    def apply_diagram_plan(self, text: str) -> int:
        """Read a `{"diagrams": [...]}` plan and append each item to its section.

        Items without a section number or name, or naming an unknown section, are skipped.

        Returns:
            Number of diagrams attached.
        """

        obj = extract_json_object(text)
        items = obj.get("diagrams") if obj is not None else None
        if not isinstance(items, list):
            logger.warning("Diagram plan is not a {\"diagrams\": [...]} object")
            return 0

        applied = 0
        for item in items:
            if not isinstance(item, dict):
                continue
            section = str(item.get("section_number") or "").strip()
            name = str(item.get("name") or "").strip()
            if not section or not name:
                continue
            node, _ = find_node(self.spec.table_of_contents, section)
            if node is None:
                continue
            node.diagrams.append(
                DiagramPlanItem(
                    name=name,
                    purpose=str(item.get("purpose") or ""),
                    format=item.get("format") or "",
                    placement=item.get("placement") or "end",
                    code=str(item.get("code") or ""),
                )
            )
            applied += 1
        logger.info("Diagram plan applied", extra={"diagrams": applied})
        self._emit(ContentType.DIAGRAM_PLAN_APPLIED, applied=applied)
        return applied

    # ---- full run --------------------------------------------------------------------------

    def run(self, outline_text: str | None = None) -> None:
        """Run every pass in order. A dry run stops after the summaries preview is saved."""

        source = self.generate_toc(outline_text)
        if source != "outline" and self.ui.interactive:
            self.review_toc()
        self.prepare()

        self.generate_introduction()
        self.generate_summaries()
        self.ui.show_summaries(self.spec.table_of_contents)
        self.generate_manual_overview()
        self._save()

        if self.options.dry_run:
            self.ui.warn("Dry run: stopping before content generation. Review the structure and summaries.")
            logger.info("Dry run finished")
            return

        self.generate_content()
        self._save(final=True)
        self.ui.info(f"Done. Manuscript written to {self.renderer.store.root}")

        if self.options.plan_diagrams:
            self.plan_diagrams()
        self._emit(ContentType.RUN_DONE, nodes=count_nodes(self.spec.table_of_contents))
