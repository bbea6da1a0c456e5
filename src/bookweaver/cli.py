"""CLI entrypoints for BookWeaver."""

from __future__ import annotations

from pathlib import Path

import typer

from bookweaver.config import load_settings
from bookweaver.errors import BookWeaverError, NoStructureFoundError
from bookweaver.logging import configure_logging, get_logger
from bookweaver.models.book import BookSpecification
from bookweaver.models.chapter import count_nodes, max_depth, number_nodes
from bookweaver.orchestrator.runner import run_book
from bookweaver.toc.ingest import load_outline_file, parse_outline
from bookweaver.ui import ConsoleUI

app = typer.Typer(add_completion=False, help="BookWeaver outline-driven document generator")
logger = get_logger(__name__)


def _outline_title(outline_text: str | None) -> str:
    if not outline_text:
        return ""
    try:
        return parse_outline(outline_text).title
    except NoStructureFoundError:
        return ""


def _collect_brief(
    ui: ConsoleUI,
    *,
    title: str | None,
    audience: str | None,
    topic: str | None,
) -> BookSpecification:
    """Fill the brief from options/settings, prompting for what is missing when interactive."""

    answers = {"title": title, "target_audience": audience, "topic": topic}
    questions = {
        "title": "Document title",
        "target_audience": "Target audience (e.g. beginner, expert)",
        "topic": "Topic or short description",
    }
    missing = [k for k, v in answers.items() if not (v and v.strip())]
    if missing and not ui.interactive:
        raise typer.BadParameter(
            "Missing " + ", ".join(missing) + ". Pass them as options or BOOKWEAVER_* settings."
        )
    for key in missing:
        answers[key] = ui.ask_required(questions[key])
    return BookSpecification(**{k: (v or "").strip() for k, v in answers.items()})


@app.command()
def run(
    outline: Path | None = typer.Option(
        None,
        "--outline",
        help="Outline file (Markdown headings, bullets or numbered lines). "
        "Overrides BOOKWEAVER_INDEX_MD_PATH.",
    ),
    title: str | None = typer.Option(None, "--title", help="Document title"),
    audience: str | None = typer.Option(None, "--audience", help="Target audience"),
    topic: str | None = typer.Option(None, "--topic", help="Topic or short description"),
    artifacts_dir: Path | None = typer.Option(
        None,
        "--artifacts-dir",
        help="Artifacts directory (overrides BOOKWEAVER_ARTIFACTS_DIR)",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Stop after the structure and summaries"),
    demo: bool = typer.Option(False, "--demo", help="Use the built-in demo outline"),
    diagrams: bool = typer.Option(True, "--diagrams/--no-diagrams", help="Plan diagrams after the content"),
    interactive: bool = typer.Option(
        True,
        "--interactive/--no-interactive",
        help="Prompt for missing brief fields and review the proposed structure",
    ),
) -> None:
    """Generate a full manuscript into a new run directory."""

    settings = load_settings()
    if artifacts_dir is not None:
        settings.artifacts_dir = artifacts_dir
    settings.dry_run = settings.dry_run or dry_run
    settings.demo_mode = settings.demo_mode or demo
    settings.plan_diagrams = settings.plan_diagrams and diagrams

    configure_logging(settings.log_level)
    ui = ConsoleUI(interactive=interactive)

    outline_path = outline or settings.index_md_path
    outline_text: str | None = None
    if outline_path is not None:
        if not outline_path.is_file():
            raise typer.BadParameter(f"Outline file not found: {outline_path}")
        outline_text = outline_path.read_text(encoding="utf-8")

    spec = _collect_brief(
        ui,
        title=title or settings.doc_title or _outline_title(outline_text),
        audience=audience or settings.target_audience,
        topic=topic or settings.topic,
    )
    logger.info("CLI run requested", extra={"outline": str(outline_path) if outline_path else None})

    try:
        result = run_book(settings=settings, spec=spec, outline_text=outline_text, ui=ui)
    except (BookWeaverError, ValueError) as exc:
        ui.error(str(exc))
        raise typer.Exit(code=1) from exc
    typer.echo(str(result.paths.root))


@app.command()
def toc(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Outline file")) -> None:
    """Parse an outline file and print the numbered tree."""

    configure_logging(load_settings().log_level)
    ui = ConsoleUI(interactive=False)
    try:
        parsed = load_outline_file(path)
    except NoStructureFoundError as exc:
        ui.error(str(exc))
        raise typer.Exit(code=1) from exc

    number_nodes(parsed.chapters)
    ui.show_toc(parsed.chapters, title=parsed.title or path.name)
    ui.info(
        f"strategy={parsed.strategy} nodes={count_nodes(parsed.chapters)} depth={max_depth(parsed.chapters)}"
    )


if __name__ == "__main__":
    app()
