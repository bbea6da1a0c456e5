"""End-to-end run wiring: run directory, logging, provider, renderer, generator."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from bookweaver.config import Settings
from bookweaver.events import ContentType, EventType
from bookweaver.llm.client import ContentProvider, LLMClient, TokenUsage
from bookweaver.logging import attach_file_log, detach_file_log, get_logger, log_exception, run_context
from bookweaver.models.book import BookSpecification
from bookweaver.orchestrator.context import RunContext
from bookweaver.orchestrator.generator import BookGenerator
from bookweaver.recording.file_recorder import EventEmitter, FileEventRecorder
from bookweaver.render.manuscript import ManuscriptRenderer
from bookweaver.render.store import Destination, ManuscriptStore
from bookweaver.ui import ConsoleUI

logger = get_logger(__name__)


@dataclass(frozen=True)
class RunPaths:
    """Paths for a run."""

    root: Path

    @property
    def manuscript_path(self) -> Path:
        return self.root / Destination.MANUSCRIPT.value

    @property
    def chapters_path(self) -> Path:
        return self.root / Destination.CHAPTERS.value

    @property
    def diagrams_path(self) -> Path:
        return self.root / Destination.DIAGRAMS.value

    @property
    def events_path(self) -> Path:
        return self.root / "events.jsonl"

    @property
    def log_path(self) -> Path:
        return self.root / "run.log"


@dataclass
class RunResult:
    run_id: str
    paths: RunPaths
    spec: BookSpecification
    elapsed_s: float
    usage: TokenUsage | None = None


def format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(round(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def run_book(
    *,
    settings: Settings,
    spec: BookSpecification,
    outline_text: str | None = None,
    ui: ConsoleUI | None = None,
    provider: ContentProvider | None = None,
) -> RunResult:
    """Generate a book into a fresh run directory under `settings.artifacts_dir`.

    Elapsed time (and token usage, when the provider tracks it) is reported even when the run
    fails; the exception then propagates to the caller.
    """

    ui = ui or ConsoleUI(interactive=False)
    run_id, run_root = _prepare_run_dir(settings.artifacts_dir)
    paths = RunPaths(root=run_root)
    events = EventEmitter(run_id=run_id, recorder=FileEventRecorder(paths.events_path))
    file_log = attach_file_log(paths.log_path)

    started = time.perf_counter()
    usage: TokenUsage | None = None
    try:
        client = provider if provider is not None else LLMClient(settings)
        usage = getattr(client, "usage", None)
        with run_context(run_id=run_id, step="init"):
            logger.info(
                "Run started",
                extra={"title": spec.title, "audience": spec.target_audience, "artifacts": str(paths.root)},
            )
            events.emit(EventType.SYSTEM, ContentType.MESSAGE, "run_started", metadata={"title": spec.title})

            renderer = ManuscriptRenderer(
                store=ManuscriptStore(paths.root),
                options=settings.normalization_options(),
            )
            generator = BookGenerator(
                spec=spec,
                provider=client,
                renderer=renderer,
                options=settings.generation_options(),
                context=RunContext(run_id=run_id, run_dir=paths.root),
                ui=ui,
                events=events,
            )
            try:
                generator.run(outline_text)
            except Exception as exc:
                log_exception(logger, "Run failed", error=type(exc).__name__)
                events.emit(EventType.ERROR, ContentType.MESSAGE, str(exc), metadata={"error": type(exc).__name__})
                raise
    finally:
        elapsed = time.perf_counter() - started
        ui.info(f"Elapsed time: {format_elapsed(elapsed)}")
        if usage is not None and settings.show_usage:
            ui.info(f"Token usage: {usage.summary()}")
        logger.info("Run finished", extra={"elapsed_s": round(elapsed, 2)})
        detach_file_log(file_log)

    return RunResult(run_id=run_id, paths=paths, spec=spec, elapsed_s=elapsed, usage=usage)


def _prepare_run_dir(base: Path) -> tuple[str, Path]:
    base.mkdir(parents=True, exist_ok=True)
    # Time-based for readability plus a short random suffix to avoid collisions.
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    suffix = uuid.uuid4().hex[:8]
    run_id = f"{ts}_{suffix}"
    run_dir = base / f"run_{run_id}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_id, run_dir
