"""Shared fixtures: a scripted content provider and renderer/generator factories."""

from __future__ import annotations

import io
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest
from rich.console import Console

from bookweaver.config import GenerationOptions, NormalizationOptions
from bookweaver.models.book import BookSpecification
from bookweaver.models.chapter import iter_nodes
from bookweaver.orchestrator.context import RunContext
from bookweaver.orchestrator.generator import BookGenerator
from bookweaver.prompts.book import OVERVIEW_RETRY_INSTRUCTION
from bookweaver.render.manuscript import ManuscriptRenderer
from bookweaver.render.store import ManuscriptStore
from bookweaver.ui import ConsoleUI

LONG_OVERVIEW = (
    "This part frames the material that follows, explaining why it matters for the reader. "
    "It also shows how the ideas connect to the rest of the document."
)

Response = Any


def prompt_kind(user: str) -> str:
    """Classify a prompt by the fixed wording of each template."""

    if OVERVIEW_RETRY_INSTRUCTION in user:
        return "overview_retry"
    if user.startswith("Propose a hierarchical structure"):
        return "index"
    if "single introduction paragraph" in user:
        return "introduction"
    if user.startswith("For the following chapter and all of its sections"):
        return "summaries"
    if user.startswith("Write the overview of"):
        return "overview"
    if user.startswith("Write the content of section"):
        return "detail"
    if '"diagrams"' in user:
        return "diagram_plan"
    if "write a Markdown document suggesting" in user:
        return "diagram_suggestions"
    return "unknown"


def label_of(user: str) -> str:
    m = re.search(r"\*\*(.+?)\*\*", user)
    return m.group(1) if m else ""


def summaries_for(user: str) -> str:
    """Answer a summaries prompt with one entry per listed section number."""

    numbers = re.findall(r"^- Chapter: (\S+)", user, re.MULTILINE)
    numbers += re.findall(r"^- (\d+(?:\.\d+)+) ", user, re.MULTILINE)
    return json.dumps({n: f"Summary of {n}." for n in numbers})


def default_responses() -> dict[str, Response]:
    return {
        "index": json.dumps([{"title": "Alpha", "subchapters": [{"title": "Alpha one"}]}, {"title": "Beta"}]),
        "introduction": "An introduction paragraph.",
        "summaries": summaries_for,
        "overview": lambda user: f"{LONG_OVERVIEW} ({label_of(user)})",
        "overview_retry": lambda user: f"{LONG_OVERVIEW} Expanded. ({label_of(user)})",
        "detail": lambda user: f"Detail prose for {label_of(user)}.",
        "diagram_plan": json.dumps({"diagrams": []}),
        "diagram_suggestions": "## Suggested diagrams\n\nNone needed.",
    }


@dataclass
class Call:
    kind: str
    system: str
    user: str
    context: str | None
    json_schema: dict[str, Any] | None


@dataclass
class StubProvider:
    """Content provider that answers by prompt kind and records every call."""

    responses: dict[str, Response] = field(default_factory=default_responses)
    calls: list[Call] = field(default_factory=list)

    def ask(
        self,
        system: str,
        user: str,
        *,
        context: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        json_schema: dict[str, Any] | None = None,
    ) -> str:
        kind = prompt_kind(user)
        self.calls.append(Call(kind, system, user, context, json_schema))
        response = self.responses.get(kind, "")
        if isinstance(response, Exception):
            raise response
        if isinstance(response, list):
            return response.pop(0) if response else ""
        if callable(response):
            return response(user)
        return response

    def kinds(self) -> list[str]:
        return [c.kind for c in self.calls]


class RecordingRenderer(ManuscriptRenderer):
    """Renderer that also remembers which saves happened."""

    def __init__(self, store: ManuscriptStore, options: NormalizationOptions | None = None) -> None:
        super().__init__(store=store, options=options or NormalizationOptions())
        self.saves: list[tuple[bool, list[str]]] = []

    def save(self, spec: BookSpecification, final: bool = False) -> None:
        filled = [n.number for n in iter_nodes(spec.table_of_contents) if n.content]
        self.saves.append((final, filled))
        super().save(spec, final=final)


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def make_provider() -> Callable[[], StubProvider]:
    return StubProvider


@pytest.fixture
def quiet_ui() -> ConsoleUI:
    return ConsoleUI(Console(file=io.StringIO(), width=120), interactive=False)


@pytest.fixture
def make_generator(tmp_path: Path, stub_provider: StubProvider, quiet_ui: ConsoleUI) -> Callable[..., BookGenerator]:
    def factory(
        *,
        spec: BookSpecification | None = None,
        provider: Any = None,
        options: GenerationOptions | None = None,
        ui: ConsoleUI | None = None,
    ) -> BookGenerator:
        return BookGenerator(
            spec=spec or BookSpecification(title="Guide", target_audience="Engineers", topic="Testing"),
            provider=provider or stub_provider,
            renderer=RecordingRenderer(ManuscriptStore(tmp_path / "out")),
            options=options or GenerationOptions(plan_diagrams=False),
            context=RunContext(run_id="test"),
            ui=ui or quiet_ui,
        )

    return factory
