"""Console surface: progress narration and the interactive prompts."""

from __future__ import annotations

from typing import Callable

import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from bookweaver.models.chapter import ChapterNode

Reader = Callable[[str], str]

_SUMMARY_PREVIEW_CHARS = 160


def _typer_reader(prompt: str) -> str:
    return typer.prompt(prompt, default="", show_default=False)


class ConsoleUI:
    """Writes progress to a rich console and reads answers through typer prompts.

    Non-interactive instances never prompt; callers check :attr:`interactive` first.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        interactive: bool = True,
        reader: Reader | None = None,
    ) -> None:
        self.console = console or Console()
        self.interactive = interactive
        self._reader = reader or _typer_reader

    def step(self, message: str) -> None:
        self.console.print(f"\n[bold green][step][/] {message}")

    def progress(self, message: str) -> None:
        self.console.print(f"[cyan]>>>[/] {message}")

    def info(self, message: str) -> None:
        self.console.print(message, highlight=False)

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow]warning:[/] {message}", highlight=False)

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]error:[/] {message}", highlight=False)

    def ask(self, prompt: str) -> str:
        return self._reader(prompt).strip()

    def ask_required(self, prompt: str) -> str:
        """Prompt until a non-blank answer is given."""

        answer = self.ask(prompt)
        while not answer:
            answer = self.ask(f"{prompt} (required)")
        return answer

    def show_toc(self, nodes: list[ChapterNode], *, title: str = "Proposed structure") -> None:
        tree = Tree(f"[bold yellow]{title}[/]")

        def add(branch: Tree, children: list[ChapterNode]) -> None:
            for node in children:
                summary = " ".join(node.summary.split()) or "(no summary)"
                if len(summary) > _SUMMARY_PREVIEW_CHARS:
                    summary = summary[: _SUMMARY_PREVIEW_CHARS - 3] + "..."
                add(branch.add(f"{escape(node.label)} [dim]{escape(summary)}[/]"), node.sub_chapters)

        add(tree, nodes)
        self.console.print(tree)

    def show_summaries(self, nodes: list[ChapterNode]) -> None:
        for node in nodes:
            if node.summary.strip():
                self.console.print(f"\n[cyan]{escape(node.label)}[/]")
                self.console.print(node.summary.strip(), highlight=False)
            self.show_summaries(node.sub_chapters)
