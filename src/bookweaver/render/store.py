"""Manuscript persistence."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from bookweaver.logging import get_logger

logger = get_logger(__name__)


class Destination(str, Enum):
    """Artifacts written for a run; values are the file names inside the run directory."""

    MANUSCRIPT = "manuscript.md"
    CHAPTERS = "manuscript_chapters.md"
    DIAGRAMS = "diagram_suggestions.md"


@dataclass
class ManuscriptStore:
    """Writes rendered artifacts under one directory.

    A failed write is logged and reported as None: losing one preview save must not abort a
    run that has already paid for the generated content.
    """

    root: Path

    def path_for(self, destination: Destination) -> Path:
        return self.root / destination.value

    def write(self, destination: Destination, text: str) -> Path | None:
        path = self.path_for(destination)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        except OSError:
            logger.warning("Could not write %s", path, exc_info=True)
            return None
        logger.debug("Artifact written", extra={"path": str(path), "chars": len(text)})
        return path

    def read(self, destination: Destination) -> str | None:
        path = self.path_for(destination)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")
