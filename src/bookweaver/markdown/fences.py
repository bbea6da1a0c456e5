"""Code-fence tracking shared by every Markdown transform."""

from __future__ import annotations

import re
from typing import Iterable, Iterator

_FENCE_RE = re.compile(r"^\s{0,3}(?P<marker>`{3,}|~{3,})")


class FenceTracker:
    """Line-by-line state machine for fenced code blocks.

    A fence opened with N backticks (or tildes) is closed only by a line starting with at least
    N of the same character, so nested ``` inside a ~~~ block stay verbatim.
    """

    def __init__(self) -> None:
        self._marker: str | None = None

    @property
    def in_fence(self) -> bool:
        return self._marker is not None

    def feed(self, line: str) -> bool:
        """Advance over one line.

        Returns:
            True when the line must be left untouched: it is a fence delimiter or sits inside a
            fenced block.
        """

        m = _FENCE_RE.match(line)
        if self._marker is None:
            if m:
                self._marker = m.group("marker")
                return True
            return False

        if m:
            marker = m.group("marker")
            if marker[0] == self._marker[0] and len(marker) >= len(self._marker):
                if not line.strip()[len(marker):].strip():
                    self._marker = None
        return True


def is_fence_line(line: str) -> bool:
    return _FENCE_RE.match(line) is not None


def iter_protected(lines: Iterable[str]) -> Iterator[tuple[str, bool]]:
    """Yield `(line, protected)` pairs; protected lines belong to a fenced block."""

    tracker = FenceTracker()
    for line in lines:
        yield line, tracker.feed(line)


def split_lines(text: str) -> list[str]:
    """Split on newlines after normalizing CRLF, keeping a trailing empty element."""

    return text.replace("\r\n", "\n").split("\n")
