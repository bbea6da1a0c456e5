"""Exception hierarchy for BookWeaver."""

from __future__ import annotations


class BookWeaverError(RuntimeError):
    pass


class NoStructureFoundError(BookWeaverError):
    """No outline strategy produced a top-level node. Callers fall back to another source."""


class StructureProposalError(BookWeaverError):
    """A structure proposal returned by the content provider is not a usable JSON tree."""


class StructureUnavailableError(BookWeaverError):
    """No table of contents could be established by any means."""


class ContentProviderError(BookWeaverError):
    """A content provider call failed (transport error, timeout, or API error)."""


class EmptySectionError(BookWeaverError):
    """A leaf section came back empty; the run cannot produce a complete manuscript."""

    def __init__(self, number: str, title: str) -> None:
        super().__init__(f"content provider returned empty content for section {number} {title}")
        self.number = number
        self.title = title
