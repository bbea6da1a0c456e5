"""Event model for run replay.

A generation run produces a sequence of events. Events are recorded to JSONL so the run can be
inspected afterwards (which sections were retried, when each save happened, why a run failed).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """High-level event categories."""

    SYSTEM = "system"
    LLM = "llm"
    ERROR = "error"


class ContentType(str, Enum):
    """Semantic types within event streams."""

    MESSAGE = "message"

    # Structure
    TOC_READY = "toc_ready"
    INTRODUCTION_DONE = "introduction_done"
    SUMMARIES_DONE = "summaries_done"
    MANUAL_OVERVIEW_DONE = "manual_overview_done"

    # Content
    NODE_STARTED = "node_started"
    NODE_DONE = "node_done"
    OVERVIEW_RETRY = "overview_retry"
    SAVED = "saved"

    # Diagrams
    DIAGRAM_PLAN_APPLIED = "diagram_plan_applied"
    DIAGRAM_SUGGESTIONS_SAVED = "diagram_suggestions_saved"

    RUN_DONE = "run_done"


class RunEvent(BaseModel):
    """A single event in a run."""

    run_id: str
    seq: int = Field(ge=1)
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    event_type: EventType
    content_type: ContentType

    data: str | dict | list | None = None
    metadata: dict[str, str | int | float | bool | None] = Field(default_factory=dict)
