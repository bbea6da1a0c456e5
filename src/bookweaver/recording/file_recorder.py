"""File-based event recorder.

Records events to `events.jsonl` next to the run's manuscript.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from bookweaver.events import ContentType, EventType, RunEvent


@dataclass
class FileEventRecorder:
    """Append-only JSONL recorder."""

    path: Path

    def __post_init__(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, event: RunEvent) -> None:
        """Append an event."""

        line = json.dumps(event.model_dump(mode="json"), ensure_ascii=False)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


@dataclass
class EventEmitter:
    """Numbers events for one run and hands them to an optional recorder."""

    run_id: str
    recorder: FileEventRecorder | None = None
    events: list[RunEvent] = field(default_factory=list)

    def emit(
        self,
        event_type: EventType,
        content_type: ContentType,
        data: str | dict | list | None = None,
        *,
        metadata: dict[str, str | int | float | bool | None] | None = None,
    ) -> RunEvent:
        ev = RunEvent(
            run_id=self.run_id,
            seq=len(self.events) + 1,
            event_type=event_type,
            content_type=content_type,
            data=data,
            metadata=dict(metadata or {}),
        )
        self.events.append(ev)
        if self.recorder is not None:
            self.recorder.append(ev)
        return ev


def iter_events(path: Path) -> list[RunEvent]:
    """Load all events from a JSONL file."""

    events: list[RunEvent] = []
    if not path.exists():
        return events
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        events.append(RunEvent.model_validate_json(line))
    return events
