"""Recording utilities for run events."""

from __future__ import annotations

from bookweaver.recording.file_recorder import EventEmitter, FileEventRecorder, iter_events

__all__ = ["EventEmitter", "FileEventRecorder", "iter_events"]
