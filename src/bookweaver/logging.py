"""Logging utilities.

Records carry the run id and the current step (a pass name such as `summaries:2`, or the
section number being generated). Fields passed through `extra={...}` are appended to the line
as `key=value` pairs, both on the console and in the per-run log file.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from pathlib import Path
from typing import Any, Iterator

from rich.logging import RichHandler

_run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("bookweaver_run_id", default="-")
_step_var: contextvars.ContextVar[str] = contextvars.ContextVar("bookweaver_step", default="-")

_CONSOLE_FORMAT = "[%(step)s] %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s run=%(run_id)s step=%(step)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord has; anything else on a record came from `extra=`.
_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "run_id", "step"}


class _ContextFilter(logging.Filter):
    """Inject run context into log records."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = _run_id_var.get()  # type: ignore[attr-defined]
        record.step = _step_var.get()  # type: ignore[attr-defined]
        return True


class _ExtraFormatter(logging.Formatter):
    """Append structured `extra` fields to the formatted message."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        text = super().format(record)
        fields = {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}
        if not fields:
            return text
        head, sep, tail = text.partition("\n")
        pairs = " ".join(f"{k}={v!r}" if isinstance(v, str) and " " in v else f"{k}={v}" for k, v in fields.items())
        return f"{head} | {pairs}{sep}{tail}"


@contextlib.contextmanager
def run_context(*, run_id: str, step: str | None = None) -> Iterator[None]:
    """Temporarily bind run context for structured logging.

    Args:
        run_id: Run identifier.
        step: Optional step identifier.
    """

    token_run = _run_id_var.set(run_id)
    token_step = _step_var.set(step or _step_var.get())
    try:
        yield
    finally:
        _run_id_var.reset(token_run)
        _step_var.reset(token_step)


def set_step(step: str) -> None:
    """Update the current step; the run id stays bound."""

    _step_var.set(step)


def configure_logging(level: str = "INFO") -> None:
    """Install the rich console handler on the root logger.

    Safe to call more than once: an existing RichHandler is reconfigured, not duplicated.
    """

    root = logging.getLogger()
    root.setLevel(level)
    handler = next((h for h in root.handlers if isinstance(h, RichHandler)), None)
    if handler is None:
        handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True, show_path=False)
        root.addHandler(handler)
    if not any(isinstance(f, _ContextFilter) for f in handler.filters):
        handler.addFilter(_ContextFilter())
    handler.setFormatter(_ExtraFormatter(fmt=_CONSOLE_FORMAT))

    # The SDK's HTTP client logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def attach_file_log(path: Path) -> logging.Handler:
    """Mirror all records into a plain-text file for the run.

    Returns:
        The installed handler, so the caller can detach it when the run ends.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.addFilter(_ContextFilter())
    handler.setFormatter(_ExtraFormatter(fmt=_FILE_FORMAT, datefmt=_DATEFMT))
    logging.getLogger().addHandler(handler)
    return handler


def detach_file_log(handler: logging.Handler) -> None:
    logging.getLogger().removeHandler(handler)
    handler.close()


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log the active exception with traceback, carrying `context` as structured fields."""

    logger.exception(msg, extra=context)
