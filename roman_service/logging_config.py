"""Structured JSON logging for Cloud Run compatibility.

Configures python-json-logger for GCP Cloud Logging severity mapping.
Every record carries the id of the pipeline run that emitted it, so the
lines of one run can be grouped even when several documents are processed
by the same process.
"""

from __future__ import annotations

import contextvars
import logging
import os
import sys
import uuid

from pythonjsonlogger.json import JsonFormatter

# GCP severity mapping: Python log levels -> Cloud Logging severity strings
_GCP_SEVERITY = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}

_NO_RUN = "-"

_current_run_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    "roman_run_id", default=_NO_RUN
)


def generate_run_id() -> str:
    """Generate a short unique id for one pipeline run."""
    return uuid.uuid4().hex[:16]


def bind_run_id(run_id: str) -> contextvars.Token[str]:
    """Tag log records from the current context (and threads it spawns via
    ``asyncio.to_thread``) with ``run_id``. Undo with ``unbind_run_id``."""
    return _current_run_id.set(run_id)


def unbind_run_id(token: contextvars.Token[str]) -> None:
    _current_run_id.reset(token)


def current_run_id() -> str:
    return _current_run_id.get()


class RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _current_run_id.get()
        return True


class GCPJsonFormatter(JsonFormatter):
    """JSON formatter that maps Python log levels to GCP severity."""

    def add_fields(
        self,
        log_record: dict[str, object],
        record: logging.LogRecord,
        message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["severity"] = _GCP_SEVERITY.get(record.levelname, record.levelname)
        log_record.pop("levelname", None)
        run_id = getattr(record, "run_id", _NO_RUN)
        if run_id != _NO_RUN:
            log_record["logging.googleapis.com/labels"] = {"run_id": run_id}


def setup_logging(*, level: str | None = None, json_output: bool | None = None) -> None:
    """Configure logging on stderr; stdout is left to streamed output.

    JSON when on Cloud Run (or ``ROMAN_LOG_JSON`` is set), plain text locally.
    ``level`` falls back to ``ROMAN_LOG_LEVEL``, then INFO.
    """
    if json_output is None:
        json_output = bool(os.getenv("K_SERVICE")) or os.getenv("ROMAN_LOG_JSON", "").lower() in (
            "1",
            "true",
            "yes",
        )
    level = (level or os.getenv("ROMAN_LOG_LEVEL") or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))

    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(RunIdFilter())
    if json_output:
        handler.setFormatter(GCPJsonFormatter(
            fmt="%(message)s %(name)s %(funcName)s %(lineno)d %(run_id)s",
            rename_fields={"name": "logger"},
        ))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s [%(run_id)s] %(name)s:%(lineno)d  %(message)s",
            datefmt="%H:%M:%S",
        ))

    root.addHandler(handler)
