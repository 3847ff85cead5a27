"""Logging configuration.

The SDK uses standard library `logging` with a small convenience wrapper:
- `configure_logging()` sets up root logging once.
- `quiet_output()` silences stdout, stderr and log records for a block.
"""

from __future__ import annotations

import io
import json
import logging
from contextlib import contextmanager, redirect_stderr, redirect_stdout
from dataclasses import asdict, is_dataclass
from typing import Any, Iterator

_RESERVED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


class JsonLogFormatter(logging.Formatter):
    """Minimal JSON formatter for machine-readable logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Include `extra=` fields if present
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRS:
                continue
            if is_dataclass(value) and not isinstance(value, type):
                payload[key] = asdict(value)
            else:
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(*, level: str = "WARNING", json_logs: bool = False) -> None:
    """Configure root logging once.

    Args:
        level: Root log level (e.g. 'INFO', 'DEBUG').
        json_logs: If True, emit JSON logs; otherwise emit plain text.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if root.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter() if json_logs else logging.Formatter("%(message)s"))
    root.addHandler(handler)


@contextmanager
def quiet_output(enabled: bool = True) -> Iterator[io.StringIO]:
    """Swallow stdout, stderr and log records for the duration of the block.

    The previous logging disable level and the real streams are restored on
    exit, including when the block raises.
    """
    sink = io.StringIO()
    if not enabled:
        yield sink
        return

    previous_disable = logging.root.manager.disable
    logging.disable(logging.CRITICAL)
    try:
        with redirect_stdout(sink), redirect_stderr(sink):
            yield sink
    finally:
        logging.disable(previous_disable)
