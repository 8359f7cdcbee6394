"""Structured single-line JSON events for the log/alerting pipeline.

Every event is one JSON object with sorted keys::

    {"error_category": "json parse error", "event": "manifest_record_invalid_json",
     "file": "EXR.jsonl", "level": "error", "line_number": 2, "retryable": false,
     "timestamp": "2023-01-01T00:00:00.000Z"}

Events are routed through a regular :func:`setup_logger` logger so they share
the console/file handlers of the rest of the application. Callers must never
pass raw payload bytes or raw input lines as context.
"""

import json
import logging
from pathlib import Path
from typing import Any

from refdata.shared.utils import setup_logger, utc_now_iso

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class IngestLogger:
    """Emit stable, machine-readable events with a fixed envelope."""

    def __init__(self, name: str, log_file: Path | None = None) -> None:
        self.logger = setup_logger(name, log_file)

    def log(self, level: str, event: str, **context: Any) -> dict[str, Any]:
        """Emit one event and return the emitted payload."""
        payload: dict[str, Any] = {"timestamp": utc_now_iso(), "level": level, "event": event}
        payload.update({k: v for k, v in context.items() if v is not None})
        self.logger.log(
            _LEVELS.get(level, logging.INFO),
            json.dumps(payload, sort_keys=True, default=str),
        )
        return payload

    def error(self, event: str, **context: Any) -> dict[str, Any]:
        return self.log("error", event, **context)

    def warn(self, event: str, **context: Any) -> dict[str, Any]:
        return self.log("warn", event, **context)

    def info(self, event: str, **context: Any) -> dict[str, Any]:
        return self.log("info", event, **context)
