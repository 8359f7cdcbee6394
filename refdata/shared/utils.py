"""Shared utility functions for the reference-data pipeline."""

import hashlib
import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
import pytz


def setup_logger(
    name: str, log_file: Path | None = None, level: int | str = logging.INFO
) -> logging.Logger:
    """Set up logger with console and file handlers.

    Handlers are attached once per logger name; later calls only adjust the
    level and add a file handler for a log file not seen before.

    Args:
        name: Logger name
        log_file: Optional path to log file
        level: Logging level (int constant or string name like 'DEBUG', 'INFO')

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Convert string level to int if needed
    if isinstance(level, str):
        numeric_level = getattr(logging, level.upper(), logging.INFO)
        logger.setLevel(numeric_level)
    else:
        logger.setLevel(level)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Console handler
    has_console = any(type(h) is logging.StreamHandler for h in logger.handlers)
    if not has_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # File handler
    if log_file:
        target = str(Path(log_file).resolve())
        known = {
            h.baseFilename for h in logger.handlers if isinstance(h, logging.FileHandler)
        }
        if target not in known:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def to_utc(dt: datetime, from_tz: str = "UTC") -> datetime:
    """Convert datetime to UTC."""
    if dt.tzinfo is None:
        dt = pytz.timezone(from_tz).localize(dt)
    return dt.astimezone(pytz.UTC)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def format_utc(dt: datetime) -> str:
    """ISO 8601 with millisecond precision and a ``Z`` suffix."""
    return to_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return format_utc(utc_now())


ISO_TIMESTAMP_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d{1,9})?)?)?"
    r"(?:Z|[+-]\d{2}:?\d{2})?"
)


def parse_utc_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Naive timestamps are read as UTC. Returns ``None`` for anything that is
    not a non-empty ISO 8601 string or does not parse; pandas keywords such
    as ``"now"`` or ``"today"`` are rejected.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not ISO_TIMESTAMP_PATTERN.fullmatch(text):
        return None
    try:
        ts = pd.to_datetime(text, utc=True, format="ISO8601")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def canonical_json(obj: Any) -> str:
    """Deterministic JSON: keys sorted recursively, no whitespace, no NaN."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    )


def sha256_hex(data: bytes | str) -> str:
    """Lowercase SHA-256 hex digest; strings are hashed as UTF-8."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()
