"""Per-series append-only mirror logs.

One file per series, ``<sanitized series id>.jsonl``, one serialized
:class:`~refdata.mirror.record.MirroredRecord` per line. Lines are only ever
appended; retention is handled outside this package.
"""

import json
import re
from pathlib import Path

from refdata.mirror import fields
from refdata.mirror.record import MirroredRecord
from refdata.shared.exceptions import MirrorRecordTooLargeError
from refdata.shared.ingest_logger import IngestLogger

LOG_SUFFIX = ".jsonl"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")

_events = IngestLogger("refdata.mirror")


def sanitize_series_id(series_id: str) -> str:
    """Map a series id onto the safe file-name charset ``[A-Za-z0-9_-]``."""
    return _UNSAFE_CHARS.sub("_", series_id)


def log_path_for(mirror_dir: Path, series_id: str) -> Path:
    return Path(mirror_dir) / f"{sanitize_series_id(series_id)}{LOG_SUFFIX}"


def iter_log_files(mirror_dir: Path) -> list[Path]:
    """All per-series log files in ``mirror_dir``, sorted by name."""
    return sorted(
        p for p in Path(mirror_dir).iterdir() if p.is_file() and p.name.endswith(LOG_SUFFIX)
    )


def append_record(mirror_dir: Path, record: MirroredRecord) -> Path:
    """Append one record to its series log, creating the directory if needed."""
    mirror_dir = Path(mirror_dir)
    mirror_dir.mkdir(parents=True, exist_ok=True)
    path = log_path_for(mirror_dir, record.series_id)
    line = json.dumps(record.to_serializable(), separators=(",", ":"), ensure_ascii=False)
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(line + "\n")
    _events.info(
        "mirror_record_appended",
        series_id=record.series_id,
        file=path.name,
        payload_hash=record.raw_payload_hash.hex,
        retrieved_at_utc=record.retrieved_at_utc,
    )
    return path


def read_last_line(path: Path, max_bytes: int) -> str | None:
    """Return the last non-empty line of ``path`` from a trailing window of ``max_bytes``.

    Only a fixed-size trailing window is read, whatever the file size. One
    extra byte before the window is read so a record that exactly fills the
    window can be told apart from one that overflows it.

    Returns:
        The decoded line, or None if the file holds no records.

    Raises:
        MirrorRecordTooLargeError: The last line does not fit in the window.
    """
    if max_bytes <= 0:
        raise ValueError("max_bytes must be positive")

    size = Path(path).stat().st_size
    if size == 0:
        return None

    start = max(0, size - max_bytes - 1)
    with open(path, "rb") as fh:
        fh.seek(start)
        window = fh.read(max_bytes + 1)

    window = window.rstrip(b"\r\n\t ")
    if not window:
        if start > 0:
            raise MirrorRecordTooLargeError(path, max_bytes)
        return None

    newline = window.rfind(b"\n")
    if newline == -1:
        if start > 0:
            raise MirrorRecordTooLargeError(path, max_bytes)
        line = window
    else:
        line = window[newline + 1 :]

    return line.decode("utf-8").strip()


def latest_retrievals(mirror_dir: Path, max_bytes: int) -> dict[str, str | None]:
    """Last retrieval timestamp per series, read from the tail of each log.

    Logs whose last line is unreadable map to None so that freshness
    evaluation reports them as unavailable.
    """
    out: dict[str, str | None] = {}
    mirror_dir = Path(mirror_dir)
    if not mirror_dir.is_dir():
        return out

    for path in iter_log_files(mirror_dir):
        stem = path.name[: -len(LOG_SUFFIX)]
        try:
            line = read_last_line(path, max_bytes)
            record = json.loads(line) if line else None
        except (MirrorRecordTooLargeError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            _events.warn(
                "mirror_tail_unreadable",
                file=path.name,
                error_category=type(exc).__name__,
                retryable=False,
            )
            out[stem] = None
            continue

        if not isinstance(record, dict):
            out[stem] = None
            continue
        timestamp = fields.retrieved_at(record)
        out[fields.series_id(record, stem)] = timestamp if isinstance(timestamp, str) else None
    return out
