"""Purpose gate for advisory EXR reference data.

ECB reference rates are advisory. Only callers declaring a ``reporting`` or
``analytics`` purpose may read mirrored or normalized EXR data; every other
purpose, ``settlement`` and ``authorization`` included, is denied. The gate
is an allow-list: unknown purposes are denied too.

Every read path goes through :func:`verify_exr_access`. Denials raise
:class:`~refdata.shared.exceptions.ExrAccessError` and emit a structured
event; the only non-error empty result is "no record exists" (None).

Settlement and authorization modules call :func:`deny_exr_for_settlement` at
their own boundary so the prohibition is explicit and testable there.
"""

import json
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

from refdata.mirror.log import log_path_for, read_last_line
from refdata.shared.config import Config
from refdata.shared.exceptions import ExrAccessError
from refdata.shared.ingest_logger import IngestLogger

ADVISORY_NOTE = (
    "ECB reference rates are published for information purposes only and must "
    "not be used for transaction pricing or settlement."
)

SERIES_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]{0,127}")

# rebuilt or never exposed in the advisory view
_EXCLUDED_KEYS = frozenset({"observations", "normalized", "rawPayloadBase64"})

_events = IngestLogger("refdata.access")


class ExrPurpose(str, Enum):
    REPORTING = "reporting"
    ANALYTICS = "analytics"
    SETTLEMENT = "settlement"
    AUTHORIZATION = "authorization"
    OTHER = "other"


ALLOWED_PURPOSES: frozenset[str] = frozenset(
    {ExrPurpose.REPORTING.value, ExrPurpose.ANALYTICS.value}
)


def _purpose_value(purpose: Any) -> str | None:
    if isinstance(purpose, ExrPurpose):
        return purpose.value
    return purpose if isinstance(purpose, str) else None


def verify_exr_access(purpose: ExrPurpose | str, caller: str | None = None) -> None:
    """Return silently for allowed purposes, raise ExrAccessError otherwise."""
    value = _purpose_value(purpose)
    if value in ALLOWED_PURPOSES:
        return

    shown = value if value is not None else repr(purpose)
    message = f'EXR access denied for purpose="{shown}"'
    if caller:
        message += f' caller="{caller}"'
    message += f". {ADVISORY_NOTE}"

    _events.error(
        "exr_access_denied",
        purpose=shown,
        caller=caller,
        code="EXR_ACCESS_DENIED",
        error_category="access denied",
        retryable=False,
    )
    raise ExrAccessError(message, code="EXR_ACCESS_DENIED", purpose=shown, caller=caller)


def deny_exr_for_settlement(caller: str | None = None) -> None:
    """Unconditionally refuse EXR access from settlement/authorization paths."""
    _events.error(
        "exr_settlement_access_prohibited",
        caller=caller,
        code="EXR_PROHIBITED",
        error_category="prohibited settlement access",
        retryable=False,
    )
    raise ExrAccessError(
        "Access to ECB EXR data is prohibited in settlement and authorization code paths. "
        "Use approved internal reference data workflows and operator-reviewed parameters.",
        code="EXR_PROHIBITED",
        caller=caller,
    )


def _resolve_series_path(series_id: Any, mirror_dir: Path, caller: str | None) -> Path:
    if not isinstance(series_id, str) or not SERIES_ID_PATTERN.fullmatch(series_id):
        _events.error(
            "exr_invalid_series_id",
            caller=caller,
            code="EXR_INVALID_SERIES_ID",
            error_category="invalid series id",
            retryable=False,
        )
        raise ExrAccessError(
            f"Invalid EXR series id {series_id!r}", code="EXR_INVALID_SERIES_ID", caller=caller
        )

    base = os.path.abspath(mirror_dir)
    target = os.path.abspath(log_path_for(Path(base), series_id))
    if os.path.commonpath([base, target]) != base or os.path.dirname(target) != base:
        _events.error(
            "exr_invalid_series_id",
            caller=caller,
            code="EXR_INVALID_SERIES_ID",
            error_category="path outside mirror directory",
            retryable=False,
        )
        raise ExrAccessError(
            f"Resolved path for series {series_id!r} escapes the mirror directory",
            code="EXR_INVALID_SERIES_ID",
            caller=caller,
        )
    return Path(target)


def _decimal_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return str(value).strip()


def _advisory_view(record: dict[str, Any], series_id: str) -> dict[str, Any]:
    normalized = record.get("normalized")
    source = normalized if isinstance(normalized, dict) else record

    out = {k: v for k, v in source.items() if k not in _EXCLUDED_KEYS}
    out.setdefault("seriesId", record.get("seriesId") or record.get("series_id") or series_id)
    retrieved = record.get("retrievedAtUtc") or record.get("retrieved_at_utc")
    if retrieved is not None:
        out.setdefault("retrievedAtUtc", retrieved)
    raw_hash = record.get("rawPayloadHash")
    if isinstance(raw_hash, dict) and raw_hash.get("hex"):
        out["payloadHash"] = raw_hash["hex"]

    observations = source.get("observations")
    out["observations"] = [
        {
            "period": obs.get("period"),
            "rate_decimal": _decimal_text(obs.get("rate_decimal", obs.get("value"))),
        }
        for obs in (observations if isinstance(observations, list) else [])
        if isinstance(obs, dict)
    ]
    out["advisory"] = True
    out["advisory_note"] = ADVISORY_NOTE
    return out


def get_normalized_data_for_purpose(
    series_id: str,
    mirror_dir: Path,
    purpose: ExrPurpose | str,
    caller: str | None = None,
    max_bytes: int | None = None,
) -> dict[str, Any] | None:
    """Latest normalized record for a series, stamped as advisory.

    Rates are returned as decimal strings (``rate_decimal``), never as numbers.

    Args:
        series_id: Series identifier (``[A-Za-z0-9][A-Za-z0-9._-]*``).
        mirror_dir: Directory holding the per-series logs.
        purpose: Declared purpose of the read.
        caller: Optional caller identity for the audit trail.
        max_bytes: Tail-read window (default: ``Config.EXR_TAIL_READ_BYTES``).

    Returns:
        The advisory view of the last record, or None if the series has none.

    Raises:
        ExrAccessError: Purpose not allowed, or an invalid series id.
        MirrorRecordTooLargeError: The last record exceeds the read window.
        json.JSONDecodeError: The last record is not valid JSON.
    """
    verify_exr_access(purpose, caller)
    path = _resolve_series_path(series_id, mirror_dir, caller)

    if not path.is_file():
        _events.warn(
            "exr_mirror_file_not_found",
            series_id=series_id,
            caller=caller,
            file=path.name,
        )
        return None

    window = max_bytes or Config.EXR_TAIL_READ_BYTES
    try:
        line = read_last_line(path, window)
        if line is None:
            return None
        record = json.loads(line)
    except (ValueError, OSError) as exc:
        _events.error(
            "exr_mirror_read_failed",
            series_id=series_id,
            caller=caller,
            file=path.name,
            error_category=type(exc).__name__,
            retryable=False,
        )
        raise

    if not isinstance(record, dict):
        _events.error(
            "exr_mirror_read_failed",
            series_id=series_id,
            caller=caller,
            file=path.name,
            error_category="record is not a JSON object",
            retryable=False,
        )
        raise ValueError(f"Last record for series {series_id!r} is not a JSON object")

    return _advisory_view(record, series_id)
