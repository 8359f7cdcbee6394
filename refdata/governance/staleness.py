"""Freshness evaluation for mirrored reference data.

Each series has a maximum allowed age. A series older than its window is
STALE; a series with no (or an unreadable) retrieval record is UNAVAILABLE.
Reporting may carry on with STALE data as long as the flag is surfaced, but
automated policy changes depending on a non-FRESH series are blocked.

:func:`allow_automated_policy_change` is the only place that decision is
made. Callers wiring automation to reference-data freshness go through it
rather than comparing ages themselves.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import pandas as pd

from refdata.mirror.log import latest_retrievals
from refdata.shared.config import Config
from refdata.shared.ingest_logger import IngestLogger
from refdata.shared.utils import parse_utc_timestamp, utc_now

#: Key in a ``configs`` mapping whose window applies to unlisted series.
DEFAULT_CONFIG_KEY = "__default"

_events = IngestLogger("refdata.staleness")


class ReferenceDataState(str, Enum):
    FRESH = "FRESH"
    STALE = "STALE"
    UNAVAILABLE = "UNAVAILABLE"


@dataclass(frozen=True)
class StalenessConfig:
    """Per-series freshness window."""

    max_age_seconds: int


@dataclass(frozen=True)
class StalenessEvaluation:
    series_id: str
    state: ReferenceDataState
    age_seconds: int | None = None
    max_allowed_seconds: int | None = None
    note: str = ""

    @property
    def is_fresh(self) -> bool:
        return self.state is ReferenceDataState.FRESH

    def to_dict(self) -> dict[str, Any]:
        return {
            "seriesId": self.series_id,
            "state": self.state.value,
            "ageSeconds": self.age_seconds,
            "maxAllowedSeconds": self.max_allowed_seconds,
            "note": self.note,
        }


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    blocking: tuple[StalenessEvaluation, ...] = ()


def default_config() -> StalenessConfig:
    return StalenessConfig(max_age_seconds=Config.STALENESS_MAX_AGE_SECONDS)


def _resolve_now(now: datetime | str | None) -> datetime:
    if now is None:
        return utc_now()
    resolved = parse_utc_timestamp(now)
    if resolved is None:
        raise ValueError(f"Invalid 'now' timestamp: {now!r}")
    return resolved


def evaluate_series_staleness(
    series_id: str,
    retrieved_at_utc: str | datetime | None,
    config: StalenessConfig | None = None,
    now: datetime | str | None = None,
) -> StalenessEvaluation:
    """Classify one series as FRESH, STALE or UNAVAILABLE.

    Never raises for malformed ``retrieved_at_utc``: anything unparsable is
    reported as UNAVAILABLE.

    Args:
        series_id: Logical series id.
        retrieved_at_utc: Last retrieval time (ISO 8601 string or datetime).
        config: Freshness window; defaults to ``Config.STALENESS_MAX_AGE_SECONDS``.
        now: Evaluation time; defaults to the current UTC time.
    """
    if retrieved_at_utc is None or retrieved_at_utc == "":
        return StalenessEvaluation(
            series_id, ReferenceDataState.UNAVAILABLE, note="No retrieval record"
        )

    config = config or default_config()
    retrieved = parse_utc_timestamp(retrieved_at_utc)
    if retrieved is None:
        return StalenessEvaluation(
            series_id, ReferenceDataState.UNAVAILABLE, note="Invalid retrievedAtUtc"
        )

    age_seconds = math.floor((_resolve_now(now) - retrieved).total_seconds())
    max_age = config.max_age_seconds
    if age_seconds <= max_age:
        return StalenessEvaluation(
            series_id,
            ReferenceDataState.FRESH,
            age_seconds,
            max_age,
            f"Age {age_seconds}s within allowed {max_age}s",
        )
    return StalenessEvaluation(
        series_id,
        ReferenceDataState.STALE,
        age_seconds,
        max_age,
        f"Age {age_seconds}s exceeds allowed {max_age}s",
    )


def allow_automated_policy_change(
    evaluations: Iterable[StalenessEvaluation],
    required_series: Iterable[str] | None = None,
) -> PolicyDecision:
    """Decide whether automation depending on these series may proceed.

    With ``required_series`` only those series are considered; a required
    series without an evaluation counts as UNAVAILABLE and blocks.
    """
    evaluations = list(evaluations)
    if required_series is None:
        considered = evaluations
    else:
        by_id = {e.series_id: e for e in evaluations}
        considered = [
            by_id.get(series_id)
            or StalenessEvaluation(
                series_id, ReferenceDataState.UNAVAILABLE, note="No evaluation for series"
            )
            for series_id in required_series
        ]

    blocking = tuple(e for e in considered if not e.is_fresh)
    if blocking:
        _events.warn(
            "automated_policy_change_blocked",
            error_category="stale reference data",
            retryable=True,
            blocking=[f"{e.series_id}:{e.state.value}" for e in blocking],
        )
    return PolicyDecision(allowed=not blocking, blocking=blocking)


def evaluate_all_from_mirror(
    records: Mapping[str, str | None],
    configs: Mapping[str, StalenessConfig],
    now: datetime | str | None = None,
) -> list[StalenessEvaluation]:
    """Evaluate every mirrored series, plus every configured series with no record.

    Args:
        records: series id -> last ``retrievedAtUtc`` (or None).
        configs: series id -> window; ``DEFAULT_CONFIG_KEY`` applies to the rest.
        now: Evaluation time shared by all series.
    """
    now_dt = _resolve_now(now)
    fallback = configs.get(DEFAULT_CONFIG_KEY)
    evaluations = [
        evaluate_series_staleness(series_id, retrieved, configs.get(series_id, fallback), now_dt)
        for series_id, retrieved in records.items()
    ]
    for series_id, config in configs.items():
        if series_id == DEFAULT_CONFIG_KEY or series_id in records:
            continue
        evaluations.append(evaluate_series_staleness(series_id, None, config, now_dt))
    return evaluations


def evaluate_mirror_dir(
    mirror_dir: Path,
    configs: Mapping[str, StalenessConfig],
    now: datetime | str | None = None,
    max_bytes: int | None = None,
) -> list[StalenessEvaluation]:
    """Read the latest retrieval of every series log and evaluate it."""
    records = latest_retrievals(mirror_dir, max_bytes or Config.EXR_TAIL_READ_BYTES)
    return evaluate_all_from_mirror(records, configs, now)


def evaluations_to_frame(evaluations: Iterable[StalenessEvaluation]) -> pd.DataFrame:
    """Tabular freshness report, one row per series, sorted by series id."""
    rows = [
        {
            "series_id": e.series_id,
            "state": e.state.value,
            "age_seconds": e.age_seconds,
            "max_allowed_seconds": e.max_allowed_seconds,
            "note": e.note,
        }
        for e in evaluations
    ]
    columns = ["series_id", "state", "age_seconds", "max_allowed_seconds", "note"]
    df = pd.DataFrame(rows, columns=columns)
    if not df.empty:
        df = df.sort_values("series_id", kind="stable").reset_index(drop=True)
    return df
