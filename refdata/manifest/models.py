"""Data structures produced by the manifest generator."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class Severity(str, Enum):
    """WARN rejections are data-quality noise; ERROR rejections are integrity violations."""

    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True)
class RejectionKind:
    """One reason a mirror log line can be rejected."""

    event: str
    category: str
    severity: Severity
    counter: str

    @property
    def counts_as_integrity_error(self) -> bool:
        return self.severity is Severity.ERROR


INVALID_JSON = RejectionKind(
    "manifest_record_invalid_json", "json parse error", Severity.ERROR, "parse_errors"
)
MISSING_TIMESTAMP = RejectionKind(
    "manifest_record_missing_retrieved_timestamp",
    "missing retrieved timestamp",
    Severity.WARN,
    "missing_retrieved_timestamp",
)
INVALID_TIMESTAMP = RejectionKind(
    "manifest_record_invalid_timestamp", "invalid timestamp", Severity.WARN, "invalid_timestamp"
)
DATE_MISMATCH = RejectionKind(
    "manifest_record_rejected",
    "record date does not match manifest date",
    Severity.WARN,
    "date_mismatch",
)
MISSING_PAYLOAD_HASH = RejectionKind(
    "manifest_record_missing_payload_hash",
    "missing payload hash",
    Severity.ERROR,
    "missing_payload_hash",
)
INVALID_PAYLOAD_HASH = RejectionKind(
    "manifest_record_invalid_payload_hash",
    "invalid payload hash format",
    Severity.ERROR,
    "invalid_payload_hash",
)


@dataclass(frozen=True)
class ManifestEntry:
    """Audit projection of one accepted mirror record."""

    series_id: str
    payload_hash: str
    retrieved_at_utc: str

    def sort_key(self) -> tuple[bytes, bytes, bytes]:
        # byte order, so the sort is identical on every platform and locale
        return (
            self.series_id.encode("utf-8"),
            self.retrieved_at_utc.encode("utf-8"),
            self.payload_hash.encode("utf-8"),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "payload_hash": self.payload_hash,
            "retrieved_at_utc": self.retrieved_at_utc,
            "series_id": self.series_id,
        }


@dataclass(frozen=True)
class DiagnosticEntry:
    """A rejected input line. ``raw`` is kept for the diagnostics file only."""

    file: str
    line_number: int
    error: str
    raw: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "file": self.file,
            "lineNumber": self.line_number,
            "error": self.error,
        }
        if self.raw is not None:
            out["raw"] = self.raw
        return out


@dataclass
class ManifestCounters:
    """Per-run counters. Owned by one generator run, never shared."""

    total_lines_read: int = 0
    parsed_ok: int = 0
    parse_errors: int = 0
    missing_retrieved_timestamp: int = 0
    invalid_timestamp: int = 0
    date_mismatch: int = 0
    missing_payload_hash: int = 0
    invalid_payload_hash: int = 0

    @property
    def integrity_errors(self) -> int:
        return self.parse_errors + self.missing_payload_hash + self.invalid_payload_hash

    def increment(self, name: str) -> None:
        setattr(self, name, getattr(self, name) + 1)

    def to_dict(self) -> dict[str, int]:
        out = asdict(self)
        out["integrity_errors"] = self.integrity_errors
        return out


@dataclass(frozen=True)
class DailyManifest:
    """Sealed attestation of the records accepted for one UTC date."""

    date: str
    created_at_utc: str
    entries: tuple[ManifestEntry, ...]
    manifest_hash: str
    diagnostics: tuple[DiagnosticEntry, ...] = ()
    counters: ManifestCounters = field(default_factory=ManifestCounters)
    manifest_path: Path | None = None
    signature_path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "date": self.date,
            "created_at_utc": self.created_at_utc,
            "entries": [e.to_dict() for e in self.entries],
            "manifest_hash": self.manifest_hash,
        }
        if self.diagnostics:
            out["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        return out
