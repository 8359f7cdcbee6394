"""Daily manifest generation over the per-series mirror logs.

Seals one UTC day of mirrored records into a canonical, hashed, optionally
signed manifest:

    <manifest_dir>/manifest-<YYYY-MM-DD>.ndjson              accepted entries
    <manifest_dir>/manifest-<YYYY-MM-DD>.diagnostics.jsonl   rejected lines
    <manifest_dir>/manifest-<YYYY-MM-DD>.sig.json            detached signature

Every non-empty input line ends up as exactly one manifest entry or exactly
one diagnostic. Lines are validated in a fixed order and rejected at the first
failure:

    1. JSON object            ERROR  json parse error
    2. retrieval timestamp    WARN   missing retrieved timestamp
    3. timestamp parses       WARN   invalid timestamp
    4. date == manifest date  WARN   record date does not match manifest date
    5. payload hash present   ERROR  missing payload hash
    6. hash is 64 lower hex   ERROR  invalid payload hash format

Only ERROR rejections count towards ``error_threshold``. Above the threshold
the run fails and no manifest is written; the diagnostics file still is.

Manifests are write-once: a second run for a sealed date raises
:class:`~refdata.shared.exceptions.ManifestAlreadyExistsError`.

Example:
    >>> from pathlib import Path
    >>> from refdata.manifest import LocalSigner, generate_daily_manifest
    >>> manifest = generate_daily_manifest(
    ...     Path("data/mirror/ecb"), "2023-01-01", signer=LocalSigner()
    ... )
    >>> manifest.manifest_hash
"""

import json
import os
import re
import stat
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from refdata.manifest.models import (
    DATE_MISMATCH,
    INVALID_JSON,
    INVALID_PAYLOAD_HASH,
    INVALID_TIMESTAMP,
    MISSING_PAYLOAD_HASH,
    MISSING_TIMESTAMP,
    DailyManifest,
    DiagnosticEntry,
    ManifestCounters,
    ManifestEntry,
    RejectionKind,
)
from refdata.manifest.signing import Signer, build_signature_record
from refdata.mirror import fields
from refdata.mirror.log import LOG_SUFFIX, iter_log_files
from refdata.shared.config import Config
from refdata.shared.exceptions import IntegrityThresholdExceededError, ManifestAlreadyExistsError
from refdata.shared.ingest_logger import IngestLogger
from refdata.shared.utils import canonical_json, parse_utc_timestamp, sha256_hex, utc_now_iso

PAYLOAD_HASH_PATTERN = re.compile(r"[0-9a-f]{64}")
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
RAW_DIAGNOSTIC_LIMIT = 512
READ_ONLY = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH


def manifest_filename(date_utc: str) -> str:
    return f"manifest-{date_utc}.ndjson"


def diagnostics_filename(date_utc: str) -> str:
    return f"manifest-{date_utc}.diagnostics.jsonl"


def signature_filename(date_utc: str) -> str:
    return f"manifest-{date_utc}.sig.json"


def serialize_entries(entries: list[ManifestEntry] | tuple[ManifestEntry, ...]) -> bytes:
    """Canonical manifest bytes: sorted-key JSON objects joined by ``\\n``, plus a final ``\\n``.

    A day without entries serializes to a single ``\\n``.
    """
    return ("\n".join(canonical_json(e.to_dict()) for e in entries) + "\n").encode("utf-8")


@dataclass
class _RunState:
    """Mutable state for a single generator run."""

    date: str
    entries: list[ManifestEntry] = field(default_factory=list)
    diagnostics: list[DiagnosticEntry] = field(default_factory=list)
    counters: ManifestCounters = field(default_factory=ManifestCounters)


class ManifestGenerator:
    """Seal one UTC day of mirror logs into an immutable manifest.

    Args:
        mirror_dir: Directory holding the per-series ``*.jsonl`` logs.
        manifest_dir: Output directory (default: ``Config.manifest_dir_for``).
        signer: Optional signing capability.
        error_threshold: Tolerated number of integrity violations
            (default: ``Config.MANIFEST_ERROR_THRESHOLD``).
        log_file: Optional path for file-based logging.
    """

    def __init__(
        self,
        mirror_dir: Path,
        manifest_dir: Path | None = None,
        signer: Signer | None = None,
        error_threshold: int | None = None,
        log_file: Path | None = None,
    ) -> None:
        self.mirror_dir = Path(mirror_dir)
        self.manifest_dir = (
            Path(manifest_dir) if manifest_dir else Config.manifest_dir_for(self.mirror_dir)
        )
        self.signer = signer
        self.error_threshold = (
            Config.MANIFEST_ERROR_THRESHOLD if error_threshold is None else error_threshold
        )
        if self.error_threshold < 0:
            raise ValueError(f"error_threshold must be >= 0, got {self.error_threshold}")
        self.events = IngestLogger(self.__class__.__name__, log_file)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(self, date_utc: str) -> DailyManifest:
        """Build, write and optionally sign the manifest for ``date_utc``.

        Raises:
            ValueError: ``date_utc`` is not a valid YYYY-MM-DD date.
            ManifestAlreadyExistsError: The date has already been sealed.
            IntegrityThresholdExceededError: Too many integrity violations.
        """
        self._validate_date(date_utc)
        self.manifest_dir.mkdir(parents=True, exist_ok=True)

        manifest_path = self.manifest_dir / manifest_filename(date_utc)
        self._ensure_not_sealed(date_utc, manifest_path)

        state = _RunState(date=date_utc)
        for log_file in iter_log_files(self.mirror_dir):
            self._scan_file(log_file, state)

        counters = state.counters
        diagnostics_path = None
        if state.diagnostics:
            diagnostics_path = self._write_diagnostics(date_utc, state.diagnostics)

        self.events.info(
            "manifest_processing_summary",
            date=date_utc,
            entries=len(state.entries),
            diagnostics_count=len(state.diagnostics),
            diagnostics_path=str(diagnostics_path) if diagnostics_path else None,
            error_threshold=self.error_threshold,
            **counters.to_dict(),
        )

        if counters.integrity_errors > self.error_threshold:
            self.events.error(
                "manifest_integrity_threshold_exceeded",
                date=date_utc,
                error_category="integrity threshold exceeded",
                retryable=False,
                integrity_errors=counters.integrity_errors,
                error_threshold=self.error_threshold,
                parse_errors=counters.parse_errors,
                missing_payload_hash=counters.missing_payload_hash,
                invalid_payload_hash=counters.invalid_payload_hash,
            )
            raise IntegrityThresholdExceededError(
                date_utc, counters.integrity_errors, self.error_threshold, counters.to_dict()
            )

        entries = tuple(sorted(state.entries, key=ManifestEntry.sort_key))
        manifest_bytes = serialize_entries(entries)
        manifest_hash = sha256_hex(manifest_bytes)

        # a concurrent run may have sealed the date while we were scanning;
        # _publish_manifest re-checks atomically
        self._ensure_not_sealed(date_utc, manifest_path)
        self._publish_manifest(date_utc, manifest_path, manifest_bytes)
        self.events.info(
            "manifest_written",
            date=date_utc,
            manifest_path=str(manifest_path),
            manifest_hash=manifest_hash,
            entries=len(entries),
        )

        signature_path = None
        if self.signer is not None:
            signature_path = self._sign(date_utc, manifest_path, manifest_bytes, manifest_hash)

        return DailyManifest(
            date=date_utc,
            created_at_utc=utc_now_iso(),
            entries=entries,
            manifest_hash=manifest_hash,
            diagnostics=tuple(state.diagnostics),
            counters=counters,
            manifest_path=manifest_path,
            signature_path=signature_path,
        )

    # ------------------------------------------------------------------
    # Line validation
    # ------------------------------------------------------------------

    def _scan_file(self, path: Path, state: _RunState) -> None:
        fallback_series = path.name[: -len(LOG_SUFFIX)]
        with open(path, "rb") as fh:
            for line_number, raw_line in enumerate(fh, start=1):
                line = raw_line.rstrip(b"\r\n")
                if not line:
                    continue
                state.counters.total_lines_read += 1
                entry = self._validate_line(path.name, line_number, line, fallback_series, state)
                if entry is not None:
                    state.entries.append(entry)
                    state.counters.parsed_ok += 1

    def _validate_line(
        self,
        file_name: str,
        line_number: int,
        line: bytes,
        fallback_series: str,
        state: _RunState,
    ) -> ManifestEntry | None:
        def reject(kind: RejectionKind, error: str | None = None, **context) -> None:
            self._reject(state, kind, file_name, line_number, line, error, **context)

        try:
            record = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            reject(INVALID_JSON, f"{INVALID_JSON.category}: {exc}")
            return None
        if not isinstance(record, dict):
            reject(INVALID_JSON, f"{INVALID_JSON.category}: expected a JSON object")
            return None

        retrieved = fields.retrieved_at(record)
        if retrieved is None:
            reject(MISSING_TIMESTAMP)
            return None

        parsed = parse_utc_timestamp(retrieved) if isinstance(retrieved, str) else None
        if parsed is None:
            reject(INVALID_TIMESTAMP)
            return None

        record_date = parsed.strftime("%Y-%m-%d")
        if record_date != state.date:
            reject(
                DATE_MISMATCH,
                f"record date {record_date} does not match manifest date {state.date}",
                record_date=record_date,
            )
            return None

        payload_hash = fields.payload_hash(record)
        if payload_hash is None:
            reject(MISSING_PAYLOAD_HASH)
            return None
        if not isinstance(payload_hash, str) or not PAYLOAD_HASH_PATTERN.fullmatch(payload_hash):
            reject(INVALID_PAYLOAD_HASH)
            return None

        return ManifestEntry(
            series_id=fields.series_id(record, fallback_series),
            payload_hash=payload_hash,
            retrieved_at_utc=retrieved,
        )

    def _reject(
        self,
        state: _RunState,
        kind: RejectionKind,
        file_name: str,
        line_number: int,
        line: bytes,
        error: str | None = None,
        **context,
    ) -> None:
        state.counters.increment(kind.counter)
        state.diagnostics.append(
            DiagnosticEntry(
                file=file_name,
                line_number=line_number,
                error=error or kind.category,
                raw=line.decode("utf-8", errors="replace")[:RAW_DIAGNOSTIC_LIMIT],
            )
        )
        self.events.log(
            kind.severity.value,
            kind.event,
            date=state.date,
            file=file_name,
            line_number=line_number,
            error_category=kind.category,
            severity=kind.severity.value,
            integrity_violation=kind.counts_as_integrity_error,
            retryable=False,
            **context,
        )

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_date(date_utc: str) -> None:
        if not isinstance(date_utc, str) or not DATE_PATTERN.fullmatch(date_utc):
            raise ValueError(f"date_utc must be YYYY-MM-DD, got {date_utc!r}")
        datetime.strptime(date_utc, "%Y-%m-%d")

    def _ensure_not_sealed(self, date_utc: str, manifest_path: Path) -> None:
        if manifest_path.exists():
            self.events.error(
                "manifest_already_exists",
                date=date_utc,
                manifest_path=str(manifest_path),
                error_category="manifest already exists",
                retryable=False,
            )
            raise ManifestAlreadyExistsError(date_utc, manifest_path)

    def _write_diagnostics(self, date_utc: str, diagnostics: list[DiagnosticEntry]) -> Path:
        path = self.manifest_dir / diagnostics_filename(date_utc)
        payload = "".join(
            json.dumps(d.to_dict(), ensure_ascii=False) + "\n" for d in diagnostics
        ).encode("utf-8")
        self._write_sealed(path, payload)
        self.events.info(
            "diagnostics_written",
            date=date_utc,
            diagnostics_path=str(path),
            diagnostics_count=len(diagnostics),
        )
        return path

    def _sign(
        self, date_utc: str, manifest_path: Path, manifest_bytes: bytes, manifest_hash: str
    ) -> Path:
        result = self.signer.sign(manifest_bytes)
        record = build_signature_record(
            manifest_path.name, manifest_hash, result, utc_now_iso()
        )
        path = self.manifest_dir / signature_filename(date_utc)
        self._write_sealed(path, (canonical_json(record) + "\n").encode("utf-8"))
        self.events.info(
            "manifest_signed",
            date=date_utc,
            signature_path=str(path),
            algorithm=result.algorithm,
            key_id=result.key_id,
        )
        return path

    def _write_temp(self, path: Path, data: bytes) -> Path:
        """Write ``data`` to a private temp file next to ``path``, fsynced and read-only."""
        fd, tmp_name = tempfile.mkstemp(
            dir=self.manifest_dir, prefix=f"{path.name}.", suffix=".tmp"
        )
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        try:
            os.chmod(tmp_path, READ_ONLY)
        except OSError as exc:
            self.events.warn(
                "manifest_permission_downgrade_failed",
                path=str(path),
                error_category="chmod failed",
                retryable=False,
                error=str(exc),
            )
        return tmp_path

    def _publish_manifest(self, date_utc: str, manifest_path: Path, data: bytes) -> None:
        """Hard-link the temp file into place; fails if the date was sealed meanwhile."""
        tmp_path = self._write_temp(manifest_path, data)
        try:
            os.link(tmp_path, manifest_path)
        except FileExistsError:
            self.events.error(
                "manifest_already_exists",
                date=date_utc,
                manifest_path=str(manifest_path),
                error_category="manifest already exists",
                retryable=False,
            )
            raise ManifestAlreadyExistsError(date_utc, manifest_path) from None
        finally:
            tmp_path.unlink(missing_ok=True)

    def _write_sealed(self, path: Path, data: bytes) -> None:
        """Companion files: temp file + atomic rename, replacing any earlier run's copy."""
        tmp_path = self._write_temp(path, data)
        try:
            os.replace(tmp_path, path)
        finally:
            tmp_path.unlink(missing_ok=True)


def generate_daily_manifest(
    mirror_dir: Path,
    date_utc: str,
    manifest_dir: Path | None = None,
    signer: Signer | None = None,
    error_threshold: int = 10,
) -> DailyManifest:
    """Functional entry point; see :class:`ManifestGenerator`."""
    generator = ManifestGenerator(
        mirror_dir=mirror_dir,
        manifest_dir=manifest_dir,
        signer=signer,
        error_threshold=error_threshold,
    )
    return generator.generate(date_utc)
