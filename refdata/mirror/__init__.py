"""Tamper-evident mirror of externally sourced reference data."""

from refdata.mirror.log import (
    append_record,
    iter_log_files,
    latest_retrievals,
    log_path_for,
    read_last_line,
    sanitize_series_id,
)
from refdata.mirror.record import MirroredRecord, PayloadHash, Provenance

__all__ = [
    "MirroredRecord",
    "PayloadHash",
    "Provenance",
    "append_record",
    "iter_log_files",
    "latest_retrievals",
    "log_path_for",
    "read_last_line",
    "sanitize_series_id",
]
