"""Shared utilities and configuration."""

from refdata.shared.config import Config
from refdata.shared.ingest_logger import IngestLogger
from refdata.shared.utils import (
    canonical_json,
    format_utc,
    parse_utc_timestamp,
    setup_logger,
    sha256_hex,
    to_utc,
    utc_now,
    utc_now_iso,
)

__all__ = [
    "Config",
    "IngestLogger",
    "canonical_json",
    "format_utc",
    "parse_utc_timestamp",
    "setup_logger",
    "sha256_hex",
    "to_utc",
    "utc_now",
    "utc_now_iso",
]
