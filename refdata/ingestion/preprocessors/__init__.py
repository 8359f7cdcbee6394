"""Preprocessors: raw source payloads to normalized projections."""

from refdata.ingestion.preprocessors.exr_normalizer import (
    decimal_text,
    normalize_exr_csv,
    read_exr_csv,
)

__all__ = ["decimal_text", "normalize_exr_csv", "read_exr_csv"]
