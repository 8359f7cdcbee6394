"""Data ingestion module - collectors and preprocessors."""

from refdata.ingestion.collectors import BaseCollector, ECBExrCollector

__all__ = [
    "BaseCollector",
    "ECBExrCollector",
]
