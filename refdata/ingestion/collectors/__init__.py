"""Collectors package."""

from refdata.ingestion.collectors.base_collector import BaseCollector
from refdata.ingestion.collectors.ecb_exr_collector import ECBExrCollector, ECBSeries

__all__ = ["BaseCollector", "ECBExrCollector", "ECBSeries"]
