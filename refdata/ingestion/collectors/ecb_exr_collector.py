"""ECB EXR collector using the ECB Data Portal API (SDMX 2.1 REST).

Fetches a fixed whitelist of EUR reference exchange-rate series, wraps each
payload into a mirror record (raw bytes + SHA-256 + provenance + normalized
projection) and appends it to the per-series mirror log.

ECB reference rates are published for information purposes only and must not
be used for transaction pricing or settlement. Nothing here returns rates as
numbers; readers go through :mod:`refdata.governance.access`.

Each series is fetched with a single GET. Retry and backoff belong to the
scheduler running this collector: a failed fetch raises and the job fails.

API: https://data.ecb.europa.eu/help/api/data
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

import requests

from refdata.ingestion.collectors.base_collector import BaseCollector
from refdata.ingestion.preprocessors.exr_normalizer import normalize_exr_csv
from refdata.mirror.record import MirroredRecord
from refdata.shared.config import Config
from refdata.shared.utils import utc_now, utc_now_iso


@dataclass(frozen=True)
class ECBSeries:
    """Immutable descriptor for one ECB SDMX series, e.g. ``EXR.D.USD.EUR.SP00.A``."""

    series_id: str

    @property
    def dataflow(self) -> str:
        return self.series_id.split(".", 1)[0]

    @property
    def key(self) -> str:
        parts = self.series_id.split(".", 1)
        return parts[1] if len(parts) == 2 else ""

    @classmethod
    def parse(cls, series_id: str) -> "ECBSeries":
        series = cls(series_id.strip())
        if not series.key:
            raise ValueError(f"ECB series id must be '<dataflow>.<key>', got {series_id!r}")
        return series


class ECBExrCollector(BaseCollector):
    """Collector for whitelisted ECB EUR reference exchange-rate series."""

    SOURCE_NAME = "ecb"

    DEFAULT_LOOKBACK_DAYS = 30
    REQUEST_DELAY = 1.0  # politeness delay between consecutive API calls (seconds)

    def __init__(
        self,
        mirror_dir: Path | None = None,
        series: list[str] | None = None,
        session: requests.Session | None = None,
        base_url: str | None = None,
        log_file: Path | None = None,
    ) -> None:
        super().__init__(
            mirror_dir=mirror_dir or Config.MIRROR_DIR,
            log_file=log_file or Config.LOGS_DIR / "collectors" / "ecb_exr_collector.log",
        )
        self.series = [ECBSeries.parse(s) for s in (series or Config.EXR_SERIES)]
        self.base_url = (base_url or Config.ECB_BASE_URL).rstrip("/")
        self.timeout = Config.REQUEST_TIMEOUT
        self._session = session or requests.Session()
        self.logger.info(
            "ECBExrCollector initialized, mirror_dir=%s, series=%s",
            self.mirror_dir,
            [s.series_id for s in self.series],
        )

    # ------------------------------------------------------------------
    # BaseCollector interface
    # ------------------------------------------------------------------

    def collect(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict[str, MirroredRecord]:
        """Fetch and mirror every whitelisted series.

        Args:
            start_date: Start of range (default: 30 days ago).
            end_date: End of range (default: today).

        Returns:
            Mapping of series id to the mirrored record.
        """
        end = end_date or utc_now()
        start = start_date or end - timedelta(days=self.DEFAULT_LOOKBACK_DAYS)
        if start > end:
            raise ValueError("start_date must not be after end_date")
        self.logger.info("Collecting ECB EXR data %s to %s", start.date(), end.date())

        records: dict[str, MirroredRecord] = {}
        for i, series in enumerate(self.series):
            if i:
                time.sleep(self.REQUEST_DELAY)
            records[series.series_id] = self.collect_series(series, start, end)

        self.logger.info("Done - mirrored %d series", len(records))
        return records

    def health_check(self) -> bool:
        """Check ECB API availability by requesting the last observation of the first series."""
        if not self.series:
            return False
        try:
            url = f"{self._series_url(self.series[0])}?format=csvdata&lastNObservations=1"
            return self._session.get(url, timeout=10).ok
        except requests.exceptions.RequestException:
            return False

    # ------------------------------------------------------------------
    # EXR-specific collection
    # ------------------------------------------------------------------

    def collect_series(
        self, series: ECBSeries, start_date: datetime, end_date: datetime
    ) -> MirroredRecord:
        """Fetch one series, wrap it into a mirror record and append it to its log."""
        url = self._build_url(
            series,
            start_period=start_date.strftime("%Y-%m-%d"),
            end_period=end_date.strftime("%Y-%m-%d"),
        )
        payload = self._fetch(series, url)
        retrieved_at = utc_now_iso()

        provenance = {"sourceUrl": url, "datasetId": series.dataflow, "seriesKey": series.key}
        normalized = normalize_exr_csv(series.series_id, payload, retrieved_at, provenance)
        record = MirroredRecord.create(
            series_id=series.series_id,
            raw_payload=payload,
            source_url=url,
            dataset_id=series.dataflow,
            series_key=series.key,
            normalized=normalized,
            retrieved_at_utc=retrieved_at,
        )
        self.mirror(record)
        return record

    # ------------------------------------------------------------------
    # Private: HTTP layer
    # ------------------------------------------------------------------

    def _series_url(self, series: ECBSeries) -> str:
        return f"{self.base_url}/data/{series.dataflow}/{series.key}"

    def _build_url(
        self,
        series: ECBSeries,
        start_period: str | None = None,
        end_period: str | None = None,
    ) -> str:
        """Construct an ECB SDMX REST URL with query parameters."""
        params = ["format=csvdata"]
        if start_period:
            params.append(f"startPeriod={start_period}")
        if end_period:
            params.append(f"endPeriod={end_period}")
        return f"{self._series_url(series)}?{'&'.join(params)}"

    def _fetch(self, series: ECBSeries, url: str) -> bytes:
        """Fetch the raw payload bytes exactly as received.

        Raises:
            ValueError: Series key is invalid (HTTP 404).
            requests.exceptions.RequestException: Network / HTTP failure.
        """
        self.logger.debug("GET %s", url)
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            if exc.response is not None and exc.response.status_code == 404:
                raise ValueError(f"Invalid ECB series: {series.series_id}") from exc
            raise

        self.logger.info("Received %d bytes for %s", len(response.content), series.series_id)
        return response.content
