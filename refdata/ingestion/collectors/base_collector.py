"""Abstract base class for reference-data collectors.

Collectors own the fetch step only. Whatever they retrieve is wrapped into a
:class:`~refdata.mirror.record.MirroredRecord` exactly as received and
appended to the per-series mirror log:

- raw bytes are never reformatted
- one ``<series id>.jsonl`` file per series in ``mirror_dir``
- records are only ever appended

Sealing into manifests is handled by :mod:`refdata.manifest`.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from refdata.mirror.log import append_record
from refdata.mirror.record import MirroredRecord
from refdata.shared.utils import setup_logger


class BaseCollector(ABC):
    """Base class for all mirror collectors.

    Subclasses must define:
        SOURCE_NAME (str): identifier of the upstream source (e.g. "ecb").

    Subclasses must implement:
        collect(): fetch and mirror every configured series.
        health_check(): verify the source is reachable.
    """

    SOURCE_NAME: str  # e.g. "ecb"

    def __init__(self, mirror_dir: Path, log_file: Path | None = None) -> None:
        """Initialize the collector.

        Args:
            mirror_dir: Directory for the per-series mirror logs (created if missing).
            log_file: Optional path for file-based logging.
        """
        self.mirror_dir = Path(mirror_dir)
        self.mirror_dir.mkdir(parents=True, exist_ok=True)
        self.logger = setup_logger(self.__class__.__name__, log_file)

    @abstractmethod
    def collect(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> dict[str, MirroredRecord]:
        """Fetch every configured series and append it to the mirror.

        Args:
            start_date: Start of the observation window.
            end_date: End of the observation window.

        Returns:
            Mapping of series id to the mirrored record.
        """
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Verify the data source is reachable and responding.

        Returns:
            True if the source is available, False otherwise.
        """
        ...

    def mirror(self, record: MirroredRecord) -> Path:
        """Append a record to its series log.

        Returns:
            Path to the series log.
        """
        path = append_record(self.mirror_dir, record)
        self.logger.info(
            "Mirrored %s (%d bytes, sha256=%s) to %s",
            record.series_id,
            len(record.raw_payload),
            record.raw_payload_hash.hex,
            path,
        )
        return path
