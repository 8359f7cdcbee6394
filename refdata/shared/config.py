"""Configuration management for the reference-data pipeline."""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _series_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Application configuration."""

    # Project paths
    ROOT_DIR = Path(__file__).parent.parent.parent
    DATA_DIR = ROOT_DIR / "data"
    LOGS_DIR = ROOT_DIR / "logs"

    # Mirror and manifest storage
    MIRROR_DIR: Path = Path(os.getenv("EXR_MIRROR_DIR", str(DATA_DIR / "mirror" / "ecb")))
    MANIFEST_DIR: Optional[Path] = (
        Path(os.environ["EXR_MANIFEST_DIR"]) if os.getenv("EXR_MANIFEST_DIR") else None
    )

    # Integrity and freshness policy
    MANIFEST_ERROR_THRESHOLD: int = int(os.getenv("MANIFEST_ERROR_THRESHOLD", "10"))
    STALENESS_MAX_AGE_SECONDS: int = int(os.getenv("STALENESS_MAX_AGE_SECONDS", "86400"))
    EXR_TAIL_READ_BYTES: int = int(os.getenv("EXR_TAIL_READ_BYTES", "65536"))

    # Upstream source
    ECB_BASE_URL: str = os.getenv("ECB_BASE_URL", "https://data-api.ecb.europa.eu/service")
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    EXR_SERIES: list[str] = _series_list(
        os.getenv("EXR_SERIES", "EXR.D.USD.EUR.SP00.A,EXR.D.GBP.EUR.SP00.A")
    )

    # Alerting
    MANIFEST_ALERT_WEBHOOK: Optional[str] = os.getenv("MANIFEST_ALERT_WEBHOOK")

    @classmethod
    def validate(cls) -> None:
        """Validate numeric policy settings."""
        if cls.MANIFEST_ERROR_THRESHOLD < 0:
            raise ValueError("MANIFEST_ERROR_THRESHOLD must be >= 0")
        if cls.STALENESS_MAX_AGE_SECONDS <= 0:
            raise ValueError("STALENESS_MAX_AGE_SECONDS must be > 0")
        if cls.EXR_TAIL_READ_BYTES < 1024:
            raise ValueError("EXR_TAIL_READ_BYTES must be >= 1024")

    @classmethod
    def manifest_dir_for(cls, mirror_dir: Path) -> Path:
        """Manifest directory for a mirror: explicit setting or <mirror_dir>/manifests."""
        return cls.MANIFEST_DIR or Path(mirror_dir) / "manifests"


config = Config()
