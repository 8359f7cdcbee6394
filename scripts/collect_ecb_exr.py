"""ECB EXR mirror collection script.

Fetches every whitelisted EUR reference-rate series from the ECB SDMX API and
appends one mirror record per series to ``<mirror_dir>/<series>.jsonl``.

Usage:
    # Collect the configured series (EXR_SERIES) for the last 30 days
    python scripts/collect_ecb_exr.py

    # Custom date range / series
    python scripts/collect_ecb_exr.py --start 2024-01-01 --end 2024-01-31
    python scripts/collect_ecb_exr.py --series EXR.D.USD.EUR.SP00.A

    # Health check only
    python scripts/collect_ecb_exr.py --health-check

Example:
    $ python scripts/collect_ecb_exr.py --start 2024-01-01
    [INFO] ECBExrCollector initialized, mirror_dir=data/mirror/ecb
    [INFO] Health check: PASSED
    [INFO] Collecting ECB EXR data 2024-01-01 to 2024-02-10
    [INFO] Mirrored EXR.D.USD.EUR.SP00.A (1834 bytes, sha256=...) to data/mirror/ecb/...
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

import pytz

from refdata.ingestion.collectors.ecb_exr_collector import ECBExrCollector
from refdata.shared.utils import setup_logger


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Mirror ECB EUR reference exchange rates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--start",
        type=str,
        help="Start date (YYYY-MM-DD). Default: 30 days ago",
        metavar="DATE",
    )

    parser.add_argument(
        "--end",
        type=str,
        help="End date (YYYY-MM-DD). Default: today",
        metavar="DATE",
    )

    parser.add_argument(
        "--series",
        action="append",
        help="Series id to collect (repeatable). Default: EXR_SERIES",
        metavar="ID",
    )

    parser.add_argument(
        "--mirror-dir",
        type=Path,
        help="Mirror directory. Default: EXR_MIRROR_DIR",
    )

    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Run health check only and exit",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args()


def _parse_date(value: str) -> datetime:
    return pytz.UTC.localize(datetime.strptime(value, "%Y-%m-%d"))


def main() -> int:
    """Main collection script."""
    args = parse_args()

    logger = setup_logger(
        "collect_ecb_exr",
        level="DEBUG" if args.verbose else "INFO",
    )

    try:
        collector = ECBExrCollector(mirror_dir=args.mirror_dir, series=args.series)

        if not collector.health_check():
            logger.error("ECB API health check failed")
            return 1

        logger.info("Health check: PASSED")

        if args.health_check:
            return 0

        try:
            start_date = _parse_date(args.start) if args.start else None
            end_date = _parse_date(args.end) if args.end else None
        except ValueError:
            logger.error("Invalid date format. Use YYYY-MM-DD")
            return 1

        records = collector.collect(start_date=start_date, end_date=end_date)
        for series_id, record in records.items():
            observations = (record.normalized or {}).get("observations", [])
            logger.info("  %s: %d observations", series_id, len(observations))

        return 0

    except KeyboardInterrupt:
        logger.warning("Collection interrupted by user")
        return 130

    except Exception as e:
        logger.exception("Unexpected error during collection: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
