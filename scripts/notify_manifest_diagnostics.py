"""Post a summary of a manifest run's rejected lines to the alert webhook.

Usage:
    python scripts/notify_manifest_diagnostics.py --date 2024-01-31
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

import requests

from refdata.manifest.alerts import build_diagnostics_alert, post_alert
from refdata.shared.config import Config
from refdata.shared.utils import setup_logger, utc_now


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Alert on manifest diagnostics")
    parser.add_argument("--date", type=str, help="UTC date (YYYY-MM-DD). Default: yesterday")
    parser.add_argument("--mirror-dir", type=Path, default=None, help="Default: EXR_MIRROR_DIR")
    parser.add_argument("--manifest-dir", type=Path, default=None, help="Default: EXR_MANIFEST_DIR")
    parser.add_argument(
        "--webhook", type=str, default=None, help="Default: MANIFEST_ALERT_WEBHOOK"
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logger = setup_logger("notify_manifest_diagnostics")

    date_utc = args.date or (utc_now() - timedelta(days=1)).strftime("%Y-%m-%d")
    mirror_dir = args.mirror_dir or Config.MIRROR_DIR
    manifest_dir = args.manifest_dir or Config.manifest_dir_for(mirror_dir)

    alert = build_diagnostics_alert(manifest_dir, date_utc)
    if alert is None:
        logger.info("No diagnostics for %s", date_utc)
        return 0

    webhook = args.webhook or Config.MANIFEST_ALERT_WEBHOOK
    if not webhook:
        logger.warning(
            "%d diagnostics for %s but no webhook configured",
            alert["diagnostics_count"],
            date_utc,
        )
        return 0

    try:
        post_alert(webhook, alert)
    except requests.exceptions.RequestException as e:
        logger.error("Failed to post alert: %s", e)
        return 1

    logger.info("Posted %d diagnostics for %s", alert["diagnostics_count"], date_utc)
    return 0


if __name__ == "__main__":
    sys.exit(main())
