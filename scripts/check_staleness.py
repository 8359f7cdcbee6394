"""Reference-data freshness report.

Prints one row per series (FRESH / STALE / UNAVAILABLE) and exits non-zero
when automated policy changes would be blocked.

Usage:
    python scripts/check_staleness.py
    python scripts/check_staleness.py --max-age 3600 --require EXR.D.USD.EUR.SP00.A
"""

import argparse
import sys
from pathlib import Path

from refdata.governance.staleness import (
    DEFAULT_CONFIG_KEY,
    StalenessConfig,
    allow_automated_policy_change,
    evaluate_mirror_dir,
    evaluations_to_frame,
)
from refdata.shared.config import Config
from refdata.shared.utils import setup_logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check mirrored reference data freshness")
    parser.add_argument("--mirror-dir", type=Path, default=None, help="Default: EXR_MIRROR_DIR")
    parser.add_argument(
        "--max-age",
        type=int,
        default=None,
        help="Allowed age in seconds. Default: STALENESS_MAX_AGE_SECONDS",
    )
    parser.add_argument(
        "--require",
        action="append",
        help="Series required for automation (repeatable). Default: EXR_SERIES",
        metavar="ID",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logger = setup_logger("check_staleness")

    window = StalenessConfig(args.max_age or Config.STALENESS_MAX_AGE_SECONDS)
    required = args.require or Config.EXR_SERIES
    configs = {DEFAULT_CONFIG_KEY: window, **{series_id: window for series_id in required}}

    evaluations = evaluate_mirror_dir(args.mirror_dir or Config.MIRROR_DIR, configs)
    print(evaluations_to_frame(evaluations).to_string(index=False))

    decision = allow_automated_policy_change(evaluations, required_series=required)
    if not decision.allowed:
        logger.warning(
            "Automated policy changes blocked by: %s",
            ", ".join(e.series_id for e in decision.blocking),
        )
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
