"""Daily manifest generation script.

Seals one UTC day of mirror records into ``manifest-<date>.ndjson`` (plus a
diagnostics file for rejected lines and, when a signer is configured, a
detached ``.sig.json`` signature).

Usage:
    # Seal yesterday (UTC)
    python scripts/generate_manifest.py

    # Seal a given date, signing with an Ed25519 key
    python scripts/generate_manifest.py --date 2024-01-31 --signing-key keys/ops.pem

Exit codes:
    0  manifest written
    1  integrity threshold exceeded or unexpected error
    2  manifest already exists for the date
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path

from refdata.manifest.generator import ManifestGenerator
from refdata.manifest.signing import Ed25519Signer, LocalSigner
from refdata.shared.config import Config
from refdata.shared.exceptions import IntegrityThresholdExceededError, ManifestAlreadyExistsError
from refdata.shared.utils import setup_logger, utc_now


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Generate the daily manifest for mirrored reference data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--date", type=str, help="UTC date (YYYY-MM-DD). Default: yesterday")
    parser.add_argument("--mirror-dir", type=Path, default=None, help="Default: EXR_MIRROR_DIR")
    parser.add_argument("--manifest-dir", type=Path, default=None, help="Default: EXR_MANIFEST_DIR")
    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        help="Tolerated integrity violations. Default: MANIFEST_ERROR_THRESHOLD",
    )

    signing = parser.add_mutually_exclusive_group()
    signing.add_argument("--signing-key", type=Path, help="Ed25519 private key (PEM)")
    signing.add_argument(
        "--dev-signer",
        action="store_true",
        help="Sign with an ephemeral key (development only)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logger = setup_logger("generate_manifest")

    date_utc = args.date or (utc_now() - timedelta(days=1)).strftime("%Y-%m-%d")

    try:
        signer = None
        if args.signing_key:
            signer = Ed25519Signer.from_pem(args.signing_key)
        elif args.dev_signer:
            logger.warning("Using an ephemeral development signer")
            signer = LocalSigner()

        generator = ManifestGenerator(
            mirror_dir=args.mirror_dir or Config.MIRROR_DIR,
            manifest_dir=args.manifest_dir,
            signer=signer,
            error_threshold=args.threshold,
        )
        manifest = generator.generate(date_utc)
    except ManifestAlreadyExistsError as e:
        logger.error("%s", e)
        return 2
    except IntegrityThresholdExceededError as e:
        logger.error("%s", e)
        return 1
    except (OSError, ValueError) as e:
        logger.error("Cannot generate manifest: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected error during manifest generation: %s", e)
        return 1

    logger.info(
        "Manifest %s: %d entries, %d diagnostics, sha256=%s",
        manifest.manifest_path,
        len(manifest.entries),
        len(manifest.diagnostics),
        manifest.manifest_hash,
    )
    if manifest.signature_path:
        logger.info("Signature: %s", manifest.signature_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
