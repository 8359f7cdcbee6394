"""Operator alerts for manifest diagnostics.

Reads the diagnostics companion file of a manifest run and posts a short
summary to a webhook so rejected lines get human attention.
"""

import json
from pathlib import Path
from typing import Any

import requests

from refdata.manifest.generator import diagnostics_filename
from refdata.shared.config import Config
from refdata.shared.utils import utc_now_iso

SAMPLE_SIZE = 10


def build_diagnostics_alert(
    manifest_dir: Path, date_utc: str, sample_size: int = SAMPLE_SIZE
) -> dict[str, Any] | None:
    """Alert payload for one date, or None when the run rejected nothing.

    Args:
        manifest_dir: Directory holding the manifest and its diagnostics.
        date_utc: Manifest date (YYYY-MM-DD).
        sample_size: Number of diagnostics included verbatim.
    """
    path = Path(manifest_dir) / diagnostics_filename(date_utc)
    if not path.exists():
        return None

    lines = [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
    samples = []
    for line in lines[:sample_size]:
        try:
            samples.append(json.loads(line))
        except json.JSONDecodeError:
            samples.append({"raw": line})

    return {
        "date": date_utc,
        "diagnostics_count": len(lines),
        "samples": samples,
        "diagnostics_path": str(path),
        "created_at_utc": utc_now_iso(),
    }


def post_alert(
    webhook: str,
    payload: dict[str, Any],
    session: requests.Session | None = None,
    timeout: int | None = None,
) -> requests.Response:
    """POST an alert payload as JSON.

    Raises:
        requests.exceptions.RequestException: Network failure or non-2xx status.
    """
    http = session or requests.Session()
    response = http.post(webhook, json=payload, timeout=timeout or Config.REQUEST_TIMEOUT)
    response.raise_for_status()
    return response
