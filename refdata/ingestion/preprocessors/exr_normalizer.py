"""ECB EXR normalizer - raw SDMX ``csvdata`` payload to normalized projection.

The raw payload stays untouched in the mirror record; this module only builds
the application-facing projection stored next to it:

    {
        "seriesId": "EXR.D.USD.EUR.SP00.A",
        "retrievedAtUtc": "2023-01-02T15:00:00.000Z",
        "source": "ecb-sdmx",
        "provenance": {"sourceUrl": "...", "datasetId": "EXR", "seriesKey": "D.USD.EUR.SP00.A"},
        "metadata": {"frequency": "D", "currency": "USD", "currency_denom": "EUR", ...},
        "observations": [{"period": "2023-01-02", "value": "1.0683"}, ...]
    }

Observation values are kept as decimal strings (None for blanks or
non-numeric values); they are never converted to floats.
"""

import io
from decimal import Decimal, InvalidOperation
from typing import Any

import pandas as pd

SOURCE = "ecb-sdmx"

#: SDMX column -> metadata key, copied from the first row when present.
METADATA_COLUMNS: dict[str, str] = {
    "FREQ": "frequency",
    "CURRENCY": "currency",
    "CURRENCY_DENOM": "currency_denom",
    "EXR_TYPE": "exr_type",
    "EXR_SUFFIX": "exr_suffix",
    "UNIT": "unit",
    "UNIT_MULT": "unit_mult",
    "TITLE": "title",
}

REQUIRED_COLUMNS = ("TIME_PERIOD", "OBS_VALUE")


def decimal_text(value: Any) -> str | None:
    """Trimmed decimal string, or None for blanks and non-numeric values."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return text


def read_exr_csv(payload: bytes) -> pd.DataFrame:
    """Parse an SDMX ``csvdata`` payload with every column as string.

    Raises:
        ValueError: Required columns are missing.
    """
    if not payload.strip():
        return pd.DataFrame(columns=list(REQUIRED_COLUMNS))

    df = pd.read_csv(io.BytesIO(payload), dtype=str, keep_default_na=False)
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"EXR payload missing columns: {missing}")
    return df


def normalize_exr_csv(
    series_id: str,
    payload: bytes,
    retrieved_at_utc: str,
    provenance: dict[str, str],
) -> dict[str, Any]:
    """Build the normalized projection for one series payload."""
    df = read_exr_csv(payload)

    # multi-series payloads: keep the requested series only
    if "KEY" in df.columns and df["KEY"].nunique() > 1:
        df = df[df["KEY"] == series_id]

    metadata: dict[str, str] = {}
    if not df.empty:
        first = df.iloc[0]
        for column, key in METADATA_COLUMNS.items():
            if column in df.columns and str(first[column]).strip():
                metadata[key] = str(first[column]).strip()

    df = df.sort_values("TIME_PERIOD", kind="stable")
    observations = [
        {"period": str(period).strip(), "value": decimal_text(value)}
        for period, value in zip(df["TIME_PERIOD"], df["OBS_VALUE"])
        if str(period).strip()
    ]

    return {
        "seriesId": series_id,
        "retrievedAtUtc": retrieved_at_utc,
        "source": SOURCE,
        "provenance": dict(provenance),
        "metadata": metadata,
        "observations": observations,
    }
