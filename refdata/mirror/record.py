"""Mirrored ECB reference data records.

A mirror record keeps the raw payload bytes exactly as received from the
source together with their SHA-256 fingerprint, the coordinates used to fetch
them, and optionally a normalized projection with its own fingerprint. The two
fingerprints are independent so that the fetch step and the normalization
step can be audited separately.

Serialized form (one JSON object per line in the per-series log)::

    {
        "seriesId": "EXR.D.USD.EUR.SP00.A",
        "retrievedAtUtc": "2023-01-01T00:00:00.000Z",
        "provenance": {"sourceUrl": "...", "datasetId": "EXR", "seriesKey": "D.USD.EUR.SP00.A"},
        "rawPayloadBase64": "...",
        "rawPayloadHash": {"algorithm": "sha256", "hex": "..."},
        "normalized": {...},
        "normalizedHash": {"algorithm": "sha256", "hex": "..."}
    }

Consumers must base64-decode ``rawPayloadBase64`` before re-hashing.
"""

import base64
import binascii
import copy
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from refdata.shared.utils import canonical_json, format_utc, sha256_hex, utc_now_iso

HASH_ALGORITHM = "sha256"


@dataclass(frozen=True)
class Provenance:
    """Exact coordinates used to fetch a payload."""

    source_url: str
    dataset_id: str | None = None
    series_key: str | None = None

    def to_dict(self) -> dict[str, str]:
        out = {"sourceUrl": self.source_url}
        if self.dataset_id is not None:
            out["datasetId"] = self.dataset_id
        if self.series_key is not None:
            out["seriesKey"] = self.series_key
        return out


@dataclass(frozen=True)
class PayloadHash:
    """Algorithm-tagged lowercase hex digest."""

    hex: str
    algorithm: str = HASH_ALGORITHM

    def to_dict(self) -> dict[str, str]:
        return {"algorithm": self.algorithm, "hex": self.hex}


@dataclass(frozen=True)
class MirroredRecord:
    """One retrieval event for one series.

    Use :meth:`create` to build a record from freshly retrieved bytes; the
    constructor itself refuses any hash that does not match its payload, so a
    corrupt record can never be instantiated.
    """

    series_id: str
    retrieved_at_utc: str
    provenance: Provenance
    raw_payload: bytes
    raw_payload_hash: PayloadHash
    normalized: dict[str, Any] | None = None
    normalized_hash: PayloadHash | None = None

    def __post_init__(self) -> None:
        if self.raw_payload_hash.hex != self.compute_sha256_hex(self.raw_payload):
            raise ValueError(
                f"Raw payload hash mismatch for series {self.series_id!r}: record is corrupt"
            )
        if self.normalized is not None and self.normalized_hash is not None:
            expected = self.compute_sha256_hex(self.canonicalize_normalized(self.normalized))
            if self.normalized_hash.hex != expected:
                raise ValueError(
                    f"Normalized hash mismatch for series {self.series_id!r}: record is corrupt"
                )

    @classmethod
    def create(
        cls,
        series_id: str,
        raw_payload: bytes | bytearray | str,
        source_url: str,
        dataset_id: str | None = None,
        series_key: str | None = None,
        normalized: dict[str, Any] | None = None,
        retrieved_at_utc: str | datetime | None = None,
    ) -> "MirroredRecord":
        """Wrap a retrieved payload and freeze both fingerprints.

        Args:
            series_id: Logical series identifier.
            raw_payload: Bytes exactly as received; strings are taken as UTF-8.
            source_url: URL the payload was fetched from.
            dataset_id: Optional dataset identifier (e.g. ``"EXR"``).
            series_key: Optional series key / dimension values.
            normalized: Optional application-facing projection.
            retrieved_at_utc: Retrieval time; defaults to now (UTC).
        """
        raw = raw_payload.encode("utf-8") if isinstance(raw_payload, str) else bytes(raw_payload)
        if isinstance(retrieved_at_utc, datetime):
            retrieved = format_utc(retrieved_at_utc)
        else:
            retrieved = retrieved_at_utc or utc_now_iso()

        normalized_copy = copy.deepcopy(normalized) if normalized is not None else None
        normalized_hash = None
        if normalized_copy is not None:
            normalized_hash = PayloadHash(
                cls.compute_sha256_hex(cls.canonicalize_normalized(normalized_copy))
            )

        return cls(
            series_id=series_id,
            retrieved_at_utc=retrieved,
            provenance=Provenance(source_url, dataset_id, series_key),
            raw_payload=raw,
            raw_payload_hash=PayloadHash(cls.compute_sha256_hex(raw)),
            normalized=normalized_copy,
            normalized_hash=normalized_hash,
        )

    @staticmethod
    def compute_sha256_hex(data: bytes | bytearray | str) -> str:
        """SHA-256 hex digest; strings are hashed as UTF-8."""
        return sha256_hex(bytes(data) if isinstance(data, bytearray) else data)

    @staticmethod
    def canonicalize_normalized(normalized: dict[str, Any]) -> str:
        """Canonical serialization of a normalized projection (sorted keys, compact)."""
        return canonical_json(normalized)

    @staticmethod
    def verify_raw_payload_base64(raw_base64: str, expected_hex: str) -> bool:
        """Recompute SHA-256 over base64-encoded raw bytes and compare.

        Returns False for undecodable input instead of raising.
        """
        try:
            raw = base64.b64decode(raw_base64, validate=True)
        except (binascii.Error, ValueError, TypeError):
            return False
        return sha256_hex(raw) == expected_hex

    def verify(self) -> bool:
        """Re-attest this record's raw payload against its stored hash."""
        return sha256_hex(self.raw_payload) == self.raw_payload_hash.hex

    @property
    def raw_payload_base64(self) -> str:
        return base64.b64encode(self.raw_payload).decode("ascii")

    def to_serializable(self) -> dict[str, Any]:
        """JSON-ready dict for the per-series log; raw bytes are base64 encoded."""
        out: dict[str, Any] = {
            "seriesId": self.series_id,
            "retrievedAtUtc": self.retrieved_at_utc,
            "provenance": self.provenance.to_dict(),
            "rawPayloadBase64": self.raw_payload_base64,
            "rawPayloadHash": self.raw_payload_hash.to_dict(),
        }
        if self.normalized is not None:
            out["normalized"] = copy.deepcopy(self.normalized)
        if self.normalized_hash is not None:
            out["normalizedHash"] = self.normalized_hash.to_dict()
        return out

    @classmethod
    def from_serializable(cls, data: dict[str, Any]) -> "MirroredRecord":
        """Rebuild a record from its serialized form.

        Raises:
            ValueError: Required fields are missing, the payload is not valid
                base64, or a recomputed hash disagrees with the stored one.
        """
        try:
            provenance = data["provenance"]
            raw_hash = data["rawPayloadHash"]
            raw = base64.b64decode(data["rawPayloadBase64"], validate=True)
            record = cls(
                series_id=data["seriesId"],
                retrieved_at_utc=data["retrievedAtUtc"],
                provenance=Provenance(
                    provenance["sourceUrl"],
                    provenance.get("datasetId"),
                    provenance.get("seriesKey"),
                ),
                raw_payload=raw,
                raw_payload_hash=PayloadHash(
                    raw_hash["hex"], raw_hash.get("algorithm", HASH_ALGORITHM)
                ),
                normalized=data.get("normalized"),
                normalized_hash=(
                    PayloadHash(
                        data["normalizedHash"]["hex"],
                        data["normalizedHash"].get("algorithm", HASH_ALGORITHM),
                    )
                    if data.get("normalizedHash")
                    else None
                ),
            )
        except (KeyError, TypeError, AttributeError, binascii.Error) as exc:
            raise ValueError(f"Malformed mirror record: {exc}") from exc
        return record
