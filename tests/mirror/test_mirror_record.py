"""Tests for mirrored reference data records."""

import base64
import hashlib
from datetime import datetime

import pytest
import pytz

from refdata.mirror.record import MirroredRecord, PayloadHash, Provenance

RAW = b"KEY,TIME_PERIOD,OBS_VALUE\nEXR.D.USD.EUR.SP00.A,2023-01-02,1.0683\n"
URL = "https://data-api.ecb.europa.eu/service/data/EXR/D.USD.EUR.SP00.A?format=csvdata"


def _record(**kwargs) -> MirroredRecord:
    params = dict(
        series_id="EXR.D.USD.EUR.SP00.A",
        raw_payload=RAW,
        source_url=URL,
        dataset_id="EXR",
        series_key="D.USD.EUR.SP00.A",
        retrieved_at_utc="2023-01-02T15:00:00.000Z",
    )
    params.update(kwargs)
    return MirroredRecord.create(**params)


class TestCreate:
    def test_raw_hash_is_sha256_of_bytes(self):
        record = _record()
        assert record.raw_payload_hash.hex == hashlib.sha256(RAW).hexdigest()
        assert record.raw_payload_hash.algorithm == "sha256"

    def test_string_payload_hashed_as_utf8(self):
        record = _record(raw_payload="café")
        assert record.raw_payload == "café".encode("utf-8")
        assert record.raw_payload_hash.hex == hashlib.sha256("café".encode()).hexdigest()

    def test_provenance_kept(self):
        record = _record()
        assert record.provenance == Provenance(URL, "EXR", "D.USD.EUR.SP00.A")

    def test_default_timestamp_is_utc_millis(self):
        record = _record(retrieved_at_utc=None)
        assert record.retrieved_at_utc.endswith("Z")
        assert len(record.retrieved_at_utc) == len("2023-01-02T15:00:00.000Z")

    def test_datetime_timestamp_formatted(self):
        dt = datetime(2023, 1, 2, 15, 0, 0, tzinfo=pytz.UTC)
        assert _record(retrieved_at_utc=dt).retrieved_at_utc == "2023-01-02T15:00:00.000Z"

    def test_normalized_hash_independent_of_key_order(self):
        a = _record(normalized={"b": 1, "a": {"y": 2, "x": 1}})
        b = _record(normalized={"a": {"x": 1, "y": 2}, "b": 1})
        assert a.normalized_hash == b.normalized_hash
        assert a.raw_payload_hash == b.raw_payload_hash

    def test_normalized_is_copied(self):
        normalized = {"observations": [{"period": "2023-01-02", "value": "1.0683"}]}
        record = _record(normalized=normalized)
        normalized["observations"].clear()
        assert len(record.normalized["observations"]) == 1

    def test_no_normalized_means_no_normalized_hash(self):
        record = _record()
        assert record.normalized is None
        assert record.normalized_hash is None


class TestIntegrity:
    def test_constructor_rejects_wrong_raw_hash(self):
        with pytest.raises(ValueError, match="Raw payload hash mismatch"):
            MirroredRecord(
                series_id="S",
                retrieved_at_utc="2023-01-01T00:00:00.000Z",
                provenance=Provenance(URL),
                raw_payload=RAW,
                raw_payload_hash=PayloadHash("0" * 64),
            )

    def test_constructor_rejects_wrong_normalized_hash(self):
        good = _record(normalized={"a": 1})
        with pytest.raises(ValueError, match="Normalized hash mismatch"):
            MirroredRecord(
                series_id=good.series_id,
                retrieved_at_utc=good.retrieved_at_utc,
                provenance=good.provenance,
                raw_payload=good.raw_payload,
                raw_payload_hash=good.raw_payload_hash,
                normalized={"a": 2},
                normalized_hash=good.normalized_hash,
            )

    def test_verify(self):
        assert _record().verify() is True

    def test_verify_raw_payload_base64(self):
        encoded = base64.b64encode(RAW).decode()
        expected = hashlib.sha256(RAW).hexdigest()
        assert MirroredRecord.verify_raw_payload_base64(encoded, expected) is True
        assert MirroredRecord.verify_raw_payload_base64(encoded, "0" * 64) is False

    def test_verify_raw_payload_base64_bad_input(self):
        assert MirroredRecord.verify_raw_payload_base64("not base64!!", "0" * 64) is False


class TestSerialization:
    def test_serializable_shape(self):
        data = _record(normalized={"a": 1}).to_serializable()
        assert data["seriesId"] == "EXR.D.USD.EUR.SP00.A"
        assert data["retrievedAtUtc"] == "2023-01-02T15:00:00.000Z"
        assert data["provenance"] == {
            "sourceUrl": URL,
            "datasetId": "EXR",
            "seriesKey": "D.USD.EUR.SP00.A",
        }
        assert base64.b64decode(data["rawPayloadBase64"]) == RAW
        assert data["rawPayloadHash"] == {
            "algorithm": "sha256",
            "hex": hashlib.sha256(RAW).hexdigest(),
        }
        assert data["normalized"] == {"a": 1}
        assert data["normalizedHash"]["algorithm"] == "sha256"

    def test_optional_fields_omitted(self):
        data = MirroredRecord.create("S", b"x", URL).to_serializable()
        assert "normalized" not in data
        assert "normalizedHash" not in data
        assert data["provenance"] == {"sourceUrl": URL}

    def test_from_serializable_restores_record(self):
        original = _record(normalized={"a": [1, 2]})
        assert MirroredRecord.from_serializable(original.to_serializable()) == original

    def test_from_serializable_detects_tampering(self):
        data = _record().to_serializable()
        data["rawPayloadBase64"] = base64.b64encode(b"tampered").decode()
        with pytest.raises(ValueError, match="hash mismatch"):
            MirroredRecord.from_serializable(data)

    def test_from_serializable_missing_field(self):
        data = _record().to_serializable()
        del data["rawPayloadHash"]
        with pytest.raises(ValueError, match="Malformed mirror record"):
            MirroredRecord.from_serializable(data)
