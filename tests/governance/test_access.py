"""Tests for the EXR purpose gate."""

import json

import pytest

from refdata.governance.access import (
    ADVISORY_NOTE,
    ExrPurpose,
    deny_exr_for_settlement,
    get_normalized_data_for_purpose,
    verify_exr_access,
)
from refdata.mirror.log import append_record
from refdata.mirror.record import MirroredRecord
from refdata.shared.exceptions import ExrAccessError, MirrorRecordTooLargeError

SERIES = "EXR.D.USD.EUR.SP00.A"


def _mirror(mirror_dir, observations, retrieved="2023-01-02T15:00:00.000Z"):
    record = MirroredRecord.create(
        SERIES,
        b"raw csv",
        "https://data-api.ecb.europa.eu/service/data/EXR/D.USD.EUR.SP00.A",
        dataset_id="EXR",
        series_key="D.USD.EUR.SP00.A",
        normalized={
            "seriesId": SERIES,
            "source": "ecb-sdmx",
            "metadata": {"currency": "USD"},
            "observations": observations,
        },
        retrieved_at_utc=retrieved,
    )
    append_record(mirror_dir, record)
    return record


class TestVerifyAccess:
    @pytest.mark.parametrize("purpose", ["reporting", "analytics", ExrPurpose.REPORTING])
    def test_allowed(self, purpose):
        assert verify_exr_access(purpose) is None

    @pytest.mark.parametrize("purpose", ["settlement", "authorization", "other", "Reporting", ""])
    def test_denied(self, purpose):
        with pytest.raises(ExrAccessError) as excinfo:
            verify_exr_access(purpose, caller="billing-job")
        assert excinfo.value.code == "EXR_ACCESS_DENIED"
        assert ADVISORY_NOTE in str(excinfo.value)

    def test_denial_message(self):
        with pytest.raises(ExrAccessError) as excinfo:
            verify_exr_access("settlement", caller="svc")
        assert str(excinfo.value).startswith(
            'EXR access denied for purpose="settlement" caller="svc".'
        )

    def test_non_string_purpose_denied(self):
        with pytest.raises(ExrAccessError):
            verify_exr_access(None)  # type: ignore[arg-type]

    def test_denial_is_permission_error(self):
        with pytest.raises(PermissionError):
            verify_exr_access(ExrPurpose.AUTHORIZATION)

    def test_denial_event(self, events):
        with pytest.raises(ExrAccessError):
            verify_exr_access("settlement", caller="svc")
        (event,) = events("exr_access_denied")
        assert event["purpose"] == "settlement"
        assert event["caller"] == "svc"
        assert event["level"] == "error"

    def test_settlement_guard(self, events):
        with pytest.raises(ExrAccessError) as excinfo:
            deny_exr_for_settlement(caller="settle")
        assert excinfo.value.code == "EXR_PROHIBITED"
        assert events("exr_settlement_access_prohibited")


class TestGetNormalizedData:
    def test_advisory_view(self, mirror_dir):
        record = _mirror(mirror_dir, [{"period": "2023-01-02", "value": "1.0683"}])

        data = get_normalized_data_for_purpose(SERIES, mirror_dir, "reporting")

        assert data["advisory"] is True
        assert data["advisory_note"] == ADVISORY_NOTE
        assert data["seriesId"] == SERIES
        assert data["retrievedAtUtc"] == "2023-01-02T15:00:00.000Z"
        assert data["payloadHash"] == record.raw_payload_hash.hex
        assert data["metadata"] == {"currency": "USD"}
        assert data["observations"] == [{"period": "2023-01-02", "rate_decimal": "1.0683"}]

    def test_rates_are_strings(self, mirror_dir):
        _mirror(
            mirror_dir,
            [
                {"period": "2023-01-02", "value": 1.0683},
                {"period": "2023-01-03", "value": None},
            ],
        )
        data = get_normalized_data_for_purpose(SERIES, mirror_dir, "analytics")
        assert data["observations"] == [
            {"period": "2023-01-02", "rate_decimal": "1.0683"},
            {"period": "2023-01-03", "rate_decimal": ""},
        ]

    def test_raw_payload_not_exposed(self, mirror_dir):
        _mirror(mirror_dir, [])
        data = get_normalized_data_for_purpose(SERIES, mirror_dir, "reporting")
        assert "rawPayloadBase64" not in data
        assert "normalized" not in data

    def test_latest_record_wins(self, mirror_dir):
        _mirror(mirror_dir, [{"period": "2023-01-01", "value": "1.0"}], "2023-01-01T15:00:00.000Z")
        _mirror(mirror_dir, [{"period": "2023-01-02", "value": "2.0"}], "2023-01-02T15:00:00.000Z")
        data = get_normalized_data_for_purpose(SERIES, mirror_dir, "reporting")
        assert data["observations"][0]["rate_decimal"] == "2.0"

    def test_denied_before_any_read(self, mirror_dir, events):
        _mirror(mirror_dir, [])
        with pytest.raises(ExrAccessError):
            get_normalized_data_for_purpose(SERIES, mirror_dir, "settlement")
        assert not events("exr_mirror_file_not_found")

    def test_missing_series_returns_none(self, mirror_dir, events):
        assert get_normalized_data_for_purpose("EXR.D.JPY.EUR.SP00.A", mirror_dir, "reporting") is None
        assert events("exr_mirror_file_not_found")

    @pytest.mark.parametrize("series_id", ["../secrets", "a/b", "", ".hidden", "x" * 200])
    def test_invalid_series_id(self, mirror_dir, series_id):
        with pytest.raises(ExrAccessError) as excinfo:
            get_normalized_data_for_purpose(series_id, mirror_dir, "reporting")
        assert excinfo.value.code == "EXR_INVALID_SERIES_ID"

    def test_corrupt_last_line(self, mirror_dir, events):
        (mirror_dir / "EXR_D_USD_EUR_SP00_A.jsonl").write_text("{broken\n", encoding="utf-8")
        with pytest.raises(json.JSONDecodeError):
            get_normalized_data_for_purpose(SERIES, mirror_dir, "reporting")
        assert events("exr_mirror_read_failed")

    def test_oversized_last_line(self, mirror_dir):
        _mirror(mirror_dir, [{"period": str(i), "value": "1.0"} for i in range(200)])
        _mirror(mirror_dir, [{"period": str(i), "value": "1.0"} for i in range(200)])
        with pytest.raises(MirrorRecordTooLargeError):
            get_normalized_data_for_purpose(SERIES, mirror_dir, "reporting", max_bytes=1024)

    def test_empty_log(self, mirror_dir):
        (mirror_dir / "EXR_D_USD_EUR_SP00_A.jsonl").write_bytes(b"")
        assert get_normalized_data_for_purpose(SERIES, mirror_dir, "reporting") is None
