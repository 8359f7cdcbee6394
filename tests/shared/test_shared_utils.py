"""Tests for utility functions."""

import logging
from datetime import datetime

import pytest
import pytz

from refdata.shared.utils import (
    canonical_json,
    format_utc,
    parse_utc_timestamp,
    setup_logger,
    sha256_hex,
    to_utc,
)


def test_setup_logger_basic():
    """Test basic logger setup."""
    logger = setup_logger("test_logger")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "test_logger"
    assert logger.level == logging.INFO


def test_setup_logger_with_file(tmp_path):
    """Test logger setup with file handler."""
    log_file = tmp_path / "test.log"
    logger = setup_logger("test_file_logger", log_file=log_file)

    assert log_file.exists()
    logger.info("Test message")

    assert log_file.read_text()


def test_setup_logger_string_level():
    logger = setup_logger("test_debug_logger", level="DEBUG")
    assert logger.level == logging.DEBUG


def test_setup_logger_no_duplicate_handlers(tmp_path):
    log_file = tmp_path / "dup.log"
    setup_logger("test_dup_logger", log_file=log_file)
    logger = setup_logger("test_dup_logger", log_file=log_file)
    assert len(logger.handlers) == 2


def test_to_utc_with_naive_datetime():
    """Test converting naive datetime to UTC."""
    dt = datetime(2026, 2, 8, 12, 30, 45)
    utc_dt = to_utc(dt, from_tz="US/Eastern")
    assert utc_dt.tzinfo == pytz.UTC
    assert utc_dt.hour == 17


def test_format_utc():
    dt = datetime(2023, 1, 2, 15, 0, 0, 123456, tzinfo=pytz.UTC)
    assert format_utc(dt) == "2023-01-02T15:00:00.123Z"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2023-01-01T10:00:00.000Z", datetime(2023, 1, 1, 10, tzinfo=pytz.UTC)),
        ("2023-01-01T10:00:00+02:00", datetime(2023, 1, 1, 8, tzinfo=pytz.UTC)),
        ("2023-01-01T10:00:00", datetime(2023, 1, 1, 10, tzinfo=pytz.UTC)),
        ("2023-01-01", datetime(2023, 1, 1, tzinfo=pytz.UTC)),
    ],
)
def test_parse_utc_timestamp(value, expected):
    assert parse_utc_timestamp(value) == expected


@pytest.mark.parametrize(
    "value",
    [None, "", "   ", "garbage", 12345, {"a": 1}, "now", "today", " now ", "2023-01-01 junk"],
)
def test_parse_utc_timestamp_invalid(value):
    assert parse_utc_timestamp(value) is None


def test_canonical_json_sorted_and_compact():
    assert canonical_json({"b": 1, "a": {"d": [1, 2], "c": "é"}}) == (
        '{"a":{"c":"é","d":[1,2]},"b":1}'
    )


def test_canonical_json_rejects_nan():
    with pytest.raises(ValueError):
        canonical_json({"x": float("nan")})


def test_sha256_hex():
    assert sha256_hex(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    assert sha256_hex("abc") == sha256_hex(b"abc")
