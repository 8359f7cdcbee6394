"""Shared pytest fixtures for the reference-data pipeline tests."""

import json
import logging
from pathlib import Path

import pytest

VALID_HASH = "a" * 64
OTHER_HASH = "b" * 64


def record_line(
    series_id: str = "EXR.D.USD.EUR.SP00.A",
    retrieved_at: str | None = "2023-01-01T10:00:00.000Z",
    payload_hash: str | None = VALID_HASH,
) -> str:
    """One serialized mirror log line with the fields the manifest reads."""
    record: dict = {"seriesId": series_id}
    if retrieved_at is not None:
        record["retrievedAtUtc"] = retrieved_at
    if payload_hash is not None:
        record["rawPayloadHash"] = {"algorithm": "sha256", "hex": payload_hash}
    return json.dumps(record)


@pytest.fixture
def mirror_dir(tmp_path) -> Path:
    path = tmp_path / "mirror"
    path.mkdir()
    return path


@pytest.fixture
def manifest_dir(tmp_path) -> Path:
    return tmp_path / "manifests"


@pytest.fixture
def write_log(mirror_dir):
    """Write raw lines to ``<mirror_dir>/<name>``."""

    def _write(name: str, *lines: str) -> Path:
        path = mirror_dir / name
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def events(caplog):
    """Structured events captured during the test, parsed from JSON."""
    caplog.set_level(logging.DEBUG)

    def _events(name: str | None = None) -> list[dict]:
        parsed = []
        for rec in caplog.records:
            try:
                payload = json.loads(rec.getMessage())
            except ValueError:
                continue
            if not isinstance(payload, dict) or "event" not in payload:
                continue
            if name is None or payload["event"] == name:
                parsed.append(payload)
        return parsed

    return _events


@pytest.fixture
def make_line():
    return record_line
