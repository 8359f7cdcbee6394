"""Field accessors for mirror log lines, including legacy field names.

Mirror logs written by older ingestion jobs used different field names for
the same logical value. Each logical field is an ordered tuple of accessors;
the first accessor that yields a non-empty value wins. This tuple order is
part of the log format's compatibility contract.

    retrieval timestamp: retrievedAtUtc > retrieved_at_utc > retrievedAt > retrieved
    series id:           seriesId > series_id  (callers fall back to the file stem)
    payload hash:        rawPayloadHash.hex > raw_payload_hash.hex
"""

from collections.abc import Callable
from typing import Any

Accessor = Callable[[dict[str, Any]], Any]


def _key(name: str) -> Accessor:
    return lambda record: record.get(name)


def _nested(outer: str, inner: str) -> Accessor:
    def get(record: dict[str, Any]) -> Any:
        container = record.get(outer)
        return container.get(inner) if isinstance(container, dict) else None

    return get


RETRIEVED_AT_ACCESSORS: tuple[Accessor, ...] = (
    _key("retrievedAtUtc"),
    _key("retrieved_at_utc"),
    _key("retrievedAt"),
    _key("retrieved"),
)

SERIES_ID_ACCESSORS: tuple[Accessor, ...] = (
    _key("seriesId"),
    _key("series_id"),
)

PAYLOAD_HASH_ACCESSORS: tuple[Accessor, ...] = (
    _nested("rawPayloadHash", "hex"),
    _nested("raw_payload_hash", "hex"),
)


def first_present(record: dict[str, Any], accessors: tuple[Accessor, ...]) -> Any:
    """Value of the first accessor returning something other than None or ""."""
    for accessor in accessors:
        value = accessor(record)
        if value is not None and value != "":
            return value
    return None


def retrieved_at(record: dict[str, Any]) -> Any:
    return first_present(record, RETRIEVED_AT_ACCESSORS)


def series_id(record: dict[str, Any], fallback: str) -> str:
    value = first_present(record, SERIES_ID_ACCESSORS)
    return str(value) if value is not None else fallback


def payload_hash(record: dict[str, Any]) -> Any:
    return first_present(record, PAYLOAD_HASH_ACCESSORS)
