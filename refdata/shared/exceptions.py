"""Typed errors raised by the reference-data pipeline."""

from typing import Any


class RefDataError(Exception):
    """Base class for all pipeline errors."""


class ManifestAlreadyExistsError(RefDataError, FileExistsError):
    """A manifest for the requested date has already been sealed."""

    def __init__(self, date: str, path: Any) -> None:
        self.date = date
        self.path = path
        super().__init__(f"Manifest already exists for date {date}: {path}")


class IntegrityThresholdExceededError(RefDataError):
    """Integrity violations for one run exceeded the configured tolerance."""

    def __init__(
        self,
        date: str,
        integrity_errors: int,
        threshold: int,
        counters: dict[str, int] | None = None,
    ) -> None:
        self.date = date
        self.integrity_errors = integrity_errors
        self.threshold = threshold
        self.counters = dict(counters or {})
        super().__init__(
            f"Integrity violations ({integrity_errors}) exceeded threshold "
            f"({threshold}) for date {date}"
        )


class ExrAccessError(RefDataError, PermissionError):
    """Access to advisory EXR data was denied."""

    def __init__(
        self,
        message: str,
        code: str = "EXR_ACCESS_DENIED",
        purpose: str | None = None,
        caller: str | None = None,
    ) -> None:
        self.code = code
        self.purpose = purpose
        self.caller = caller
        super().__init__(message)


class MirrorRecordTooLargeError(RefDataError, ValueError):
    """The last record of a mirror log does not fit in the tail-read window."""

    def __init__(self, path: Any, max_bytes: int) -> None:
        self.path = path
        self.max_bytes = max_bytes
        super().__init__(f"Last record in {path} exceeds the {max_bytes}-byte read window")
