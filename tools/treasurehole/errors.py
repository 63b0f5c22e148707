"""Error types raised by the archiver.

Every failure aborts the run; the only non-fatal condition (a deleted post)
is signalled through ``schema.check_envelope`` rather than an exception.
"""

from __future__ import annotations


class TreasureHoleError(Exception):
    """Base class for all archiver failures."""


class NetworkError(TreasureHoleError):
    """Connection, read or timeout fault talking to the API."""

    def __init__(self, url: str, cause: BaseException) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Network error for {url}: {cause}")


class HttpStatusError(TreasureHoleError):
    def __init__(self, status_code: int, reason: str, url: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.url = url
        super().__init__(f"HTTP Status: {status_code} {reason or 'Unknown reason'} ({url})")


class DecodeError(TreasureHoleError):
    """Response body is not UTF-8 JSON."""

    def __init__(self, url: str, detail: str = "") -> None:
        self.url = url
        msg = f"Cannot parse JSON document from {url}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class SchemaError(TreasureHoleError):
    """JSON is valid but a field is missing or has the wrong shape."""

    def __init__(self, expected: str, location: str) -> None:
        self.expected = expected
        self.location = location
        super().__init__(f"Incorrect JSON format: expected {expected} at {location}")


class ApiError(TreasureHoleError):
    """Application-level error code in the response envelope."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Incorrect code {code}; message {message}")


class ArchiveIOError(TreasureHoleError):
    """Filesystem failure while writing the archive."""

    def __init__(self, path: object, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot write {path}: {cause}")
