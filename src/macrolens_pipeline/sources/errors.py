"""
sources/errors.py — Provider failure classification and exception types.

classify_error() maps an HTTP status to a coarse failure class that drives
retry policy in sources/fetcher.py:

  409, 429   → RATE_LIMIT   (back off, retry same endpoint)
  401, 403   → AUTH         (fail the whole provider immediately)
  400, 404   → BAD_REQUEST  (fail the whole provider immediately)
  >= 500     → SERVER       (move on to the next endpoint)
  otherwise  → UNKNOWN      (move on to the next endpoint)

Network failures carry status 0 and classify as UNKNOWN.
"""

from __future__ import annotations

from enum import StrEnum

from macrolens_shared.constants import ERROR_BODY_MAX_CHARS


class ErrorClass(StrEnum):
    RATE_LIMIT = "RATE_LIMIT"
    AUTH = "AUTH"
    BAD_REQUEST = "BAD_REQUEST"
    SERVER = "SERVER"
    UNKNOWN = "UNKNOWN"


# Classes after which no other endpoint of the same provider is tried
FATAL_CLASSES: frozenset[ErrorClass] = frozenset({ErrorClass.AUTH, ErrorClass.BAD_REQUEST})


def classify_error(status: int, body: str = "") -> ErrorClass:
    """Classify a failed provider response. The body is currently unused."""
    if status in (409, 429):
        return ErrorClass.RATE_LIMIT
    if status in (401, 403):
        return ErrorClass.AUTH
    if status in (400, 404):
        return ErrorClass.BAD_REQUEST
    if status >= 500:
        return ErrorClass.SERVER
    return ErrorClass.UNKNOWN


def truncate_body(body: str | None, limit: int = ERROR_BODY_MAX_CHARS) -> str:
    if not body:
        return ""
    return body if len(body) <= limit else body[:limit]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SourceError(Exception):
    """Base for every expected provider failure. The resolver absorbs these."""


class ProviderHTTPError(SourceError):
    """A single request failed with a classified status."""

    def __init__(self, status: int, body: str = "", *, endpoint: str = "") -> None:
        self.status = status
        self.body = truncate_body(body)
        self.endpoint = endpoint
        self.error_class = classify_error(status, self.body)
        super().__init__(f"HTTP {status} ({self.error_class}) from {endpoint or 'provider'}")


class PayloadError(SourceError):
    """A 2xx response whose body could not be interpreted."""


class FetchError(SourceError):
    """Every candidate endpoint of one provider failed."""

    def __init__(
        self,
        source: str,
        error_class: ErrorClass,
        *,
        status: int | None = None,
        endpoint: str = "",
        body: str = "",
        detail: str = "",
    ) -> None:
        self.source = source
        self.error_class = error_class
        self.status = status
        self.endpoint = endpoint
        self.body = truncate_body(body)
        message = f"{source}: {error_class}"
        if status:
            message += f" (HTTP {status})"
        if endpoint:
            message += f" at {endpoint}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
