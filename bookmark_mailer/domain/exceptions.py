"""Domain exceptions for the digest pipeline.

Every failure carries an :class:`ErrorKind` so callers can map it to a response
without inspecting messages. Only ``MALFORMED_RECORD`` is recovered inside the
pipeline (the offending item is dropped); all other kinds abort the current
call and propagate unchanged.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error kinds surfaced by the digest pipeline."""

    INVALID_BATCH_INPUT = "INVALID_BATCH_INPUT"
    MALFORMED_RECORD = "MALFORMED_RECORD"
    UPSTREAM_PROTOCOL_ERROR = "UPSTREAM_PROTOCOL_ERROR"
    UPSTREAM_REQUEST_ERROR = "UPSTREAM_REQUEST_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    MAIL_DELIVERY_ERROR = "MAIL_DELIVERY_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# Informational only: nothing in this package retries.
_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.UPSTREAM_UNAVAILABLE,
        ErrorKind.NETWORK_ERROR,
    }
)


class DigestError(Exception):
    """Base exception for all digest pipeline errors."""

    default_kind: ErrorKind = ErrorKind.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.status_code = status_code
        self.details = details or {}
        # Partial run statistics, set by the use case when a run aborts.
        self.digest_stats: Any = None

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value}, message={self.message!r})"


class ValidationError(DigestError):
    """Raised when a raw item or a batch fails validation."""

    default_kind = ErrorKind.MALFORMED_RECORD


class UpstreamError(DigestError):
    """Raised when the bookmark API call fails or returns an unusable response."""

    default_kind = ErrorKind.UPSTREAM_PROTOCOL_ERROR


class ConfigurationError(DigestError):
    """Raised when required configuration or credentials are missing or invalid."""

    default_kind = ErrorKind.CONFIGURATION_ERROR


class MailDeliveryError(DigestError):
    """Raised when the mail transport rejects or fails to send a message."""

    default_kind = ErrorKind.MAIL_DELIVERY_ERROR


__all__ = [
    "ConfigurationError",
    "DigestError",
    "ErrorKind",
    "MailDeliveryError",
    "UpstreamError",
    "ValidationError",
]
