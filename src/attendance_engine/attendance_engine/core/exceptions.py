from __future__ import annotations

from typing import Optional

from .enums import CaptureFailure


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class CaptureError(DomainError):
    """Raised by the camera boundary when no usable frame can be produced."""

    def __init__(self, failure: CaptureFailure, message: str | None = None):
        self.failure = failure
        super().__init__(message or failure.value)


class RemoteError(DomainError):
    """Base class for anything that went wrong talking to the backend."""


class NetworkFailure(RemoteError):
    """Transport failure, timeout or unreadable response body."""


class ServerRejection(RemoteError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = int(status_code)
        super().__init__(message or f"HTTP {status_code}")


class NoActiveRecord(DomainError):
    """Check-out requested with no open record and nothing to recover."""
