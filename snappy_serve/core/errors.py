"""
Error Taxonomy and Service Results

Core operations never raise to the transport layer. They return a
``ServiceResult`` tagged with an ``ErrorKind`` on failure; the API maps the
kind onto an HTTP status (see ``HTTP_STATUS``).

Exceptions below are used internally between the core modules and are
converted into results by the service facade.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_PHONE = "invalid_phone"
    NO_OTP_REQUESTED = "no_otp_requested"
    INVALID_CODE = "invalid_code"
    OTP_EXPIRED = "otp_expired"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    DELIVERY_FAILED = "delivery_failed"


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_PHONE: 400,
    ErrorKind.NO_OTP_REQUESTED: 400,
    ErrorKind.INVALID_CODE: 400,
    ErrorKind.OTP_EXPIRED: 400,
    ErrorKind.TOO_MANY_ATTEMPTS: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.STORAGE_UNAVAILABLE: 503,
    ErrorKind.DELIVERY_FAILED: 502,
}


@dataclass
class ServiceResult(Generic[T]):
    """Result of a core operation."""
    success: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "ServiceResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> "ServiceResult[T]":
        return cls(success=False, error=error, message=message)

    @property
    def http_status(self) -> int:
        if self.success or self.error is None:
            return 200
        return HTTP_STATUS[self.error]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class CafeError(Exception):
    """Base class for all application errors."""
    kind: ErrorKind = ErrorKind.VALIDATION


class ValidationFailed(CafeError):
    """Malformed or missing required input."""
    kind = ErrorKind.VALIDATION


class EmptyItems(ValidationFailed):
    """An order or bill was submitted without line items."""


class InvalidPhone(ValidationFailed):
    """A phone number was given but does not normalize to a usable key."""
    kind = ErrorKind.INVALID_PHONE


class InvalidTransition(CafeError):
    """The order lifecycle does not allow the requested status change."""
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}")


class StorageUnavailable(CafeError):
    """The persistent store could not serve a call."""
    kind = ErrorKind.STORAGE_UNAVAILABLE


class StartupError(CafeError):
    """Unrecoverable failure while bootstrapping the application."""
