"""Domain-level errors shared by the course platform packages.

Every error carries the HTTP status the API layer should answer with and a
message that is safe to show to end users.
"""

from __future__ import annotations

from typing import ClassVar


class DomainError(Exception):
    """Base class for expected business outcomes surfaced to callers."""

    status_code: ClassVar[int] = 400
    default_message: ClassVar[str] = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(DomainError):
    """Raised when input has the wrong shape (bad email, missing fields)."""

    default_message = "Invalid request data"


class InvalidRequest(DomainError):
    """Raised when a well-formed request is not allowed in the current state."""

    default_message = "Invalid request"


class InvalidSignature(DomainError):
    """Raised when a gateway signature does not match the expected digest."""

    default_message = "Payment could not be verified"


class AuthenticationRequired(DomainError):
    """Raised when a request lacks a valid session credential."""

    status_code = 401
    default_message = "Authentication required"


class AccessDenied(DomainError):
    """Raised when an authenticated user may not perform the action."""

    status_code = 403
    default_message = "Access denied"


class AccessExpired(DomainError):
    """Raised when a time-limited entitlement exists but no longer grants access."""

    status_code = 402
    default_message = "Your access to this course has expired. Please renew to continue."


class NotFound(DomainError):
    """Raised when a course, user or transaction cannot be located."""

    status_code = 404
    default_message = "Not found"


class AlreadyPurchased(DomainError):
    """Raised when the purchaser already holds an entitlement for the course."""

    status_code = 409
    default_message = "You have already purchased this course"


class AlreadyExists(DomainError):
    """Raised when an account with the same email or mobile already exists."""

    status_code = 409
    default_message = "You are already registered. Please login!"


class InvalidAccessTier(DomainError):
    """Raised for access tiers outside the supported set (programmer error)."""

    status_code = 500
    default_message = "Something went wrong. Please try again!"

    def __init__(self, tier: object) -> None:
        self.tier = tier
        super().__init__(f"Unknown access tier: {tier!r}")

    @property
    def public_message(self) -> str:
        return self.default_message


class UpstreamFailure(DomainError):
    """Raised when the payment gateway, storage or document store is unavailable."""

    status_code = 502
    default_message = "Service temporarily unavailable. Please try again."

    @property
    def public_message(self) -> str:
        return self.default_message
