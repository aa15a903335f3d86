"""Error taxonomy shared across the course platform packages."""

from .errors import (
    AccessDenied,
    AccessExpired,
    AlreadyExists,
    AlreadyPurchased,
    AuthenticationRequired,
    DomainError,
    InvalidAccessTier,
    InvalidRequest,
    InvalidSignature,
    NotFound,
    UpstreamFailure,
    ValidationError,
)

__all__ = [
    "AccessDenied",
    "AccessExpired",
    "AlreadyExists",
    "AlreadyPurchased",
    "AuthenticationRequired",
    "DomainError",
    "InvalidAccessTier",
    "InvalidRequest",
    "InvalidSignature",
    "NotFound",
    "UpstreamFailure",
    "ValidationError",
]
