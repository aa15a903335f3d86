from .models import ProfileUpdate, SignupRequest, User, UserProfile
from .otp import OTP_TTL, generate_otp, hash_otp, otp_expired, otp_matches
from .passwords import (
    generate_secure_password,
    hash_password,
    password_problems,
    verify_password,
)
from .repository import UserRepository, normalize_email
from .service import AuthResult, AuthService, validate_email
from .sessions import SessionIssuer, SessionSettings, TokenPurpose

__all__ = [
    "AuthResult",
    "AuthService",
    "OTP_TTL",
    "ProfileUpdate",
    "SessionIssuer",
    "SessionSettings",
    "SignupRequest",
    "TokenPurpose",
    "User",
    "UserProfile",
    "UserRepository",
    "generate_otp",
    "generate_secure_password",
    "hash_otp",
    "hash_password",
    "normalize_email",
    "otp_expired",
    "otp_matches",
    "password_problems",
    "validate_email",
    "verify_password",
]
