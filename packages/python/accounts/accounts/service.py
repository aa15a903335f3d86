from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from db_core import utcnow
from domain_errors import (
    AccessDenied,
    AlreadyExists,
    AuthenticationRequired,
    InvalidRequest,
    NotFound,
    ValidationError,
)
from loguru import logger
from notifications import Mailer, otp_email, password_reset_email, send_best_effort
from pydantic import BaseModel, EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .models import ProfileUpdate, SignupRequest, User, UserProfile
from .otp import OTP_TTL, generate_otp, hash_otp, otp_expired, otp_matches
from .passwords import hash_password, password_problems, verify_password
from .repository import UserRepository, normalize_email
from .sessions import SessionIssuer, TokenPurpose

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


def validate_email(email: Optional[str]) -> str:
    """Return the normalized address or raise ValidationError."""

    if not email or not email.strip():
        raise ValidationError("Email is required")
    try:
        _EMAIL_ADAPTER.validate_python(email.strip())
    except PydanticValidationError as exc:
        raise ValidationError("Please provide a valid email address") from exc
    return normalize_email(email)


class AuthResult(BaseModel):
    """Outcome of an auth step: the user plus the next token the client needs."""

    user: UserProfile
    token: str
    purpose: TokenPurpose


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        sessions: SessionIssuer,
        mailer: Mailer,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.users = users
        self.sessions = sessions
        self.mailer = mailer
        self.clock = clock

    # ---------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------
    def _token(self, user: User, purpose: TokenPurpose) -> AuthResult:
        token = self.sessions.issue({"sub": user.id, "email": user.email}, purpose=purpose)
        return AuthResult(user=UserProfile.from_user(user), token=token, purpose=purpose)

    def session_for(self, user: User) -> str:
        return self.sessions.issue({"sub": user.id, "email": user.email})

    async def _user_from_token(self, token: Optional[str], purpose: TokenPurpose) -> User:
        claims = self.sessions.verify(token, purpose=purpose)
        user = await self.users.get(claims["sub"])
        if user is None:
            raise AuthenticationRequired("Invalid or expired session")
        return user

    async def _send_otp(self, user: User, *, reset: bool = False) -> None:
        otp = generate_otp()
        await self.users.set_otp(user.id, hash_otp(otp), self.clock())
        minutes = int(OTP_TTL.total_seconds() // 60)
        subject, html = password_reset_email(otp, minutes) if reset else otp_email(otp, minutes)
        await send_best_effort(self.mailer, user.email, subject, html)

    def _check_otp(self, user: User, otp: str) -> None:
        if not otp or not otp.strip():
            raise ValidationError("OTP is required")
        if otp_expired(user.otp_generated_at, self.clock()):
            raise ValidationError("OTP has expired. Please request a new one.")
        if not otp_matches(otp, user.otp_hash):
            raise ValidationError("Invalid OTP")

    @staticmethod
    def _check_password_strength(password: str) -> None:
        problems = password_problems(password)
        if problems:
            raise ValidationError(problems[0])

    async def current_user(self, token: Optional[str]) -> User:
        user = await self._user_from_token(token, TokenPurpose.SESSION)
        if user.is_blocked:
            raise AccessDenied("Your account has been blocked")
        return user

    # ---------------------------------------------------------
    # Signup
    # ---------------------------------------------------------
    async def signup(self, request: SignupRequest) -> AuthResult:
        email = validate_email(request.email)
        if await self.users.find_by_email(email):
            raise AlreadyExists("An account with this email already exists")
        if request.mobile_number and await self.users.find_by_mobile(request.mobile_number):
            raise AlreadyExists("An account with this mobile number already exists")
        self._check_password_strength(request.password)

        user = await self.users.create(
            first_name=request.first_name,
            last_name=request.last_name,
            email=email,
            mobile_number=request.mobile_number,
            password_hash=hash_password(request.password),
        )
        await self._send_otp(user)
        logger.info("User {user_id} signed up, awaiting OTP", user_id=user.id)
        return self._token(user, TokenPurpose.SIGNUP_OTP)

    async def resend_otp(self, signup_token: Optional[str]) -> AuthResult:
        user = await self._user_from_token(signup_token, TokenPurpose.SIGNUP_OTP)
        if user.is_verified:
            raise InvalidRequest("Account is already verified")
        await self._send_otp(user)
        return self._token(user, TokenPurpose.SIGNUP_OTP)

    async def verify_otp(
        self,
        otp: str,
        *,
        signup_token: Optional[str] = None,
        reset_token: Optional[str] = None,
    ) -> AuthResult:
        """
        Confirm an OTP for either flow.

        With a signup token the account is marked verified and a session token is
        returned. With a reset token the OTP is consumed and a short-lived
        reset-verified token is returned for ``reset_password``.
        """

        if signup_token:
            user = await self._user_from_token(signup_token, TokenPurpose.SIGNUP_OTP)
            self._check_otp(user, otp)
            verified = await self.users.mark_verified(user.id)
            logger.info("User {user_id} verified email", user_id=user.id)
            return self._token(verified or user, TokenPurpose.SESSION)

        if reset_token:
            user = await self._user_from_token(reset_token, TokenPurpose.PASSWORD_RESET)
            self._check_otp(user, otp)
            await self.users.clear_otp(user.id)
            return self._token(user, TokenPurpose.PASSWORD_RESET_VERIFIED)

        raise AuthenticationRequired("Session has expired. Please try again.")

    # ---------------------------------------------------------
    # Login
    # ---------------------------------------------------------
    async def login(self, identifier: str, password: str) -> AuthResult:
        """
        Authenticate by email or mobile number.

        Unverified accounts get a fresh OTP and a signup token instead of a
        session, so the client can finish verification.
        """

        if not identifier or not password:
            raise ValidationError("Email or mobile number and password are required")

        user = await self.users.find_by_identifier(identifier)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationRequired("Invalid credentials")
        if user.is_blocked:
            raise AccessDenied("Your account has been blocked")

        if not user.is_verified:
            await self._send_otp(user)
            return self._token(user, TokenPurpose.SIGNUP_OTP)

        logger.debug("User {user_id} logged in", user_id=user.id)
        return self._token(user, TokenPurpose.SESSION)

    # ---------------------------------------------------------
    # Password reset
    # ---------------------------------------------------------
    async def forgot_password(self, identifier: str) -> AuthResult:
        if not identifier or not identifier.strip():
            raise ValidationError("Email or mobile number is required")
        user = await self.users.find_by_identifier(identifier)
        if user is None:
            raise NotFound("No account found with these details")
        if user.is_blocked:
            raise AccessDenied("Your account has been blocked")

        await self._send_otp(user, reset=True)
        return self._token(user, TokenPurpose.PASSWORD_RESET)

    async def reset_password(self, reset_verified_token: Optional[str], new_password: str) -> UserProfile:
        user = await self._user_from_token(reset_verified_token, TokenPurpose.PASSWORD_RESET_VERIFIED)
        self._check_password_strength(new_password)
        await self.users.set_password(user.id, hash_password(new_password))
        logger.info("User {user_id} reset password", user_id=user.id)
        return UserProfile.from_user(user)

    # ---------------------------------------------------------
    # Profile
    # ---------------------------------------------------------
    async def update_profile(self, user: User, update: ProfileUpdate) -> UserProfile:
        fields = update.model_dump(exclude_unset=True, exclude_none=True)
        if "first_name" in fields:
            fields["first_name"] = fields["first_name"].strip()
        if "last_name" in fields:
            fields["last_name"] = fields["last_name"].strip()
        mobile = fields.get("mobile_number")
        if mobile:
            fields["mobile_number"] = mobile = mobile.strip()
            holder = await self.users.find_by_mobile(mobile)
            if holder is not None and holder.id != user.id:
                raise AlreadyExists("An account with this mobile number already exists")

        updated = await self.users.update_profile(user.id, fields)
        if updated is None:
            raise NotFound("User not found")
        return UserProfile.from_user(updated)
