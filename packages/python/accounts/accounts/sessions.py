"""Signed session credentials (HS256 JWTs) for users and short-lived OTP flows."""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

import jwt
from db_core import utcnow
from domain_errors import AuthenticationRequired
from loguru import logger
from pydantic import BaseModel, Field

ALGORITHM = "HS256"


class TokenPurpose(str, Enum):
    SESSION = "session"
    SIGNUP_OTP = "signup_otp"
    PASSWORD_RESET = "password_reset"
    PASSWORD_RESET_VERIFIED = "password_reset_verified"


class SessionSettings(BaseModel):
    jwt_secret: str = Field(default_factory=lambda: os.getenv("JWT_SECRET", ""))
    session_ttl_days: int = Field(
        default_factory=lambda: int(os.getenv("SESSION_TTL_DAYS", "7"))
    )
    otp_token_ttl_minutes: int = Field(
        default_factory=lambda: int(os.getenv("OTP_TOKEN_TTL_MINUTES", "5"))
    )

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(days=self.session_ttl_days)

    @property
    def otp_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.otp_token_ttl_minutes)


class SessionIssuer:
    def __init__(self, settings: SessionSettings, clock: Callable[[], datetime] = utcnow):
        if not settings.jwt_secret:
            raise ValueError("JWT_SECRET must be configured")
        self.settings = settings
        self.clock = clock

    def ttl_for(self, purpose: TokenPurpose) -> timedelta:
        if purpose is TokenPurpose.SESSION:
            return self.settings.session_ttl
        return self.settings.otp_token_ttl

    def issue(
        self,
        claims: dict[str, Any],
        *,
        purpose: TokenPurpose = TokenPurpose.SESSION,
        ttl: Optional[timedelta] = None,
    ) -> str:
        """Return a signed token carrying ``claims`` (must include ``sub``)."""

        if "sub" not in claims:
            raise ValueError("claims must include 'sub'")
        now = self.clock()
        payload = {
            **claims,
            "purpose": purpose.value,
            "iat": now,
            "exp": now + (ttl or self.ttl_for(purpose)),
        }
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=ALGORITHM)

    def verify(
        self,
        token: Optional[str],
        *,
        purpose: TokenPurpose = TokenPurpose.SESSION,
    ) -> dict[str, Any]:
        """Decode ``token`` and check its purpose, raising AuthenticationRequired otherwise."""

        if not token:
            raise AuthenticationRequired()
        try:
            claims = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationRequired("Session has expired. Please try again.") from exc
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected token: {error}", error=exc)
            raise AuthenticationRequired("Invalid or expired session") from exc

        if claims.get("purpose") != purpose.value:
            raise AuthenticationRequired("Invalid or expired session")
        return claims
