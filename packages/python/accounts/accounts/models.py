"""Pydantic models describing platform users."""

from __future__ import annotations

from typing import List, Optional

from db_core import UtcDatetime, utcnow
from entitlements import Entitlement
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class User(BaseModel):
    """User document stored in the ``users`` collection."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    first_name: str
    last_name: str = ""
    email: str
    mobile_number: Optional[str] = None
    password_hash: str
    is_verified: bool = False
    is_blocked: bool = False
    entitlements: List[Entitlement] = Field(default_factory=list)
    transactions: List[str] = Field(default_factory=list)
    otp_hash: Optional[str] = None
    otp_generated_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class UserProfile(BaseModel):
    """Public projection of a user; never carries secrets."""

    id: str
    first_name: str
    last_name: str
    email: str
    mobile_number: Optional[str] = None
    is_verified: bool
    created_at: UtcDatetime

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            mobile_number=user.mobile_number,
            is_verified=user.is_verified,
            created_at=user.created_at,
        )


class SignupRequest(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    email: EmailStr
    mobile_number: Optional[str] = None
    password: str


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = None
    mobile_number: Optional[str] = None
