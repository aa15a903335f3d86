"""Configuration for the courses API package."""

import os

from accounts import SessionSettings
from db_core import MongoSettings
from notifications import MailSettings
from payments import PaymentSettings, StorageSettings
from pydantic import BaseModel, Field


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class ApiSettings(BaseModel):
    """Cookie names and flags for the HTTP layer."""

    secure_cookies: bool = Field(default_factory=lambda: _env_flag("SECURE_COOKIES", "false"))
    session_cookie: str = "user_token"
    signup_cookie: str = "signup_token"
    reset_cookie: str = "reset_token"
    reset_verified_cookie: str = "reset_verified_token"


class AppSettings(BaseModel):
    """Every settings model the service container needs."""

    mongo: MongoSettings = Field(default_factory=MongoSettings)
    payments: PaymentSettings = Field(default_factory=PaymentSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)
    mail: MailSettings = Field(default_factory=MailSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
