"""Configuration for outgoing email."""

import os

from pydantic import BaseModel, Field


class MailSettings(BaseModel):
    """Settings for the Resend email API."""

    resend_api_key: str = Field(default_factory=lambda: os.getenv("RESEND_API_KEY", ""))
    from_address: str = Field(
        default_factory=lambda: os.getenv("MAIL_FROM", "Happy Education <no-reply@happyeducation.com>")
    )
    enabled: bool = Field(
        default_factory=lambda: os.getenv("MAIL_ENABLED", "true").lower() in ("1", "true", "yes")
    )
