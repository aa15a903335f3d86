"""Email delivery through Resend.

Delivery is always best-effort from the caller's point of view: use
``send_best_effort`` wherever a failed email must not undo the surrounding work.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import resend
from loguru import logger

from .config import MailSettings


class Mailer(Protocol):
    async def send(self, to: str, subject: str, html: str) -> None:
        ...


class ResendMailer:
    def __init__(self, settings: MailSettings):
        self.settings = settings
        # The Resend SDK is synchronous and reads the key from module state.
        resend.api_key = settings.resend_api_key

    async def send(self, to: str, subject: str, html: str) -> None:
        if not self.settings.enabled:
            logger.debug("Mail disabled, dropping '{subject}' to {to}", subject=subject, to=to)
            return

        params = {
            "from": self.settings.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        await asyncio.to_thread(resend.Emails.send, params)
        logger.debug("Mail '{subject}' sent to {to}", subject=subject, to=to)


async def send_best_effort(mailer: Mailer, to: str, subject: str, html: str) -> bool:
    """Send an email, logging and swallowing any failure. Returns True on success."""

    try:
        await mailer.send(to, subject, html)
    except Exception as exc:
        logger.warning(
            "Email '{subject}' to {to} failed: {error}",
            subject=subject,
            to=to,
            error=exc,
        )
        return False
    return True
