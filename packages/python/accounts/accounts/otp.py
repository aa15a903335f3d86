from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Optional

from db_core import ensure_utc

OTP_DIGITS = 4
OTP_TTL = timedelta(minutes=5)


def generate_otp() -> str:
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def hash_otp(otp: str) -> str:
    return hashlib.sha256(otp.strip().encode("utf-8")).hexdigest()


def otp_matches(otp: str, otp_hash: Optional[str]) -> bool:
    if not otp_hash:
        return False
    return hmac.compare_digest(hash_otp(otp), otp_hash)


def otp_expired(generated_at: Optional[datetime], now: datetime) -> bool:
    if generated_at is None:
        return True
    return ensure_utc(now) - ensure_utc(generated_at) > OTP_TTL
