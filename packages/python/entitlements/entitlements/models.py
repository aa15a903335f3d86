from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from db_core import UtcDatetime
from pydantic import BaseModel, ConfigDict, Field


class AccessTier(str, Enum):
    FREE = "free"
    LIFETIME = "lifetime"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class DenialReason(str, Enum):
    NOT_PURCHASED = "not_purchased"
    EXPIRED = "expired"
    INVALID_ENTITLEMENT = "invalid_entitlement"


class AccessStatus(str, Enum):
    FREE = "free"
    ACTIVE = "active"
    EXPIRED = "expired"
    NOT_PURCHASED = "not_purchased"


class Entitlement(BaseModel):
    """Course entitlement embedded in a user document."""

    model_config = ConfigDict(populate_by_name=True)

    course_id: str
    purchase_date: UtcDatetime
    expiry_date: Optional[UtcDatetime] = None  # None -> perpetual

    def to_document(self) -> dict:
        return self.model_dump()


class RemainingTime(BaseModel):
    is_expired: bool
    days: Optional[int] = None  # None -> perpetual
    hours: Optional[int] = None
    human: str


class AccessDecision(BaseModel):
    granted: bool
    tier: AccessTier
    reason: Optional[DenialReason] = None
    expiry_date: Optional[datetime] = None
    remaining: Optional[RemainingTime] = None

    @property
    def is_expired(self) -> bool:
        return self.reason in (DenialReason.EXPIRED, DenialReason.INVALID_ENTITLEMENT)


class AccessSummary(BaseModel):
    """Display-oriented view of an access decision (e.g. "my courses" listings)."""

    has_access: bool
    access_tier: AccessTier
    status: AccessStatus
    expiry_date: Optional[datetime] = None
    time_remaining: Optional[str] = None
    is_expiring_soon: bool = Field(default=False)
