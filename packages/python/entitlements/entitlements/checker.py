"""Read-only access decisions over a user's embedded entitlements."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from db_core import ensure_utc, utcnow

from .models import (
    AccessDecision,
    AccessStatus,
    AccessSummary,
    AccessTier,
    DenialReason,
    Entitlement,
    RemainingTime,
)
from .plan_config import EXPIRING_SOON_DAYS, coerce_tier

_DAY = timedelta(days=1)
_HOUR = timedelta(hours=1)


def find_entitlement(
    entitlements: Iterable[Entitlement],
    course_id: str,
) -> Optional[Entitlement]:
    return next((ent for ent in entitlements if ent.course_id == course_id), None)


def has_entitlement(entitlements: Iterable[Entitlement], course_id: str) -> bool:
    return find_entitlement(entitlements, course_id) is not None


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def remaining_time(
    expiry_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> RemainingTime:
    """Break the time left until ``expiry_date`` into days and hours."""

    if expiry_date is None:
        return RemainingTime(is_expired=False, human="Lifetime access")

    now = now or utcnow()
    left = ensure_utc(expiry_date) - ensure_utc(now)
    if left <= timedelta(0):
        return RemainingTime(is_expired=True, days=0, hours=0, human="Expired")

    days = left // _DAY
    hours = (left % _DAY) // _HOUR

    if days > 0:
        human = _plural(days, "day")
        if hours > 0:
            human += f" and {_plural(hours, 'hour')}"
    elif hours > 0:
        human = _plural(hours, "hour")
    else:
        human = "Less than an hour"

    return RemainingTime(is_expired=False, days=days, hours=hours, human=human)


def is_expiring_soon(
    expiry_date: Optional[datetime],
    now: Optional[datetime] = None,
) -> bool:
    """True when between one and seven whole days of access remain."""

    if expiry_date is None:
        return False
    now = now or utcnow()
    days_left = (ensure_utc(expiry_date) - ensure_utc(now)) // _DAY
    return 0 < days_left <= EXPIRING_SOON_DAYS


def check_access(
    entitlements: Iterable[Entitlement],
    course_id: str,
    access_tier: AccessTier | str,
    now: Optional[datetime] = None,
) -> AccessDecision:
    """
    Decide whether the holder of ``entitlements`` may view ``course_id`` right now.

    Free courses need no entitlement; lifetime entitlements never lapse; monthly
    and yearly entitlements are valid up to and including their expiry instant.
    """

    tier = coerce_tier(access_tier)
    if tier is AccessTier.FREE:
        return AccessDecision(granted=True, tier=tier)

    entitlement = find_entitlement(entitlements, course_id)
    if entitlement is None:
        return AccessDecision(granted=False, tier=tier, reason=DenialReason.NOT_PURCHASED)

    if tier is AccessTier.LIFETIME:
        return AccessDecision(granted=True, tier=tier)

    expiry = entitlement.expiry_date
    if expiry is None:
        # Time-limited tier without an expiry: the record is corrupt, deny.
        return AccessDecision(
            granted=False,
            tier=tier,
            reason=DenialReason.INVALID_ENTITLEMENT,
        )

    now = now or utcnow()
    if ensure_utc(now) > ensure_utc(expiry):
        return AccessDecision(
            granted=False,
            tier=tier,
            reason=DenialReason.EXPIRED,
            expiry_date=expiry,
        )

    return AccessDecision(
        granted=True,
        tier=tier,
        expiry_date=expiry,
        remaining=remaining_time(expiry, now),
    )


def access_status(decision: AccessDecision, now: Optional[datetime] = None) -> AccessSummary:
    """Translate a decision into the status shown next to a course."""

    if not decision.granted:
        status = AccessStatus.EXPIRED if decision.is_expired else AccessStatus.NOT_PURCHASED
        return AccessSummary(
            has_access=False,
            access_tier=decision.tier,
            status=status,
            expiry_date=decision.expiry_date,
        )

    if decision.tier is AccessTier.FREE:
        return AccessSummary(has_access=True, access_tier=decision.tier, status=AccessStatus.FREE)

    if decision.tier is AccessTier.LIFETIME:
        return AccessSummary(
            has_access=True,
            access_tier=decision.tier,
            status=AccessStatus.ACTIVE,
            time_remaining="Lifetime access",
        )

    remaining = decision.remaining or remaining_time(decision.expiry_date, now)
    return AccessSummary(
        has_access=True,
        access_tier=decision.tier,
        status=AccessStatus.ACTIVE,
        expiry_date=decision.expiry_date,
        time_remaining=remaining.human,
        is_expiring_soon=is_expiring_soon(decision.expiry_date, now),
    )
