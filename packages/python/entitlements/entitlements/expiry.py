"""Expiry computation for purchased courses.

Monthly and yearly access use calendar arithmetic: the expiry lands on the
same day of the target month, clamped to the month's last day when that day
does not exist (Jan 31 -> Feb 29 in a leap year, Feb 29 -> Feb 28 a year on).
"""

from __future__ import annotations

import calendar
from datetime import datetime
from typing import Optional

from db_core import utcnow

from .models import AccessTier
from .plan_config import TIER_CONFIG, coerce_tier


def add_months(moment: datetime, months: int) -> datetime:
    """Shift ``moment`` by whole calendar months, clamping the day of month."""

    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def calculate_expiry_date(
    access_tier: AccessTier | str,
    purchase_date: Optional[datetime] = None,
) -> Optional[datetime]:
    """Return when access bought at ``purchase_date`` ends, or None if it never does."""

    tier = coerce_tier(access_tier)
    months = TIER_CONFIG[tier]["months"]
    if months is None:
        return None

    purchased_at = purchase_date or utcnow()
    return add_months(purchased_at, months)
