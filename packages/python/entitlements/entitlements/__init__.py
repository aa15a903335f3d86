from .checker import (
    access_status,
    check_access,
    find_entitlement,
    has_entitlement,
    is_expiring_soon,
    remaining_time,
)
from .expiry import add_months, calculate_expiry_date
from .models import (
    AccessDecision,
    AccessStatus,
    AccessSummary,
    AccessTier,
    DenialReason,
    Entitlement,
    RemainingTime,
)
from .plan_config import TIER_CONFIG, coerce_tier, is_payable
from .repository import EntitlementsRepository
from .service import EntitlementsService

__all__ = [
    "AccessDecision",
    "AccessStatus",
    "AccessSummary",
    "AccessTier",
    "DenialReason",
    "Entitlement",
    "EntitlementsRepository",
    "EntitlementsService",
    "RemainingTime",
    "TIER_CONFIG",
    "access_status",
    "add_months",
    "calculate_expiry_date",
    "check_access",
    "coerce_tier",
    "find_entitlement",
    "has_entitlement",
    "is_expiring_soon",
    "is_payable",
    "remaining_time",
]
