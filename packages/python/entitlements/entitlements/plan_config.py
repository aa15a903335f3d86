from domain_errors import InvalidAccessTier

from .models import AccessTier

# tier -> how long a purchase lasts and whether it goes through checkout.
# "months": None means the entitlement never expires.
TIER_CONFIG = {
    AccessTier.FREE: {
        "months": None,
        "payable": False,
    },
    AccessTier.LIFETIME: {
        "months": None,
        "payable": True,
    },
    AccessTier.MONTHLY: {
        "months": 1,
        "payable": True,
    },
    AccessTier.YEARLY: {
        "months": 12,
        "payable": True,
    },
}

EXPIRING_SOON_DAYS = 7


def coerce_tier(access_tier: AccessTier | str) -> AccessTier:
    try:
        return AccessTier(access_tier)
    except ValueError as exc:
        raise InvalidAccessTier(access_tier) from exc


def is_payable(access_tier: AccessTier | str) -> bool:
    return TIER_CONFIG[coerce_tier(access_tier)]["payable"]
