"""
Customer Tiers - Advertised discount and perks per customer tier.

The discount is informational: core price resolution never applies it.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)


class CustomerTier(str, Enum):
    PREMIUM = 'premium'
    GOLD = 'gold'
    SILVER = 'silver'
    STANDARD = 'standard'


TIER_DISCOUNTS = {
    CustomerTier.PREMIUM: 10.0,
    CustomerTier.GOLD: 5.0,
    CustomerTier.SILVER: 2.0,
    CustomerTier.STANDARD: 0.0,
}

TIER_SPECIAL_RULES = {
    CustomerTier.PREMIUM: ['Free shipping on orders > 10,000 KES'],
    CustomerTier.GOLD: ['Priority order processing'],
}


@dataclass
class CustomerTierInfo:
    tier: CustomerTier
    discount_pct: float
    special_rules: list[str] = field(default_factory=list)


def get_customer_pricing_tier(tier: Optional[Union[CustomerTier, str]]) -> CustomerTierInfo:
    """Discount percentage and perks for a tier; unknown tiers are standard."""
    if isinstance(tier, CustomerTier):
        resolved = tier
    elif not tier:
        resolved = CustomerTier.STANDARD
    else:
        try:
            resolved = CustomerTier(str(tier).strip().lower())
        except ValueError:
            logger.warning("Unknown customer tier %r, using standard", tier)
            resolved = CustomerTier.STANDARD

    return CustomerTierInfo(
        tier=resolved,
        discount_pct=TIER_DISCOUNTS[resolved],
        special_rules=list(TIER_SPECIAL_RULES.get(resolved, [])),
    )
