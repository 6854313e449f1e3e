"""Policy subpackage - customer-level pricing information."""
from .customer_tiers import CustomerTier, CustomerTierInfo, get_customer_pricing_tier

__all__ = ['CustomerTier', 'CustomerTierInfo', 'get_customer_pricing_tier']
