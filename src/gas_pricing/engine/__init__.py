"""Engine subpackage - core pricing logic and resolution."""
from .pricing_engine import PricingService
from .order_flow import OrderLineRequest
from .exceptions import (
    PricingError,
    InvalidPricingInput,
    MinimumQuantityNotMet,
    PriceMismatch,
    RepositoryError,
)
from .models import PricingMethod, SaleScenario, ReturnCondition

__all__ = [
    'PricingService',
    'OrderLineRequest',
    'PricingError',
    'InvalidPricingInput',
    'MinimumQuantityNotMet',
    'PriceMismatch',
    'RepositoryError',
    'PricingMethod',
    'SaleScenario',
    'ReturnCondition',
]
