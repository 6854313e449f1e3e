"""
Deposit Rate Resolver - Cylinder deposit in effect for a capacity and date.

Liters are the canonical capacity unit. Kilogram capacities are converted
once, at the boundary, with a fixed LPG density.
"""
import logging
from typing import Optional

from ..config.settings import Settings, get_settings
from .models import CylinderDepositRate, Product
from .price_lists import DateLike, as_date

logger = logging.getLogger(__name__)


def kg_to_liters(capacity_kg: float, density_kg_per_l: float = 0.51) -> float:
    return capacity_kg / density_kg_per_l


def product_capacity_liters(product: Product, density_kg_per_l: float = 0.51) -> Optional[float]:
    """Capacity in liters, converting from kg when only kg is recorded."""
    if product.capacity_l and product.capacity_l > 0:
        return product.capacity_l
    if product.capacity_kg and product.capacity_kg > 0:
        return kg_to_liters(product.capacity_kg, density_kg_per_l)
    return None


def pick_effective_rate(rates: list[CylinderDepositRate], as_of) -> Optional[CylinderDepositRate]:
    """Most recent active rate whose window contains the date."""
    effective = [r for r in rates if r.is_effective_on(as_of)]
    if not effective:
        return None
    return max(effective, key=lambda r: r.effective_date)


class DepositRateResolver:
    """Finds the deposit amount for a cylinder capacity."""

    def __init__(self, repository, settings: Optional[Settings] = None):
        self.repository = repository
        self.settings = settings or get_settings()

    async def resolve_rate(
        self,
        capacity_l: float,
        currency_code: Optional[str] = None,
        as_of: DateLike = None,
    ) -> Optional[CylinderDepositRate]:
        """The winning rate row, or ``None``."""
        if not capacity_l or capacity_l <= 0:
            return None

        currency_code = currency_code or self.settings.base_currency
        as_of = as_date(as_of)

        rates = await self.repository.find_deposit_rates(capacity_l, currency_code)
        rate = pick_effective_rate(rates, as_of)
        if rate is not None:
            return rate

        if not self.settings.deposit_capacity_fallback:
            return None

        # Best effort: nearest capacity with an effective rate
        all_rates = await self.repository.find_deposit_rates(None, currency_code)
        effective = [r for r in all_rates if r.is_effective_on(as_of)]
        if not effective:
            return None
        nearest_capacity = min(
            {r.capacity_l for r in effective},
            key=lambda c: (abs(c - capacity_l), c),
        )
        logger.warning(
            "No deposit rate for %sL %s; falling back to nearest capacity %sL",
            capacity_l, currency_code, nearest_capacity,
        )
        return pick_effective_rate([r for r in effective if r.capacity_l == nearest_capacity], as_of)

    async def get_current_deposit_rate(
        self,
        capacity_l: float,
        currency_code: Optional[str] = None,
        as_of: DateLike = None,
    ) -> float:
        """Deposit amount; 0 when no rate applies."""
        rate = await self.resolve_rate(capacity_l, currency_code, as_of)
        if rate is None:
            logger.warning("No deposit rate found for %sL capacity", capacity_l)
            return 0.0
        return max(rate.deposit_amount, 0.0)

    async def get_deposit_for_capacity_kg(
        self,
        capacity_kg: float,
        currency_code: Optional[str] = None,
        as_of: DateLike = None,
    ) -> float:
        capacity_l = kg_to_liters(capacity_kg, self.settings.gas_density_kg_per_l)
        return await self.get_current_deposit_rate(capacity_l, currency_code, as_of)

    async def get_deposit_for_product(
        self,
        product: Product,
        currency_code: Optional[str] = None,
        as_of: DateLike = None,
    ) -> float:
        capacity_l = product_capacity_liters(product, self.settings.gas_density_kg_per_l)
        if capacity_l is None:
            return 0.0
        return await self.get_current_deposit_rate(capacity_l, currency_code, as_of)
