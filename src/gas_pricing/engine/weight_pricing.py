"""
Weight-Based Pricer - Gas fill charge from net weight × price per kg.

    gas_charge = net_gas_weight_kg * gas_price_per_kg
    subtotal   = gas_charge + deposit
    tax        = subtotal * tax_rate / 100
    total      = subtotal + tax

All monetary fields then scale linearly with quantity (N identical
cylinders). Deposits sit inside the taxable subtotal.
"""
import logging
from typing import Optional

from ..config.settings import Settings, get_settings
from .deposit_rates import DepositRateResolver, product_capacity_liters
from .exceptions import InvalidPricingInput
from .models import PricingMethod, Product, WeightBasedPrice
from .price_calculator import calculate_final_price, validate_quantity
from .price_lists import DateLike, PriceListResolver, as_date

logger = logging.getLogger(__name__)


def calculate_gas_charge(net_gas_weight_kg: float, gas_price_per_kg: float) -> float:
    """Weight × rate; both must be strictly positive."""
    if net_gas_weight_kg is None or gas_price_per_kg is None or net_gas_weight_kg <= 0 or gas_price_per_kg <= 0:
        raise InvalidPricingInput('Net gas weight and price per kg must be positive values')
    return net_gas_weight_kg * gas_price_per_kg


def calculate_weight_based_total(
    net_gas_weight_kg: float,
    gas_price_per_kg: float,
    deposit_amount: float,
    tax_rate: float = 0.0,
    fill_percentage: float = 100.0,
) -> WeightBasedPrice:
    """
    Single-cylinder total.

    A fill below 100% scales only the gas charge; the deposit stays full-rate.
    """
    if fill_percentage is None or fill_percentage <= 0 or fill_percentage > 100:
        raise InvalidPricingInput(f"Fill percentage must be in (0, 100], got {fill_percentage}")

    gas_charge = calculate_gas_charge(net_gas_weight_kg, gas_price_per_kg)
    pricing_method = PricingMethod.PER_KG
    adjusted_weight = net_gas_weight_kg
    if fill_percentage < 100:
        gas_charge = gas_charge * (fill_percentage / 100)
        adjusted_weight = net_gas_weight_kg * (fill_percentage / 100)
        pricing_method = PricingMethod.PER_KG_PARTIAL

    subtotal = gas_charge + deposit_amount
    tax_amount = subtotal * ((tax_rate or 0.0) / 100)
    total_price = subtotal + tax_amount

    return WeightBasedPrice(
        net_gas_weight_kg=net_gas_weight_kg,
        gas_price_per_kg=gas_price_per_kg,
        gas_charge=gas_charge,
        deposit_amount=deposit_amount,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_price=total_price,
        pricing_method=pricing_method,
        fill_percentage=fill_percentage,
        original_weight_kg=net_gas_weight_kg,
        adjusted_weight_kg=adjusted_weight,
    )


async def resolve_tax(repository, product: Product, default_rate: float = 0.0) -> tuple[float, str]:
    """(tax_rate %, tax_category), inheriting from the parent product when unset."""
    tax_rate = product.tax_rate
    tax_category = product.tax_category
    if (tax_rate is None or tax_category is None) and product.parent_product_id:
        parent = await repository.find_parent_product_attributes(product.id)
        if parent is not None:
            if tax_rate is None:
                tax_rate = parent.tax_rate
            if tax_category is None:
                tax_category = parent.tax_category
    return (
        tax_rate if tax_rate is not None else default_rate,
        tax_category or 'standard',
    )


class WeightBasedPricer:
    """Prices gas-fill products from weight and a per-kg price list."""

    def __init__(
        self,
        repository,
        settings: Optional[Settings] = None,
        resolver: Optional[PriceListResolver] = None,
        deposit_resolver: Optional[DepositRateResolver] = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.resolver = resolver or PriceListResolver(repository)
        self.deposit_resolver = deposit_resolver or DepositRateResolver(repository, self.settings)

    def check_preconditions(self, product: Optional[Product], product_id: str) -> bool:
        """Whether the product can be priced per kg at all."""
        if product is None:
            logger.warning("Product not found: %s", product_id)
            return False

        if not product.is_gas_fill_eligible:
            logger.warning("Gas fill pricing not applicable for variant %s (%s)", product.sku_variant, product_id)
            return False

        capacity_l = product_capacity_liters(product, self.settings.gas_density_kg_per_l)
        if not product.net_weight_kg or product.net_weight_kg <= 0 or not capacity_l:
            logger.warning("Product missing weight or capacity information: %s", product_id)
            return False

        return True

    async def get_weight_based_price(
        self,
        product_id: str,
        quantity: int = 1,
        as_of: DateLike = None,
        fill_percentage: float = 100.0,
        currency_code: Optional[str] = None,
    ) -> Optional[WeightBasedPrice]:
        """
        Full per-kg price for ``quantity`` cylinders, or ``None`` when not applicable.

        Raises:
            InvalidPricingInput: non-positive quantity or price per kg, or bad fill percentage
        """
        validate_quantity(quantity)
        as_of = as_date(as_of)
        product = await self.repository.find_product_attributes(product_id)
        if not self.check_preconditions(product, product_id):
            return None

        match = await self.resolver.resolve(product_id, as_of, pricing_method=PricingMethod.PER_KG)
        if match is None:
            logger.warning("No per_kg pricing found for product: %s", product_id)
            return None

        if match.item.per_kg_rate is None:
            logger.warning("Per-kg entry for %s in %s has no rate", product_id, match.price_list.id)
            return None
        gas_price_per_kg = calculate_final_price(match.item.per_kg_rate, match.item.surcharge_pct)

        capacity_l = product_capacity_liters(product, self.settings.gas_density_kg_per_l)
        deposit_amount = await self.deposit_resolver.get_current_deposit_rate(
            capacity_l, currency_code or match.price_list.currency_code, as_of
        )
        tax_rate, _ = await resolve_tax(self.repository, product, self.settings.default_tax_rate)

        single = calculate_weight_based_total(
            product.net_weight_kg,
            gas_price_per_kg,
            deposit_amount,
            tax_rate,
            fill_percentage,
        )
        if single.pricing_method == PricingMethod.PER_KG_PARTIAL:
            logger.info(
                "Partial fill: %s%% of %skg = %skg, gas charge %s",
                fill_percentage, single.original_weight_kg, single.adjusted_weight_kg, single.gas_charge,
            )
        return single.scaled(quantity)
