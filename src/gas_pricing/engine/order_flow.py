"""
Order Flow Pricer - Prices an order line under its sale scenario.

    outright          gas fill + deposit (deposit inside the taxable subtotal)
    refill / exchange gas fill only; optional empty-return credit reported alongside
    pickup            no charge; line total is the negative empty-return credit

Products without weight/capacity data (or without a per-kg list) fall back
to flat unit pricing from a unit-priced list, with the same deposit and
credit handling.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..config.settings import Settings, get_settings
from .deposit_rates import DepositRateResolver, product_capacity_liters
from .models import (
    EmptyReturnCredit,
    PricedLine,
    PricingMethod,
    Product,
    ReturnCondition,
    SaleScenario,
)
from .price_calculator import calculate_charge
from .price_lists import DateLike, PriceListResolver, as_date
from .return_credit import EmptyReturnCreditCalculator, compute_credit
from .weight_pricing import WeightBasedPricer, resolve_tax

logger = logging.getLogger(__name__)

CREDIT_SCENARIOS = (SaleScenario.REFILL, SaleScenario.EXCHANGE)


@dataclass
class OrderLineRequest:
    """One line of an order to be priced."""
    product_id: str
    quantity: int = 1
    scenario: SaleScenario = SaleScenario.OUTRIGHT
    include_return_credit: bool = False
    return_condition: Optional[Union[ReturnCondition, str]] = None
    expected_return_date: DateLike = None
    fill_percentage: float = 100.0


class OrderFlowPricer:
    """
    Composes weight pricing, deposits and return credits per scenario.
    """

    def __init__(
        self,
        repository,
        settings: Optional[Settings] = None,
        resolver: Optional[PriceListResolver] = None,
        deposit_resolver: Optional[DepositRateResolver] = None,
        weight_pricer: Optional[WeightBasedPricer] = None,
        credit_calculator: Optional[EmptyReturnCreditCalculator] = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.resolver = resolver or PriceListResolver(repository)
        self.deposit_resolver = deposit_resolver or DepositRateResolver(repository, self.settings)
        self.weight_pricer = weight_pricer or WeightBasedPricer(
            repository, self.settings, self.resolver, self.deposit_resolver
        )
        self.credit_calculator = credit_calculator or EmptyReturnCreditCalculator(
            repository, self.settings, self.deposit_resolver
        )

    async def price_line(
        self,
        product_id: str,
        quantity: int = 1,
        scenario: Union[SaleScenario, str] = SaleScenario.OUTRIGHT,
        as_of: DateLike = None,
        include_return_credit: bool = False,
        return_condition: Optional[Union[ReturnCondition, str]] = None,
        return_date: DateLike = None,
        expected_return_date: DateLike = None,
        fill_percentage: float = 100.0,
    ) -> Optional[PricedLine]:
        """
        Price one line; ``None`` when the product or any usable price is missing.

        Raises:
            InvalidPricingInput: bad weights, prices, quantity or fill percentage
            MinimumQuantityNotMet: flat fallback below the item's minimum
        """
        scenario = SaleScenario(scenario)
        as_of = as_date(as_of)

        product = await self.repository.find_product_attributes(product_id)
        if product is None:
            logger.warning("Product not found: %s", product_id)
            return None

        line = PricedLine(
            product_id=str(product_id),
            scenario=scenario,
            quantity=quantity,
            pricing_method=None,
        )
        line.add_trace("Scenario", "Pricing order line", scenario.value)

        if scenario == SaleScenario.PICKUP:
            credit = await self._return_credit(
                product, quantity, return_condition, return_date or as_of, expected_return_date, line
            )
            line.credit = credit
            line.subtotal = -credit.credit_amount
            line.line_total = -credit.credit_amount
            line.add_trace("Pickup", "Refund-only line", f"{line.line_total:.2f}")
            return line

        include_deposit = scenario == SaleScenario.OUTRIGHT
        priced = await self._price_weight_based(product, quantity, as_of, fill_percentage, include_deposit, line)
        if not priced:
            priced = await self._price_flat_unit(product, quantity, as_of, include_deposit, line)
        if not priced:
            return None

        if scenario in CREDIT_SCENARIOS and include_return_credit:
            line.credit = await self._return_credit(
                product, quantity, return_condition, return_date or as_of, expected_return_date, line
            )
            line.add_trace("Return Credit", "Attached empty-return credit", f"{line.credit.credit_amount:.2f}")

        return line

    async def price_order(
        self,
        requests: list[OrderLineRequest],
        as_of: DateLike = None,
        return_date: DateLike = None,
    ) -> tuple[list[PricedLine], list[str]]:
        """Price every line concurrently; returns (priced lines, skipped product ids)."""
        results = await asyncio.gather(*[
            self.price_line(
                product_id=req.product_id,
                quantity=req.quantity,
                scenario=req.scenario,
                as_of=as_of,
                include_return_credit=req.include_return_credit,
                return_condition=req.return_condition,
                return_date=return_date,
                expected_return_date=req.expected_return_date,
                fill_percentage=req.fill_percentage,
            )
            for req in requests
        ])
        lines, skipped = [], []
        for req, line in zip(requests, results):
            if line is None:
                logger.warning("Skipping unpriced order line for product %s", req.product_id)
                skipped.append(str(req.product_id))
                continue
            lines.append(line)
        return lines, skipped

    async def _price_weight_based(
        self,
        product: Product,
        quantity: int,
        as_of,
        fill_percentage: float,
        include_deposit: bool,
        line: PricedLine,
    ) -> bool:
        weight = await self.weight_pricer.get_weight_based_price(
            product.id, quantity, as_of, fill_percentage
        )
        if weight is None:
            return False

        line.weight = weight
        line.pricing_method = weight.pricing_method
        line.unit_price = weight.gas_price_per_kg
        line.gas_charge = weight.gas_charge
        line.add_trace(
            "Gas Charge",
            f"{weight.net_gas_weight_kg}kg × {weight.gas_price_per_kg:.2f}/kg × {quantity}",
            f"{weight.gas_charge:.2f}",
        )

        if include_deposit:
            line.deposit_amount = weight.deposit_amount
            line.subtotal = weight.subtotal
            line.tax_amount = weight.tax_amount
            line.line_total = weight.total_price
            line.add_trace("Deposit", "Cylinder deposit included", f"{weight.deposit_amount:.2f}")
        else:
            tax_rate, _ = await resolve_tax(self.repository, product, self.settings.default_tax_rate)
            line.subtotal = weight.gas_charge
            line.tax_amount = weight.gas_charge * (tax_rate / 100)
            line.line_total = line.subtotal + line.tax_amount

        line.add_trace("Total", "Subtotal + tax", f"{line.line_total:.2f}")
        return True

    async def _price_flat_unit(
        self,
        product: Product,
        quantity: int,
        as_of,
        include_deposit: bool,
        line: PricedLine,
    ) -> bool:
        match = await self.resolver.resolve_unit_price(product.id, as_of)
        if match is None and product.parent_product_id:
            match = await self.resolver.resolve_unit_price(product.parent_product_id, as_of)
            if match is not None:
                line.add_trace("Inheritance", "Using parent product price", product.parent_product_id)
        if match is None:
            line.add_warning(f"No pricing found for product {product.id}")
            logger.warning("No pricing found for product: %s", product.id)
            return False

        line.add_warning(f"Flat unit fallback used for product {product.id}")
        charge = calculate_charge(
            PricingMethod.FLAT_UNIT,
            match.item.unit_price,
            quantity,
            surcharge_pct=match.item.surcharge_pct,
            min_qty=match.item.min_qty,
        )
        line.pricing_method = PricingMethod.FLAT_UNIT
        line.unit_price = charge.final_price
        line.gas_charge = charge.line_total
        line.add_trace("Price Resolution", f"Flat unit price from {match.price_list.name}", f"{charge.final_price:.2f}")

        if include_deposit:
            deposit = await self.deposit_resolver.get_deposit_for_product(
                product, match.price_list.currency_code, as_of
            )
            line.deposit_amount = deposit * quantity

        tax_rate, _ = await resolve_tax(self.repository, product, self.settings.default_tax_rate)
        line.subtotal = line.gas_charge + line.deposit_amount
        line.tax_amount = line.subtotal * (tax_rate / 100)
        line.line_total = line.subtotal + line.tax_amount
        line.add_trace("Total", "Subtotal + tax", f"{line.line_total:.2f}")
        return True

    async def _return_credit(
        self,
        product: Product,
        quantity: int,
        condition,
        return_date,
        expected_return_date,
        line: PricedLine,
    ) -> EmptyReturnCredit:
        capacity_l = product_capacity_liters(product, self.settings.gas_density_kg_per_l)
        if capacity_l is None:
            line.add_warning(f"No capacity for product {product.id}; return credit is zero")
            return compute_credit(
                0.0, 0.0, quantity,
                condition or self.settings.default_return_condition,
                return_date, expected_return_date,
            )
        return await self.credit_calculator.calculate(
            capacity_l, quantity, condition, return_date, expected_return_date
        )
