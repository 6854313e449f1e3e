"""
Pricing Service - Facade over the pricing core.

Wires the resolvers and calculators around one repository and exposes the
operations callers use: product prices, method-specific charges, weight-based
gas pricing, deposits, empty-return credits, order flows, totals and
validation.
"""
import asyncio
import logging
from typing import Iterable, Optional, Union

from ..config.settings import Settings, get_settings
from .deposit_rates import DepositRateResolver, pick_effective_rate, product_capacity_liters
from .exceptions import InvalidPricingInput, MinimumQuantityNotMet, PriceMismatch, PricingError
from .formatting import format_currency
from .models import (
    EmptyReturnCredit,
    OrderFlowResult,
    OrderTotals,
    PriceCalculationResult,
    PriceCharge,
    PriceList,
    PriceListStatus,
    PricingMethod,
    PricingStats,
    ReturnCondition,
    ValidationResult,
    WeightBasedPrice,
)
from .order_flow import OrderFlowPricer, OrderLineRequest
from .price_calculator import (
    apply_bulk_pricing_rules,
    calculate_charge,
    calculate_final_price,
    validate_quantity,
)
from .price_lists import (
    DateLike,
    PriceListResolver,
    as_date,
    get_price_list_status,
    is_expiring_soon,
    validate_date_range,
)
from .return_credit import EmptyReturnCreditCalculator
from .totals import OrderTotalsAggregator, calculate_order_totals
from .weight_pricing import WeightBasedPricer, calculate_weight_based_total, resolve_tax

logger = logging.getLogger(__name__)


class PricingService:
    """
    Pricing operations bound to one repository snapshot.

    Holds no mutable state beyond its collaborators, so one instance can
    serve concurrent requests.
    """

    # Pure helpers, exposed for callers that only hold the service
    calculate_final_price = staticmethod(calculate_final_price)
    calculate_weight_based_total = staticmethod(calculate_weight_based_total)
    calculate_order_totals = staticmethod(calculate_order_totals)
    apply_bulk_pricing_rules = staticmethod(apply_bulk_pricing_rules)
    validate_date_range = staticmethod(validate_date_range)
    format_currency = staticmethod(format_currency)

    def __init__(self, repository, settings: Optional[Settings] = None):
        self.repository = repository
        self.settings = settings or get_settings()

        self.resolver = PriceListResolver(repository)
        self.deposit_resolver = DepositRateResolver(repository, self.settings)
        self.weight_pricer = WeightBasedPricer(
            repository, self.settings, self.resolver, self.deposit_resolver
        )
        self.credit_calculator = EmptyReturnCreditCalculator(
            repository, self.settings, self.deposit_resolver
        )
        self.order_flow = OrderFlowPricer(
            repository,
            self.settings,
            resolver=self.resolver,
            deposit_resolver=self.deposit_resolver,
            weight_pricer=self.weight_pricer,
            credit_calculator=self.credit_calculator,
        )
        self.aggregator = OrderTotalsAggregator()

    # ------------------------------------------------------------------
    # Price list helpers
    # ------------------------------------------------------------------

    def get_price_list_status(self, start_date: DateLike, end_date: DateLike = None, today: DateLike = None) -> PriceListStatus:
        return get_price_list_status(start_date, end_date, today)

    def is_expiring_soon(self, end_date: DateLike = None, days: Optional[int] = None, today: DateLike = None) -> bool:
        if days is None:
            days = self.settings.expiring_soon_days
        return is_expiring_soon(end_date, days, today)

    async def get_active_price_lists(self, as_of: DateLike = None) -> list[PriceList]:
        """Lists valid on the date, default first, then newest start date."""
        as_of = as_date(as_of)
        price_lists = await self.repository.list_price_lists()
        active = [pl for pl in price_lists if pl.start_date is not None and pl.is_valid_on(as_of)]
        active.sort(key=lambda pl: (not pl.is_default, -pl.start_date.toordinal(), str(pl.id)))
        return active

    # ------------------------------------------------------------------
    # Product prices
    # ------------------------------------------------------------------

    async def get_product_price(self, product_id: str, as_of: DateLike = None) -> Optional[PriceCalculationResult]:
        """
        Best unit price for a product from its active price lists.

        Per-kg rates are not unit prices; use ``get_weight_based_price`` for
        those. A variant with no entry of its own inherits its parent's price;
        tax rate and category are inherited the same way.
        """
        as_of = as_date(as_of)
        product = await self.repository.find_product_attributes(product_id)

        match = await self.resolver.resolve_unit_price(product_id, as_of)
        inherited = False
        if match is None and product is not None and product.parent_product_id:
            match = await self.resolver.resolve_unit_price(product.parent_product_id, as_of)
            inherited = match is not None
            if inherited:
                logger.info("Product %s inherits price from parent %s", product_id, product.parent_product_id)

        if match is None:
            return None

        item = match.item
        unit_price = item.unit_price
        if product is not None:
            tax_rate, tax_category = await resolve_tax(self.repository, product, self.settings.default_tax_rate)
        else:
            tax_rate, tax_category = self.settings.default_tax_rate, 'standard'

        return PriceCalculationResult(
            unit_price=unit_price,
            surcharge_pct=item.surcharge_pct or 0.0,
            final_price=calculate_final_price(unit_price, item.surcharge_pct),
            price_list_id=match.price_list.id,
            price_list_name=match.price_list.name,
            pricing_method=match.price_list.pricing_method,
            min_qty=item.min_qty,
            price_excluding_tax=item.price_excluding_tax or unit_price,
            tax_amount=item.tax_amount or 0.0,
            price_including_tax=item.price_including_tax or unit_price,
            tax_rate=tax_rate,
            tax_category=tax_category,
            inherited_from_parent=inherited,
            parent_product_id=product.parent_product_id if inherited else None,
        )

    async def get_product_prices(
        self, product_ids: Iterable[str], as_of: DateLike = None
    ) -> dict[str, Optional[PriceCalculationResult]]:
        """
        Prices for many products, keyed by product id.

        Lookups run concurrently; a product that fails is logged and maps to
        ``None`` without failing the rest.
        """

        async def price_one(product_id):
            try:
                return product_id, await self.get_product_price(product_id, as_of)
            except PricingError:
                logger.exception("Error fetching price for product %s", product_id)
                return product_id, None

        results = await asyncio.gather(*[price_one(str(pid)) for pid in product_ids])
        return dict(results)

    async def calculate_final_price_with_method(
        self,
        product_id: str,
        quantity: int,
        pricing_method: Union[PricingMethod, str],
        unit_price: Optional[float] = None,
        surcharge_pct: Optional[float] = None,
        as_of: DateLike = None,
        min_qty: Optional[int] = None,
        markup_pct: Optional[float] = None,
        source_price_list_id: Optional[str] = None,
    ) -> Optional[PriceCharge]:
        """
        Charge for one line under an explicit pricing method.

        per_kg delegates to weight-based pricing and may return ``None``.
        markup / copy_from_list read the source price from
        ``source_price_list_id`` when given, otherwise use ``unit_price``.
        """
        method = PricingMethod(pricing_method)

        if method in (PricingMethod.PER_KG, PricingMethod.PER_KG_PARTIAL):
            return await self.get_weight_based_price(product_id, quantity, as_of)

        if method in (PricingMethod.MARKUP, PricingMethod.COPY_FROM_LIST) and source_price_list_id:
            found = await self.repository.find_price_list_item(source_price_list_id, product_id)
            if found is None:
                logger.warning("Product %s not in source price list %s", product_id, source_price_list_id)
                return None
            source_list, source_item = found
            if source_list.pricing_method == PricingMethod.PER_KG or not source_item.is_unit_priced:
                logger.warning("Source price list %s has no unit price for %s", source_price_list_id, product_id)
                return None
            unit_price = source_item.unit_price

        if unit_price is None:
            raise InvalidPricingInput(f"Unit price is required for {method.value} pricing")

        return calculate_charge(
            method,
            unit_price,
            quantity,
            surcharge_pct=surcharge_pct,
            min_qty=min_qty,
            markup_pct=markup_pct,
        )

    async def calculate_items(self, items: list[dict], pricing_date: DateLike = None) -> dict:
        """
        Dynamic pricing for several ``{product_id, quantity, price_list_id?}`` items.

        Failed items are reported inline with an ``error`` entry.
        """
        pricing_date = as_date(pricing_date)
        results = []
        currency = self.settings.base_currency

        for item in items:
            product_id = str(item['product_id'])
            quantity = item.get('quantity', 1)
            entry = {'product_id': product_id, 'quantity': quantity}

            match = await self.resolver.resolve_unit_price(product_id, pricing_date, item.get('price_list_id'))
            if match is None:
                entry.update(error='No applicable pricing found', unit_price=0.0, final_price=0.0)
                results.append(entry)
                continue

            price_item = match.item
            try:
                charge = calculate_charge(
                    PricingMethod.FLAT_UNIT,
                    price_item.unit_price,
                    quantity,
                    surcharge_pct=price_item.surcharge_pct,
                    min_qty=price_item.min_qty,
                )
            except MinimumQuantityNotMet as e:
                entry.update(
                    error=e.message,
                    kind=e.kind,
                    unit_price=price_item.unit_price,
                    final_price=0.0,
                    min_qty=e.min_qty,
                )
                results.append(entry)
                continue
            except InvalidPricingInput as e:
                entry.update(error=e.message, kind=e.kind, unit_price=price_item.unit_price, final_price=0.0)
                results.append(entry)
                continue

            currency = match.price_list.currency_code or currency
            entry.update(
                unit_price=price_item.unit_price,
                surcharge_pct=price_item.surcharge_pct,
                final_price=charge.final_price,
                subtotal=charge.line_total,
                price_list_id=match.price_list.id,
                price_list_name=match.price_list.name,
                min_qty=price_item.min_qty,
            )
            results.append(entry)

        return {
            'items': results,
            'total_amount': sum(r.get('subtotal', 0.0) for r in results),
            'currency': currency,
            'pricing_date': pricing_date.isoformat(),
        }

    # ------------------------------------------------------------------
    # Weight-based pricing and deposits
    # ------------------------------------------------------------------

    async def get_weight_based_price(
        self,
        product_id: str,
        quantity: int = 1,
        as_of: DateLike = None,
        fill_percentage: float = 100.0,
        custom_gas_weight_kg: Optional[float] = None,
        custom_price_per_kg: Optional[float] = None,
        currency_code: Optional[str] = None,
    ) -> Optional[WeightBasedPrice]:
        """
        Per-kg price for ``quantity`` cylinders, or ``None`` when not applicable.

        Custom weight / per-kg overrides recompute the total with the same
        deposit and tax rate.

        Raises:
            InvalidPricingInput: non-positive quantity, weight or price per kg
        """
        validate_quantity(quantity)
        if custom_gas_weight_kg is None and custom_price_per_kg is None:
            return await self.weight_pricer.get_weight_based_price(
                product_id, quantity, as_of, fill_percentage, currency_code
            )

        # Price one cylinder so the deposit is per unit
        price = await self.weight_pricer.get_weight_based_price(
            product_id, 1, as_of, fill_percentage, currency_code
        )
        if price is None:
            return None

        product = await self.repository.find_product_attributes(product_id)
        tax_rate, _ = await resolve_tax(self.repository, product, self.settings.default_tax_rate)
        single = calculate_weight_based_total(
            custom_gas_weight_kg if custom_gas_weight_kg is not None else price.net_gas_weight_kg,
            custom_price_per_kg if custom_price_per_kg is not None else price.gas_price_per_kg,
            price.deposit_amount,
            tax_rate,
            fill_percentage,
        )
        logger.info(
            "Custom weight pricing for %s: %skg @ %s/kg",
            product_id, single.net_gas_weight_kg, single.gas_price_per_kg,
        )
        return single.scaled(quantity)

    async def get_current_deposit_rate(
        self,
        capacity_l: float,
        currency_code: Optional[str] = None,
        as_of: DateLike = None,
    ) -> float:
        return await self.deposit_resolver.get_current_deposit_rate(capacity_l, currency_code, as_of)

    async def get_deposit_rate_details(
        self,
        capacity_l: float,
        currency_code: Optional[str] = None,
        as_of: DateLike = None,
    ) -> dict:
        """Deposit amount plus the rate row it came from (``rate`` is ``None`` when unset)."""
        currency_code = currency_code or self.settings.base_currency
        rate = await self.deposit_resolver.resolve_rate(capacity_l, currency_code, as_of)
        return {
            'capacity_l': capacity_l,
            'currency_code': currency_code,
            'deposit_amount': max(rate.deposit_amount, 0.0) if rate else 0.0,
            'rate': rate,
        }

    async def calculate_empty_return_credit(
        self,
        capacity_l: float,
        quantity: int = 1,
        condition: Union[ReturnCondition, str, None] = None,
        return_date: DateLike = None,
        expected_return_date: DateLike = None,
        currency_code: Optional[str] = None,
    ) -> EmptyReturnCredit:
        return await self.credit_calculator.calculate(
            capacity_l, quantity, condition, return_date, expected_return_date, currency_code
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def calculate_order_totals_with_deposits(
        self,
        lines: list[dict],
        tax_percent: float = 0.0,
        as_of: DateLike = None,
    ) -> OrderTotals:
        """
        Totals for ``{product_id, quantity, unit_price, pricing_method?, include_deposit?, subtotal?}`` lines.

        per_kg lines are re-priced by weight; other lines use their subtotal.
        Deposits are added per line when requested and taxed with the subtotal.
        """
        as_of = as_date(as_of)
        gas_charges = 0.0
        deposit_amount = 0.0

        for line in lines:
            quantity = line.get('quantity', 1)
            include_deposit = bool(line.get('include_deposit'))
            method = PricingMethod(line.get('pricing_method') or PricingMethod.FLAT_UNIT)

            if method == PricingMethod.PER_KG:
                weight = await self.weight_pricer.get_weight_based_price(line['product_id'], quantity, as_of)
                if weight is None:
                    logger.warning("No weight-based price for order line %s", line['product_id'])
                    continue
                gas_charges += weight.gas_charge
                if include_deposit:
                    deposit_amount += weight.deposit_amount
                continue

            gas_charges += line.get('subtotal') or quantity * line.get('unit_price', 0.0)
            if include_deposit:
                product = await self.repository.find_product_attributes(line['product_id'])
                if product is not None:
                    deposit = await self.deposit_resolver.get_deposit_for_product(product, None, as_of)
                    deposit_amount += deposit * quantity

        subtotal = gas_charges + deposit_amount
        tax_amount = subtotal * ((tax_percent or 0.0) / 100)
        return OrderTotals(
            subtotal=subtotal,
            tax_amount=tax_amount,
            grand_total=subtotal + tax_amount,
            gas_charges=gas_charges,
            deposit_amount=deposit_amount,
        )

    async def calculate_order_flow(
        self,
        requests: list[OrderLineRequest],
        tax_percent: Optional[float] = None,
        as_of: DateLike = None,
        return_date: DateLike = None,
    ) -> OrderFlowResult:
        """Price each line under its scenario and total the order."""
        lines, skipped = await self.order_flow.price_order(requests, as_of, return_date)
        totals = self.aggregator.aggregate(lines, tax_percent)
        return OrderFlowResult(lines=lines, totals=totals, skipped_product_ids=skipped)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate_product_pricing(
        self,
        product_id: str,
        requested_price: float,
        quantity: int,
        price_list_id: Optional[str] = None,
        as_of: DateLike = None,
    ) -> ValidationResult:
        """
        Check a requested unit price against the current price.

        Raises:
            InvalidPricingInput: requested price is not positive
        """
        if requested_price is None or requested_price <= 0:
            raise InvalidPricingInput(f"Requested price must be positive, got {requested_price}")

        result = ValidationResult(valid=True)
        current = await self.get_product_price(product_id, as_of)
        if current is None:
            result.add_error('No pricing found for this product', 'not_found')
            return result

        result.actual_price = current.final_price

        if price_list_id and str(current.price_list_id) != str(price_list_id):
            result.add_error('Requested price list is not applicable for this product', 'price_list_mismatch')

        tolerance = self.settings.price_tolerance
        if abs(requested_price - current.final_price) > tolerance:
            error = PriceMismatch(requested_price, current.final_price, tolerance)
            result.add_error(error.message, error.kind)

        if current.min_qty and quantity < current.min_qty:
            error = MinimumQuantityNotMet(current.min_qty, quantity)
            result.add_error(error.message, error.kind)

        return result

    async def validate_weight_based_pricing_requirements(
        self, product_id: str, as_of: DateLike = None
    ) -> ValidationResult:
        """Whether a product carries everything per-kg pricing needs."""
        result = ValidationResult(valid=True)
        product = await self.repository.find_product_attributes(product_id)
        if product is None:
            result.add_error('Product not found', 'not_found')
            return result
        result.product = product

        capacity_l = product_capacity_liters(product, self.settings.gas_density_kg_per_l)
        if not capacity_l or capacity_l <= 0:
            result.add_error('Product must have a valid capacity in liters', 'invalid_input')

        if not product.net_weight_kg or product.net_weight_kg <= 0:
            result.add_error('Product must have a valid net gas weight', 'invalid_input')

        if not product.gross_weight_kg or product.gross_weight_kg <= 0:
            result.warnings.append('Product missing gross weight - some calculations may be incomplete')

        if not product.tare_weight_kg or product.tare_weight_kg <= 0:
            result.warnings.append('Product missing tare weight - net weight calculation may be incorrect')

        if capacity_l:
            deposit = await self.deposit_resolver.get_current_deposit_rate(capacity_l, None, as_of)
            if deposit == 0:
                result.warnings.append(f"No deposit rate found for {capacity_l:g}L capacity")

        per_kg_lists = await self.repository.find_price_lists(
            product_id, as_date(as_of), PricingMethod.PER_KG
        )
        if not per_kg_lists:
            result.warnings.append('No per_kg pricing method found in any price list for this product')

        return result

    async def validate_deposit_rate_configuration(
        self,
        capacity_l: float,
        currency_code: Optional[str] = None,
        today: DateLike = None,
    ) -> ValidationResult:
        """Exact-capacity deposit setup: current rate, overlaps and scheduled changes."""
        result = ValidationResult(valid=True)
        if capacity_l is None or capacity_l <= 0:
            result.add_error('Capacity must be positive', 'invalid_input')
            return result

        today = as_date(today)
        currency_code = currency_code or self.settings.base_currency
        rates = await self.repository.find_deposit_rates(capacity_l, currency_code)

        current = pick_effective_rate(rates, today)
        result.current_rate = current.deposit_amount if current else 0.0
        if current is None:
            result.add_error(f"No deposit rate configured for {capacity_l:g}L capacity", 'not_found')

        if len([r for r in rates if r.is_effective_on(today)]) > 1:
            result.warnings.append('Multiple overlapping deposit rates found - using most recent')

        upcoming = sorted(
            (r for r in rates if r.is_active and r.effective_date > today),
            key=lambda r: r.effective_date,
        )
        if upcoming:
            result.warnings.append(f"Rate change scheduled for {upcoming[0].effective_date.isoformat()}")

        return result

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_pricing_stats(self, today: DateLike = None) -> PricingStats:
        today = as_date(today)
        price_lists = await self.repository.list_price_lists()

        stats = PricingStats(total_price_lists=len(price_lists))
        for pl in price_lists:
            if pl.start_date is None:
                continue
            if get_price_list_status(pl.start_date, pl.end_date, today).status == 'active':
                stats.active_price_lists += 1
            if is_expiring_soon(pl.end_date, self.settings.expiring_soon_days, today):
                stats.expiring_price_lists += 1

        products = await self.repository.list_products()
        for product in products:
            if product.status != 'active':
                continue
            if not await self.repository.find_price_lists(product.id, today):
                stats.products_without_pricing += 1

        return stats
