"""
Price Calculator - Turns a resolved unit price and quantity into a charge.

Dispatches on pricing method and returns one charge variant per method.
Per-kg pricing needs product weights and lives in weight_pricing.
"""
from typing import Optional

from .exceptions import InvalidPricingInput, MinimumQuantityNotMet
from .models import (
    FlatRateCharge,
    FlatUnitCharge,
    MarkupCharge,
    PriceCharge,
    PricingMethod,
    TieredCharge,
)

# (min quantity, discount) - first match wins
TIER_DISCOUNTS = (
    (100, 0.15),
    (50, 0.10),
    (20, 0.05),
    (10, 0.02),
)


def calculate_final_price(unit_price: float, surcharge_pct: Optional[float] = None) -> float:
    """unit_price * (1 + surcharge/100); a missing surcharge is 0%."""
    if not surcharge_pct:
        return unit_price
    return unit_price * (1 + surcharge_pct / 100)


def tier_discount(quantity: int) -> float:
    """Bulk discount fraction for a quantity."""
    for min_quantity, discount in TIER_DISCOUNTS:
        if quantity >= min_quantity:
            return discount
    return 0.0


def apply_markup(source_price: float, markup_pct: Optional[float] = None) -> float:
    if not markup_pct:
        return source_price
    return source_price * (1 + markup_pct / 100)


def validate_quantity(quantity: int):
    if quantity is None or quantity <= 0:
        raise InvalidPricingInput(f"Quantity must be positive, got {quantity}")


def check_minimum_quantity(quantity: int, min_qty: Optional[int]):
    """Raise when a declared minimum is not met."""
    if min_qty and quantity < min_qty:
        raise MinimumQuantityNotMet(min_qty=min_qty, quantity=quantity)


def apply_bulk_pricing_rules(
    quantity: int,
    unit_price: float,
    min_qty: Optional[int] = None,
    bulk_discount: Optional[float] = None,
) -> float:
    """Regular price below the minimum, discounted price at or above it."""
    if min_qty and quantity < min_qty:
        return unit_price

    if bulk_discount and min_qty and quantity >= min_qty:
        return unit_price * (1 - bulk_discount / 100)

    return unit_price


def calculate_charge(
    pricing_method: PricingMethod,
    unit_price: float,
    quantity: int,
    surcharge_pct: Optional[float] = None,
    min_qty: Optional[int] = None,
    markup_pct: Optional[float] = None,
) -> PriceCharge:
    """
    Price a line with a non-weight method.

    For markup / copy_from_list, ``unit_price`` is the source price.

    Raises:
        MinimumQuantityNotMet: quantity below ``min_qty``
        InvalidPricingInput: negative price/quantity or per-kg method
    """
    method = PricingMethod(pricing_method)

    validate_quantity(quantity)
    if unit_price is None or unit_price < 0:
        raise InvalidPricingInput(f"Unit price must be non-negative, got {unit_price}")

    check_minimum_quantity(quantity, min_qty)
    surcharge = surcharge_pct or 0.0

    if method == PricingMethod.FLAT_UNIT:
        final_price = calculate_final_price(unit_price, surcharge_pct)
        return FlatUnitCharge(
            unit_price=unit_price,
            surcharge_pct=surcharge,
            final_price=final_price,
            quantity=quantity,
            line_total=final_price * quantity,
        )

    elif method == PricingMethod.FLAT_RATE:
        # Same charge regardless of quantity
        final_price = calculate_final_price(unit_price, surcharge_pct)
        return FlatRateCharge(
            unit_price=unit_price,
            surcharge_pct=surcharge,
            final_price=final_price,
            quantity=quantity,
            line_total=final_price,
        )

    elif method == PricingMethod.TIERED:
        final_price = calculate_final_price(unit_price, surcharge_pct)
        discount = tier_discount(quantity)
        discounted_price = final_price * (1 - discount)
        return TieredCharge(
            unit_price=unit_price,
            surcharge_pct=surcharge,
            final_price=final_price,
            discount_pct=discount * 100,
            discounted_price=discounted_price,
            quantity=quantity,
            line_total=discounted_price * quantity,
        )

    elif method in (PricingMethod.MARKUP, PricingMethod.COPY_FROM_LIST):
        marked_up = apply_markup(unit_price, markup_pct)
        final_price = calculate_final_price(marked_up, surcharge_pct)
        return MarkupCharge(
            source_price=unit_price,
            markup_pct=markup_pct or 0.0,
            unit_price=marked_up,
            surcharge_pct=surcharge,
            final_price=final_price,
            quantity=quantity,
            line_total=final_price * quantity,
            pricing_method=method,
        )

    raise InvalidPricingInput(f"Pricing method {method.value} needs product weights; use weight-based pricing")
