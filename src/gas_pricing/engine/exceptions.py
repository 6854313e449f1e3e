"""Exceptions for the pricing core.

Soft "not applicable" outcomes (no price list, no deposit rate, product not
eligible for gas-fill pricing) are never raised; callers receive ``None`` or
an empty value instead. Everything here aborts a single calculation.
"""


class PricingError(Exception):
    """Base exception for pricing errors."""

    kind = 'pricing_error'

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {'kind': self.kind, 'message': self.message}


class InvalidPricingInput(PricingError, ValueError):
    """Raised for non-positive weights, per-kg prices or requested prices."""

    kind = 'invalid_input'


class MinimumQuantityNotMet(PricingError):
    """Raised when a quantity is below a price list item's ``min_qty``."""

    kind = 'minimum_quantity_not_met'

    def __init__(self, min_qty: int, quantity: int):
        self.min_qty = min_qty
        self.quantity = quantity
        super().__init__(f"Minimum quantity is {min_qty} (requested {quantity})")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['min_qty'] = self.min_qty
        return data


class PriceMismatch(PricingError):
    """Raised when a requested price drifts from the resolved price beyond tolerance."""

    kind = 'price_mismatch'

    def __init__(self, requested_price: float, actual_price: float, tolerance: float):
        self.requested_price = requested_price
        self.actual_price = actual_price
        self.tolerance = tolerance
        super().__init__(
            f"Price mismatch: requested {requested_price} but current price is {actual_price}"
        )


class RepositoryError(PricingError):
    """Raised by repositories when a snapshot read fails."""

    kind = 'repository_failure'
