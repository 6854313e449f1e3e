"""
Order Totals - Sums priced lines into order-level totals.

Aggregation is pure summation: tax already computed on a line is trusted,
never re-derived, so deposits are not taxed twice.
"""
from typing import Iterable, Optional

from .models import OrderTotals, PricedLine, SaleScenario


def calculate_order_totals(lines: Iterable[dict], tax_percent: float = 0.0) -> OrderTotals:
    """
    Totals for plain ``{quantity, unit_price, subtotal?}`` lines.

    A line's explicit subtotal wins over quantity × unit price.
    """
    subtotal = sum(
        line.get('subtotal') or line.get('quantity', 0) * line.get('unit_price', 0)
        for line in lines
    )
    tax_amount = subtotal * ((tax_percent or 0.0) / 100)
    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        grand_total=subtotal + tax_amount,
        gas_charges=subtotal,
    )


class OrderTotalsAggregator:
    """Sums subtotal, gas, deposits, tax and credits across priced lines."""

    def aggregate(self, lines: Iterable[PricedLine], tax_percent: Optional[float] = None) -> OrderTotals:
        """
        Args:
            lines: priced lines of any scenario / method
            tax_percent: order-level override applied to the chargeable subtotal;
                when omitted each line's own tax is summed
        """
        lines = list(lines)
        subtotal = sum(line.subtotal for line in lines)
        gas_charges = sum(line.gas_charge for line in lines)
        deposit_amount = sum(line.deposit_amount for line in lines)
        credit_amount = sum(line.credit_amount for line in lines)

        if tax_percent is None:
            tax_amount = sum(line.tax_amount for line in lines)
        else:
            # Refund-only lines never carry tax
            taxable = sum(line.subtotal for line in lines if line.scenario != SaleScenario.PICKUP)
            tax_amount = taxable * (tax_percent / 100)

        return OrderTotals(
            subtotal=subtotal,
            tax_amount=tax_amount,
            grand_total=subtotal + tax_amount,
            gas_charges=gas_charges,
            deposit_amount=deposit_amount,
            credit_amount=credit_amount,
        )
