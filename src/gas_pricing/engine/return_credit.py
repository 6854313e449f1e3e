"""
Empty Return Credit - Refund for returned cylinders.

credit = deposit × quantity × refund% (by condition), less a lateness
penalty of 5% per started week late, capped at 25%.
"""
import math
from typing import Optional, Union

from ..config.settings import Settings, get_settings
from .deposit_rates import DepositRateResolver
from .exceptions import InvalidPricingInput
from .models import EmptyReturnCredit, ReturnCondition
from .price_lists import DateLike, as_date

REFUND_PERCENTAGES = {
    ReturnCondition.EXCELLENT: 1.00,
    ReturnCondition.GOOD: 0.90,
    ReturnCondition.FAIR: 0.75,
    ReturnCondition.POOR: 0.50,
    ReturnCondition.DAMAGED: 0.25,
    ReturnCondition.SCRAP: 0.0,
}

LATE_PENALTY_PER_WEEK = 0.05
MAX_LATE_PENALTY = 0.25


def late_penalty_pct(days_late: int) -> tuple[int, float]:
    """(weeks late, penalty fraction) for a number of days late."""
    if days_late <= 0:
        return 0, 0.0
    weeks_late = math.ceil(days_late / 7)
    return weeks_late, min(weeks_late * LATE_PENALTY_PER_WEEK, MAX_LATE_PENALTY)


def compute_credit(
    deposit_per_unit: float,
    capacity_l: float,
    quantity: int,
    condition: Union[ReturnCondition, str] = ReturnCondition.GOOD,
    return_date: DateLike = None,
    expected_return_date: DateLike = None,
) -> EmptyReturnCredit:
    """Pure credit math for a known per-unit deposit."""
    if quantity <= 0:
        raise InvalidPricingInput(f"Returned quantity must be positive, got {quantity}")
    try:
        condition = ReturnCondition(condition)
    except ValueError:
        raise InvalidPricingInput(f"Unknown cylinder condition: {condition}") from None

    refund_pct = REFUND_PERCENTAGES[condition]
    gross_credit = deposit_per_unit * quantity * refund_pct

    days_late = 0
    if expected_return_date is not None:
        days_late = max((as_date(return_date) - as_date(expected_return_date)).days, 0)
    weeks_late, penalty_pct = late_penalty_pct(days_late)
    late_penalty = gross_credit * penalty_pct

    return EmptyReturnCredit(
        capacity_l=capacity_l,
        quantity=quantity,
        condition=condition,
        deposit_per_unit=deposit_per_unit,
        refund_pct=refund_pct,
        gross_credit=gross_credit,
        late_penalty=late_penalty,
        credit_amount=gross_credit - late_penalty,
        is_late=days_late > 0,
        days_late=days_late,
        weeks_late=weeks_late,
        penalty_pct=penalty_pct,
    )


class EmptyReturnCreditCalculator:
    """Looks up the deposit for a capacity and applies the credit rules."""

    def __init__(
        self,
        repository,
        settings: Optional[Settings] = None,
        deposit_resolver: Optional[DepositRateResolver] = None,
    ):
        self.settings = settings or get_settings()
        self.deposit_resolver = deposit_resolver or DepositRateResolver(repository, self.settings)

    async def calculate(
        self,
        capacity_l: float,
        quantity: int = 1,
        condition: Union[ReturnCondition, str, None] = None,
        return_date: DateLike = None,
        expected_return_date: DateLike = None,
        currency_code: Optional[str] = None,
    ) -> EmptyReturnCredit:
        return_date = as_date(return_date)
        deposit_per_unit = await self.deposit_resolver.get_current_deposit_rate(
            capacity_l, currency_code, return_date
        )
        return compute_credit(
            deposit_per_unit,
            capacity_l,
            quantity,
            condition or self.settings.default_return_condition,
            return_date,
            expected_return_date,
        )
