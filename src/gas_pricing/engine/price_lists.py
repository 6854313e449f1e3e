"""
Price List Resolver - Picks the single best price list entry for a product.

Used by the pricing service and the weight-based pricer to turn
(product, date, optional list, optional method) into one
(PriceList, PriceListItem) pair.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from .models import PriceList, PriceListItem, PriceListStatus, PricingMethod

logger = logging.getLogger(__name__)

DateLike = Union[date, str, None]


def as_date(value: DateLike, default: Optional[date] = None) -> date:
    """Coerce an ISO string or datetime to a date; ``None`` means today."""
    if value is None:
        return default or date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


@dataclass
class PriceListMatch:
    """A price list and the product's entry in it."""
    price_list: PriceList
    item: PriceListItem

    @property
    def is_unit_priced(self) -> bool:
        return (
            self.price_list.pricing_method not in (PricingMethod.PER_KG, PricingMethod.PER_KG_PARTIAL)
            and self.item.is_unit_priced
        )

    @property
    def sort_key(self) -> tuple:
        # Default lists first, then newest start date, then id for determinism
        return (
            not self.price_list.is_default,
            -self.price_list.start_date.toordinal(),
            str(self.price_list.id),
        )


class PriceListResolver:
    """
    Resolves the applicable price list entry for a product on a date.

    Resolution order:
    1. Lists valid on the date (start <= date, end open or >= date)
    2. Lists carrying an item for the product (optionally of one method)
    3. Restricted to an explicit list id when one is given
    4. Default list wins; otherwise the latest start date
    """

    def __init__(self, repository):
        self.repository = repository

    async def find_candidates(
        self,
        product_id: str,
        as_of: DateLike = None,
        price_list_id: Optional[str] = None,
        pricing_method: Optional[PricingMethod] = None,
    ) -> list[PriceListMatch]:
        """All applicable entries, best first."""
        as_of = as_date(as_of)
        pairs = await self.repository.find_price_lists(product_id, as_of, pricing_method)

        matched = []
        for price_list, item in pairs:
            # The repository filters already; re-check so any snapshot source is safe
            if not price_list.is_valid_on(as_of):
                continue
            if item.product_id != str(product_id):
                continue
            if pricing_method is not None and price_list.pricing_method != PricingMethod(pricing_method):
                continue
            if price_list_id is not None and str(price_list.id) != str(price_list_id):
                continue
            matched.append(PriceListMatch(price_list=price_list, item=item))

        matched.sort(key=lambda m: m.sort_key)
        return matched

    async def resolve(
        self,
        product_id: str,
        as_of: DateLike = None,
        price_list_id: Optional[str] = None,
        pricing_method: Optional[PricingMethod] = None,
    ) -> Optional[PriceListMatch]:
        """Best entry, or ``None`` when nothing applies."""
        candidates = await self.find_candidates(product_id, as_of, price_list_id, pricing_method)
        if not candidates:
            logger.info("No applicable price list for product %s on %s", product_id, as_date(as_of))
            return None
        return self._pick(candidates, product_id, as_of)

    async def resolve_unit_price(
        self,
        product_id: str,
        as_of: DateLike = None,
        price_list_id: Optional[str] = None,
    ) -> Optional[PriceListMatch]:
        """
        Best entry carrying a per-cylinder unit price.

        Per-kg lists hold a rate, not a price, and are never considered.
        """
        candidates = [
            c for c in await self.find_candidates(product_id, as_of, price_list_id)
            if c.is_unit_priced
        ]
        if not candidates:
            logger.info("No unit price for product %s on %s", product_id, as_date(as_of))
            return None
        return self._pick(candidates, product_id, as_of)

    def _pick(self, candidates: list[PriceListMatch], product_id: str, as_of: DateLike) -> PriceListMatch:
        defaults = [c for c in candidates if c.price_list.is_default]
        if len(defaults) > 1:
            logger.warning(
                "Product %s has %d default price lists on %s; using %s",
                product_id, len(defaults), as_date(as_of), defaults[0].price_list.id,
            )
        return candidates[0]


def get_price_list_status(start_date: DateLike, end_date: DateLike = None, today: DateLike = None) -> PriceListStatus:
    """Classify a price list as active, future or expired."""
    today = as_date(today)
    start = as_date(start_date)
    end = as_date(end_date) if end_date else None

    if start > today:
        return PriceListStatus(
            status='future',
            label='Future',
            color='bg-blue-100 text-blue-800 border-blue-200',
        )

    if end and end < today:
        return PriceListStatus(
            status='expired',
            label='Expired',
            color='bg-red-100 text-red-800 border-red-200',
        )

    return PriceListStatus(
        status='active',
        label='Active',
        color='bg-green-100 text-green-800 border-green-200',
    )


def validate_date_range(start_date: DateLike, end_date: DateLike = None) -> bool:
    """An open-ended range is always valid."""
    if not end_date:
        return True
    return as_date(start_date) <= as_date(end_date)


def is_expiring_soon(end_date: DateLike = None, days: int = 30, today: DateLike = None) -> bool:
    """True when the list ends within ``days`` days and has not ended yet."""
    if not end_date:
        return False
    days_until_expiry = (as_date(end_date) - as_date(today)).days
    return 0 <= days_until_expiry <= days
