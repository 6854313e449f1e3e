"""
Repository - point-in-time snapshots of price lists, deposit rates and products.

The pricing core only reads through the async ``Repository`` contract.
``DataFrameRepository`` is the bundled implementation: four pandas frames
loaded from CSV files or from one Excel workbook (one sheet per table).
"""
import logging
from datetime import date
from pathlib import Path
from typing import Optional, Protocol

import pandas as pd

from ..engine.exceptions import RepositoryError
from ..engine.models import (
    CylinderDepositRate,
    PriceList,
    PriceListItem,
    PricingMethod,
    Product,
)

logger = logging.getLogger(__name__)


PRICE_LIST_COLUMNS = [
    'id', 'name', 'currency_code', 'start_date', 'end_date',
    'is_default', 'pricing_method', 'description',
]
PRICE_LIST_ITEM_COLUMNS = [
    'price_list_id', 'product_id', 'unit_price', 'price_per_kg', 'surcharge_pct',
    'min_qty', 'price_excluding_tax', 'tax_amount', 'price_including_tax',
]
PRODUCT_COLUMNS = [
    'id', 'name', 'sku', 'sku_variant', 'capacity_l', 'capacity_kg',
    'net_gas_weight_kg', 'gross_weight_kg', 'tare_weight_kg', 'tax_rate',
    'tax_category', 'parent_product_id', 'status',
]
DEPOSIT_RATE_COLUMNS = [
    'id', 'capacity_l', 'currency_code', 'deposit_amount',
    'effective_date', 'end_date', 'is_active',
]

TABLES = {
    'price_lists': PRICE_LIST_COLUMNS,
    'price_list_items': PRICE_LIST_ITEM_COLUMNS,
    'products': PRODUCT_COLUMNS,
    'deposit_rates': DEPOSIT_RATE_COLUMNS,
}


class Repository(Protocol):
    """Read-only collaborator the pricing core depends on."""

    async def find_price_lists(
        self,
        product_id: str,
        as_of: date,
        pricing_method: Optional[PricingMethod] = None,
    ) -> list[tuple[PriceList, PriceListItem]]:
        """Price lists valid on ``as_of`` that carry an item for the product."""
        ...

    async def find_price_list_item(
        self, price_list_id: str, product_id: str
    ) -> Optional[tuple[PriceList, PriceListItem]]:
        """One list's entry for a product, ignoring validity dates."""
        ...

    async def list_price_lists(self) -> list[PriceList]:
        ...

    async def find_deposit_rates(
        self, capacity_l: Optional[float], currency_code: str
    ) -> list[CylinderDepositRate]:
        """All deposit rows for a currency, optionally for one capacity."""
        ...

    async def find_product_attributes(self, product_id: str) -> Optional[Product]:
        ...

    async def find_parent_product_attributes(self, product_id: str) -> Optional[Product]:
        ...

    async def list_products(self) -> list[Product]:
        ...


# ---------------------------------------------------------------------------
# Row conversion helpers
# ---------------------------------------------------------------------------

def _clean(value):
    """NaN/NaT/empty string → None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def _opt_float(value) -> Optional[float]:
    value = _clean(value)
    return float(value) if value is not None else None


def _opt_int(value) -> Optional[int]:
    value = _clean(value)
    return int(float(value)) if value is not None else None


def _opt_str(value) -> Optional[str]:
    value = _clean(value)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _opt_date(value) -> Optional[date]:
    value = _clean(value)
    if value is None:
        return None
    return pd.Timestamp(value).date()


def parse_bool(value) -> bool:
    """Parse a boolean from a CSV/Excel cell."""
    value = _clean(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes', 'on', 't')


def _normalize(df: Optional[pd.DataFrame], columns: list[str]) -> pd.DataFrame:
    """Ensure every expected column exists and strip header whitespace."""
    if df is None:
        df = pd.DataFrame(columns=columns)
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    for col in columns:
        if col not in df.columns:
            df[col] = None
    return df


def _to_timestamps(series: pd.Series) -> pd.Series:
    return pd.to_datetime(series, errors='coerce')


def _id_series(series: pd.Series) -> pd.Series:
    return series.map(_opt_str)


class DataFrameRepository:
    """
    In-memory snapshot repository backed by pandas DataFrames.

    Dates are held as timestamps so validity windows filter with vectorized
    comparisons, the same way order policies filter effective dates.
    """

    def __init__(
        self,
        price_lists: Optional[pd.DataFrame] = None,
        price_list_items: Optional[pd.DataFrame] = None,
        products: Optional[pd.DataFrame] = None,
        deposit_rates: Optional[pd.DataFrame] = None,
    ):
        self.price_lists = _normalize(price_lists, PRICE_LIST_COLUMNS)
        self.price_lists['id'] = _id_series(self.price_lists['id'])
        self.price_lists['start_date'] = _to_timestamps(self.price_lists['start_date'])
        self.price_lists['end_date'] = _to_timestamps(self.price_lists['end_date'])

        self.price_list_items = _normalize(price_list_items, PRICE_LIST_ITEM_COLUMNS)
        self.price_list_items = self.price_list_items.drop(columns=['id'], errors='ignore')
        self.price_list_items['price_list_id'] = _id_series(self.price_list_items['price_list_id'])
        self.price_list_items['product_id'] = _id_series(self.price_list_items['product_id'])

        self.products = _normalize(products, PRODUCT_COLUMNS)
        self.products['id'] = _id_series(self.products['id'])
        self.products['parent_product_id'] = _id_series(self.products['parent_product_id'])

        self.deposit_rates = _normalize(deposit_rates, DEPOSIT_RATE_COLUMNS)
        self.deposit_rates['currency_code'] = self.deposit_rates['currency_code'].map(_opt_str).fillna('KES')
        self.deposit_rates['capacity_l'] = pd.to_numeric(self.deposit_rates['capacity_l'], errors='coerce')
        self.deposit_rates['effective_date'] = _to_timestamps(self.deposit_rates['effective_date'])
        self.deposit_rates['end_date'] = _to_timestamps(self.deposit_rates['end_date'])

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        price_lists: list[dict] = (),
        price_list_items: list[dict] = (),
        products: list[dict] = (),
        deposit_rates: list[dict] = (),
    ) -> 'DataFrameRepository':
        """Build a repository from plain row dicts."""
        return cls(
            price_lists=pd.DataFrame(list(price_lists), columns=None if price_lists else PRICE_LIST_COLUMNS),
            price_list_items=pd.DataFrame(list(price_list_items), columns=None if price_list_items else PRICE_LIST_ITEM_COLUMNS),
            products=pd.DataFrame(list(products), columns=None if products else PRODUCT_COLUMNS),
            deposit_rates=pd.DataFrame(list(deposit_rates), columns=None if deposit_rates else DEPOSIT_RATE_COLUMNS),
        )

    @classmethod
    def from_directory(cls, data_dir: Path) -> 'DataFrameRepository':
        """Load ``<table>.csv`` files from a directory."""
        data_dir = Path(data_dir)
        price_lists_path = data_dir / 'price_lists.csv'
        if not price_lists_path.exists():
            raise FileNotFoundError(
                f"price_lists.csv not found at {price_lists_path}."
            )

        frames = {}
        for table in TABLES:
            path = data_dir / f'{table}.csv'
            if not path.exists():
                logger.warning("Snapshot table %s missing in %s, using empty table", table, data_dir)
                frames[table] = None
                continue
            try:
                frames[table] = pd.read_csv(path, dtype=str)
            except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
                raise RepositoryError(f"Failed to read {path}: {e}") from e
        return cls(**frames)

    @classmethod
    def from_excel(cls, workbook_path: Path) -> 'DataFrameRepository':
        """Load one sheet per table from an Excel workbook."""
        workbook_path = Path(workbook_path)
        if not workbook_path.exists():
            raise FileNotFoundError(f"Pricing workbook not found at {workbook_path}.")
        try:
            sheets = pd.read_excel(workbook_path, sheet_name=None, dtype=str)
        except ValueError as e:
            raise RepositoryError(f"Failed to read {workbook_path}: {e}") from e
        return cls(**{table: sheets.get(table) for table in TABLES})

    @classmethod
    def load(cls, source: Path) -> 'DataFrameRepository':
        """Load from a CSV directory or an .xlsx workbook."""
        source = Path(source)
        if source.suffix.lower() in ('.xlsx', '.xlsm'):
            return cls.from_excel(source)
        return cls.from_directory(source)

    # ------------------------------------------------------------------
    # Row → model
    # ------------------------------------------------------------------

    @staticmethod
    def _price_list_from_row(row) -> PriceList:
        return PriceList(
            id=_opt_str(row['id']),
            name=_opt_str(row['name']) or '',
            start_date=_opt_date(row['start_date']),
            end_date=_opt_date(row['end_date']),
            currency_code=_opt_str(row['currency_code']) or 'KES',
            is_default=parse_bool(row['is_default']),
            pricing_method=PricingMethod(_opt_str(row['pricing_method']) or 'per_unit'),
            description=_opt_str(row['description']),
        )

    @staticmethod
    def _item_from_row(row) -> PriceListItem:
        return PriceListItem(
            price_list_id=_opt_str(row['price_list_id']),
            product_id=_opt_str(row['product_id']),
            unit_price=_opt_float(row['unit_price']),
            price_per_kg=_opt_float(row['price_per_kg']),
            surcharge_pct=_opt_float(row['surcharge_pct']),
            min_qty=_opt_int(row['min_qty']),
            price_excluding_tax=_opt_float(row['price_excluding_tax']),
            tax_amount=_opt_float(row['item_tax_amount'] if 'item_tax_amount' in row else row['tax_amount']),
            price_including_tax=_opt_float(row['price_including_tax']),
        )

    @staticmethod
    def _product_from_row(row) -> Product:
        return Product(
            id=_opt_str(row['id']),
            name=_opt_str(row['name']) or '',
            sku=_opt_str(row['sku']),
            sku_variant=_opt_str(row['sku_variant']),
            capacity_l=_opt_float(row['capacity_l']),
            capacity_kg=_opt_float(row['capacity_kg']),
            net_gas_weight_kg=_opt_float(row['net_gas_weight_kg']),
            gross_weight_kg=_opt_float(row['gross_weight_kg']),
            tare_weight_kg=_opt_float(row['tare_weight_kg']),
            tax_rate=_opt_float(row['tax_rate']),
            tax_category=_opt_str(row['tax_category']),
            parent_product_id=_opt_str(row['parent_product_id']),
            status=_opt_str(row['status']) or 'active',
        )

    @staticmethod
    def _deposit_rate_from_row(row) -> CylinderDepositRate:
        is_active = _clean(row['is_active'])
        return CylinderDepositRate(
            id=_opt_str(row['id']),
            capacity_l=float(row['capacity_l']),
            currency_code=_opt_str(row['currency_code']) or 'KES',
            deposit_amount=_opt_float(row['deposit_amount']) or 0.0,
            effective_date=_opt_date(row['effective_date']),
            end_date=_opt_date(row['end_date']),
            is_active=True if is_active is None else parse_bool(is_active),
        )

    # ------------------------------------------------------------------
    # Repository contract
    # ------------------------------------------------------------------

    def _joined_items(self, product_id: str) -> pd.DataFrame:
        items = self.price_list_items[self.price_list_items['product_id'] == str(product_id)]
        if items.empty:
            return items
        items = items.rename(columns={'tax_amount': 'item_tax_amount'})
        return items.merge(self.price_lists, left_on='price_list_id', right_on='id', how='inner')

    async def find_price_lists(
        self,
        product_id: str,
        as_of: date,
        pricing_method: Optional[PricingMethod] = None,
    ) -> list[tuple[PriceList, PriceListItem]]:
        matches = self._joined_items(product_id)
        if matches.empty:
            return []

        ts = pd.Timestamp(as_of)
        matches = matches[
            (matches['start_date'] <= ts) &
            (matches['end_date'].isna() | (matches['end_date'] >= ts))
        ]

        pairs = [
            (self._price_list_from_row(row), self._item_from_row(row))
            for _, row in matches.iterrows()
        ]
        if pricing_method is not None:
            method = PricingMethod(pricing_method)
            pairs = [(pl, item) for pl, item in pairs if pl.pricing_method == method]
        return pairs

    async def find_price_list_item(
        self, price_list_id: str, product_id: str
    ) -> Optional[tuple[PriceList, PriceListItem]]:
        matches = self._joined_items(product_id)
        if matches.empty:
            return None
        matches = matches[matches['price_list_id'] == str(price_list_id)]
        if matches.empty:
            return None
        row = matches.iloc[0]
        return self._price_list_from_row(row), self._item_from_row(row)

    async def list_price_lists(self) -> list[PriceList]:
        return [self._price_list_from_row(row) for _, row in self.price_lists.iterrows()]

    async def find_deposit_rates(
        self, capacity_l: Optional[float], currency_code: str
    ) -> list[CylinderDepositRate]:
        rates = self.deposit_rates[
            self.deposit_rates['currency_code'].astype(str).str.strip() == currency_code
        ]
        rates = rates[rates['capacity_l'].notna()]
        if capacity_l is not None:
            rates = rates[(rates['capacity_l'] - float(capacity_l)).abs() < 1e-9]
        return [self._deposit_rate_from_row(row) for _, row in rates.iterrows()]

    async def find_product_attributes(self, product_id: str) -> Optional[Product]:
        match = self.products[self.products['id'] == str(product_id)]
        if match.empty:
            return None
        return self._product_from_row(match.iloc[0])

    async def find_parent_product_attributes(self, product_id: str) -> Optional[Product]:
        product = await self.find_product_attributes(product_id)
        if product is None or not product.parent_product_id:
            return None
        return await self.find_product_attributes(product.parent_product_id)

    async def list_products(self) -> list[Product]:
        return [self._product_from_row(row) for _, row in self.products.iterrows()]
