"""
Data models for the pricing core.

Uses dataclasses for structured, type-safe data representation. Charges are
a closed set of variants, one per pricing method, rather than one loose
result dict.
"""
from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Optional, Union


class PricingMethod(str, Enum):
    """Pricing method tag carried by a price list."""
    FLAT_UNIT = 'flat_unit'
    PER_KG = 'per_kg'
    FLAT_RATE = 'flat_rate'
    TIERED = 'tiered'
    MARKUP = 'markup'
    COPY_FROM_LIST = 'copy_from_list'
    # Reporting tag only: a per-kg fill below 100%
    PER_KG_PARTIAL = 'per_kg_partial'

    @classmethod
    def _missing_(cls, value):
        # Stored price lists use "per_unit" for flat unit pricing
        if isinstance(value, str) and value.strip().lower() in ('per_unit', 'unit', ''):
            return cls.FLAT_UNIT
        return None


class SaleScenario(str, Enum):
    """Business flow an order line is priced under."""
    OUTRIGHT = 'outright'
    REFILL = 'refill'
    EXCHANGE = 'exchange'
    PICKUP = 'pickup'


class ReturnCondition(str, Enum):
    """Physical condition of a returned cylinder."""
    EXCELLENT = 'excellent'
    GOOD = 'good'
    FAIR = 'fair'
    POOR = 'poor'
    DAMAGED = 'damaged'
    SCRAP = 'scrap'


# Only full cylinders get gas-fill pricing
GAS_FILL_VARIANTS = ('FULL-OUT', 'FULL-XCH')


@dataclass
class TraceStep:
    """A single step in the pricing resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class Product:
    """Product attributes consumed by pricing."""
    id: str
    name: str = ''
    sku: Optional[str] = None
    sku_variant: Optional[str] = None  # "FULL-OUT", "FULL-XCH", "EMPTY", ...
    capacity_l: Optional[float] = None
    capacity_kg: Optional[float] = None
    net_gas_weight_kg: Optional[float] = None
    gross_weight_kg: Optional[float] = None
    tare_weight_kg: Optional[float] = None
    tax_rate: Optional[float] = None  # percent, e.g. 16 for 16% VAT
    tax_category: Optional[str] = None
    parent_product_id: Optional[str] = None
    status: str = 'active'

    @property
    def is_variant(self) -> bool:
        return self.parent_product_id is not None

    @property
    def is_gas_fill_eligible(self) -> bool:
        """Unclassified products are not excluded; classified ones must be full cylinders."""
        if not self.sku_variant:
            return True
        return self.sku_variant.strip().upper() in GAS_FILL_VARIANTS

    @property
    def net_weight_kg(self) -> Optional[float]:
        """Net gas weight, derived from gross - tare when not recorded."""
        if self.net_gas_weight_kg:
            return self.net_gas_weight_kg
        if self.gross_weight_kg and self.tare_weight_kg:
            return self.gross_weight_kg - self.tare_weight_kg
        return None


@dataclass
class PriceList:
    """A named, date-bounded table of prices."""
    id: str
    name: str
    start_date: date
    end_date: Optional[date] = None
    currency_code: str = 'KES'
    is_default: bool = False
    pricing_method: PricingMethod = PricingMethod.FLAT_UNIT
    description: Optional[str] = None

    def is_valid_on(self, as_of: date) -> bool:
        return self.start_date <= as_of and (self.end_date is None or self.end_date >= as_of)


@dataclass
class PriceListItem:
    """A product's entry in one price list."""
    price_list_id: str
    product_id: str
    unit_price: Optional[float] = None
    price_per_kg: Optional[float] = None
    surcharge_pct: Optional[float] = None
    min_qty: Optional[int] = None
    price_excluding_tax: Optional[float] = None
    tax_amount: Optional[float] = None
    price_including_tax: Optional[float] = None

    @property
    def is_unit_priced(self) -> bool:
        return self.unit_price is not None

    @property
    def per_kg_rate(self) -> Optional[float]:
        """Rate for a per-kg list; older per-kg lists keep it in unit_price."""
        if self.price_per_kg is not None:
            return self.price_per_kg
        return self.unit_price


@dataclass
class CylinderDepositRate:
    """Deposit charged per cylinder of a given capacity."""
    capacity_l: float
    deposit_amount: float
    effective_date: date
    currency_code: str = 'KES'
    end_date: Optional[date] = None
    is_active: bool = True
    id: Optional[str] = None

    def is_effective_on(self, as_of: date) -> bool:
        return (
            self.is_active
            and self.effective_date <= as_of
            and (self.end_date is None or self.end_date >= as_of)
        )


# ---------------------------------------------------------------------------
# Charge variants
# ---------------------------------------------------------------------------

@dataclass
class FlatUnitCharge:
    """final = unit * (1 + surcharge); line = final * qty."""
    unit_price: float
    surcharge_pct: float
    final_price: float
    quantity: int
    line_total: float
    pricing_method: PricingMethod = PricingMethod.FLAT_UNIT


@dataclass
class FlatRateCharge:
    """One fixed charge for the whole line regardless of quantity."""
    unit_price: float
    surcharge_pct: float
    final_price: float
    quantity: int
    line_total: float
    pricing_method: PricingMethod = PricingMethod.FLAT_RATE


@dataclass
class TieredCharge:
    """Bulk discount applied to the final price before multiplying."""
    unit_price: float
    surcharge_pct: float
    final_price: float
    discount_pct: float
    discounted_price: float
    quantity: int
    line_total: float
    pricing_method: PricingMethod = PricingMethod.TIERED


@dataclass
class MarkupCharge:
    """Source price marked up, then priced as flat unit."""
    source_price: float
    markup_pct: float
    unit_price: float
    surcharge_pct: float
    final_price: float
    quantity: int
    line_total: float
    pricing_method: PricingMethod = PricingMethod.MARKUP


@dataclass
class WeightBasedPrice:
    """Gas fill priced by net weight, plus deposit and tax."""
    net_gas_weight_kg: float
    gas_price_per_kg: float
    gas_charge: float
    deposit_amount: float
    subtotal: float
    tax_amount: float
    total_price: float
    pricing_method: PricingMethod = PricingMethod.PER_KG
    quantity: int = 1
    fill_percentage: float = 100.0
    original_weight_kg: Optional[float] = None
    adjusted_weight_kg: Optional[float] = None

    @property
    def line_total(self) -> float:
        return self.total_price

    def scaled(self, quantity: int) -> 'WeightBasedPrice':
        """Scale every monetary field for N identical cylinders."""
        return replace(
            self,
            gas_charge=self.gas_charge * quantity,
            deposit_amount=self.deposit_amount * quantity,
            subtotal=self.subtotal * quantity,
            tax_amount=self.tax_amount * quantity,
            total_price=self.total_price * quantity,
            quantity=quantity,
        )


PriceCharge = Union[FlatUnitCharge, FlatRateCharge, TieredCharge, MarkupCharge, WeightBasedPrice]


@dataclass
class EmptyReturnCredit:
    """Refund for returned empty cylinders."""
    capacity_l: float
    quantity: int
    condition: ReturnCondition
    deposit_per_unit: float
    refund_pct: float  # fraction, 0.9 == 90%
    gross_credit: float
    late_penalty: float
    credit_amount: float  # after late penalty
    is_late: bool = False
    days_late: int = 0
    weeks_late: int = 0
    penalty_pct: float = 0.0


@dataclass
class PriceCalculationResult:
    """Resolved product price from the best applicable price list."""
    unit_price: float
    surcharge_pct: float
    final_price: float
    price_list_id: str
    price_list_name: str
    pricing_method: PricingMethod = PricingMethod.FLAT_UNIT
    min_qty: Optional[int] = None
    # Tax-related fields
    price_excluding_tax: Optional[float] = None
    tax_amount: Optional[float] = None
    price_including_tax: Optional[float] = None
    tax_rate: float = 0.0
    tax_category: str = 'standard'
    inherited_from_parent: bool = False
    parent_product_id: Optional[str] = None


@dataclass
class PricedLine:
    """A single priced order line."""
    product_id: str
    scenario: SaleScenario
    quantity: int
    pricing_method: Optional[PricingMethod]
    gas_charge: float = 0.0
    deposit_amount: float = 0.0
    subtotal: float = 0.0
    tax_amount: float = 0.0
    line_total: float = 0.0
    unit_price: Optional[float] = None
    credit: Optional[EmptyReturnCredit] = None
    weight: Optional[WeightBasedPrice] = None
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    @property
    def credit_amount(self) -> float:
        return self.credit.credit_amount if self.credit else 0.0

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this line."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a warning for this line."""
        self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)


@dataclass
class OrderTotals:
    """Order-level sums across priced lines."""
    subtotal: float
    tax_amount: float
    grand_total: float
    gas_charges: float = 0.0
    deposit_amount: float = 0.0
    credit_amount: float = 0.0


@dataclass
class PriceListStatus:
    """Display status of a price list."""
    status: str  # "active", "future", "expired"
    label: str
    color: str


@dataclass
class ValidationResult:
    """Outcome of a pricing validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error_kinds: list[str] = field(default_factory=list)
    actual_price: Optional[float] = None
    current_rate: Optional[float] = None
    product: Optional[Product] = None

    def add_error(self, message: str, kind: str = 'invalid'):
        self.errors.append(message)
        self.error_kinds.append(kind)
        self.valid = False


@dataclass
class OrderFlowResult:
    """Priced lines of one order plus their totals."""
    lines: list[PricedLine]
    totals: OrderTotals
    skipped_product_ids: list[str] = field(default_factory=list)


@dataclass
class PricingStats:
    """Counts for the pricing dashboard."""
    total_price_lists: int = 0
    active_price_lists: int = 0
    expiring_price_lists: int = 0
    products_without_pricing: int = 0
