"""
Pricing API - FastAPI router over PricingService.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ..engine.exceptions import (
    MinimumQuantityNotMet,
    PricingError,
    RepositoryError,
)
from ..engine.models import PricingMethod, ReturnCondition, SaleScenario
from ..engine.order_flow import OrderLineRequest
from ..engine.pricing_engine import PricingService
from ..policy.customer_tiers import get_customer_pricing_tier
from .state import get_service

router = APIRouter(prefix="/pricing", tags=["pricing"])


def to_http_error(error: PricingError) -> HTTPException:
    """Map a pricing error to its HTTP status; invalid input is a 400."""
    if isinstance(error, MinimumQuantityNotMet):
        return HTTPException(status_code=422, detail=error.to_dict())
    if isinstance(error, RepositoryError):
        return HTTPException(status_code=503, detail=error.to_dict())
    return HTTPException(status_code=400, detail=error.to_dict())


# Pydantic models for API

class FinalPriceRequest(BaseModel):
    unit_price: float
    surcharge_pct: Optional[float] = None


class ChargeRequest(BaseModel):
    """Request model for method-specific pricing."""
    product_id: str
    quantity: int = Field(1, gt=0)
    pricing_method: PricingMethod = PricingMethod.FLAT_UNIT
    unit_price: Optional[float] = None
    surcharge_pct: Optional[float] = None
    min_qty: Optional[int] = None
    markup_pct: Optional[float] = None
    source_price_list_id: Optional[str] = None
    as_of: Optional[date] = None


class ProductPricesRequest(BaseModel):
    product_ids: list[str]
    as_of: Optional[date] = None


class CalculateItem(BaseModel):
    product_id: str
    quantity: int = Field(1, gt=0)
    price_list_id: Optional[str] = None


class CalculateRequest(BaseModel):
    items: list[CalculateItem]
    pricing_date: Optional[date] = None


class WeightBasedRequest(BaseModel):
    product_id: str
    quantity: int = Field(1, gt=0)
    as_of: Optional[date] = None
    fill_percentage: float = 100.0
    custom_gas_weight_kg: Optional[float] = None
    custom_price_per_kg: Optional[float] = None
    currency_code: Optional[str] = None


class WeightTotalRequest(BaseModel):
    net_gas_weight_kg: float
    gas_price_per_kg: float
    deposit_amount: float = 0.0
    tax_rate: float = 0.0
    fill_percentage: float = 100.0


class ReturnCreditRequest(BaseModel):
    capacity_l: float
    quantity: int = Field(1, gt=0)
    condition: ReturnCondition = ReturnCondition.GOOD
    return_date: Optional[date] = None
    expected_return_date: Optional[date] = None
    currency_code: Optional[str] = None


class TotalsLine(BaseModel):
    product_id: Optional[str] = None
    quantity: int = 1
    unit_price: float = 0.0
    subtotal: Optional[float] = None
    pricing_method: Optional[PricingMethod] = None
    include_deposit: bool = False


class OrderTotalsRequest(BaseModel):
    lines: list[TotalsLine]
    tax_percent: float = 0.0
    as_of: Optional[date] = None


class OrderFlowLine(BaseModel):
    product_id: str
    quantity: int = Field(1, gt=0)
    scenario: SaleScenario = SaleScenario.OUTRIGHT
    include_return_credit: bool = False
    return_condition: Optional[ReturnCondition] = None
    expected_return_date: Optional[date] = None
    fill_percentage: float = 100.0


class OrderFlowRequest(BaseModel):
    lines: list[OrderFlowLine]
    tax_percent: Optional[float] = None
    as_of: Optional[date] = None
    return_date: Optional[date] = None


class ValidatePricingRequest(BaseModel):
    product_id: str
    requested_price: float
    quantity: int = Field(1, gt=0)
    price_list_id: Optional[str] = None
    as_of: Optional[date] = None


# Endpoints

@router.post("/final-price")
async def final_price(req: FinalPriceRequest, service: PricingService = Depends(get_service)):
    return {"final_price": service.calculate_final_price(req.unit_price, req.surcharge_pct)}


@router.post("/charge")
async def calculate_charge(req: ChargeRequest, service: PricingService = Depends(get_service)):
    """Charge for one line under an explicit pricing method."""
    try:
        charge = await service.calculate_final_price_with_method(
            req.product_id,
            req.quantity,
            req.pricing_method,
            unit_price=req.unit_price,
            surcharge_pct=req.surcharge_pct,
            as_of=req.as_of,
            min_qty=req.min_qty,
            markup_pct=req.markup_pct,
            source_price_list_id=req.source_price_list_id,
        )
    except PricingError as e:
        raise to_http_error(e) from e
    if charge is None:
        raise HTTPException(status_code=404, detail=f"No {req.pricing_method.value} pricing for product '{req.product_id}'")
    return jsonable_encoder(charge)


@router.get("/products/{product_id}/price")
async def get_product_price(product_id: str, as_of: Optional[date] = None, service: PricingService = Depends(get_service)):
    try:
        price = await service.get_product_price(product_id, as_of)
    except PricingError as e:
        raise to_http_error(e) from e
    if price is None:
        raise HTTPException(status_code=404, detail=f"No pricing found for product '{product_id}'")
    return jsonable_encoder(price)


@router.post("/products/prices")
async def get_product_prices(req: ProductPricesRequest, service: PricingService = Depends(get_service)):
    prices = await service.get_product_prices(req.product_ids, req.as_of)
    return jsonable_encoder(prices)


@router.post("/calculate")
async def calculate_items(req: CalculateRequest, service: PricingService = Depends(get_service)):
    """Dynamic pricing for multiple items."""
    try:
        result = await service.calculate_items(
            [item.model_dump() for item in req.items], req.pricing_date
        )
    except PricingError as e:
        raise to_http_error(e) from e
    return jsonable_encoder(result)


@router.post("/weight-based")
async def weight_based_price(req: WeightBasedRequest, service: PricingService = Depends(get_service)):
    try:
        price = await service.get_weight_based_price(
            req.product_id,
            req.quantity,
            req.as_of,
            req.fill_percentage,
            custom_gas_weight_kg=req.custom_gas_weight_kg,
            custom_price_per_kg=req.custom_price_per_kg,
            currency_code=req.currency_code,
        )
    except PricingError as e:
        raise to_http_error(e) from e
    if price is None:
        raise HTTPException(status_code=404, detail=f"Weight-based pricing not applicable for product '{req.product_id}'")
    return jsonable_encoder(price)


@router.post("/weight-based/total")
async def weight_based_total(req: WeightTotalRequest, service: PricingService = Depends(get_service)):
    try:
        total = service.calculate_weight_based_total(
            req.net_gas_weight_kg,
            req.gas_price_per_kg,
            req.deposit_amount,
            req.tax_rate,
            req.fill_percentage,
        )
    except PricingError as e:
        raise to_http_error(e) from e
    return jsonable_encoder(total)


@router.get("/deposits/{capacity_l}")
async def get_deposit_rate(
    capacity_l: float,
    currency_code: Optional[str] = None,
    as_of: Optional[date] = None,
    service: PricingService = Depends(get_service),
):
    details = await service.get_deposit_rate_details(capacity_l, currency_code, as_of)
    return jsonable_encoder(details)


@router.get("/deposits/{capacity_l}/configuration")
async def validate_deposit_configuration(
    capacity_l: float,
    currency_code: Optional[str] = None,
    service: PricingService = Depends(get_service),
):
    result = await service.validate_deposit_rate_configuration(capacity_l, currency_code)
    return jsonable_encoder(result)


@router.post("/return-credit")
async def return_credit(req: ReturnCreditRequest, service: PricingService = Depends(get_service)):
    try:
        credit = await service.calculate_empty_return_credit(
            req.capacity_l,
            req.quantity,
            req.condition,
            req.return_date,
            req.expected_return_date,
            req.currency_code,
        )
    except PricingError as e:
        raise to_http_error(e) from e
    return jsonable_encoder(credit)


@router.post("/order-totals")
async def order_totals(req: OrderTotalsRequest, service: PricingService = Depends(get_service)):
    totals = service.calculate_order_totals(
        [line.model_dump(exclude_none=True) for line in req.lines], req.tax_percent
    )
    return jsonable_encoder(totals)


@router.post("/order-totals/deposits")
async def order_totals_with_deposits(req: OrderTotalsRequest, service: PricingService = Depends(get_service)):
    try:
        totals = await service.calculate_order_totals_with_deposits(
            [line.model_dump(exclude_none=True) for line in req.lines], req.tax_percent, req.as_of
        )
    except PricingError as e:
        raise to_http_error(e) from e
    return jsonable_encoder(totals)


@router.post("/order-flow")
async def order_flow(req: OrderFlowRequest, service: PricingService = Depends(get_service)):
    """Price an order line by line under each line's sale scenario."""
    requests = [OrderLineRequest(**line.model_dump()) for line in req.lines]
    try:
        result = await service.calculate_order_flow(requests, req.tax_percent, req.as_of, req.return_date)
    except PricingError as e:
        raise to_http_error(e) from e
    return jsonable_encoder(result)


@router.post("/validate")
async def validate_pricing(req: ValidatePricingRequest, service: PricingService = Depends(get_service)):
    try:
        result = await service.validate_product_pricing(
            req.product_id, req.requested_price, req.quantity, req.price_list_id, req.as_of
        )
    except PricingError as e:
        raise to_http_error(e) from e
    return jsonable_encoder(result)


@router.get("/products/{product_id}/weight-requirements")
async def weight_requirements(product_id: str, service: PricingService = Depends(get_service)):
    result = await service.validate_weight_based_pricing_requirements(product_id)
    return jsonable_encoder(result)


@router.get("/price-lists/active")
async def active_price_lists(as_of: Optional[date] = None, service: PricingService = Depends(get_service)):
    price_lists = await service.get_active_price_lists(as_of)
    return jsonable_encoder(price_lists)


@router.get("/price-lists/status")
async def price_list_status(
    start_date: date,
    end_date: Optional[date] = None,
    service: PricingService = Depends(get_service),
):
    return {
        **jsonable_encoder(service.get_price_list_status(start_date, end_date)),
        "valid_range": service.validate_date_range(start_date, end_date),
        "expiring_soon": service.is_expiring_soon(end_date),
    }


@router.get("/stats")
async def pricing_stats(service: PricingService = Depends(get_service)):
    """Get pricing statistics."""
    return jsonable_encoder(await service.get_pricing_stats())


@router.get("/customer-tiers/{tier}")
async def customer_tier(tier: str):
    return jsonable_encoder(get_customer_pricing_tier(tier))
