import pytest

from conftest import AS_OF
from gas_pricing.data.repository import DataFrameRepository
from gas_pricing.engine.exceptions import InvalidPricingInput
from gas_pricing.engine.models import PricingMethod
from gas_pricing.engine.weight_pricing import (
    WeightBasedPricer,
    calculate_gas_charge,
    calculate_weight_based_total,
    resolve_tax,
)


@pytest.fixture
def pricer(repository, settings):
    return WeightBasedPricer(repository, settings)


def test_weight_based_total_example():
    result = calculate_weight_based_total(13, 150, 3500, 16)
    assert result.gas_charge == pytest.approx(1950)
    assert result.deposit_amount == 3500
    assert result.subtotal == pytest.approx(5450)
    assert result.tax_amount == pytest.approx(872)
    assert result.total_price == pytest.approx(6322)
    assert result.line_total == result.total_price
    assert result.pricing_method == PricingMethod.PER_KG


def test_scaling_multiplies_every_field():
    single = calculate_weight_based_total(13, 150, 3500, 16)
    triple = single.scaled(3)
    assert triple.quantity == 3
    assert triple.gas_charge == pytest.approx(single.gas_charge * 3)
    assert triple.deposit_amount == pytest.approx(single.deposit_amount * 3)
    assert triple.subtotal == pytest.approx(single.subtotal * 3)
    assert triple.tax_amount == pytest.approx(single.tax_amount * 3)
    assert triple.total_price == pytest.approx(18966)
    # Rates are per cylinder and do not scale
    assert triple.net_gas_weight_kg == 13
    assert triple.gas_price_per_kg == 150


def test_tax_defaults_to_zero():
    result = calculate_weight_based_total(13, 150, 3500)
    assert result.tax_amount == 0
    assert result.total_price == pytest.approx(5450)


def test_partial_fill_scales_gas_only():
    result = calculate_weight_based_total(13, 150, 3500, 16, fill_percentage=50)
    assert result.gas_charge == pytest.approx(975)
    assert result.deposit_amount == 3500
    assert result.subtotal == pytest.approx(4475)
    assert result.original_weight_kg == 13
    assert result.adjusted_weight_kg == pytest.approx(6.5)
    assert result.pricing_method == PricingMethod.PER_KG_PARTIAL


@pytest.mark.parametrize("fill", [0, -10, 100.5, 150, None])
def test_fill_percentage_out_of_range(fill):
    with pytest.raises(InvalidPricingInput):
        calculate_weight_based_total(13, 150, 3500, 16, fill_percentage=fill)


@pytest.mark.parametrize("weight,price", [(0, 150), (-1, 150), (13, 0), (13, -150)])
def test_gas_charge_requires_positive_inputs(weight, price):
    with pytest.raises(InvalidPricingInput, match="must be positive"):
        calculate_gas_charge(weight, price)


@pytest.mark.asyncio
async def test_pricer_full_cylinder(pricer):
    result = await pricer.get_weight_based_price('GAS13', 1, AS_OF)
    assert result.gas_charge == pytest.approx(1950)
    assert result.deposit_amount == 3500
    assert result.tax_amount == pytest.approx(872)
    assert result.total_price == pytest.approx(6322)


@pytest.mark.asyncio
async def test_pricer_scales_with_quantity(pricer):
    result = await pricer.get_weight_based_price('GAS13', 3, AS_OF)
    assert result.quantity == 3
    assert result.deposit_amount == 10500
    assert result.total_price == pytest.approx(18966)


@pytest.mark.asyncio
async def test_net_weight_from_gross_minus_tare(pricer):
    result = await pricer.get_weight_based_price('GAS6', 1, AS_OF)
    assert result.net_gas_weight_kg == 6
    assert result.gas_charge == pytest.approx(960)
    assert result.deposit_amount == 2500
    assert result.total_price == pytest.approx(4013.6)


@pytest.mark.asyncio
async def test_kg_capacity_converted_for_deposit(pricer):
    result = await pricer.get_weight_based_price('GASKG', 1, AS_OF)
    assert result.gas_charge == pytest.approx(2550)
    assert result.deposit_amount == 8500
    assert result.tax_amount == 0
    assert result.total_price == pytest.approx(11050)


@pytest.mark.asyncio
@pytest.mark.parametrize("product_id", ['EMPTY13', 'NOWEIGHT', 'ACC1', 'VARIANT13', 'NOPE'])
async def test_not_applicable_returns_none(pricer, product_id):
    assert await pricer.get_weight_based_price(product_id, 1, AS_OF) is None


@pytest.mark.asyncio
async def test_surcharge_applies_to_rate_per_kg(settings):
    repository = DataFrameRepository.from_records(
        price_lists=[{'id': 'KG', 'name': 'Kg', 'start_date': '2026-01-01', 'pricing_method': 'per_kg'}],
        price_list_items=[{'price_list_id': 'KG', 'product_id': 'G', 'price_per_kg': 100, 'surcharge_pct': 10}],
        products=[{'id': 'G', 'sku_variant': 'FULL-OUT', 'capacity_l': 10, 'net_gas_weight_kg': 10}],
    )
    result = await WeightBasedPricer(repository, settings).get_weight_based_price('G', 1, AS_OF)
    assert result.gas_price_per_kg == pytest.approx(110)
    assert result.gas_charge == pytest.approx(1100)
    # No deposit rows configured
    assert result.deposit_amount == 0
    assert result.total_price == pytest.approx(1100)


@pytest.mark.asyncio
async def test_zero_price_per_kg_is_a_hard_error(settings):
    repository = DataFrameRepository.from_records(
        price_lists=[{'id': 'KG', 'name': 'Kg', 'start_date': '2026-01-01', 'pricing_method': 'per_kg'}],
        price_list_items=[{'price_list_id': 'KG', 'product_id': 'G', 'price_per_kg': 0}],
        products=[{'id': 'G', 'sku_variant': 'FULL-XCH', 'capacity_l': 10, 'net_gas_weight_kg': 10}],
    )
    with pytest.raises(InvalidPricingInput):
        await WeightBasedPricer(repository, settings).get_weight_based_price('G', 1, AS_OF)


@pytest.mark.asyncio
async def test_tax_inherited_from_parent(repository):
    variant = await repository.find_product_attributes('VARIANT13')
    assert await resolve_tax(repository, variant) == (16, 'standard')

    accessory = await repository.find_product_attributes('ACC1')
    assert await resolve_tax(repository, accessory) == (16, 'standard')


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity", [0, -1])
async def test_pricer_rejects_non_positive_quantity(pricer, quantity):
    with pytest.raises(InvalidPricingInput):
        await pricer.get_weight_based_price('GAS13', quantity, AS_OF)


@pytest.mark.asyncio
async def test_per_kg_rate_read_from_unit_price_column(settings):
    repository = DataFrameRepository.from_records(
        price_lists=[{'id': 'KG', 'name': 'Kg', 'start_date': '2026-01-01', 'pricing_method': 'per_kg'}],
        price_list_items=[{'price_list_id': 'KG', 'product_id': 'G', 'unit_price': 120}],
        products=[{'id': 'G', 'sku_variant': 'FULL-OUT', 'capacity_l': 10, 'net_gas_weight_kg': 10}],
    )
    result = await WeightBasedPricer(repository, settings).get_weight_based_price('G', 1, AS_OF)
    assert result.gas_price_per_kg == pytest.approx(120)
    assert result.gas_charge == pytest.approx(1200)
