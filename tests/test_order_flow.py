import pytest

from conftest import AS_OF
from gas_pricing.data.repository import DataFrameRepository
from gas_pricing.engine.models import PricingMethod, SaleScenario
from gas_pricing.engine.order_flow import OrderFlowPricer, OrderLineRequest


@pytest.fixture
def pricer(repository, settings):
    return OrderFlowPricer(repository, settings)


@pytest.mark.asyncio
async def test_outright_includes_taxed_deposit(pricer):
    line = await pricer.price_line('GAS13', 1, SaleScenario.OUTRIGHT, AS_OF)
    assert line.pricing_method == PricingMethod.PER_KG
    assert line.gas_charge == pytest.approx(1950)
    assert line.deposit_amount == 3500
    assert line.subtotal == pytest.approx(5450)
    assert line.tax_amount == pytest.approx(872)
    assert line.line_total == pytest.approx(6322)
    assert line.credit is None
    assert line.unit_price == 150


@pytest.mark.asyncio
async def test_exchange_charges_gas_only_and_reports_credit(pricer):
    line = await pricer.price_line(
        'GAS13', 2, 'exchange', AS_OF, include_return_credit=True, return_condition='good'
    )
    assert line.deposit_amount == 0
    assert line.gas_charge == pytest.approx(3900)
    assert line.tax_amount == pytest.approx(624)
    assert line.line_total == pytest.approx(4524)
    # Credit is reported alongside, never netted off the charge
    assert line.credit.credit_amount == pytest.approx(6300)
    assert line.credit_amount == pytest.approx(6300)


@pytest.mark.asyncio
async def test_refill_without_opt_in_has_no_credit(pricer):
    line = await pricer.price_line('GAS13', 1, SaleScenario.REFILL, AS_OF)
    assert line.credit is None
    assert line.line_total == pytest.approx(2262)


@pytest.mark.asyncio
async def test_pickup_is_refund_only(pricer):
    line = await pricer.price_line('EMPTY13', 1, SaleScenario.PICKUP, AS_OF, return_condition='good')
    assert line.pricing_method is None
    assert line.gas_charge == 0
    assert line.deposit_amount == 0
    assert line.tax_amount == 0
    assert line.subtotal == pytest.approx(-3150)
    assert line.line_total == pytest.approx(-3150)


@pytest.mark.asyncio
async def test_late_pickup_penalised(pricer):
    line = await pricer.price_line(
        'EMPTY13', 1, SaleScenario.PICKUP, AS_OF, expected_return_date='2026-05-25'
    )
    assert line.credit.is_late is True
    assert line.line_total == pytest.approx(-2992.5)


@pytest.mark.asyncio
async def test_pickup_without_capacity_credits_nothing(pricer):
    line = await pricer.price_line('ACC1', 1, SaleScenario.PICKUP, AS_OF)
    assert line.line_total == 0
    assert any('No capacity' in w for w in line.warnings)


@pytest.mark.asyncio
async def test_partial_fill_outright(pricer):
    line = await pricer.price_line('GAS13', 1, SaleScenario.OUTRIGHT, AS_OF, fill_percentage=50)
    assert line.pricing_method == PricingMethod.PER_KG_PARTIAL
    assert line.gas_charge == pytest.approx(975)
    assert line.deposit_amount == 3500
    assert line.line_total == pytest.approx(5191)


@pytest.mark.asyncio
async def test_flat_unit_fallback_outright(pricer):
    line = await pricer.price_line('NOWEIGHT', 2, SaleScenario.OUTRIGHT, AS_OF)
    assert line.pricing_method == PricingMethod.FLAT_UNIT
    assert line.gas_charge == pytest.approx(6000)
    assert line.deposit_amount == 7000
    assert line.subtotal == pytest.approx(13000)
    assert line.tax_amount == pytest.approx(2080)
    assert line.line_total == pytest.approx(15080)
    assert any('Flat unit fallback' in w for w in line.warnings)


@pytest.mark.asyncio
async def test_flat_unit_fallback_refill(pricer):
    line = await pricer.price_line('NOWEIGHT', 1, SaleScenario.REFILL, AS_OF)
    assert line.deposit_amount == 0
    assert line.line_total == pytest.approx(3480)


@pytest.mark.asyncio
async def test_fallback_uses_parent_price(pricer):
    line = await pricer.price_line('VARIANT13', 1, SaleScenario.EXCHANGE, AS_OF)
    assert line.pricing_method == PricingMethod.FLAT_UNIT
    assert line.unit_price == pytest.approx(2200)
    assert line.tax_amount == pytest.approx(352)
    assert line.line_total == pytest.approx(2552)
    assert 'Inheritance' in line.get_trace_text()


@pytest.mark.asyncio
async def test_accessory_outright_has_no_deposit(pricer):
    line = await pricer.price_line('ACC1', 3, SaleScenario.OUTRIGHT, AS_OF)
    assert line.deposit_amount == 0
    assert line.gas_charge == pytest.approx(1500)
    assert line.line_total == pytest.approx(1740)


@pytest.mark.asyncio
@pytest.mark.parametrize("product_id", ['NOPE', 'RETIRED'])
async def test_unpriced_products_return_none(pricer, product_id):
    assert await pricer.price_line(product_id, 1, SaleScenario.OUTRIGHT, AS_OF) is None


@pytest.mark.asyncio
async def test_per_kg_rate_is_never_a_flat_unit_price(pricer):
    # EMPTY13 is only listed per kg and is not gas-fill eligible
    assert await pricer.price_line('EMPTY13', 1, SaleScenario.OUTRIGHT, AS_OF) is None

    lines, skipped = await pricer.price_order(
        [OrderLineRequest('EMPTY13', 1, SaleScenario.OUTRIGHT)], as_of=AS_OF
    )
    assert lines == []
    assert skipped == ['EMPTY13']


@pytest.mark.asyncio
async def test_fallback_skips_newer_per_kg_list(settings):
    repository = DataFrameRepository.from_records(
        price_lists=[
            {'id': 'KG', 'name': 'Kg', 'start_date': '2026-03-01', 'pricing_method': 'per_kg'},
            {'id': 'STD', 'name': 'Standard', 'start_date': '2026-01-01', 'pricing_method': 'per_unit'},
        ],
        price_list_items=[
            {'price_list_id': 'KG', 'product_id': 'E', 'price_per_kg': 150},
            {'price_list_id': 'STD', 'product_id': 'E', 'unit_price': 3200},
        ],
        products=[{'id': 'E', 'sku_variant': 'EMPTY', 'capacity_l': 13, 'tax_rate': 0}],
    )
    line = await OrderFlowPricer(repository, settings).price_line('E', 2, SaleScenario.OUTRIGHT, AS_OF)
    assert line.pricing_method == PricingMethod.FLAT_UNIT
    assert line.unit_price == pytest.approx(3200)
    assert line.gas_charge == pytest.approx(6400)
    assert line.line_total == pytest.approx(6400)


@pytest.mark.asyncio
async def test_trace_records_steps(pricer):
    line = await pricer.price_line('GAS13', 1, SaleScenario.OUTRIGHT, AS_OF)
    text = line.get_trace_text()
    assert '→ Scenario: Pricing order line = outright' in text
    assert 'Gas Charge' in text
    assert 'Deposit' in text


@pytest.mark.asyncio
async def test_price_order_skips_unpriced_lines(pricer):
    lines, skipped = await pricer.price_order(
        [
            OrderLineRequest('GAS13', 1, SaleScenario.OUTRIGHT),
            OrderLineRequest('NOPE', 1),
            OrderLineRequest('EMPTY13', 1, SaleScenario.PICKUP),
        ],
        as_of=AS_OF,
    )
    assert [line.product_id for line in lines] == ['GAS13', 'EMPTY13']
    assert skipped == ['NOPE']
