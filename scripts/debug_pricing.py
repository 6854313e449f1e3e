import asyncio
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from gas_pricing.config.settings import get_settings
from gas_pricing.data.repository import DataFrameRepository
from gas_pricing.engine import PricingService, OrderLineRequest, SaleScenario
from gas_pricing.engine.formatting import format_currency

AS_OF = "2026-06-01"


async def debug(data_dir=None):
    settings = get_settings()
    repository = DataFrameRepository.load(data_dir or settings.data_dir)
    service = PricingService(repository, settings)

    print("Loaded Snapshot:")
    print(repository.price_lists[['id', 'name', 'start_date', 'end_date', 'is_default', 'pricing_method']])
    print(f"\nProducts: {len(repository.products)}  Deposit rates: {len(repository.deposit_rates)}")

    print("\n--- Active Price Lists ---")
    for pl in await service.get_active_price_lists(AS_OF):
        status = service.get_price_list_status(pl.start_date, pl.end_date, AS_OF)
        print(f"{pl.id:10} {pl.name:28} {status.label}")

    print("\n--- Weight-Based Price: P-13-XCH x 1 ---")
    weight = await service.get_weight_based_price("P-13-XCH", 1, AS_OF)
    print(weight)

    print("\n--- Order Flow ---")
    result = await service.calculate_order_flow(
        [
            OrderLineRequest("P-13-OUT", 1, SaleScenario.OUTRIGHT),
            OrderLineRequest("P-13-XCH", 2, SaleScenario.EXCHANGE, include_return_credit=True),
            OrderLineRequest("P-13-EMPTY", 1, SaleScenario.PICKUP, return_condition="fair"),
            OrderLineRequest("P-REG", 3, SaleScenario.OUTRIGHT),
        ],
        as_of=AS_OF,
    )
    for line in result.lines:
        print(f"\n{line.product_id} [{line.scenario.value}] total {format_currency(line.line_total)}")
        print(line.get_trace_text())
        for warning in line.warnings:
            print(f"  ! {warning}")

    totals = result.totals
    print("\nTotals:")
    print(f"  Gas:      {format_currency(totals.gas_charges)}")
    print(f"  Deposits: {format_currency(totals.deposit_amount)}")
    print(f"  Credits:  {format_currency(totals.credit_amount)}")
    print(f"  Subtotal: {format_currency(totals.subtotal)}")
    print(f"  Tax:      {format_currency(totals.tax_amount)}")
    print(f"  Total:    {format_currency(totals.grand_total)}")

    print("\n--- Stats ---")
    print(await service.get_pricing_stats(AS_OF))


if __name__ == "__main__":
    asyncio.run(debug(sys.argv[1] if len(sys.argv) > 1 else None))
