"""
Generate golden test cases by running the current order flow on the sample snapshot.
This captures current behavior as a regression baseline.
"""
import asyncio
import os
import sys
from datetime import date

import pandas as pd

# Add src to path so we can import gas_pricing
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from gas_pricing.config.settings import Settings, get_project_root, get_sample_data_dir
from gas_pricing.data.repository import DataFrameRepository
from gas_pricing.engine.order_flow import OrderFlowPricer

PRICING_DATE = date(2026, 6, 1)

# (product, qty, scenario) - weight, flat fallback, inheritance and pickup paths
LINES_TO_TEST = [
    ('P-13-XCH', 1, 'outright'),
    ('P-13-XCH', 3, 'outright'),
    ('P-13-XCH', 1, 'exchange'),
    ('P-13-OUT', 2, 'refill'),
    ('P-6-OUT', 1, 'outright'),
    ('P-REG', 3, 'outright'),
    ('P-13-EMPTY', 1, 'outright'),
    ('P-13-PROMO', 1, 'exchange'),
    ('P-13-EMPTY', 2, 'pickup'),
]


async def generate_golden_cases():
    repository = DataFrameRepository.load(get_sample_data_dir())
    settings = Settings(project_root=get_project_root(), data_dir=get_sample_data_dir())
    pricer = OrderFlowPricer(repository, settings)

    print(f"Pricing date: {PRICING_DATE}")
    print()

    cases = []
    for product_id, qty, scenario in LINES_TO_TEST:
        line = await pricer.price_line(product_id, qty, scenario, PRICING_DATE)
        if line is None:
            print(f"Skipping {product_id}: no pricing")
            continue
        cases.append({
            'product_id': product_id,
            'qty': qty,
            'scenario': scenario,
            'expected_method': line.pricing_method.value if line.pricing_method else '',
            'expected_gas_charge': round(line.gas_charge, 2),
            'expected_deposit': round(line.deposit_amount, 2),
            'expected_tax': round(line.tax_amount, 2),
            'expected_total': round(line.line_total, 2),
        })

    # Write to CSV
    df = pd.DataFrame(cases)
    output_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'golden_cases.csv')
    df.to_csv(output_path, index=False)
    print(f"Generated {len(cases)} golden test cases")
    print(f"Output: {output_path}")
    print()
    print("Sample cases:")
    print(df.head(10).to_string(index=False))


if __name__ == "__main__":
    asyncio.run(generate_golden_cases())
