import os
import sys
from datetime import date

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from gas_pricing.config.settings import Settings, get_project_root, get_sample_data_dir
from gas_pricing.data.repository import DataFrameRepository
from gas_pricing.engine.pricing_engine import PricingService

AS_OF = date(2026, 6, 1)

PRICE_LISTS = [
    {'id': 'PL-DEF', 'name': 'Default 2026', 'currency_code': 'KES', 'start_date': '2026-01-01',
     'end_date': None, 'is_default': True, 'pricing_method': 'per_unit'},
    {'id': 'PL-NEW', 'name': 'Spring 2026', 'currency_code': 'KES', 'start_date': '2026-03-01',
     'end_date': None, 'is_default': False, 'pricing_method': 'per_unit'},
    {'id': 'PL-OLD', 'name': 'Winter 2025', 'currency_code': 'KES', 'start_date': '2025-01-01',
     'end_date': '2025-12-31', 'is_default': False, 'pricing_method': 'per_unit'},
    {'id': 'PL-KG', 'name': 'Per Kg 2026', 'currency_code': 'KES', 'start_date': '2026-01-01',
     'end_date': None, 'is_default': False, 'pricing_method': 'per_kg'},
    {'id': 'PL-TIER', 'name': 'Dealer Tiers', 'currency_code': 'KES', 'start_date': '2026-01-01',
     'end_date': '2026-06-20', 'is_default': False, 'pricing_method': 'tiered'},
]

PRICE_LIST_ITEMS = [
    {'price_list_id': 'PL-DEF', 'product_id': 'GAS13', 'unit_price': 2000, 'surcharge_pct': 10,
     'price_excluding_tax': 2000, 'tax_amount': 320, 'price_including_tax': 2320},
    {'price_list_id': 'PL-NEW', 'product_id': 'GAS13', 'unit_price': 1800},
    {'price_list_id': 'PL-OLD', 'product_id': 'GAS13', 'unit_price': 1500},
    {'price_list_id': 'PL-DEF', 'product_id': 'NOWEIGHT', 'unit_price': 3000},
    {'price_list_id': 'PL-NEW', 'product_id': 'ACC1', 'unit_price': 500},
    {'price_list_id': 'PL-TIER', 'product_id': 'ACC1', 'unit_price': 450, 'min_qty': 5},
    {'price_list_id': 'PL-KG', 'product_id': 'GAS13', 'price_per_kg': 150},
    {'price_list_id': 'PL-KG', 'product_id': 'GAS6', 'price_per_kg': 160},
    {'price_list_id': 'PL-KG', 'product_id': 'EMPTY13', 'price_per_kg': 150},
    {'price_list_id': 'PL-KG', 'product_id': 'NOWEIGHT', 'price_per_kg': 150},
    {'price_list_id': 'PL-KG', 'product_id': 'GASKG', 'price_per_kg': 100},
]

PRODUCTS = [
    {'id': 'GAS13', 'name': '13kg Exchange', 'sku_variant': 'FULL-XCH', 'capacity_l': 13,
     'net_gas_weight_kg': 13, 'gross_weight_kg': 28, 'tare_weight_kg': 15,
     'tax_rate': 16, 'tax_category': 'standard'},
    {'id': 'GAS6', 'name': '6kg Outright', 'sku_variant': 'FULL-OUT', 'capacity_l': 6,
     'gross_weight_kg': 14, 'tare_weight_kg': 8, 'tax_rate': 16, 'tax_category': 'standard'},
    {'id': 'GASKG', 'name': '25.5kg Outright', 'sku_variant': 'FULL-OUT', 'capacity_kg': 25.5,
     'net_gas_weight_kg': 25.5, 'tax_rate': 0, 'tax_category': 'zero_rated'},
    {'id': 'EMPTY13', 'name': '13kg Empty', 'sku_variant': 'EMPTY', 'capacity_l': 13,
     'net_gas_weight_kg': 13, 'tax_rate': 16},
    {'id': 'NOWEIGHT', 'name': '13kg Unweighed', 'sku_variant': 'FULL-OUT', 'capacity_l': 13,
     'tax_rate': 16},
    {'id': 'VARIANT13', 'name': '13kg Promo Pack', 'sku_variant': 'FULL-XCH', 'capacity_l': 13,
     'net_gas_weight_kg': 13, 'parent_product_id': 'GAS13'},
    {'id': 'ACC1', 'name': 'Regulator', 'tax_rate': 16},
    {'id': 'RETIRED', 'name': 'Retired Hose', 'status': 'inactive'},
]

DEPOSIT_RATES = [
    {'id': 'DR-6', 'capacity_l': 6, 'currency_code': 'KES', 'deposit_amount': 2500, 'effective_date': '2025-01-01'},
    {'id': 'DR-13-2024', 'capacity_l': 13, 'currency_code': 'KES', 'deposit_amount': 3000,
     'effective_date': '2024-01-01', 'end_date': '2024-12-31'},
    {'id': 'DR-13', 'capacity_l': 13, 'currency_code': 'KES', 'deposit_amount': 3500, 'effective_date': '2025-01-01'},
    {'id': 'DR-13-NEXT', 'capacity_l': 13, 'currency_code': 'KES', 'deposit_amount': 3800,
     'effective_date': '2026-09-01'},
    {'id': 'DR-25', 'capacity_l': 25, 'currency_code': 'KES', 'deposit_amount': 5500, 'effective_date': '2025-01-01'},
    {'id': 'DR-50', 'capacity_l': 50, 'currency_code': 'KES', 'deposit_amount': 8500, 'effective_date': '2025-01-01'},
    {'id': 'DR-25-USD', 'capacity_l': 25, 'currency_code': 'USD', 'deposit_amount': 40, 'effective_date': '2025-01-01'},
    {'id': 'DR-90-OFF', 'capacity_l': 90, 'currency_code': 'KES', 'deposit_amount': 12000,
     'effective_date': '2025-01-01', 'is_active': False},
]


@pytest.fixture
def settings():
    return Settings(project_root=get_project_root(), data_dir=get_sample_data_dir())


@pytest.fixture
def repository():
    return DataFrameRepository.from_records(
        price_lists=PRICE_LISTS,
        price_list_items=PRICE_LIST_ITEMS,
        products=PRODUCTS,
        deposit_rates=DEPOSIT_RATES,
    )


@pytest.fixture
def service(repository, settings):
    return PricingService(repository, settings)


@pytest.fixture(scope="module")
def sample_repository():
    """The bundled sample snapshot."""
    return DataFrameRepository.load(get_sample_data_dir())
