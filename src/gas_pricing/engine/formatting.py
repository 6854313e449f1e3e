"""Currency formatting."""
import math

CURRENCY_SYMBOLS = {
    'KES': 'Ksh',
}


def currency_symbol(currency_code: str = 'KES') -> str:
    return CURRENCY_SYMBOLS.get(currency_code, currency_code)


def format_currency(amount, currency_code: str = 'KES') -> str:
    """"<symbol> 1,234.56"; invalid or non-finite amounts render as zero."""
    symbol = currency_symbol(currency_code)
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
        return f"{symbol} 0.00"
    return f"{symbol} {amount:,.2f}"
