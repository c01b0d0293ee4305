"""Minor-unit price helpers. Currency conversion is not handled here."""
from decimal import Decimal
from typing import Optional

from catalog.config import settings

# ISO 4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "VND", "CLP", "ISK", "XAF", "XOF"}


def minor_unit_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_major_units(amount: int, currency: Optional[str] = None) -> Decimal:
    """Convert an integer minor-unit amount (e.g. cents) to a Decimal."""
    currency = (currency or settings.DEFAULT_CURRENCY).upper()
    return Decimal(amount).scaleb(-minor_unit_exponent(currency))


def format_minor_units(amount: int, currency: Optional[str] = None) -> str:
    """
    Format a minor-unit amount for display.

    >>> format_minor_units(1234, "USD")
    '12.34 USD'
    >>> format_minor_units(-50, "EUR")
    '-0.50 EUR'
    """
    currency = (currency or settings.DEFAULT_CURRENCY).upper()
    exponent = minor_unit_exponent(currency)
    value = to_major_units(amount, currency)
    return f"{value:.{exponent}f} {currency}"
