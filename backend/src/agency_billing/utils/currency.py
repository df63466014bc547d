"""Currency formatting utilities for minor-unit amounts."""
from decimal import Decimal

# Currencies that don't use decimal places (smallest unit is whole currency)
zero_decimal_currencies = [
    "JPY",  # Japanese Yen
    "KRW",  # South Korean Won
    "VND",  # Vietnamese Đồng
    "CLP",  # Chilean Peso
    "ISK",  # Icelandic Króna
    "TWD",  # Taiwan Dollar
]

# Currency symbols for common currencies
currency_symbols = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "INR": "₹",
}


def is_zero_decimal(currency: str) -> bool:
    """Check whether a currency has no minor unit."""
    return currency.upper() in zero_decimal_currencies


def to_major_units(amount: int, currency: str = "USD") -> Decimal:
    """
    Convert an amount in minor units to major units.

    Args:
        amount: Amount in minor units (cents for USD)
        currency: ISO 4217 currency code

    Returns:
        Decimal amount in major units (e.g. 125000 -> Decimal("1250.00"))
    """
    if is_zero_decimal(currency):
        return Decimal(amount)
    return (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"))


def format_amount(amount: int, currency: str = "USD") -> str:
    """
    Format an amount in minor units for display.

    Args:
        amount: Amount in minor units
        currency: ISO 4217 currency code

    Returns:
        Formatted string such as "$1,250.00" or "¥5,000"
    """
    code = currency.upper()
    symbol = currency_symbols.get(code, f"{code} ")
    major = to_major_units(amount, code)
    if is_zero_decimal(code):
        return f"{symbol}{major:,.0f}"
    return f"{symbol}{major:,.2f}"
