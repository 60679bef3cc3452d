"""Reference data for fiat currencies: display names, glyphs, fallback rates."""

from __future__ import annotations

from typing import List

from .models import FiatCurrency

FIAT_NAMES = {
    "USD": "US Dollar",
    "EUR": "Euro",
    "GBP": "British Pound",
    "JPY": "Japanese Yen",
    "RUB": "Russian Ruble",
    "CNY": "Chinese Yuan",
    "INR": "Indian Rupee",
    "AUD": "Australian Dollar",
    "CAD": "Canadian Dollar",
    "CHF": "Swiss Franc",
}

FIAT_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "RUB": "₽",
    "CNY": "¥",
    "INR": "₹",
    "AUD": "A$",
    "CAD": "C$",
    "CHF": "CHF",
}

# Units per one USD. Used only when no provider can supply live rates.
FALLBACK_RATES_TO_USD = {
    "USD": 1.0,
    "EUR": 0.85,
    "GBP": 0.73,
    "RUB": 91.5,
    "CNY": 7.2,
}


def fiat_name(code: str) -> str:
    return FIAT_NAMES.get(code.upper(), code.upper())


def fiat_symbol(code: str) -> str:
    return FIAT_SYMBOLS.get(code.upper(), "$")


def default_fiat_currencies() -> List[FiatCurrency]:
    """Built-in fallback fiat table (USD, EUR, GBP, RUB, CNY)."""
    return [
        FiatCurrency(code=code, name=fiat_name(code), symbol=fiat_symbol(code), rate_to_base=rate)
        for code, rate in FALLBACK_RATES_TO_USD.items()
    ]
