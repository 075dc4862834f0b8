"""Display formatting for rendered invoices."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from rental_invoicing.calculators.numeric import round_to_cents, safe_parse_number

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}


def format_currency(amount: Any, currency: str = "USD") -> str:
    """Format like en-US currency display: 1234.5 -> "$1,234.50", -10 -> "-$10.00"."""
    value = round_to_cents(safe_parse_number(amount))
    code = (currency or "USD").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    sign = "-" if value < 0 else ""
    digits = f"{abs(value):,.2f}"
    if symbol is None:
        return f"{sign}{code} {digits}"
    return f"{sign}{symbol}{digits}"


def format_date(value: date | datetime | str | None) -> str:
    """Format as "Jan 5, 2025". ISO strings are accepted; None renders empty."""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return f"{value:%b} {value.day}, {value.year}"


@dataclass(frozen=True)
class Formatters:
    """Formatting functions handed to the renderer for one document."""

    currency: str = "USD"
    currency_formatter: Callable[[Any, str], str] = format_currency
    date_formatter: Callable[[Any], str] = format_date

    def money(self, amount: Any) -> str:
        return self.currency_formatter(amount, self.currency)

    def date(self, value: Any) -> str:
        return self.date_formatter(value)

    def percent(self, rate: Decimal | None) -> str:
        """0.15 -> "15%"."""
        pct = (safe_parse_number(rate) * 100).normalize()
        return f"{pct:f}%"
