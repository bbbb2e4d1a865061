"""Display formatting for amounts, percentages, and dates (US conventions)."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount: Decimal | float | int) -> str:
    """``Decimal("-1234.5")`` -> ``"-$1,234.50"``."""

    value = to_cents(Decimal(str(amount)))
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def format_date(iso: str) -> str:
    """``"2024-03-05"`` -> ``"Mar 5, 2024"``; unparseable input is returned as-is."""

    try:
        d = date.fromisoformat(iso)
    except ValueError:
        return iso
    return f"{d.strftime('%b')} {d.day}, {d.year}"


__all__ = ["CENT", "format_currency", "format_date", "format_percent", "to_cents"]
