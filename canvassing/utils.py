"""
Utility functions shared across the app. This includes:
- parse_decimal / parse_amount: lenient numeric parsing of user input.
- money / format_php: rounding and peso display.
- format_long_date / format_clock / elapsed_label: display helpers.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")


def parse_decimal(value) -> Decimal | None:
    """Parse decimal from user input (accepts comma or dot)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        parsed = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_amount(value) -> Decimal:
    """
    Price / quantity coercion.

    Blank or unparseable input counts as zero instead of being rejected.
    """
    parsed = parse_decimal(value)
    return parsed if parsed is not None else ZERO


def money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def format_php(x: Decimal) -> str:
    """₱ display with thousands grouping and two decimals."""
    return f"₱{money(Decimal(x)):,.2f}"


def format_long_date(d: date | None) -> str:
    """e.g. February 26, 2026"""
    if d is None:
        return ""
    return f"{d.strftime('%B')} {d.day}, {d.year}"


def format_clock(dt: datetime | None) -> str:
    """e.g. 02:30 PM"""
    if dt is None:
        return ""
    return dt.strftime("%I:%M %p")


def elapsed_label(created: datetime, now: datetime) -> str:
    minutes = int((now - created).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} min"
    if minutes < 1440:
        return f"{minutes // 60} hr"
    return f"{minutes // 1440} days"

