from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

_CENT = Decimal("0.01")


def current_timestamp() -> datetime:
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)


def iso_now() -> str:
    return current_timestamp().isoformat()


def to_money(value: Any) -> Decimal:
    """Coerce a price (number, string or Decimal) to a two-place Decimal."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def format_money(value: Any) -> str:
    return f"{to_money(value):.2f}"
