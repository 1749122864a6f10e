"""
Values -- Decimal-only money helpers shared by every component.

Responsibility:
    Coercion of stored/user values into ``Decimal``, currency-aware rounding,
    JPY -> CNY conversion and the zero-safe percentage used for ROI and
    completion rates.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts are never floats.  Floats handed in from JSON or forms are
      converted through ``str`` so 0.1 stays 0.1.
    - Rounding is ROUND_HALF_UP at the currency's precision (CNY 2, JPY 0).
    - ``percentage`` with a zero denominator is 0, never an exception.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from groupbuy_kernel.domain.currency import CurrencyRegistry

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, *, field: str = "amount") -> Decimal:
    """
    Coerce a stored or user-entered value to ``Decimal``.

    ``None`` and the empty string are treated as zero, matching how blank
    money fields are stored.

    Raises:
        ValueError: if the value cannot be read as a number.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"{field} must be numeric, got bool")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"{field} is not a number: {value!r}") from exc
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValueError(f"{field} must be numeric, got {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"{field} must be finite, got {value!r}")
    return result


def round_money(value: Decimal | int | str, currency: str = "CNY") -> Decimal:
    """Round an amount to the currency's precision, half up."""
    quantum = CurrencyRegistry.get_info(currency).quantum
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    """Round a percentage to 2 decimal places for display."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def percentage(numerator: Decimal, denominator: Decimal) -> Decimal:
    """``numerator / denominator * 100``; 0 when the denominator is 0."""
    if denominator == ZERO:
        return ZERO
    return numerator / denominator * HUNDRED


def jpy_to_cny(amount_jpy: Decimal, exchange_rate: Decimal) -> Decimal:
    """Convert a JPY amount at a manually entered JPY->CNY rate (unrounded)."""
    return to_decimal(amount_jpy) * to_decimal(exchange_rate, field="exchange_rate")
