"""Decimal helpers shared by the totals and ledger services."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ..exceptions import ValidationError

MONEY_QUANTIZER = Decimal("0.01")
WHOLE = Decimal("1")
HUNDRED = Decimal("100")


def _coerce_decimal(value: Any, fallback: Decimal) -> Decimal:
    """Return ``value`` as :class:`~decimal.Decimal` or ``fallback`` if invalid."""

    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError):
        return fallback


def to_decimal(value: Any, default: Any = "0") -> Decimal:
    """Normalise ``value`` into :class:`~decimal.Decimal` with a fallback."""

    default_decimal = default if isinstance(default, Decimal) else _coerce_decimal(default, Decimal("0"))
    if value in (None, ""):
        return default_decimal
    return _coerce_decimal(value, default_decimal)


def parse_decimal(value: Any, field: str) -> Decimal:
    """Like :func:`to_decimal` but reject malformed input instead of defaulting."""

    if value in (None, ""):
        return Decimal("0")
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"{field} must be a number.") from exc
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a number.")
    return parsed


def parse_percent(value: Any, field: str) -> Decimal:
    percent = parse_decimal(value, field)
    if percent < 0 or percent > HUNDRED:
        raise ValidationError(f"{field} must be between 0 and 100.")
    return percent


def money(value: Decimal) -> Decimal:
    """Quantise to two places, rounding half up."""

    return value.quantize(MONEY_QUANTIZER, rounding=ROUND_HALF_UP)


def round_to_whole(value: Decimal) -> Decimal:
    """Round to the nearest integer; ties go away from zero (half up)."""

    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return money(amount * percent / HUNDRED)
