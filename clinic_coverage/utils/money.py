"""
Decimal helpers for currency arithmetic.

All amounts and percentages in the engine are Decimal. Binary floats are
rejected outright: a float that reaches this module is a caller bug.
"""

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP, InvalidOperation
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Audit money columns carry two decimals
SMALLEST_CURRENCY_UNIT = Decimal("0.01")


def to_decimal(value: Any, field_name: str = "value") -> Decimal:
    """
    Convert an int, str or Decimal to Decimal.

    Args:
        value: Value to convert
        field_name: Name used in error messages

    Returns:
        Decimal value

    Raises:
        TypeError: If value is a float, bool or another unsupported type
        ValueError: If value is not a finite number
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{field_name} must be Decimal, int or str, not {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as e:
            raise ValueError(f"{field_name} is not a number: {value!r}") from e
    else:
        raise TypeError(f"{field_name} must be Decimal, int or str, not {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


def reject_float(value: Any) -> Any:
    """Pydantic before-validator: pass everything through except floats."""
    if isinstance(value, float):
        raise ValueError("binary float is not accepted for currency or percentage values")
    return value


def quantize_currency(amount: Decimal, currency_unit: Decimal = Decimal("1")) -> Decimal:
    """
    Round an amount half-up to the smallest currency unit.

    Args:
        amount: Amount to round
        currency_unit: Smallest currency unit (1 for whole rials, 0.01 for cents)

    Returns:
        Rounded amount
    """
    return amount.quantize(currency_unit, rounding=ROUND_HALF_UP)


def floor_currency(amount: Decimal, currency_unit: Decimal = Decimal("1")) -> Decimal:
    """Round an amount down to a whole number of currency units."""
    return amount.quantize(currency_unit, rounding=ROUND_FLOOR)


def is_valid_currency_unit(unit: Decimal) -> bool:
    """True for 1, 0.1 and 0.01 (a power of ten between the smallest unit and one)."""
    if unit < SMALLEST_CURRENCY_UNIT or unit > 1:
        return False
    return unit.normalize().as_tuple().digits == (1,)


def normalize_currency_unit(unit: Decimal) -> Decimal:
    """
    Canonical form of a currency unit.

    quantize() rounds to the exponent of its argument, so 1.0 would round to
    tenths. The unit is rebuilt as 1E-n from its normalized exponent.

    Raises:
        ValueError: If the unit is not 1, 0.1 or 0.01
    """
    if not isinstance(unit, Decimal) or not unit.is_finite() or not is_valid_currency_unit(unit):
        raise ValueError(f"currency_unit must be 1, 0.1 or 0.01, got {unit}")
    return Decimal(1).scaleb(unit.normalize().as_tuple().exponent)
