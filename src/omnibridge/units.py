"""Fixed-point conversions between display amounts and smallest units.

All arithmetic is done on integers or ``Decimal`` so converting a display
amount never drifts by a rounding error.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

from .errors import ValidationError

AmountLike = Union[str, int, Decimal]

# Enough digits for yoctoNEAR balances without context rounding
_PRECISION = 80


def _check_decimals(decimals: int) -> None:
    if not isinstance(decimals, int) or isinstance(decimals, bool) or decimals < 0:
        raise ValidationError(f"Invalid decimals: {decimals!r}", field="decimals")


def to_smallest_units(amount: AmountLike, decimals: int) -> int:
    """Convert a display amount (``"1.5"``) to an integer smallest-unit amount.

    Raises ValidationError if the amount has more fractional digits than
    the token supports. Floats are rejected.
    """
    _check_decimals(decimals)
    if isinstance(amount, float):
        raise ValidationError("Amounts must not be floats", field="amount")
    if isinstance(amount, int) and not isinstance(amount, bool):
        return amount * 10**decimals
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {amount!r}", field="amount") from None
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}", field="amount")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValidationError(
            f"Amount {amount} has more than {decimals} decimal places",
            field="amount",
        )
    return int(scaled)


def from_smallest_units(raw: int, decimals: int) -> Decimal:
    """Convert a smallest-unit amount to an exact ``Decimal``."""
    _check_decimals(decimals)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(int(raw)).scaleb(-decimals)


def format_units(raw: int, decimals: int, max_fraction_digits: int = 6) -> str:
    """Human readable amount, truncated (not rounded) to ``max_fraction_digits``."""
    _check_decimals(decimals)
    negative = raw < 0
    whole, fraction = divmod(abs(int(raw)), 10**decimals)
    text = f"{whole:,}"
    if decimals and max_fraction_digits > 0:
        digits = str(fraction).rjust(decimals, "0")[:max_fraction_digits].rstrip("0")
        if digits:
            text = f"{text}.{digits}"
    return f"-{text}" if negative else text


__all__ = [
    "to_smallest_units",
    "from_smallest_units",
    "format_units",
]
