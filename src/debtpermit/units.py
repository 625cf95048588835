"""Token amount conversion helpers using integer base units."""

from __future__ import annotations

from decimal import Decimal, ROUND_FLOOR, localcontext


DEFAULT_DECIMALS = 18
# Enough digits for any uint256 amount at any sane decimals.
_PRECISION = 120


def to_base_units(value: Decimal | int | str, decimals: int = DEFAULT_DECIMALS) -> int:
    """Convert a human amount ("1000", "0.5") to base units, rounding down."""
    if isinstance(value, float):
        raise ValueError("Use str or Decimal amounts; floats lose precision")
    if decimals < 0:
        raise ValueError("decimals must be >= 0")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        dec = Decimal(str(value))
        if dec < 0:
            raise ValueError("Amount must be non-negative")
        scaled = dec.scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR)
    return int(scaled)


def format_units(value: int, decimals: int = DEFAULT_DECIMALS) -> str:
    """Format integer base units as a plain decimal string."""
    if decimals == 0:
        return str(value)
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        text = f"{Decimal(value).scaleb(-decimals):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
