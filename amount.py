"""
Fixed-point currency amounts.

Values are stored as a signed 64-bit integer count of 1/10000 units so every
arithmetic operation is exact and overflow can be detected. Floats only appear
at the edges: construction from a literal and conversion back for display.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Union
import math

from errors import AmountOverflowError, InvalidAmountError

SCALE = 10_000
AMOUNT_MIN = -(2 ** 63)
AMOUNT_MAX = 2 ** 63 - 1


def _in_range(units: int) -> bool:
    return AMOUNT_MIN <= units <= AMOUNT_MAX


@dataclass(frozen=True, order=True)
class Amount:
    units: int = 0

    @classmethod
    def zero(cls) -> "Amount":
        return cls(0)

    @classmethod
    def from_decimal(cls, value: Union[float, int, str, Decimal]) -> "Amount":
        """Build an amount from a decimal literal, rounding half away from zero."""
        try:
            value = float(value)
        except (TypeError, ValueError, OverflowError):
            raise InvalidAmountError(f"Amount is not a number: {value!r}")

        if math.isnan(value) or math.isinf(value):
            raise InvalidAmountError(f"Amount must be finite: {value!r}")

        scaled = value * SCALE + math.copysign(0.5, value)
        units = int(scaled)  # truncates toward zero
        if not _in_range(units):
            raise InvalidAmountError(f"Amount out of range: {value!r}")
        return cls(units)

    def checked_add(self, other: "Amount") -> "Amount":
        units = self.units + other.units
        if not _in_range(units):
            raise AmountOverflowError(f"{self} + {other} overflows")
        return Amount(units)

    def checked_sub(self, other: "Amount") -> "Amount":
        units = self.units - other.units
        if not _in_range(units):
            raise AmountOverflowError(f"{self} - {other} overflows")
        return Amount(units)

    def to_decimal(self) -> float:
        return self.units / SCALE

    def __str__(self) -> str:
        sign = "-" if self.units < 0 else ""
        whole, frac = divmod(abs(self.units), SCALE)
        return f"{sign}{whole}.{frac:04d}"
