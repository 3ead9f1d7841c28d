"""
Fixed-point money type for FairShare.

Amounts are kept as Decimal values quantized to the currency minor unit
(two fractional digits), so no arithmetic ever goes through binary floats.
"""
from __future__ import annotations
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import total_ordering
from typing import Union

from errors import InvalidAmount

MINOR_UNIT = Decimal('0.01')
MINOR_UNITS_PER_MAJOR = 100
SETTLED_EPSILON = Decimal('0.005')

_AMOUNT_PATTERN = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)$')

Ratio = Union[int, float, str, Decimal]


def _to_decimal(value: Ratio) -> Decimal:
    """Convert a ratio-like value to Decimal without float artifacts"""
    if isinstance(value, bool):
        raise TypeError("bool is not a number")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


@total_ordering
class Money:
    """Exact amount with two fractional digits"""

    __slots__ = ('_amount',)

    def __init__(self, amount: Decimal = Decimal('0')):
        if not isinstance(amount, Decimal):
            raise TypeError(f"Money needs a Decimal, got {type(amount).__name__}")
        try:
            quantized = amount.quantize(MINOR_UNIT)
        except InvalidOperation:
            raise InvalidAmount(amount, "amount is too large")
        if quantized != amount:
            raise InvalidAmount(amount, "more than two fractional digits")
        # normalize -0.00
        self._amount = quantized if quantized != 0 else Decimal('0.00')

    @classmethod
    def from_decimal_string(cls, value, allow_negative: bool = False) -> 'Money':
        """
        Parse a decimal amount such as "12.5" or "-3.40".
        Raises InvalidAmount for anything that is not a plain decimal
        with at most two fractional digits.
        """
        if isinstance(value, bool) or value is None:
            raise InvalidAmount(value)
        if isinstance(value, float):
            text = repr(value)
        else:
            text = str(value).strip()

        if not _AMOUNT_PATTERN.match(text):
            raise InvalidAmount(value)

        try:
            amount = Decimal(text)
            quantized = amount.quantize(MINOR_UNIT)
        except InvalidOperation:
            raise InvalidAmount(value, "amount is too large")

        if amount != quantized:
            raise InvalidAmount(value, "more than two fractional digits")
        if amount < 0 and not allow_negative:
            raise InvalidAmount(value, "amount cannot be negative")

        return cls(quantized)

    @classmethod
    def from_minor_units(cls, units: int) -> 'Money':
        return cls(Decimal(int(units)).scaleb(-2).quantize(MINOR_UNIT))

    @classmethod
    def zero(cls) -> 'Money':
        return cls(Decimal('0.00'))

    @property
    def amount(self) -> Decimal:
        return self._amount

    @property
    def minor_units(self) -> int:
        return int(self._amount * MINOR_UNITS_PER_MAJOR)

    def add(self, other: 'Money') -> 'Money':
        return Money(self._amount + other._amount)

    def subtract(self, other: 'Money') -> 'Money':
        return Money(self._amount - other._amount)

    def multiply_by_ratio(self, ratio: Ratio) -> 'Money':
        """Scale by ratio, rounding half away from zero to the minor unit"""
        raw = self._amount * _to_decimal(ratio)
        return Money(raw.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP))

    def compare_to(self, other: 'Money') -> int:
        if self._amount < other._amount:
            return -1
        if self._amount > other._amount:
            return 1
        return 0

    def is_zero(self) -> bool:
        return abs(self._amount) < SETTLED_EPSILON

    def is_negative(self) -> bool:
        return self._amount < 0

    def __add__(self, other):
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __radd__(self, other):
        # lets sum() start from its integer 0
        if other == 0:
            return self
        return NotImplemented

    def __sub__(self, other):
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __neg__(self) -> 'Money':
        return Money(-self._amount)

    def __abs__(self) -> 'Money':
        return Money(abs(self._amount))

    def __eq__(self, other):
        if not isinstance(other, Money):
            return NotImplemented
        return self._amount == other._amount

    def __lt__(self, other):
        if not isinstance(other, Money):
            return NotImplemented
        return self._amount < other._amount

    def __hash__(self):
        return hash(self._amount)

    def __str__(self) -> str:
        return format(self._amount, 'f')

    def __repr__(self) -> str:
        return f"Money('{self}')"
