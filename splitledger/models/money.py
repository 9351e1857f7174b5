"""
Fixed-Point Money

Amounts are integer minor units (cents, paise, ...) plus a currency code.
There is no float anywhere in this module: weights may be int, Decimal or
Fraction, and every proportional operation is done with exact rationals.

DESIGN DECISION: Remainders from integer division are handed out one unit
at a time to the earliest weighted entries, so a split is always exact and
always reproducible:

    distribute(100, [1, 1, 1]) == [34, 33, 33]
"""

from decimal import Decimal
from fractions import Fraction
from typing import Iterable, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from splitledger.errors import CurrencyMismatchError, InvalidSplitWeightsError


Weight = Union[int, Decimal, Fraction]


def _to_fraction(weight: Weight) -> Fraction:
    """Convert a weight to an exact rational, refusing floats."""
    if isinstance(weight, bool):
        raise TypeError("Booleans are not valid split weights")
    if isinstance(weight, float):
        raise TypeError("Floating point weights are not accepted, use int or Decimal")
    if isinstance(weight, Decimal):
        if not weight.is_finite():
            raise InvalidSplitWeightsError(f"Weight must be finite, got {weight}")
        return Fraction(weight)
    if isinstance(weight, (int, Fraction)):
        return Fraction(weight)
    raise TypeError(f"Unsupported weight type: {type(weight).__name__}")


def distribute(total: int, weights: Sequence[Weight]) -> list[int]:
    """
    Divide `total` minor units into parts proportional to `weights`.

    Each part starts as the floor of its exact share; the units lost to
    truncation go one each to the earliest entries with a non-zero weight.
    The parts always sum to `total`.

    Raises:
        InvalidSplitWeightsError: empty weights, a negative weight,
            or a total weight of zero
    """
    if isinstance(total, bool) or not isinstance(total, int):
        raise TypeError("Total must be an integer number of minor units")
    if total < 0:
        raise ValueError(f"Cannot distribute a negative amount: {total}")
    if not weights:
        raise InvalidSplitWeightsError("At least one weight is required")

    exact = [_to_fraction(w) for w in weights]
    if any(w < 0 for w in exact):
        raise InvalidSplitWeightsError("Weights cannot be negative")

    total_weight = sum(exact, Fraction(0))
    if total_weight == 0:
        raise InvalidSplitWeightsError("Total weight cannot be zero")

    parts = []
    for weight in exact:
        share = total * weight / total_weight
        parts.append(share.numerator // share.denominator)

    remainder = total - sum(parts)
    for index, weight in enumerate(exact):
        if remainder == 0:
            break
        if weight > 0:
            parts[index] += 1
            remainder -= 1

    return parts


class Money(BaseModel):
    """
    An exact amount of money in one currency.

    `amount` is signed: balances use negative values for members who owe.
    """
    model_config = ConfigDict(frozen=True)

    amount: StrictInt = Field(
        ...,
        description="Amount in minor units (e.g. cents)"
    )
    currency: str = Field(
        ...,
        pattern="^[A-Z]{3}$",
        description="Three-letter currency code"
    )

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(amount=0, currency=currency)

    @classmethod
    def sum(cls, items: Iterable["Money"], currency: str) -> "Money":
        """Sum amounts; an empty iterable gives zero in `currency`."""
        total = cls.zero(currency)
        for item in items:
            total = total + item
        return total

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> "Money":
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> "Money":
        return Money(amount=abs(self.amount), currency=self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def multiply(self, numerator: Weight, denominator: Weight = 1) -> "Money":
        """
        Multiply by the rational numerator/denominator.

        The result is truncated toward zero. Use `distribute` when the
        pieces have to add back up to the original amount.
        """
        den = _to_fraction(denominator)
        if den == 0:
            raise ValueError("Denominator cannot be zero")
        exact = self.amount * _to_fraction(numerator) / den
        return Money(amount=int(exact), currency=self.currency)

    def distribute(self, weights: Sequence[Weight]) -> list["Money"]:
        """Split this amount proportionally to `weights`, exactly."""
        return [
            Money(amount=part, currency=self.currency)
            for part in distribute(self.amount, weights)
        ]

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
