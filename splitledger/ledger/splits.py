"""
Split Resolution

Turns a split policy into concrete per-member amounts.

- EQUAL: distribute(amount, [1, 1, ...])
- PERCENTAGE: distribute(amount, percentages); percentages must sum to
  exactly 100
- CUSTOM: the caller's amounts, verbatim; they must sum to the expense
  amount exactly. Custom means the user's numbers are authoritative, so
  nothing is rounded or adjusted.
"""

from decimal import Decimal
from fractions import Fraction
from typing import Optional, Sequence, Union

from splitledger.errors import (
    CurrencyMismatchError,
    InvalidExpenseError,
    InvalidSplitWeightsError,
    SplitMismatchError,
)
from splitledger.models.expense import Split, SplitType
from splitledger.models.money import Money, Weight


CustomAmount = Union[Money, int]
PolicyValue = Union[Weight, Money]

HUNDRED = Fraction(100)


def _as_percentage(value: PolicyValue) -> Fraction:
    if isinstance(value, bool) or not isinstance(value, (int, Decimal, Fraction)):
        raise InvalidSplitWeightsError(
            f"Percentages must be int or Decimal, got {type(value).__name__}"
        )
    if isinstance(value, Decimal) and not value.is_finite():
        raise InvalidSplitWeightsError(f"Percentage must be finite, got {value}")
    percentage = Fraction(value)
    if percentage < 0:
        raise InvalidSplitWeightsError(f"Percentage cannot be negative: {value}")
    return percentage


def _as_custom_amount(value: PolicyValue, currency: str) -> Money:
    if isinstance(value, Money):
        if value.currency != currency:
            raise CurrencyMismatchError(currency, value.currency)
        amount = value
    elif isinstance(value, int) and not isinstance(value, bool):
        amount = Money(amount=value, currency=currency)
    else:
        raise InvalidExpenseError(
            f"Custom amounts must be Money or integer minor units, got {type(value).__name__}",
            field="policy_data",
        )
    if amount.is_negative:
        raise InvalidExpenseError("Custom amounts cannot be negative", field="policy_data")
    return amount


def resolve_splits(
    amount: Money,
    split_type: SplitType,
    participants: Sequence[str],
    policy_data: Optional[Sequence[PolicyValue]] = None,
) -> tuple[Split, ...]:
    """
    Compute the splits of an expense.

    `policy_data` is aligned with `participants`: percentages for
    PERCENTAGE, amounts for CUSTOM, nothing for EQUAL.

    Raises:
        InvalidSplitWeightsError: percentages don't sum to 100
        SplitMismatchError: custom amounts don't sum to `amount`
    """
    if split_type == SplitType.EQUAL:
        shares = amount.distribute([1] * len(participants))

    elif split_type == SplitType.PERCENTAGE:
        percentages = [_as_percentage(value) for value in policy_data]
        total = sum(percentages, Fraction(0))
        if total != HUNDRED:
            raise InvalidSplitWeightsError(
                f"Percentages must add up to exactly 100, got {total}"
            )
        shares = amount.distribute(percentages)

    elif split_type == SplitType.CUSTOM:
        shares = [_as_custom_amount(value, amount.currency) for value in policy_data]
        total = sum(share.amount for share in shares)
        if total != amount.amount:
            raise SplitMismatchError(
                expected=amount.amount,
                actual=total,
                currency=amount.currency,
            )

    else:
        raise InvalidExpenseError(f"Unsupported split type: {split_type}", field="split_type")

    return tuple(
        Split(member_id=member_id, amount=share)
        for member_id, share in zip(participants, shares)
    )
