"""
Balance Calculator

DESIGN DECISION: Balances are NEVER stored or updated incrementally.
They are recomputed from the full expense history every time.

Recomputing is a single linear pass, and because addition is commutative
the order of expenses does not matter. That makes "stale balance" bugs
impossible: the history is the only source of truth.

Sign convention:
    positive -> the member is owed money
    negative -> the member owes money
"""

from typing import Iterable, Mapping, Optional

from splitledger.errors import CurrencyMismatchError, UnbalancedLedgerError
from splitledger.models.expense import Expense
from splitledger.models.money import Money
from splitledger.models.settlement import BalanceSummary, Settlement


def _resolve_currency(expenses: list[Expense], currency: Optional[str]) -> str:
    """Pick the currency from the expenses, falling back to `currency`."""
    for expense in expenses:
        if currency is None:
            currency = expense.amount.currency
        elif expense.amount.currency != currency:
            raise CurrencyMismatchError(currency, expense.amount.currency)
    if currency is None:
        raise ValueError("A currency is required when there are no expenses")
    return currency


def check_zero_sum(balances: Mapping[str, Money], currency: str) -> None:
    """Raise UnbalancedLedgerError unless the balances sum to exactly zero."""
    residual = sum(balance.amount for balance in balances.values())
    if residual != 0:
        raise UnbalancedLedgerError(residual, currency)


def compute_balances(
    expenses: Iterable[Expense],
    members: Iterable[str] = (),
    currency: Optional[str] = None,
) -> dict[str, Money]:
    """
    Reduce an expense history to one net balance per member.

    Args:
        expenses: The group's full expense history
        members: Members to include even if they have no expenses
        currency: Currency to use when `expenses` is empty

    Returns:
        {member_id: net balance}. Members with a zero balance are kept.
        Order is `members` first, then members in order of appearance.
    """
    expenses = list(expenses)
    currency = _resolve_currency(expenses, currency)

    totals: dict[str, int] = {}
    for member_id in members:
        totals.setdefault(member_id, 0)

    for expense in expenses:
        totals[expense.paid_by] = totals.get(expense.paid_by, 0) + expense.amount.amount
        for split in expense.splits:
            totals[split.member_id] = totals.get(split.member_id, 0) - split.amount.amount

    balances = {
        member_id: Money(amount=amount, currency=currency)
        for member_id, amount in totals.items()
    }
    check_zero_sum(balances, currency)
    return balances


def apply_transfers(
    balances: Mapping[str, Money],
    transfers: Iterable[Settlement],
) -> dict[str, Money]:
    """
    Apply payments to a balance map.

    A payment from -> to of `amount` moves the payer up (they owe less)
    and the receiver down (they are owed less). The input is not modified.
    """
    adjusted = dict(balances)
    for transfer in transfers:
        currency = transfer.amount.currency
        payer = adjusted.get(transfer.from_member_id, Money.zero(currency))
        receiver = adjusted.get(transfer.to_member_id, Money.zero(currency))
        adjusted[transfer.from_member_id] = payer + transfer.amount
        adjusted[transfer.to_member_id] = receiver - transfer.amount
    return adjusted


def summarize_balances(balances: Mapping[str, Money], currency: str) -> BalanceSummary:
    """Totals owed and owing plus the number of members already square."""
    owed = Money.sum((b for b in balances.values() if b.is_positive), currency)
    owing = Money.sum((-b for b in balances.values() if b.is_negative), currency)
    settled = sum(1 for b in balances.values() if b.is_zero)

    return BalanceSummary(
        currency=currency,
        total_owed=owed,
        total_owing=owing,
        settled_member_count=settled,
        member_count=len(balances),
    )


class BalanceCalculator:
    """
    Stateless wrapper around `compute_balances`.

    Exists so callers can inject it like any other service.
    """

    def compute(
        self,
        expenses: Iterable[Expense],
        members: Iterable[str] = (),
        currency: Optional[str] = None,
    ) -> dict[str, Money]:
        return compute_balances(expenses, members=members, currency=currency)

    def summarize(self, balances: Mapping[str, Money], currency: str) -> BalanceSummary:
        return summarize_balances(balances, currency)
