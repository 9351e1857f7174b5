"""
Settlement Engine (debt simplification)

Turns net balances into the fewest payments that square everyone up.

ALGORITHM: greedy largest-magnitude matching.
1. Split members into creditors (> 0) and debtors (< 0); drop zeros.
2. Keep each side in a heap ordered by |balance| descending, then
   member id ascending.
3. Pop the largest creditor and the largest debtor, pay the smaller of
   the two magnitudes from debtor to creditor, push back whoever still
   has something left.
4. Stop when both heaps are empty.

Every step zeroes at least one member and the last step zeroes two, so
n non-zero members need at most n - 1 payments.

TRADEOFF: The plan minimizes the number of payments. It does not try to
keep "natural" pairs (who actually paid for whom) together.
"""

import heapq
from typing import Iterable, Mapping

from splitledger.engine.balances import check_zero_sum
from splitledger.errors import CurrencyMismatchError
from splitledger.models.money import Money
from splitledger.models.settlement import MemberSettlementView, Settlement


def _plan_currency(balances: Mapping[str, Money]) -> str:
    currencies = {balance.currency for balance in balances.values()}
    if len(currencies) > 1:
        first, second = sorted(currencies)[:2]
        raise CurrencyMismatchError(first, second)
    return currencies.pop()


def simplify_debts(balances: Mapping[str, Money]) -> list[Settlement]:
    """
    Compute the minimal list of payments that zeroes every balance.

    The output is deterministic: the same balances always produce the
    same payments in the same order.

    Raises:
        UnbalancedLedgerError: if the balances don't sum to zero
        CurrencyMismatchError: if balances use more than one currency
    """
    if not balances:
        return []

    currency = _plan_currency(balances)
    check_zero_sum(balances, currency)

    # Heap entries are (-magnitude, member_id): biggest first, ties by id
    creditors: list[tuple[int, str]] = []
    debtors: list[tuple[int, str]] = []
    for member_id, balance in balances.items():
        if balance.is_positive:
            creditors.append((-balance.amount, member_id))
        elif balance.is_negative:
            debtors.append((balance.amount, member_id))
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    settlements = []
    while creditors and debtors:
        credit, creditor = heapq.heappop(creditors)
        debt, debtor = heapq.heappop(debtors)
        credit, debt = -credit, -debt

        amount = min(credit, debt)
        settlements.append(Settlement(
            from_member_id=debtor,
            to_member_id=creditor,
            amount=Money(amount=amount, currency=currency),
        ))

        if credit > amount:
            heapq.heappush(creditors, (-(credit - amount), creditor))
        if debt > amount:
            heapq.heappush(debtors, (-(debt - amount), debtor))

    return settlements


def settlements_for_member(
    settlements: Iterable[Settlement],
    member_id: str,
    currency: str,
) -> MemberSettlementView:
    """Split a plan into what `member_id` pays and what they receive."""
    settlements = list(settlements)
    you_owe = [s for s in settlements if s.from_member_id == member_id]
    owed_to_you = [s for s in settlements if s.to_member_id == member_id]

    return MemberSettlementView(
        member_id=member_id,
        currency=currency,
        you_owe=you_owe,
        owed_to_you=owed_to_you,
        total_you_owe=Money.sum((s.amount for s in you_owe), currency),
        total_owed_to_you=Money.sum((s.amount for s in owed_to_you), currency),
    )


class SettlementEngine:
    """Stateless service wrapper around `simplify_debts`."""

    def plan(self, balances: Mapping[str, Money]) -> list[Settlement]:
        return simplify_debts(balances)

    def plan_for_member(
        self,
        balances: Mapping[str, Money],
        member_id: str,
        currency: str,
    ) -> MemberSettlementView:
        return settlements_for_member(self.plan(balances), member_id, currency)
