"""Stateful ledger components: expenses, settlements and group locks."""

from splitledger.ledger.expense_ledger import ExpenseLedger
from splitledger.ledger.locks import GroupLockRegistry
from splitledger.ledger.settlement_tracker import SettlementTracker
from splitledger.ledger.splits import resolve_splits

__all__ = [
    "ExpenseLedger",
    "GroupLockRegistry",
    "SettlementTracker",
    "resolve_splits",
]
