"""Pure balance and settlement computations."""

from splitledger.engine.balances import (
    BalanceCalculator,
    apply_transfers,
    check_zero_sum,
    compute_balances,
    summarize_balances,
)
from splitledger.engine.settlement import (
    SettlementEngine,
    settlements_for_member,
    simplify_debts,
)

__all__ = [
    "BalanceCalculator",
    "SettlementEngine",
    "apply_transfers",
    "check_zero_sum",
    "compute_balances",
    "settlements_for_member",
    "simplify_debts",
    "summarize_balances",
]
