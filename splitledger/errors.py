"""
Ledger Error Taxonomy

Every failure raised by the ledger core is a deterministic input error.
None of them is retried and none of them leaves partial state behind:
validation always happens before anything is written.

The API layer decides how to present these to the user.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all ledger errors."""
    pass


class UnknownMemberError(LedgerError):
    """An expense or settlement references a member outside the group."""

    def __init__(self, member_id: str, group_id: str):
        self.member_id = member_id
        self.group_id = group_id
        super().__init__(f"Member {member_id!r} is not part of group {group_id!r}")


class InvalidSplitWeightsError(LedgerError):
    """Percentages don't add up to 100, or the total weight is zero."""
    pass


class SplitMismatchError(LedgerError):
    """Custom split amounts don't add up to the expense amount."""

    def __init__(self, expected: int, actual: int, currency: str):
        self.expected = expected
        self.actual = actual
        self.currency = currency
        super().__init__(
            f"Custom splits add up to {actual} {currency} "
            f"but the expense amount is {expected} {currency}"
        )


class NotFoundError(LedgerError):
    """No expense or settlement record with the given id."""

    def __init__(self, entity_type: str, entity_id: object):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} not found: {entity_id}")


class AlreadySettledError(LedgerError):
    """A settlement record was confirmed twice."""

    def __init__(self, record_id: object):
        self.record_id = record_id
        super().__init__(f"Settlement {record_id} is already settled")


class InvalidExpenseError(LedgerError):
    """Expense input is malformed (amount, participants, policy data)."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class InvalidSettlementError(LedgerError):
    """Settlement input is malformed (self-payment, non-positive amount)."""
    pass


class CurrencyMismatchError(LedgerError):
    """Two amounts in different currencies were combined."""

    def __init__(self, left: str, right: str):
        self.left = left
        self.right = right
        super().__init__(f"Currency mismatch: {left} vs {right}")


class UnbalancedLedgerError(LedgerError):
    """Balances handed to the settlement engine don't sum to zero."""

    def __init__(self, residual: int, currency: str):
        self.residual = residual
        self.currency = currency
        super().__init__(
            f"Balances must sum to zero, found a residual of {residual} {currency}"
        )
