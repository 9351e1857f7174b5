"""
Data Models Package

This package contains all Pydantic models used by the ledger.
All data flowing through the system must conform to these schemas.
"""

from splitledger.models.money import Money, distribute
from splitledger.models.expense import (
    Expense,
    ExpenseCategory,
    Group,
    Member,
    Split,
    SplitType,
)
from splitledger.models.settlement import (
    BalanceSummary,
    MemberSettlementView,
    Settlement,
    SettlementRecord,
    SettlementStatus,
)
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Money
    "Money",
    "distribute",
    # Group and expense models
    "Expense",
    "ExpenseCategory",
    "Group",
    "Member",
    "Split",
    "SplitType",
    # Settlement models
    "BalanceSummary",
    "MemberSettlementView",
    "Settlement",
    "SettlementRecord",
    "SettlementStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
