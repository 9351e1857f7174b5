"""Shared fixtures for Split Ledger tests."""

import pytest

from splitledger.audit import AuditLogger
from splitledger.config import LedgerSettings
from splitledger.ledger import ExpenseLedger, GroupLockRegistry, SettlementTracker
from splitledger.models.expense import Group, Member
from splitledger.orchestrator import GroupLedgerService
from splitledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemorySettlementStorage,
)
from splitledger.validation import ExpenseValidator


@pytest.fixture
def group() -> Group:
    return Group(
        id="trip",
        name="Weekend trip",
        currency="USD",
        members=(
            Member(id="A", display_name="Alice"),
            Member(id="B", display_name="Bob"),
            Member(id="C", display_name="Carol"),
        ),
    )


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        default_currency="USD",
        storage_backend="memory",
        large_expense_threshold_minor=100_000,
        max_participants=10,
    )


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger(ledger_settings, audit_logger) -> ExpenseLedger:
    return ExpenseLedger(
        storage=InMemoryExpenseStorage(),
        locks=GroupLockRegistry(),
        validator=ExpenseValidator(ledger_settings),
        audit_logger=audit_logger,
    )


@pytest.fixture
def tracker(ledger, audit_logger) -> SettlementTracker:
    return SettlementTracker(
        ledger,
        storage=InMemorySettlementStorage(),
        audit_logger=audit_logger,
    )


@pytest.fixture
def service(ledger, tracker, audit_logger) -> GroupLedgerService:
    return GroupLedgerService(ledger=ledger, tracker=tracker, audit_logger=audit_logger)
