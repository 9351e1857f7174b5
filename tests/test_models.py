"""
Tests for Split Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for the ledger flows (in-memory storage)
3. No real API calls in tests (fake worksheets stand in for Sheets)
"""

import pytest
from datetime import datetime
from uuid import uuid4

from splitledger.config import get_settings
from splitledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from splitledger.models.expense import (
    Expense,
    ExpenseCategory,
    Group,
    Member,
    Split,
    SplitType,
)
from splitledger.models.money import Money
from splitledger.models.settlement import (
    BalanceSummary,
    Settlement,
    SettlementRecord,
    SettlementStatus,
)


def usd(amount: int) -> Money:
    return Money(amount=amount, currency="USD")


class TestGroupModels:
    """Tests for Group and Member."""

    def test_group_creation(self):
        """Test Group model creation."""
        group = Group(
            id="flat",
            name="Flat 4B",
            currency="EUR",
            members=(Member(id="a", display_name="Ann"), Member(id="b", display_name="Ben")),
        )
        assert group.member_ids == ["a", "b"]
        assert group.has_member("a")
        assert not group.has_member("z")
        assert group.get_member("b").display_name == "Ben"

    def test_group_currency_defaults_from_settings(self, monkeypatch):
        """A group without a currency takes LEDGER_DEFAULT_CURRENCY."""
        monkeypatch.setenv("LEDGER_DEFAULT_CURRENCY", "GBP")
        get_settings.cache_clear()
        try:
            group = Group(id="flat")
        finally:
            get_settings.cache_clear()
        assert group.currency == "GBP"

    def test_member_strips_whitespace(self):
        """Test that whitespace is stripped from member names."""
        member = Member(id="  a  ", display_name="  Ann  ")
        assert member.id == "a"
        assert member.display_name == "Ann"

    def test_group_rejects_duplicate_members(self):
        """Member ids must be unique within a group."""
        with pytest.raises(ValueError, match="Duplicate member id"):
            Group(
                id="g",
                currency="USD",
                members=(Member(id="a", display_name="A"), Member(id="a", display_name="B")),
            )


class TestExpenseModel:
    """Tests for the Expense model's own invariants."""

    def _splits(self, *pairs):
        return tuple(Split(member_id=m, amount=usd(a)) for m, a in pairs)

    def test_expense_creation(self):
        """Test Expense model creation."""
        expense = Expense(
            group_id="trip",
            amount=usd(90),
            paid_by="A",
            split_type=SplitType.EQUAL,
            splits=self._splits(("A", 30), ("B", 30), ("C", 30)),
            description="Dinner",
            category=ExpenseCategory.FOOD,
        )
        assert expense.participant_ids == ["A", "B", "C"]
        assert expense.share_of("B") == usd(30)
        assert expense.share_of("Z") == usd(0)
        assert expense.involves("A")
        assert not expense.involves("Z")

    def test_expense_splits_must_sum_to_amount(self):
        """Splits have to cover the amount exactly."""
        with pytest.raises(ValueError, match="Splits add up to"):
            Expense(
                group_id="trip",
                amount=usd(90),
                paid_by="A",
                split_type=SplitType.CUSTOM,
                splits=self._splits(("A", 30), ("B", 30)),
            )

    def test_expense_rejects_repeated_member(self):
        """A member appears at most once per expense."""
        with pytest.raises(ValueError, match="only once"):
            Expense(
                group_id="trip",
                amount=usd(60),
                paid_by="A",
                split_type=SplitType.CUSTOM,
                splits=self._splits(("A", 30), ("A", 30)),
            )

    def test_expense_rejects_zero_amount(self):
        """Expense amounts are strictly positive."""
        with pytest.raises(ValueError):
            Expense(
                group_id="trip",
                amount=usd(0),
                paid_by="A",
                split_type=SplitType.EQUAL,
                splits=self._splits(("A", 0)),
            )

    def test_split_rejects_negative_share(self):
        """Shares are never negative."""
        with pytest.raises(ValueError):
            Split(member_id="A", amount=usd(-1))

    def test_expense_is_immutable(self):
        """Expenses are frozen."""
        expense = Expense(
            group_id="trip",
            amount=usd(10),
            paid_by="A",
            split_type=SplitType.EQUAL,
            splits=self._splits(("A", 10)),
        )
        with pytest.raises(ValueError):
            expense.paid_by = "B"


class TestSettlementModels:
    """Tests for Settlement and SettlementRecord."""

    def test_settlement_must_be_positive(self):
        """Suggested payments are always positive."""
        with pytest.raises(ValueError):
            Settlement(from_member_id="B", to_member_id="A", amount=usd(0))

    def test_record_defaults_to_pending(self):
        """New records start PENDING without a settled_at."""
        record = SettlementRecord(
            group_id="trip", from_member_id="B", to_member_id="A", amount=usd(15)
        )
        assert record.status == SettlementStatus.PENDING
        assert record.settled_at is None
        assert not record.is_settled

    def test_record_rejects_self_payment(self):
        """A member can't pay themselves."""
        with pytest.raises(ValueError, match="themselves"):
            SettlementRecord(
                group_id="trip", from_member_id="A", to_member_id="A", amount=usd(5)
            )

    def test_settled_record_needs_timestamp(self):
        """SETTLED and settled_at go together."""
        with pytest.raises(ValueError, match="settled_at"):
            SettlementRecord(
                group_id="trip",
                from_member_id="B",
                to_member_id="A",
                amount=usd(5),
                status=SettlementStatus.SETTLED,
            )

    def test_record_as_transfer(self):
        """A record converts to the equivalent transfer."""
        record = SettlementRecord(
            group_id="trip",
            from_member_id="B",
            to_member_id="A",
            amount=usd(5),
            status=SettlementStatus.SETTLED,
            settled_at=datetime.utcnow(),
        )
        transfer = record.as_transfer()
        assert transfer == Settlement(from_member_id="B", to_member_id="A", amount=usd(5))

    def test_balance_summary_flags(self):
        """is_balanced and is_fully_settled."""
        summary = BalanceSummary(
            currency="USD",
            total_owed=usd(0),
            total_owing=usd(0),
            settled_member_count=3,
            member_count=3,
        )
        assert summary.is_balanced
        assert summary.is_fully_settled


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test basic AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.EXPENSE_ADDED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.SETTLEMENT_CONFIRMED,
            group_id="trip",
            description="Test",
            details={"key": "value"},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "settlement_confirmed"
        assert log_dict["group_id"] == "trip"
        assert log_dict["details"] == {"key": "value"}

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_REMOVED,
            description="Test",
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "expense_removed"
        assert row[3] == "info"

    def test_builder_expense_added(self):
        """Test AuditEventBuilder for expense added."""
        expense_id = uuid4()
        correlation_id = uuid4()
        event = AuditEventBuilder.expense_added(
            expense_id=expense_id,
            group_id="trip",
            paid_by="A",
            amount=9000,
            currency="USD",
            split_type="equal",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.EXPENSE_ADDED
        assert event.entity_id == expense_id
        assert event.entity_type == "expense"
        assert event.correlation_id == correlation_id
        assert event.details["amount"] == 9000

    def test_builder_rejections_are_warnings(self):
        """Rejected input is logged as a warning with the error code."""
        event = AuditEventBuilder.expense_rejected(
            group_id="trip",
            error_code="SplitMismatchError",
            error_message="does not add up",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "SplitMismatchError"


class TestCategories:
    """Tests for the enums."""

    def test_all_categories_exist(self):
        """Test that all expected categories exist."""
        expected = {
            "food", "transport", "entertainment", "utilities",
            "rent", "shopping", "healthcare", "other",
        }
        assert {c.value for c in ExpenseCategory} == expected

    def test_split_type_values(self):
        """Test split type values."""
        assert SplitType("equal") == SplitType.EQUAL
        assert SplitType.PERCENTAGE.value == "percentage"
        assert SplitType.CUSTOM.value == "custom"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
