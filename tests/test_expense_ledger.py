"""Tests for the expense ledger: validation, split resolution, edits."""

import threading
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from splitledger.errors import (
    CurrencyMismatchError,
    InvalidExpenseError,
    InvalidSplitWeightsError,
    NotFoundError,
    SplitMismatchError,
    UnknownMemberError,
)
from splitledger.ledger.locks import GroupLockRegistry
from splitledger.ledger.splits import resolve_splits
from splitledger.models.audit import AuditEventType
from splitledger.models.expense import ExpenseCategory, SplitType
from splitledger.models.money import Money


def usd(amount: int) -> Money:
    return Money(amount=amount, currency="USD")


def shares(expense) -> list[tuple[str, int]]:
    return [(s.member_id, s.amount.amount) for s in expense.splits]


def logged(audit_storage, event_type: AuditEventType) -> list:
    return [e for e in audit_storage.get_recent_events(1000) if e.event_type == event_type]


class TestResolveSplits:
    """Tests for turning a split policy into amounts."""

    def test_equal(self):
        """Equal splits hand the remainder to the first participant."""
        splits = resolve_splits(usd(100), SplitType.EQUAL, ["A", "B", "C"])
        assert [s.amount.amount for s in splits] == [34, 33, 33]

    def test_percentage(self):
        """Percentages split proportionally and exactly."""
        splits = resolve_splits(
            usd(1001), SplitType.PERCENTAGE, ["A", "B"], [Decimal("50"), Decimal("50")]
        )
        assert [s.amount.amount for s in splits] == [501, 500]

    def test_percentage_must_total_100(self):
        """99.9 percent is not 100 percent."""
        with pytest.raises(InvalidSplitWeightsError):
            resolve_splits(
                usd(100), SplitType.PERCENTAGE, ["A", "B"], [Decimal("49.9"), 50]
            )

    def test_float_percentage_rejected(self):
        """Floats are refused at the split boundary."""
        with pytest.raises(InvalidSplitWeightsError):
            resolve_splits(usd(100), SplitType.PERCENTAGE, ["A", "B"], [50.0, 50.0])

    def test_custom_amounts_verbatim(self):
        """Custom amounts are used exactly as given."""
        splits = resolve_splits(usd(100), SplitType.CUSTOM, ["A", "B"], [usd(70), 30])
        assert [s.amount.amount for s in splits] == [70, 30]

    def test_custom_mismatch(self):
        """Custom amounts must add up to the expense amount."""
        with pytest.raises(SplitMismatchError) as exc_info:
            resolve_splits(usd(100), SplitType.CUSTOM, ["A", "B"], [60, 30])
        assert exc_info.value.expected == 100
        assert exc_info.value.actual == 90

    def test_custom_wrong_currency(self):
        """Custom amounts must be in the expense currency."""
        with pytest.raises(CurrencyMismatchError):
            resolve_splits(
                usd(100), SplitType.CUSTOM, ["A", "B"],
                [Money(amount=50, currency="EUR"), 50],
            )


class TestAddExpense:
    """Tests for ExpenseLedger.add_expense."""

    def test_equal_split(self, ledger, group):
        """An equal split across everyone."""
        expense = ledger.add_expense(group, usd(100), "A", SplitType.EQUAL, ["A", "B", "C"])
        assert shares(expense) == [("A", 34), ("B", 33), ("C", 33)]
        assert ledger.list_expenses(group) == [expense]

    def test_split_type_as_string(self, ledger, group):
        """Split type and category may be passed as their values."""
        expense = ledger.add_expense(
            group, usd(30), "B", "equal", ["B", "C"], category="food"
        )
        assert expense.split_type == SplitType.EQUAL
        assert expense.category == ExpenseCategory.FOOD

    def test_descriptive_fields(self, ledger, group):
        """Description, notes and date are stored."""
        expense = ledger.add_expense(
            group, usd(30), "B", SplitType.EQUAL, ["B", "C"],
            description="Taxi",
            category=ExpenseCategory.TRANSPORT,
            notes="to the airport",
            expense_date=date(2024, 5, 1),
        )
        assert expense.description == "Taxi"
        assert expense.notes == "to the airport"
        assert expense.expense_date == date(2024, 5, 1)

    def test_unknown_payer(self, ledger, group, audit_storage):
        """The payer must be a group member; nothing is stored."""
        with pytest.raises(UnknownMemberError) as exc_info:
            ledger.add_expense(group, usd(10), "Z", SplitType.EQUAL, ["A"])
        assert exc_info.value.member_id == "Z"
        assert ledger.list_expenses(group) == []
        assert len(logged(audit_storage, AuditEventType.EXPENSE_REJECTED)) == 1

    def test_unknown_participant(self, ledger, group):
        """Every participant must be a group member."""
        with pytest.raises(UnknownMemberError):
            ledger.add_expense(group, usd(10), "A", SplitType.EQUAL, ["A", "Z"])

    def test_percentage_not_100(self, ledger, group):
        """Percentages that don't add to 100 are rejected."""
        with pytest.raises(InvalidSplitWeightsError):
            ledger.add_expense(
                group, usd(100), "A", SplitType.PERCENTAGE, ["A", "B"], [60, 30]
            )
        assert ledger.list_expenses(group) == []

    @pytest.mark.parametrize("bad", [Decimal("NaN"), Decimal("Infinity"), Decimal("-Infinity")])
    def test_non_finite_percentage(self, ledger, group, audit_storage, bad):
        """NaN and infinite percentages are a typed, audited rejection."""
        with pytest.raises(InvalidSplitWeightsError):
            ledger.add_expense(
                group, usd(100), "A", SplitType.PERCENTAGE, ["A", "B"], [bad, Decimal(50)]
            )
        assert ledger.list_expenses(group) == []
        assert len(logged(audit_storage, AuditEventType.EXPENSE_REJECTED)) == 1

    def test_custom_mismatch(self, ledger, group):
        """Custom amounts that don't add up are rejected."""
        with pytest.raises(SplitMismatchError):
            ledger.add_expense(group, usd(100), "A", SplitType.CUSTOM, ["A", "B"], [50, 40])

    def test_zero_amount(self, ledger, group):
        """Amounts must be positive."""
        with pytest.raises(InvalidExpenseError):
            ledger.add_expense(group, usd(0), "A", SplitType.EQUAL, ["A", "B"])

    def test_wrong_currency(self, ledger, group):
        """The expense currency must be the group's."""
        with pytest.raises(CurrencyMismatchError):
            ledger.add_expense(
                group, Money(amount=10, currency="EUR"), "A", SplitType.EQUAL, ["A"]
            )

    def test_duplicate_participants(self, ledger, group):
        """Participants are unique."""
        with pytest.raises(InvalidExpenseError):
            ledger.add_expense(group, usd(10), "A", SplitType.EQUAL, ["A", "A"])

    def test_empty_participants(self, ledger, group):
        """At least one participant."""
        with pytest.raises(InvalidExpenseError):
            ledger.add_expense(group, usd(10), "A", SplitType.EQUAL, [])

    def test_policy_data_length_mismatch(self, ledger, group):
        """One policy value per participant."""
        with pytest.raises(InvalidExpenseError) as exc_info:
            ledger.add_expense(group, usd(10), "A", SplitType.CUSTOM, ["A", "B"], [10])
        assert exc_info.value.field == "policy_data"

    def test_equal_with_policy_data(self, ledger, group):
        """Equal splits take no policy data."""
        with pytest.raises(InvalidExpenseError):
            ledger.add_expense(group, usd(10), "A", SplitType.EQUAL, ["A", "B"], [5, 5])

    def test_unknown_split_type(self, ledger, group):
        """Unknown split types are rejected."""
        with pytest.raises(InvalidExpenseError):
            ledger.add_expense(group, usd(10), "A", "shares", ["A", "B"])

    def test_large_expense_is_flagged(self, ledger, group, audit_storage):
        """Amounts above the threshold are stored and flagged."""
        ledger.add_expense(group, usd(500_000), "A", SplitType.EQUAL, ["A", "B"])
        assert len(logged(audit_storage, AuditEventType.LARGE_EXPENSE_FLAGGED)) == 1
        assert len(logged(audit_storage, AuditEventType.EXPENSE_ADDED)) == 1


class TestEditExpenses:
    """Tests for replace / remove / get / list."""

    def test_replace_keeps_id_and_position(self, ledger, group):
        """A replacement keeps the id, creation time and order."""
        first = ledger.add_expense(group, usd(90), "A", SplitType.EQUAL, ["A", "B", "C"])
        second = ledger.add_expense(group, usd(30), "B", SplitType.EQUAL, ["B", "C"])

        replaced = ledger.replace_expense(
            group, first.id, usd(60), "C", SplitType.CUSTOM, ["A", "C"], [20, 40]
        )
        assert replaced.id == first.id
        assert replaced.created_at == first.created_at
        assert ledger.list_expenses(group) == [replaced, second]

    def test_replace_unknown(self, ledger, group):
        """Replacing a missing expense fails."""
        with pytest.raises(NotFoundError):
            ledger.replace_expense(group, uuid4(), usd(10), "A", SplitType.EQUAL, ["A"])

    def test_invalid_replacement_keeps_original(self, ledger, group):
        """A rejected replacement leaves the original in place."""
        original = ledger.add_expense(group, usd(90), "A", SplitType.EQUAL, ["A", "B", "C"])
        with pytest.raises(UnknownMemberError):
            ledger.replace_expense(
                group, original.id, usd(90), "Z", SplitType.EQUAL, ["A", "B"]
            )
        assert ledger.get_expense(group, original.id) == original

    def test_remove(self, ledger, group, audit_storage):
        """Removing an expense leaves the others alone."""
        first = ledger.add_expense(group, usd(90), "A", SplitType.EQUAL, ["A", "B", "C"])
        second = ledger.add_expense(group, usd(30), "B", SplitType.EQUAL, ["B", "C"])
        ledger.remove_expense(group, first.id)
        assert ledger.list_expenses(group) == [second]
        assert len(logged(audit_storage, AuditEventType.EXPENSE_REMOVED)) == 1

    def test_remove_unknown(self, ledger, group):
        """Removing a missing expense fails."""
        with pytest.raises(NotFoundError):
            ledger.remove_expense(group, uuid4())

    def test_get_unknown(self, ledger, group):
        """Getting a missing expense fails."""
        with pytest.raises(NotFoundError):
            ledger.get_expense(group, uuid4())

    def test_list_filters(self, ledger, group):
        """Category, member and date filters narrow the list."""
        dinner = ledger.add_expense(
            group, usd(90), "A", SplitType.EQUAL, ["A", "B", "C"],
            category=ExpenseCategory.FOOD, expense_date=date(2024, 5, 1),
        )
        taxi = ledger.add_expense(
            group, usd(30), "B", SplitType.EQUAL, ["B", "C"],
            category=ExpenseCategory.TRANSPORT, expense_date=date(2024, 5, 3),
        )
        assert ledger.list_expenses(group, category=ExpenseCategory.FOOD) == [dinner]
        assert ledger.list_expenses(group, member_id="A") == [dinner]
        assert ledger.list_expenses(group, member_id="C") == [dinner, taxi]
        assert ledger.list_expenses(group, date_from=date(2024, 5, 2)) == [taxi]
        assert ledger.list_expenses(group, date_to=date(2024, 5, 2)) == [dinner]


class TestGroupLocks:
    """Tests for the per-group lock registry."""

    def test_one_lock_per_group(self):
        """Locks are created lazily and reused."""
        locks = GroupLockRegistry()
        assert len(locks) == 0
        assert locks.lock_for("trip") is locks.lock_for("trip")
        assert locks.lock_for("trip") is not locks.lock_for("flat")
        assert len(locks) == 2

    def test_lock_is_reentrant(self):
        """The same thread can take a group lock twice."""
        locks = GroupLockRegistry()
        with locks.hold("trip"):
            with locks.hold("trip"):
                pass


class TestConcurrency:
    """Concurrent writes to one group."""

    def test_concurrent_adds_are_all_kept(self, ledger, group):
        """Parallel writers never lose an expense."""
        def worker():
            for _ in range(25):
                ledger.add_expense(group, usd(10), "A", SplitType.EQUAL, ["A", "B"])

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ledger.list_expenses(group)) == 100


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
