"""Tests for recording and confirming settlements."""

from uuid import uuid4

import pytest

from splitledger.errors import (
    AlreadySettledError,
    CurrencyMismatchError,
    InvalidSettlementError,
    NotFoundError,
    UnknownMemberError,
)
from splitledger.models.audit import AuditEventType
from splitledger.models.expense import SplitType
from splitledger.models.money import Money
from splitledger.models.settlement import SettlementStatus


def usd(amount: int) -> Money:
    return Money(amount=amount, currency="USD")


def plan_tuples(plan):
    return [(s.from_member_id, s.to_member_id, s.amount.amount) for s in plan]


@pytest.fixture
def scenario(ledger, group):
    """A pays 90 for A/B/C, B pays 30 for B/C: A=+60, B=-15, C=-45."""
    ledger.add_expense(group, usd(90), "A", SplitType.EQUAL, ["A", "B", "C"])
    ledger.add_expense(group, usd(30), "B", SplitType.EQUAL, ["B", "C"])
    return group


class TestRecordSettlement:
    """Tests for SettlementTracker.record_settlement."""

    def test_record_is_pending(self, tracker, scenario):
        """A recorded payment starts PENDING and doesn't move balances."""
        record = tracker.record_settlement(scenario, "C", "A", usd(45), note="cash")
        assert record.status == SettlementStatus.PENDING
        assert record.note == "cash"
        assert tracker.net_outstanding(scenario)["C"] == usd(-45)

    def test_int_amount_uses_group_currency(self, tracker, scenario):
        """Integer amounts are minor units in the group currency."""
        record = tracker.record_settlement(scenario, "B", "A", 15)
        assert record.amount == usd(15)

    def test_unknown_member(self, tracker, scenario):
        """Both sides must belong to the group."""
        with pytest.raises(UnknownMemberError):
            tracker.record_settlement(scenario, "Z", "A", usd(5))
        with pytest.raises(UnknownMemberError):
            tracker.record_settlement(scenario, "A", "Z", usd(5))

    def test_self_payment(self, tracker, scenario, audit_storage):
        """Paying yourself is rejected and audited."""
        with pytest.raises(InvalidSettlementError):
            tracker.record_settlement(scenario, "A", "A", usd(5))
        events = [
            e for e in audit_storage.get_recent_events(1000)
            if e.event_type == AuditEventType.SETTLEMENT_REJECTED
        ]
        assert len(events) == 1
        assert events[0].error_code == "InvalidSettlementError"

    def test_non_positive_amount(self, tracker, scenario):
        """Zero and negative payments are rejected."""
        with pytest.raises(InvalidSettlementError):
            tracker.record_settlement(scenario, "C", "A", usd(0))
        with pytest.raises(InvalidSettlementError):
            tracker.record_settlement(scenario, "C", "A", -5)

    def test_wrong_currency(self, tracker, scenario):
        """Payments are in the group currency."""
        with pytest.raises(CurrencyMismatchError):
            tracker.record_settlement(scenario, "C", "A", Money(amount=5, currency="EUR"))

    def test_overpayment_is_allowed_but_flagged(self, tracker, scenario, audit_storage):
        """Paying more than you owe is recorded with a warning event."""
        record = tracker.record_settlement(scenario, "B", "A", usd(40))
        assert record.status == SettlementStatus.PENDING
        events = [
            e for e in audit_storage.get_recent_events(1000)
            if e.event_type == AuditEventType.SETTLEMENT_EXCEEDS_OUTSTANDING
        ]
        assert len(events) == 1
        assert events[0].details == {"amount": 40, "outstanding": 15}


class TestConfirmSettlement:
    """Tests for the PENDING -> SETTLED transition."""

    def test_confirm(self, tracker, scenario):
        """Confirming stamps settled_at and moves balances."""
        record = tracker.record_settlement(scenario, "C", "A", usd(45))
        settled = tracker.confirm_settlement(record.id)

        assert settled.status == SettlementStatus.SETTLED
        assert settled.settled_at is not None
        assert tracker.get_record(record.id) == settled

        outstanding = tracker.net_outstanding(scenario)
        assert outstanding == {"A": usd(15), "B": usd(-15), "C": usd(0)}
        assert plan_tuples(tracker.suggest_settlements(scenario)) == [("B", "A", 15)]

    def test_confirm_twice(self, tracker, scenario):
        """A record is settled once."""
        record = tracker.record_settlement(scenario, "C", "A", usd(45))
        tracker.confirm_settlement(record.id)
        with pytest.raises(AlreadySettledError):
            tracker.confirm_settlement(record.id)

    def test_confirm_unknown(self, tracker):
        """Unknown ids fail."""
        with pytest.raises(NotFoundError):
            tracker.confirm_settlement(uuid4())

    def test_get_unknown(self, tracker):
        """Unknown ids fail."""
        with pytest.raises(NotFoundError):
            tracker.get_record(uuid4())

    def test_list_records_by_status(self, tracker, scenario):
        """Records come back oldest first and can be filtered."""
        first = tracker.record_settlement(scenario, "C", "A", usd(45))
        second = tracker.record_settlement(scenario, "B", "A", usd(15))
        tracker.confirm_settlement(first.id)

        assert [r.id for r in tracker.list_records(scenario)] == [first.id, second.id]
        settled = tracker.list_records(scenario, status=SettlementStatus.SETTLED)
        pending = tracker.list_records(scenario, status=SettlementStatus.PENDING)
        assert [r.id for r in settled] == [first.id]
        assert [r.id for r in pending] == [second.id]


class TestHistoryAndNewExpenses:
    """Settled payments survive later expenses."""

    def test_full_settlement_clears_plan(self, tracker, scenario):
        """Confirming the whole plan leaves nothing outstanding."""
        for settlement in tracker.suggest_settlements(scenario):
            record = tracker.record_settlement(
                scenario, settlement.from_member_id, settlement.to_member_id, settlement.amount
            )
            tracker.confirm_settlement(record.id)

        assert all(b.is_zero for b in tracker.net_outstanding(scenario).values())
        assert tracker.suggest_settlements(scenario) == []

    def test_new_expense_after_settlement(self, ledger, tracker, scenario):
        """A later expense only adds what is new."""
        record = tracker.record_settlement(scenario, "C", "A", usd(45))
        tracker.confirm_settlement(record.id)

        ledger.add_expense(scenario, usd(60), "C", SplitType.EQUAL, ["A", "B", "C"])

        outstanding = tracker.net_outstanding(scenario)
        assert outstanding == {"A": usd(-5), "B": usd(-35), "C": usd(40)}
        assert sum(b.amount for b in outstanding.values()) == 0

    def test_removed_expense_after_settlement(self, ledger, tracker, scenario):
        """Undoing an expense after paying leaves a reverse balance."""
        expenses = ledger.list_expenses(scenario)
        record = tracker.record_settlement(scenario, "B", "A", usd(15))
        tracker.confirm_settlement(record.id)

        ledger.remove_expense(scenario, expenses[1].id)

        outstanding = tracker.net_outstanding(scenario)
        assert outstanding == {"A": usd(45), "B": usd(-15), "C": usd(-30)}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
