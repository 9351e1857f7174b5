"""
In-Memory Storage Implementation

The default backend. Keeps everything in process memory, which is what
the tests use and what a single-process deployment needs.

Each store guards its dicts with one lock so that it is safe to share
between groups; per-group ordering of writes is the ledger's job.
"""

import threading
from typing import Optional
from uuid import UUID

from splitledger.models.audit import AuditEvent
from splitledger.models.expense import Expense
from splitledger.models.settlement import SettlementRecord
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    SettlementStorageInterface,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expenses kept per group in insertion order."""

    def __init__(self):
        self._expenses: dict[str, list[Expense]] = {}
        self._lock = threading.Lock()

    def _find(self, group_id: str, expense_id: UUID) -> Optional[int]:
        for index, expense in enumerate(self._expenses.get(group_id, [])):
            if expense.id == expense_id:
                return index
        return None

    def save_expense(self, expense: Expense) -> bool:
        with self._lock:
            if self._find(expense.group_id, expense.id) is not None:
                raise DuplicateError(f"Expense already exists: {expense.id}")
            self._expenses.setdefault(expense.group_id, []).append(expense)
            return True

    def replace_expense(self, expense: Expense) -> bool:
        with self._lock:
            index = self._find(expense.group_id, expense.id)
            if index is None:
                return False
            self._expenses[expense.group_id][index] = expense
            return True

    def delete_expense(self, group_id: str, expense_id: UUID) -> bool:
        with self._lock:
            index = self._find(group_id, expense_id)
            if index is None:
                return False
            del self._expenses[group_id][index]
            return True

    def get_expense(self, group_id: str, expense_id: UUID) -> Optional[Expense]:
        with self._lock:
            index = self._find(group_id, expense_id)
            if index is None:
                return None
            return self._expenses[group_id][index]

    def list_expenses(self, group_id: str) -> list[Expense]:
        with self._lock:
            return list(self._expenses.get(group_id, []))


class InMemorySettlementStorage(SettlementStorageInterface):
    """Settlement records indexed by id, listed per group in creation order."""

    def __init__(self):
        self._records: dict[UUID, SettlementRecord] = {}
        self._lock = threading.Lock()

    def save_record(self, record: SettlementRecord) -> bool:
        with self._lock:
            if record.id in self._records:
                raise DuplicateError(f"Settlement record already exists: {record.id}")
            self._records[record.id] = record
            return True

    def update_record(self, record: SettlementRecord) -> bool:
        with self._lock:
            if record.id not in self._records:
                return False
            self._records[record.id] = record
            return True

    def get_record(self, record_id: UUID) -> Optional[SettlementRecord]:
        with self._lock:
            return self._records.get(record_id)

    def list_records(self, group_id: str) -> list[SettlementRecord]:
        with self._lock:
            # dicts keep insertion order, and updates don't move keys
            return [r for r in self._records.values() if r.group_id == group_id]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []
        self._lock = threading.Lock()

    def append_event(self, event: AuditEvent) -> bool:
        with self._lock:
            self._events.append(event)
            return True

    def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        with self._lock:
            events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        with self._lock:
            events = [
                e for e in self._events
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        with self._lock:
            events = list(self._events)
        events.reverse()
        return events[:limit]
