"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the ledger decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
The ledger serializes writes per group before calling into storage, so
implementations don't need their own locking per group.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from splitledger.models.audit import AuditEvent
from splitledger.models.expense import Expense
from splitledger.models.settlement import SettlementRecord


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage.

    Expenses must come back from `list_expenses` in insertion order.
    """

    @abstractmethod
    def save_expense(self, expense: Expense) -> bool:
        """
        Append a new expense.

        Raises:
            DuplicateError: If an expense with this id already exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    def replace_expense(self, expense: Expense) -> bool:
        """
        Replace an existing expense in place (same id, same position).

        Returns:
            True if replaced, False if no expense has this id
        """
        pass

    @abstractmethod
    def delete_expense(self, group_id: str, expense_id: UUID) -> bool:
        """
        Hard-delete an expense.

        Returns:
            True if deleted, False if it didn't exist
        """
        pass

    @abstractmethod
    def get_expense(self, group_id: str, expense_id: UUID) -> Optional[Expense]:
        """Retrieve an expense, or None if it doesn't exist."""
        pass

    @abstractmethod
    def list_expenses(self, group_id: str) -> list[Expense]:
        """All expenses of a group, oldest first."""
        pass


class SettlementStorageInterface(ABC):
    """
    Abstract interface for settlement record storage.

    Records are never deleted. Confirming a record updates it in place.
    """

    @abstractmethod
    def save_record(self, record: SettlementRecord) -> bool:
        """
        Append a new settlement record.

        Raises:
            DuplicateError: If a record with this id already exists
        """
        pass

    @abstractmethod
    def update_record(self, record: SettlementRecord) -> bool:
        """
        Overwrite an existing record.

        Returns:
            True if updated, False if no record has this id
        """
        pass

    @abstractmethod
    def get_record(self, record_id: UUID) -> Optional[SettlementRecord]:
        """Retrieve a record by id, or None."""
        pass

    @abstractmethod
    def list_records(self, group_id: str) -> list[SettlementRecord]:
        """All records of a group, oldest first."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events about one entity, in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
