"""
Expense Ledger

The source of truth for "who paid what, and who owes what share".

GUARANTEES:
- An expense is validated and its splits resolved BEFORE anything is
  written. A rejected expense leaves no trace except an audit event.
- Expenses are immutable. Edits replace the whole record (same id,
  same position in the history).
- The ledger never touches balances. Balances are always recomputed
  from the expense list.
- Writes to one group are serialized through the group's lock.
"""

from datetime import date
from typing import Optional, Sequence, Union
from uuid import UUID

import structlog
from pydantic import ValidationError

from splitledger.audit import AuditLogger
from splitledger.errors import InvalidExpenseError, LedgerError, NotFoundError
from splitledger.ledger.locks import GroupLockRegistry
from splitledger.ledger.splits import PolicyValue, resolve_splits
from splitledger.models.expense import Expense, ExpenseCategory, Group, SplitType
from splitledger.models.money import Money
from splitledger.services.storage import (
    ExpenseStorageInterface,
    InMemoryExpenseStorage,
    StorageError,
)
from splitledger.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


class ExpenseLedger:
    """
    Validates, stores and lists a group's expenses.

    Share the `locks` registry with the SettlementTracker so that both see
    the same per-group serialization.
    """

    def __init__(
        self,
        storage: Optional[ExpenseStorageInterface] = None,
        locks: Optional[GroupLockRegistry] = None,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage or InMemoryExpenseStorage()
        self._locks = locks or GroupLockRegistry()
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger

    @property
    def locks(self) -> GroupLockRegistry:
        return self._locks

    def _build_expense(
        self,
        group: Group,
        amount: Money,
        paid_by: str,
        split_type: Union[SplitType, str],
        participants: Sequence[str],
        policy_data: Optional[Sequence[PolicyValue]],
        description: str,
        category: Union[ExpenseCategory, str],
        notes: Optional[str],
        expense_date: Optional[date],
        correlation_id: Optional[UUID],
        **identity,
    ) -> Expense:
        """Validate input and build the Expense; audit and re-raise on rejection."""
        try:
            try:
                split_type = SplitType(split_type)
            except ValueError:
                raise InvalidExpenseError(f"Unknown split type: {split_type}", field="split_type")
            try:
                category = ExpenseCategory(category)
            except ValueError:
                raise InvalidExpenseError(f"Unknown category: {category}", field="category")

            participants = list(participants)
            if policy_data is not None:
                policy_data = list(policy_data)

            warnings = self._validator.validate(
                group=group,
                amount=amount,
                paid_by=paid_by,
                split_type=split_type,
                participants=participants,
                policy_data=policy_data,
            )
            for warning in warnings:
                logger.warning("expense_warning", group_id=group.id, warning=warning)
            splits = resolve_splits(amount, split_type, participants, policy_data)

            fields = dict(
                group_id=group.id,
                amount=amount,
                paid_by=paid_by,
                split_type=split_type,
                splits=splits,
                description=description,
                category=category,
                notes=notes,
                **identity,
            )
            if expense_date is not None:
                fields["expense_date"] = expense_date
            try:
                return Expense(**fields)
            except ValidationError as e:
                raise InvalidExpenseError(f"Invalid expense: {e.errors()[0]['msg']}") from e
        except LedgerError as e:
            if self._audit_logger:
                self._audit_logger.log_expense_rejected(
                    group_id=group.id,
                    error=e,
                    correlation_id=correlation_id,
                )
            raise

    def _after_write(self, expense: Expense, correlation_id: Optional[UUID]) -> None:
        if self._audit_logger and self._validator.is_large(expense.amount):
            self._audit_logger.log_large_expense(
                expense=expense,
                threshold=self._validator.large_expense_threshold,
                correlation_id=correlation_id,
            )

    def _storage_failed(
        self,
        operation: str,
        group_id: str,
        error: StorageError,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                group_id=group_id,
                correlation_id=correlation_id,
            )

    def add_expense(
        self,
        group: Group,
        amount: Money,
        paid_by: str,
        split_type: Union[SplitType, str],
        participants: Sequence[str],
        policy_data: Optional[Sequence[PolicyValue]] = None,
        *,
        description: str = "",
        category: Union[ExpenseCategory, str] = ExpenseCategory.OTHER,
        notes: Optional[str] = None,
        expense_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Validate, split and append a new expense.

        Args:
            group: Group the expense belongs to
            amount: Total paid, in the group's currency
            paid_by: Member who paid
            split_type: EQUAL, PERCENTAGE or CUSTOM
            participants: Members sharing the expense, in split order
            policy_data: Percentages (PERCENTAGE) or amounts (CUSTOM),
                aligned with `participants`

        Returns:
            The stored Expense with resolved splits

        Raises:
            UnknownMemberError, InvalidSplitWeightsError, SplitMismatchError,
            InvalidExpenseError, CurrencyMismatchError, StorageError
        """
        expense = self._build_expense(
            group, amount, paid_by, split_type, participants, policy_data,
            description, category, notes, expense_date, correlation_id,
        )

        with self._locks.hold(group.id):
            try:
                self._storage.save_expense(expense)
            except StorageError as e:
                self._storage_failed("save_expense", group.id, e, correlation_id)
                raise

        logger.debug("expense_added", group_id=group.id, expense_id=str(expense.id))
        if self._audit_logger:
            self._audit_logger.log_expense_added(expense, correlation_id=correlation_id)
        self._after_write(expense, correlation_id)
        return expense

    def replace_expense(
        self,
        group: Group,
        expense_id: UUID,
        amount: Money,
        paid_by: str,
        split_type: Union[SplitType, str],
        participants: Sequence[str],
        policy_data: Optional[Sequence[PolicyValue]] = None,
        *,
        description: str = "",
        category: Union[ExpenseCategory, str] = ExpenseCategory.OTHER,
        notes: Optional[str] = None,
        expense_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Replace an expense wholesale.

        The replacement keeps the original id, creation time and position
        in the history; everything else comes from the arguments and is
        validated exactly like a new expense.

        Raises:
            NotFoundError: if the expense doesn't exist in this group
            (plus everything add_expense raises)
        """
        with self._locks.hold(group.id):
            previous = self._storage.get_expense(group.id, expense_id)
            if previous is None:
                raise NotFoundError("expense", expense_id)

            replacement = self._build_expense(
                group, amount, paid_by, split_type, participants, policy_data,
                description, category, notes, expense_date, correlation_id,
                id=previous.id,
                created_at=previous.created_at,
            )
            try:
                replaced = self._storage.replace_expense(replacement)
            except StorageError as e:
                self._storage_failed("replace_expense", group.id, e, correlation_id)
                raise
            if not replaced:
                raise NotFoundError("expense", expense_id)

        if self._audit_logger:
            self._audit_logger.log_expense_replaced(
                previous, replacement, correlation_id=correlation_id
            )
        self._after_write(replacement, correlation_id)
        return replacement

    def remove_expense(
        self,
        group: Group,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Hard-delete one expense (the "undo" action).

        Other expenses are untouched.

        Raises:
            NotFoundError: if the expense doesn't exist in this group
        """
        with self._locks.hold(group.id):
            try:
                deleted = self._storage.delete_expense(group.id, expense_id)
            except StorageError as e:
                self._storage_failed("delete_expense", group.id, e, correlation_id)
                raise
            if not deleted:
                raise NotFoundError("expense", expense_id)

        if self._audit_logger:
            self._audit_logger.log_expense_removed(
                expense_id=expense_id,
                group_id=group.id,
                correlation_id=correlation_id,
            )

    def get_expense(self, group: Group, expense_id: UUID) -> Expense:
        """
        Raises:
            NotFoundError: if the expense doesn't exist in this group
        """
        with self._locks.hold(group.id):
            expense = self._storage.get_expense(group.id, expense_id)
        if expense is None:
            raise NotFoundError("expense", expense_id)
        return expense

    def list_expenses(
        self,
        group: Group,
        category: Optional[ExpenseCategory] = None,
        member_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        """
        A group's expenses in insertion order, optionally filtered.

        Args:
            category: Only expenses in this category
            member_id: Only expenses this member paid for or shares in
            date_from: Only expenses on or after this date
            date_to: Only expenses on or before this date
        """
        with self._locks.hold(group.id):
            expenses = self._storage.list_expenses(group.id)

        if category is not None:
            expenses = [e for e in expenses if e.category == category]
        if member_id is not None:
            expenses = [e for e in expenses if e.involves(member_id)]
        if date_from is not None:
            expenses = [e for e in expenses if e.expense_date >= date_from]
        if date_to is not None:
            expenses = [e for e in expenses if e.expense_date <= date_to]
        return expenses
