"""
Settlement Tracker

Keeps the history of payments members say they have made and folds the
confirmed ones back into the balances.

STATE MACHINE (per record):

    PENDING --confirm--> SETTLED

No other transitions. A record is never deleted or un-settled; a
mistaken payment is corrected by recording another one.

HOW HISTORY SURVIVES NEW EXPENSES:
Balances are recomputed from the full expense list, then every SETTLED
record is applied as a transfer (payer credited, receiver debited).
New expenses therefore never erase what was already paid, and the next
settlement plan only proposes what is still outstanding.
"""

from datetime import datetime
from typing import Optional, Union
from uuid import UUID

import structlog

from splitledger.audit import AuditLogger
from splitledger.engine.balances import BalanceCalculator, apply_transfers
from splitledger.engine.settlement import SettlementEngine
from splitledger.errors import (
    AlreadySettledError,
    CurrencyMismatchError,
    InvalidSettlementError,
    LedgerError,
    NotFoundError,
    UnknownMemberError,
)
from splitledger.ledger.expense_ledger import ExpenseLedger
from splitledger.models.expense import Expense, Group
from splitledger.models.money import Money
from splitledger.models.settlement import (
    Settlement,
    SettlementRecord,
    SettlementStatus,
)
from splitledger.services.storage import (
    InMemorySettlementStorage,
    SettlementStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class SettlementTracker:
    """
    Records and confirms settlements, and computes what is still owed.

    Uses the expense ledger's lock registry, so a group's expenses and
    settlement records are always read as one consistent snapshot.
    """

    def __init__(
        self,
        ledger: ExpenseLedger,
        storage: Optional[SettlementStorageInterface] = None,
        calculator: Optional[BalanceCalculator] = None,
        engine: Optional[SettlementEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._locks = ledger.locks
        self._storage = storage or InMemorySettlementStorage()
        self._calculator = calculator or BalanceCalculator()
        self._engine = engine or SettlementEngine()
        self._audit_logger = audit_logger

    def _reject(
        self,
        group_id: Optional[str],
        error: LedgerError,
        record_id: Optional[UUID],
        correlation_id: Optional[UUID],
    ) -> LedgerError:
        if self._audit_logger:
            self._audit_logger.log_settlement_rejected(
                group_id=group_id,
                error=error,
                record_id=record_id,
                correlation_id=correlation_id,
            )
        return error

    def _validate_new_record(
        self,
        group: Group,
        from_member_id: str,
        to_member_id: str,
        amount: Money,
    ) -> None:
        if not isinstance(amount, Money):
            raise InvalidSettlementError("Amount must be Money")
        if amount.currency != group.currency:
            raise CurrencyMismatchError(group.currency, amount.currency)
        if not amount.is_positive:
            raise InvalidSettlementError("Settlement amount must be greater than zero")
        for member_id in (from_member_id, to_member_id):
            if not group.has_member(member_id):
                raise UnknownMemberError(member_id, group.id)
        if from_member_id == to_member_id:
            raise InvalidSettlementError("A member cannot settle with themselves")

    def record_settlement(
        self,
        group: Group,
        from_member_id: str,
        to_member_id: str,
        amount: Union[Money, int],
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementRecord:
        """
        Record a payment from one member to another as PENDING.

        `amount` is Money or integer minor units in the group currency.

        The payment can be one the engine suggested or an ad-hoc one.
        Paying more than the payer currently owes is allowed but flagged
        in the audit log.

        Raises:
            UnknownMemberError, InvalidSettlementError, CurrencyMismatchError
        """
        if isinstance(amount, int) and not isinstance(amount, bool):
            amount = Money(amount=amount, currency=group.currency)
        try:
            self._validate_new_record(group, from_member_id, to_member_id, amount)
        except LedgerError as e:
            raise self._reject(group.id, e, None, correlation_id)

        record = SettlementRecord(
            group_id=group.id,
            from_member_id=from_member_id,
            to_member_id=to_member_id,
            amount=amount,
            note=note,
        )

        with self._locks.hold(group.id):
            expenses, settled = self._snapshot_locked(group)
            try:
                self._storage.save_record(record)
            except StorageError as e:
                if self._audit_logger:
                    self._audit_logger.log_storage_error(
                        operation="save_record",
                        error_message=str(e),
                        group_id=group.id,
                        correlation_id=correlation_id,
                    )
                raise

        if self._audit_logger:
            self._audit_logger.log_settlement_recorded(record, correlation_id=correlation_id)

        outstanding = self._outstanding(group, expenses, settled)
        owed = -outstanding[from_member_id].amount
        if amount.amount > owed:
            logger.warning(
                "settlement_exceeds_outstanding",
                group_id=group.id,
                record_id=str(record.id),
                amount=amount.amount,
                outstanding=max(owed, 0),
            )
            if self._audit_logger:
                self._audit_logger.log_settlement_exceeds_outstanding(
                    record, outstanding=max(owed, 0), correlation_id=correlation_id
                )

        return record

    def confirm_settlement(
        self,
        record_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementRecord:
        """
        Move a record from PENDING to SETTLED and stamp `settled_at`.

        Raises:
            NotFoundError: no record has this id
            AlreadySettledError: the record is already SETTLED
        """
        record = self._storage.get_record(record_id)
        if record is None:
            raise self._reject(None, NotFoundError("settlement", record_id), record_id, correlation_id)

        with self._locks.hold(record.group_id):
            # Re-read under the lock: a concurrent confirm may have won
            record = self._storage.get_record(record_id)
            if record.status == SettlementStatus.SETTLED:
                raise self._reject(
                    record.group_id, AlreadySettledError(record_id), record_id, correlation_id
                )

            settled = record.model_copy(update={
                "status": SettlementStatus.SETTLED,
                "settled_at": datetime.utcnow(),
            })
            try:
                self._storage.update_record(settled)
            except StorageError as e:
                if self._audit_logger:
                    self._audit_logger.log_storage_error(
                        operation="update_record",
                        error_message=str(e),
                        group_id=record.group_id,
                        correlation_id=correlation_id,
                    )
                raise

        if self._audit_logger:
            self._audit_logger.log_settlement_confirmed(settled, correlation_id=correlation_id)
        return settled

    def get_record(self, record_id: UUID) -> SettlementRecord:
        record = self._storage.get_record(record_id)
        if record is None:
            raise NotFoundError("settlement", record_id)
        return record

    def list_records(
        self,
        group: Group,
        status: Optional[SettlementStatus] = None,
    ) -> list[SettlementRecord]:
        """A group's settlement records, oldest first."""
        with self._locks.hold(group.id):
            records = self._storage.list_records(group.id)
        if status is not None:
            records = [r for r in records if r.status == status]
        return records

    def _snapshot_locked(self, group: Group) -> tuple[list[Expense], list[Settlement]]:
        """Caller must hold the group's lock."""
        expenses = self._ledger.list_expenses(group)
        settled = [
            record.as_transfer()
            for record in self._storage.list_records(group.id)
            if record.is_settled
        ]
        return expenses, settled

    def _outstanding(
        self,
        group: Group,
        expenses: list[Expense],
        settled: list[Settlement],
    ) -> dict[str, Money]:
        balances = self._calculator.compute(
            expenses, members=group.member_ids, currency=group.currency
        )
        return apply_transfers(balances, settled)

    def net_outstanding(self, group: Group) -> dict[str, Money]:
        """
        Live balances with every confirmed settlement applied.

        Pending records are ignored until they are confirmed.
        """
        with self._locks.hold(group.id):
            expenses, settled = self._snapshot_locked(group)
        return self._outstanding(group, expenses, settled)

    def suggest_settlements(self, group: Group) -> list[Settlement]:
        """The minimal payment plan for what is still outstanding."""
        return self._engine.plan(self.net_outstanding(group))
