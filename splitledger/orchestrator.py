"""
Main Orchestrator for Split Ledger

This module ties together all the components and defines the
operations an API layer calls:
1. Expenses (post → validate → split → store → audit)
2. Balances (expenses + confirmed settlements → net per member)
3. Settlements (plan → record → confirm)

DESIGN DECISION: Everything crossing this boundary is plain data:
integer minor units plus a currency code. Money objects, pydantic
models of the core and the lock registry stay inside.

The orchestrator adds no rules of its own. Every check lives in the
ledger, the tracker or the engine; this layer only translates requests
and responses and threads a correlation id through each call.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field, StrictInt, ValidationError

from splitledger.audit import AuditLogger, configure_logging, create_correlation_id
from splitledger.config import get_settings
from splitledger.engine.balances import summarize_balances
from splitledger.engine.settlement import SettlementEngine
from splitledger.errors import CurrencyMismatchError, UnknownMemberError
from splitledger.ledger import ExpenseLedger, GroupLockRegistry, SettlementTracker
from splitledger.models.expense import Expense, ExpenseCategory, Group, SplitType
from splitledger.models.money import Money
from splitledger.models.settlement import (
    MemberSettlementView,
    SettlementRecord,
    SettlementStatus,
)
from splitledger.services.storage import (
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsSettlementStorage,
    InMemoryAuditStorage,
    SettlementStorageInterface,
    StorageError,
)
from splitledger.validation import ExpenseValidator


logger = structlog.get_logger(__name__)


# =============================================================================
# Request / response models
# =============================================================================

class ExpenseRequest(BaseModel):
    """An expense as submitted by a client."""

    amount_minor: StrictInt = Field(..., description="Total in minor units (e.g. cents)")
    currency: str = Field(..., pattern=r"^[A-Z]{3}$")
    paid_by: str
    split_type: SplitType
    participants: list[str]
    percentages: Optional[list[Decimal]] = Field(
        default=None,
        description="One percentage per participant, PERCENTAGE splits only"
    )
    custom_amounts_minor: Optional[list[StrictInt]] = Field(
        default=None,
        description="One amount per participant, CUSTOM splits only"
    )
    description: str = Field(default="", max_length=500)
    category: ExpenseCategory = ExpenseCategory.OTHER
    notes: Optional[str] = Field(default=None, max_length=1000)
    expense_date: Optional[date] = None

    def money(self) -> Money:
        return Money(amount=self.amount_minor, currency=self.currency)

    def policy_data(self) -> Optional[list]:
        """
        The policy values matching `split_type`.

        Values supplied for another split type are passed through anyway
        so the validator rejects the request instead of ignoring them.
        """
        if self.split_type == SplitType.PERCENTAGE:
            return self.percentages
        if self.split_type == SplitType.CUSTOM:
            return self.custom_amounts_minor
        if self.percentages is not None:
            return self.percentages
        return self.custom_amounts_minor


class BalanceReport(BaseModel):
    """Net balance per member. Positive: owed money. Negative: owes money."""

    group_id: str
    currency: str
    balances: dict[str, int]


class PaymentView(BaseModel):
    from_member_id: str
    to_member_id: str
    amount: int


class SettlementPlan(BaseModel):
    """Ordered payments that clear every outstanding balance."""

    group_id: str
    currency: str
    payments: list[PaymentView] = Field(default_factory=list)

    @property
    def payment_count(self) -> int:
        return len(self.payments)


class GroupSummary(BaseModel):
    """Dashboard numbers for one group."""

    group_id: str
    currency: str
    member_count: int
    expense_count: int
    total_spent: int = Field(..., description="Sum of all expense amounts, minor units")
    total_outstanding: int = Field(
        ..., description="What creditors are still owed after confirmed settlements"
    )
    pending_settlement_count: int
    settled_settlement_count: int
    is_fully_settled: bool


# =============================================================================
# Service
# =============================================================================

class GroupLedgerService:
    """
    Facade over the ledger, the tracker and the settlement engine.

    One instance serves any number of groups; callers pass the Group
    with every request.
    """

    def __init__(
        self,
        ledger: Optional[ExpenseLedger] = None,
        tracker: Optional[SettlementTracker] = None,
        engine: Optional[SettlementEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger or ExpenseLedger(audit_logger=audit_logger)
        self._engine = engine or SettlementEngine()
        self._tracker = tracker or SettlementTracker(
            self._ledger, engine=self._engine, audit_logger=audit_logger
        )
        self._audit_logger = audit_logger

    @property
    def ledger(self) -> ExpenseLedger:
        return self._ledger

    @property
    def tracker(self) -> SettlementTracker:
        return self._tracker

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def post_expense(
        self,
        group: Group,
        request: ExpenseRequest,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Validate, split and store an expense."""
        correlation_id = correlation_id or create_correlation_id()
        return self._ledger.add_expense(
            group,
            request.money(),
            request.paid_by,
            request.split_type,
            request.participants,
            request.policy_data(),
            description=request.description,
            category=request.category,
            notes=request.notes,
            expense_date=request.expense_date,
            correlation_id=correlation_id,
        )

    def replace_expense(
        self,
        group: Group,
        expense_id: UUID,
        request: ExpenseRequest,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        correlation_id = correlation_id or create_correlation_id()
        return self._ledger.replace_expense(
            group,
            expense_id,
            request.money(),
            request.paid_by,
            request.split_type,
            request.participants,
            request.policy_data(),
            description=request.description,
            category=request.category,
            notes=request.notes,
            expense_date=request.expense_date,
            correlation_id=correlation_id,
        )

    def remove_expense(
        self,
        group: Group,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        correlation_id = correlation_id or create_correlation_id()
        self._ledger.remove_expense(group, expense_id, correlation_id=correlation_id)

    def list_expenses(self, group: Group, **filters) -> list[Expense]:
        """See ExpenseLedger.list_expenses for the accepted filters."""
        return self._ledger.list_expenses(group, **filters)

    # -------------------------------------------------------------------------
    # Balances and settlements
    # -------------------------------------------------------------------------

    def get_balances(self, group: Group) -> BalanceReport:
        """Net balances with every confirmed settlement applied."""
        outstanding = self._tracker.net_outstanding(group)
        return BalanceReport(
            group_id=group.id,
            currency=group.currency,
            balances={member_id: money.amount for member_id, money in outstanding.items()},
        )

    def get_settlements(
        self,
        group: Group,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementPlan:
        """The minimal payment plan for the group's outstanding balances."""
        outstanding = self._tracker.net_outstanding(group)
        plan = self._engine.plan(outstanding)

        if self._audit_logger:
            self._audit_logger.log_plan_generated(
                group_id=group.id,
                payment_count=len(plan),
                member_count=len(outstanding),
                correlation_id=correlation_id,
            )

        return SettlementPlan(
            group_id=group.id,
            currency=group.currency,
            payments=[
                PaymentView(
                    from_member_id=s.from_member_id,
                    to_member_id=s.to_member_id,
                    amount=s.amount.amount,
                )
                for s in plan
            ],
        )

    def record_settlement(
        self,
        group: Group,
        from_member_id: str,
        to_member_id: str,
        amount_minor: int,
        currency: Optional[str] = None,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementRecord:
        """
        Record a payment as PENDING.

        `currency` defaults to the group's; a different one is rejected.
        """
        correlation_id = correlation_id or create_correlation_id()
        currency = currency or group.currency
        if currency != group.currency:
            error = CurrencyMismatchError(group.currency, currency)
            if self._audit_logger:
                self._audit_logger.log_settlement_rejected(
                    group_id=group.id, error=error, correlation_id=correlation_id
                )
            raise error
        return self._tracker.record_settlement(
            group,
            from_member_id,
            to_member_id,
            amount_minor,
            note=note,
            correlation_id=correlation_id,
        )

    def confirm_settlement(
        self,
        record_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementRecord:
        correlation_id = correlation_id or create_correlation_id()
        return self._tracker.confirm_settlement(record_id, correlation_id=correlation_id)

    def list_settlements(
        self,
        group: Group,
        status: Optional[SettlementStatus] = None,
    ) -> list[SettlementRecord]:
        return self._tracker.list_records(group, status=status)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def get_member_view(self, group: Group, member_id: str) -> MemberSettlementView:
        """What one member owes and is owed under the current plan."""
        if not group.has_member(member_id):
            raise UnknownMemberError(member_id, group.id)
        outstanding = self._tracker.net_outstanding(group)
        return self._engine.plan_for_member(outstanding, member_id, group.currency)

    def get_summary(self, group: Group) -> GroupSummary:
        # One hold across the three reads so they see the same writes
        with self._ledger.locks.hold(group.id):
            expenses = self._ledger.list_expenses(group)
            records = self._tracker.list_records(group)
            outstanding = self._tracker.net_outstanding(group)
        summary = summarize_balances(outstanding, group.currency)

        return GroupSummary(
            group_id=group.id,
            currency=group.currency,
            member_count=len(group.members),
            expense_count=len(expenses),
            total_spent=sum(e.amount.amount for e in expenses),
            total_outstanding=summary.total_owed.amount,
            pending_settlement_count=sum(1 for r in records if not r.is_settled),
            settled_settlement_count=sum(1 for r in records if r.is_settled),
            is_fully_settled=summary.is_fully_settled,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[GroupLedgerService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to honour the configured storage backend.
                    Set to False for testing: everything stays in memory.

    Returns:
        (service, sheets_client); sheets_client is None unless the
        Google Sheets backend is in use
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)
    ledger_settings = settings.ledger

    storage_failure = None
    sheets_client = None
    expense_storage: Optional[ExpenseStorageInterface] = None
    settlement_storage: Optional[SettlementStorageInterface] = None
    audit_storage = InMemoryAuditStorage()

    if use_storage and ledger_settings.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            expense_storage = GoogleSheetsExpenseStorage(sheets_client)
            settlement_storage = GoogleSheetsSettlementStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except (StorageError, ValidationError) as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            storage_failure = e
            sheets_client = None
            expense_storage = None
            settlement_storage = None
            audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    if storage_failure is not None:
        audit_logger.log_error(
            error_type=type(storage_failure).__name__,
            error_message=str(storage_failure),
            details={"backend": ledger_settings.storage_backend},
        )
    locks = GroupLockRegistry()
    ledger = ExpenseLedger(
        storage=expense_storage,
        locks=locks,
        validator=ExpenseValidator(ledger_settings),
        audit_logger=audit_logger,
    )
    engine = SettlementEngine()
    tracker = SettlementTracker(
        ledger,
        storage=settlement_storage,
        engine=engine,
        audit_logger=audit_logger,
    )
    service = GroupLedgerService(
        ledger=ledger,
        tracker=tracker,
        engine=engine,
        audit_logger=audit_logger,
    )
    return service, sheets_client
