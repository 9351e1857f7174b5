"""
Audit Logger

DESIGN DECISION: Every write to a group's ledger is logged.
This provides:
1. Complete traceability
2. Debugging capability when balances look surprising
3. A history members can inspect

The audit logger:
- Gracefully handles storage failures (never breaks a ledger write)
- Supports correlation IDs to trace related events
- Never swallows ledger errors: rejected input is logged, then the
  caller re-raises
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from splitledger.errors import LedgerError
from splitledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from splitledger.models.expense import Expense
from splitledger.models.settlement import SettlementRecord
from splitledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))
    logging.getLogger("splitledger").setLevel(getattr(logging, level.upper()))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and member visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("splitledger.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_expense_added(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new expense."""
        self.log(AuditEventBuilder.expense_added(
            expense_id=expense.id,
            group_id=expense.group_id,
            paid_by=expense.paid_by,
            amount=expense.amount.amount,
            currency=expense.amount.currency,
            split_type=expense.split_type.value,
            correlation_id=correlation_id,
        ))

    def log_expense_replaced(
        self,
        previous: Expense,
        replacement: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a wholesale expense replacement."""
        self.log(AuditEventBuilder.expense_replaced(
            expense_id=replacement.id,
            group_id=replacement.group_id,
            previous_amount=previous.amount.amount,
            new_amount=replacement.amount.amount,
            correlation_id=correlation_id,
        ))

    def log_expense_removed(
        self,
        expense_id: UUID,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.expense_removed(
            expense_id=expense_id,
            group_id=group_id,
            correlation_id=correlation_id,
        ))

    def log_expense_rejected(
        self,
        group_id: str,
        error: LedgerError,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense that failed validation."""
        self.log(AuditEventBuilder.expense_rejected(
            group_id=group_id,
            error_code=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        ))

    def log_large_expense(
        self,
        expense: Expense,
        threshold: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.large_expense_flagged(
            expense_id=expense.id,
            group_id=expense.group_id,
            amount=expense.amount.amount,
            threshold=threshold,
            correlation_id=correlation_id,
        ))

    def log_settlement_recorded(
        self,
        record: SettlementRecord,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.settlement_recorded(
            record_id=record.id,
            group_id=record.group_id,
            from_member_id=record.from_member_id,
            to_member_id=record.to_member_id,
            amount=record.amount.amount,
            currency=record.amount.currency,
            correlation_id=correlation_id,
        ))

    def log_settlement_confirmed(
        self,
        record: SettlementRecord,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.settlement_confirmed(
            record_id=record.id,
            group_id=record.group_id,
            correlation_id=correlation_id,
        ))

    def log_settlement_rejected(
        self,
        group_id: Optional[str],
        error: LedgerError,
        record_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.settlement_rejected(
            group_id=group_id,
            error_code=type(error).__name__,
            error_message=str(error),
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    def log_settlement_exceeds_outstanding(
        self,
        record: SettlementRecord,
        outstanding: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.settlement_exceeds_outstanding(
            record_id=record.id,
            group_id=record.group_id,
            amount=record.amount.amount,
            outstanding=outstanding,
            correlation_id=correlation_id,
        ))

    def log_plan_generated(
        self,
        group_id: str,
        payment_count: int,
        member_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.settlement_plan_generated(
            group_id=group_id,
            payment_count=payment_count,
            member_count=member_count,
            correlation_id=correlation_id,
        ))

    def log_storage_error(
        self,
        operation: str,
        error_message: str,
        group_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage failure (the caller still raises it)."""
        self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            group_id=group_id,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unexpected error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and pass it through every
    ledger call made while handling it.
    """
    return uuid4()
