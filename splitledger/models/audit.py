"""
Audit Models for Split Ledger

Every write to a group's ledger is logged for audit purposes.
This provides:
1. Complete traceability of who changed what
2. Debugging information when balances look wrong
3. A record of rejected input (the errors themselves still propagate)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_REPLACED = "expense_replaced"
    EXPENSE_REMOVED = "expense_removed"
    EXPENSE_REJECTED = "expense_rejected"
    LARGE_EXPENSE_FLAGGED = "large_expense_flagged"

    # Settlements
    SETTLEMENT_RECORDED = "settlement_recorded"
    SETTLEMENT_CONFIRMED = "settlement_confirmed"
    SETTLEMENT_REJECTED = "settlement_rejected"
    SETTLEMENT_EXCEEDS_OUTSTANDING = "settlement_exceeds_outstanding"

    # Computations
    SETTLEMENT_PLAN_GENERATED = "settlement_plan_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    group_id: Optional[str] = Field(
        default=None,
        description="Group the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'settlement')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one API request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "group_id": self.group_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, group_id, entity_type,
         entity_id, correlation_id, description, details_json, error_code,
         error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.group_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, group_id, ...)
        event = AuditEventBuilder.settlement_confirmed(record_id, group_id)
    """

    @staticmethod
    def expense_added(
        expense_id: UUID,
        group_id: str,
        paid_by: str,
        amount: int,
        currency: str,
        split_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            group_id=group_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense added: {paid_by} paid {amount} {currency} ({split_type} split)",
            details={
                "paid_by": paid_by,
                "amount": amount,
                "currency": currency,
                "split_type": split_type,
            },
        )

    @staticmethod
    def expense_replaced(
        expense_id: UUID,
        group_id: str,
        previous_amount: int,
        new_amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REPLACED,
            group_id=group_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense replaced",
            details={
                "previous_amount": previous_amount,
                "new_amount": new_amount,
            },
        )

    @staticmethod
    def expense_removed(
        expense_id: UUID,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REMOVED,
            group_id=group_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense removed",
        )

    @staticmethod
    def expense_rejected(
        group_id: str,
        error_code: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED,
            severity=AuditSeverity.WARNING,
            group_id=group_id,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Expense rejected: {error_code}",
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def large_expense_flagged(
        expense_id: UUID,
        group_id: str,
        amount: int,
        threshold: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LARGE_EXPENSE_FLAGGED,
            severity=AuditSeverity.WARNING,
            group_id=group_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Unusually large expense: {amount} minor units",
            details={
                "amount": amount,
                "threshold": threshold,
            },
        )

    @staticmethod
    def settlement_recorded(
        record_id: UUID,
        group_id: str,
        from_member_id: str,
        to_member_id: str,
        amount: int,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_RECORDED,
            group_id=group_id,
            entity_type="settlement",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Settlement recorded: {from_member_id} -> {to_member_id} {amount} {currency}",
            details={
                "from_member_id": from_member_id,
                "to_member_id": to_member_id,
                "amount": amount,
                "currency": currency,
            },
        )

    @staticmethod
    def settlement_confirmed(
        record_id: UUID,
        group_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_CONFIRMED,
            group_id=group_id,
            entity_type="settlement",
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Settlement confirmed",
        )

    @staticmethod
    def settlement_rejected(
        group_id: Optional[str],
        error_code: str,
        error_message: str,
        record_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            group_id=group_id,
            entity_type="settlement",
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Settlement rejected: {error_code}",
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def settlement_exceeds_outstanding(
        record_id: UUID,
        group_id: str,
        amount: int,
        outstanding: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_EXCEEDS_OUTSTANDING,
            severity=AuditSeverity.WARNING,
            group_id=group_id,
            entity_type="settlement",
            entity_id=record_id,
            correlation_id=correlation_id,
            description="Recorded payment is larger than what the payer owes",
            details={
                "amount": amount,
                "outstanding": outstanding,
            },
        )

    @staticmethod
    def settlement_plan_generated(
        group_id: str,
        payment_count: int,
        member_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_PLAN_GENERATED,
            severity=AuditSeverity.DEBUG,
            group_id=group_id,
            entity_type="group",
            correlation_id=correlation_id,
            description=f"Settlement plan: {payment_count} payments for {member_count} members",
            details={
                "payment_count": payment_count,
                "member_count": member_count,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        group_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            group_id=group_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
