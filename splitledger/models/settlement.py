"""
Balance and Settlement Models

Two different things are called "settlement" here:

- Settlement: ADVISORY. A payment the engine suggests. Recomputed on
  every request, never stored.
- SettlementRecord: HISTORICAL. A payment a member says they made.
  Stored, confirmed once, never deleted.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from splitledger.models.money import Money


class SettlementStatus(str, Enum):
    """
    Lifecycle of a recorded settlement.

    PENDING -> SETTLED is the only transition. There is no un-settling;
    a mistake is corrected by recording a new settlement.
    """
    PENDING = "pending"
    SETTLED = "settled"


class Settlement(BaseModel):
    """A suggested payment from a debtor to a creditor."""
    model_config = ConfigDict(frozen=True)

    from_member_id: str = Field(
        ...,
        description="Member who pays (debtor)"
    )
    to_member_id: str = Field(
        ...,
        description="Member who receives (creditor)"
    )
    amount: Money = Field(
        ...,
        description="Amount to pay (always positive)"
    )

    @field_validator('amount')
    @classmethod
    def validate_positive(cls, v: Money) -> Money:
        if not v.is_positive:
            raise ValueError("Settlement amount must be greater than zero")
        return v


class SettlementRecord(BaseModel):
    """
    A settlement a member has acted on.

    Created PENDING when recorded, SETTLED once confirmed. Only SETTLED
    records reduce outstanding balances.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )
    group_id: str = Field(
        ...,
        min_length=1,
        description="Group the payment belongs to"
    )
    from_member_id: str = Field(
        ...,
        min_length=1,
        description="Member who paid"
    )
    to_member_id: str = Field(
        ...,
        min_length=1,
        description="Member who was paid"
    )
    amount: Money = Field(
        ...,
        description="Amount paid"
    )
    status: SettlementStatus = Field(
        default=SettlementStatus.PENDING,
        description="Record status"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the payment was recorded"
    )
    settled_at: Optional[datetime] = Field(
        default=None,
        description="When the payment was confirmed"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Optional description of the payment"
    )

    @field_validator('amount')
    @classmethod
    def validate_positive(cls, v: Money) -> Money:
        if not v.is_positive:
            raise ValueError("Settlement amount must be greater than zero")
        return v

    @model_validator(mode='after')
    def validate_consistency(self) -> 'SettlementRecord':
        if self.from_member_id == self.to_member_id:
            raise ValueError("A member cannot settle with themselves")
        if self.status == SettlementStatus.SETTLED and self.settled_at is None:
            raise ValueError("Settled records must have a settled_at timestamp")
        if self.status == SettlementStatus.PENDING and self.settled_at is not None:
            raise ValueError("Pending records cannot have a settled_at timestamp")
        return self

    @property
    def is_settled(self) -> bool:
        return self.status == SettlementStatus.SETTLED

    def as_transfer(self) -> Settlement:
        return Settlement(
            from_member_id=self.from_member_id,
            to_member_id=self.to_member_id,
            amount=self.amount,
        )


class BalanceSummary(BaseModel):
    """Aggregate view over a group's net balances."""

    currency: str
    total_owed: Money = Field(
        ...,
        description="Sum of all positive balances (what creditors are owed)"
    )
    total_owing: Money = Field(
        ...,
        description="Sum of all negative balances, as a positive amount"
    )
    settled_member_count: int = Field(
        ge=0,
        description="Members whose balance is exactly zero"
    )
    member_count: int = Field(ge=0)

    @property
    def is_balanced(self) -> bool:
        return self.total_owed == self.total_owing

    @property
    def is_fully_settled(self) -> bool:
        return self.total_owed.is_zero


class MemberSettlementView(BaseModel):
    """The settlement plan seen from one member's side."""

    member_id: str
    currency: str
    you_owe: list[Settlement] = Field(default_factory=list)
    owed_to_you: list[Settlement] = Field(default_factory=list)
    total_you_owe: Money
    total_owed_to_you: Money

    @property
    def net(self) -> Money:
        return self.total_owed_to_you - self.total_you_owe
