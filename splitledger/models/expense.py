"""
Group and Expense Models

These models define the strict schemas for everything the ledger stores.
They are designed to:
1. Enforce the split invariants at construction time
2. Be immutable once created (edits replace the whole record)
3. Be serializable for storage and audit logging

DESIGN DECISION: An Expense can only exist with a complete set of splits
that add up exactly to its amount. There is no "draft" expense.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from splitledger.config.settings import get_settings
from splitledger.models.money import Money


# =============================================================================
# ENUMS
# =============================================================================

class SplitType(str, Enum):
    """
    How an expense is divided among its participants.

    EQUAL: everyone pays the same share (remainder to the earliest)
    PERCENTAGE: shares proportional to percentages that sum to 100
    CUSTOM: literal amounts supplied by the user
    """
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    CUSTOM = "custom"


class ExpenseCategory(str, Enum):
    """Expense categories offered when adding a shared expense."""
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    UTILITIES = "utilities"
    RENT = "rent"
    SHOPPING = "shopping"
    HEALTHCARE = "healthcare"
    OTHER = "other"


# =============================================================================
# GROUP MODELS
# =============================================================================

class Member(BaseModel):
    """A person taking part in a group's shared expenses."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Member identifier"
    )
    display_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Name shown to other members"
    )


class Group(BaseModel):
    """
    A group of members sharing expenses in a single currency.

    Every computation in the ledger is scoped to exactly one group.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Group identifier"
    )
    name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Group name"
    )
    members: tuple[Member, ...] = Field(
        default_factory=tuple,
        description="Group members in display order"
    )
    currency: str = Field(
        default_factory=lambda: get_settings().ledger.default_currency,
        pattern="^[A-Z]{3}$",
        description="Currency every expense in this group uses"
    )

    @field_validator('members')
    @classmethod
    def validate_unique_members(cls, v: tuple[Member, ...]) -> tuple[Member, ...]:
        """Member ids must be unique within a group."""
        seen = set()
        for member in v:
            if member.id in seen:
                raise ValueError(f"Duplicate member id in group: {member.id}")
            seen.add(member.id)
        return v

    @property
    def member_ids(self) -> list[str]:
        return [member.id for member in self.members]

    def has_member(self, member_id: str) -> bool:
        return any(member.id == member_id for member in self.members)

    def get_member(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class Split(BaseModel):
    """One member's share of an expense."""
    model_config = ConfigDict(frozen=True)

    member_id: str = Field(
        ...,
        min_length=1,
        description="Member who owes this share"
    )
    amount: Money = Field(
        ...,
        description="Share of the expense (never negative)"
    )

    @field_validator('amount')
    @classmethod
    def validate_non_negative(cls, v: Money) -> Money:
        if v.is_negative:
            raise ValueError("Split amount cannot be negative")
        return v


class Expense(BaseModel):
    """
    A shared expense paid by one member and split across participants.

    CRITICAL: Expenses are immutable. A correction is either a new expense
    or a wholesale replacement that keeps the same id.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    group_id: str = Field(
        ...,
        min_length=1,
        description="Group this expense belongs to"
    )

    # Who paid what
    amount: Money = Field(
        ...,
        description="Total amount paid"
    )
    paid_by: str = Field(
        ...,
        min_length=1,
        description="Member who paid"
    )
    expense_date: date = Field(
        default_factory=date.today,
        description="Date of the expense"
    )

    # How it is split
    split_type: SplitType
    splits: tuple[Split, ...] = Field(
        ...,
        min_length=1,
        description="Resolved per-member shares"
    )

    # Descriptive fields
    description: str = Field(
        default="",
        max_length=200,
        description="What the expense was for"
    )
    category: ExpenseCategory = Field(
        default=ExpenseCategory.OTHER,
        description="Expense category"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Free-form notes"
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the expense was recorded"
    )

    @field_validator('amount')
    @classmethod
    def validate_positive(cls, v: Money) -> Money:
        if not v.is_positive:
            raise ValueError("Expense amount must be greater than zero")
        return v

    @model_validator(mode='after')
    def validate_splits(self) -> 'Expense':
        """Splits must cover the amount exactly, one per member."""
        member_ids = [split.member_id for split in self.splits]
        if len(set(member_ids)) != len(member_ids):
            raise ValueError("A member can appear only once in an expense's splits")

        for split in self.splits:
            if split.amount.currency != self.amount.currency:
                raise ValueError(
                    f"Split currency {split.amount.currency} does not match "
                    f"expense currency {self.amount.currency}"
                )

        total = sum(split.amount.amount for split in self.splits)
        if total != self.amount.amount:
            raise ValueError(
                f"Splits add up to {total} but the expense amount is {self.amount.amount}"
            )
        return self

    @property
    def participant_ids(self) -> list[str]:
        return [split.member_id for split in self.splits]

    def share_of(self, member_id: str) -> Money:
        """Amount `member_id` owes for this expense (zero if not a participant)."""
        for split in self.splits:
            if split.member_id == member_id:
                return split.amount
        return Money.zero(self.amount.currency)

    def involves(self, member_id: str) -> bool:
        return member_id == self.paid_by or member_id in self.participant_ids
