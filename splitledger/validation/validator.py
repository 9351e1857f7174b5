"""
Two-Stage Expense Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SHAPE VALIDATION:
- Amount is positive and in the group's currency
- Participants are present, unique and not too many
- Policy data matches the split type and the participant list

STAGE 2 - GROUP VALIDATION:
- The payer and every participant belong to the group

Split arithmetic (percentages summing to 100, custom amounts summing to
the total) is checked while resolving the splits, see ledger/splits.py.

IMPORTANT: Validation NEVER silently fixes issues.
The first failing check raises its typed error. Things that are allowed
but unusual (a very large amount) come back as warnings.
"""

from typing import Optional, Sequence

from splitledger.config import LedgerSettings, get_settings
from splitledger.errors import (
    CurrencyMismatchError,
    InvalidExpenseError,
    UnknownMemberError,
)
from splitledger.models.expense import Group, SplitType
from splitledger.models.money import Money


class ExpenseValidator:
    """
    Validates expense input before any split is computed or stored.

    Stateless apart from the thresholds it reads from settings.
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def _validate_shape(
        self,
        group: Group,
        amount: Money,
        split_type: SplitType,
        participants: Sequence[str],
        policy_data: Optional[Sequence],
    ) -> None:
        """Stage 1: structural checks that don't need group membership."""
        if not isinstance(amount, Money):
            raise InvalidExpenseError("Amount must be Money", field="amount")
        if not amount.is_positive:
            raise InvalidExpenseError("Expense amount must be greater than zero", field="amount")
        if amount.currency != group.currency:
            raise CurrencyMismatchError(group.currency, amount.currency)

        if not participants:
            raise InvalidExpenseError("An expense needs at least one participant", field="participants")
        if len(set(participants)) != len(participants):
            raise InvalidExpenseError("Participants must be unique", field="participants")
        if len(participants) > self._settings.max_participants:
            raise InvalidExpenseError(
                f"Too many participants ({len(participants)}), "
                f"the limit is {self._settings.max_participants}",
                field="participants",
            )

        if split_type == SplitType.EQUAL:
            if policy_data is not None:
                raise InvalidExpenseError("Equal splits take no policy data", field="policy_data")
        else:
            if policy_data is None:
                raise InvalidExpenseError(
                    f"{split_type.value.capitalize()} splits need one value per participant",
                    field="policy_data",
                )
            if len(policy_data) != len(participants):
                raise InvalidExpenseError(
                    f"Got {len(policy_data)} policy values for {len(participants)} participants",
                    field="policy_data",
                )

    def _validate_membership(
        self,
        group: Group,
        paid_by: str,
        participants: Sequence[str],
    ) -> None:
        """Stage 2: everyone referenced must belong to the group."""
        if not group.has_member(paid_by):
            raise UnknownMemberError(paid_by, group.id)
        for member_id in participants:
            if not group.has_member(member_id):
                raise UnknownMemberError(member_id, group.id)

    def validate(
        self,
        group: Group,
        amount: Money,
        paid_by: str,
        split_type: SplitType,
        participants: Sequence[str],
        policy_data: Optional[Sequence] = None,
    ) -> list[str]:
        """
        Run both stages.

        Returns:
            Non-blocking warnings (empty if nothing is unusual)

        Raises:
            InvalidExpenseError, CurrencyMismatchError, UnknownMemberError
        """
        self._validate_shape(group, amount, split_type, participants, policy_data)
        self._validate_membership(group, paid_by, participants)

        warnings = []
        if amount.amount > self._settings.large_expense_threshold_minor:
            warnings.append(
                f"Amount ({amount}) is above the large expense threshold "
                f"({self._settings.large_expense_threshold_minor})"
            )
        return warnings

    @property
    def large_expense_threshold(self) -> int:
        return self._settings.large_expense_threshold_minor

    def is_large(self, amount: Money) -> bool:
        return amount.amount > self.large_expense_threshold
