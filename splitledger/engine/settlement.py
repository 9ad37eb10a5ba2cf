"""
Settlement Helpers

Two ways to settle up, neither of which rewrites an existing share:

1. Bulk group settlement flags every unsettled expense of a group as
   settled. Amounts are untouched; the expenses simply drop out of the
   default (unsettled) balance view.

2. Pairwise settlement appends a new two-participant expense recording
   that the source paid the target. Its contribution to the balances is
   source -amount, target +amount, so a debtor paying a creditor moves
   both of them toward zero.

Overshooting the real debt is allowed and flips the sign of the result;
callers that need exact settlement must check the balance first.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from splitledger.engine.members import ParticipantCandidate
from splitledger.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseParticipant,
    Group,
    SplitType,
    utc_now,
)


SETTLEMENT_TITLE = "Settlement"


def unsettled_expense_ids(expenses: Iterable[Expense], group_id: str) -> list[str]:
    """Ids of the group's expenses that bulk settlement would flag."""
    return [
        expense.id
        for expense in expenses
        if expense.group_id == group_id and not expense.is_settled
    ]


def settled_fields(at: Optional[datetime] = None) -> dict:
    """Field changes applied to an expense by bulk settlement."""
    return {"is_settled": True, "updated_at": at or utc_now()}


def build_settlement_expense(
    group: Group,
    source: ParticipantCandidate,
    target: ParticipantCandidate,
    amount: Decimal,
    at: Optional[datetime] = None,
) -> Expense:
    """
    Record of `source` paying `amount` to `target` inside `group`.

    The source is the payer. The target carries the whole amount as their
    share, so the record nets to zero while shifting the source's balance
    down by `amount` and the target's up by `amount`. Both participant
    entries are marked settled at creation; the expense itself stays
    unsettled so it counts in the default balance view.
    """
    if amount <= 0:
        raise ValueError("Settlement amount must be positive")
    if source.user_id == target.user_id:
        raise ValueError("Cannot settle with yourself")

    now = at or utc_now()
    return Expense(
        title=SETTLEMENT_TITLE,
        description=f"Settlement between {source.name} and {target.name}",
        amount=amount,
        currency=group.currency,
        category=ExpenseCategory.OTHER,
        paid_by=source.user_id,
        group_id=group.id,
        participants=[
            ExpenseParticipant(
                user_id=source.user_id,
                name=source.name,
                amount=Decimal("0"),
                is_settled=True,
                settled_at=now,
            ),
            ExpenseParticipant(
                user_id=target.user_id,
                name=target.name,
                amount=amount,
                is_settled=True,
                settled_at=now,
            ),
        ],
        split_type=SplitType.CUSTOM,
        created_at=now,
        updated_at=now,
        is_settled=False,
    )

