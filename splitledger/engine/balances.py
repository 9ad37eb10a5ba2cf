"""
Balance Engine

Turns the raw expense collection into balance views.

Every function here is pure: the same expenses always give the same
balances, nothing is cached, nothing is written. Callers recompute on
every read.

Per expense, each listed participant contributes

    net_delta = share - paid

where `paid` is the whole expense amount for the payer and zero for
everyone else. A participant's balance is the sum of their deltas over
all qualifying expenses:

- positive: owes money into the pool (net debtor)
- negative: is owed money by the pool (net creditor)

A payer who is not listed as a participant gets no row for that expense.
"""

from decimal import Decimal
from typing import Iterable

from splitledger.models.expense import Balance, Expense, Group, GroupBalance


ZERO = Decimal("0")


def qualifying_expenses(
    expenses: Iterable[Expense],
    include_settled: bool = False,
) -> list[Expense]:
    """Expenses that take part in a balance view (unsettled ones by default)."""
    if include_settled:
        return list(expenses)
    return [expense for expense in expenses if not expense.is_settled]


def expense_net_deltas(expense: Expense) -> dict[str, Decimal]:
    """
    Contribution of a single expense to each participant's balance.

    For an expense whose shares sum to its amount and whose payer is listed,
    the values sum to exactly zero.
    """
    deltas: dict[str, Decimal] = {}
    for participant in expense.participants:
        paid = expense.amount if participant.user_id == expense.paid_by else ZERO
        deltas[participant.user_id] = deltas.get(participant.user_id, ZERO) + (
            participant.amount - paid
        )
    return deltas


def compute_balances(
    expenses: Iterable[Expense],
    include_settled: bool = False,
) -> list[Balance]:
    """
    Net balance for every participant of every qualifying expense.

    Display names come from the participant snapshots; the first name seen
    for an id is kept. Rows are returned in first-seen order, but callers
    should treat them as keyed by user_id.
    """
    rows: dict[str, Balance] = {}

    for expense in qualifying_expenses(expenses, include_settled):
        for participant in expense.participants:
            row = rows.get(participant.user_id)
            if row is None:
                row = Balance(user_id=participant.user_id, name=participant.name)
                rows[participant.user_id] = row

            paid = expense.amount if participant.user_id == expense.paid_by else ZERO
            row.amount += participant.amount - paid

    return list(rows.values())


def total_exposure(balances: Iterable[Balance]) -> Decimal:
    """
    Half the sum of absolute balances.

    Total debt equals total credit in a balanced ledger, so halving avoids
    counting every unit of money twice.
    """
    return sum((abs(b.amount) for b in balances), ZERO) / 2


def compute_group_balance(
    group: Group,
    expenses: Iterable[Expense],
    include_settled: bool = False,
) -> GroupBalance:
    """Balances restricted to the expenses recorded in `group`."""
    group_expenses = [e for e in expenses if e.group_id == group.id]
    balances = compute_balances(group_expenses, include_settled)
    return GroupBalance(
        group_id=group.id,
        group_name=group.name,
        balances=balances,
        total_amount=total_exposure(balances),
    )


def compute_group_balances(
    groups: Iterable[Group],
    expenses: Iterable[Expense],
    include_settled: bool = False,
) -> list[GroupBalance]:
    """
    One GroupBalance per known group, in group order.

    Groups without qualifying expenses are included with an empty balance
    list and a zero total.
    """
    expenses = list(expenses)
    return [
        compute_group_balance(group, expenses, include_settled)
        for group in groups
    ]


def total_balance(balances: Iterable[Balance]) -> Decimal:
    """
    Sum of all balance amounts.

    Zero whenever every expense's shares sum to its amount and its payer is
    a participant. A non-zero result points at such an expense; it is a
    diagnostic, not an error.
    """
    return sum((b.amount for b in balances), ZERO)


def balances_by_user(balances: Iterable[Balance]) -> dict[str, Decimal]:
    return {b.user_id: b.amount for b in balances}
