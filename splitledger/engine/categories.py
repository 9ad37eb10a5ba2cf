"""
Category Aggregator

Sums expense amounts (the full amount, not per-participant shares) by
category. Results are sparse: a category only appears if at least one
expense has it. Settled state is not filtered here.
"""

from decimal import Decimal
from typing import Iterable

from splitledger.models.expense import Expense, ExpenseCategory


def _totals(expenses: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    totals: dict[ExpenseCategory, Decimal] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, Decimal("0")) + expense.amount
    return totals


def totals_by_category(expenses: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    """All expenses."""
    return _totals(expenses)


def group_totals_by_category(expenses: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    """Only expenses recorded in a group."""
    return _totals(e for e in expenses if not e.is_personal)


def personal_totals_by_category(expenses: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    """Only expenses without a group."""
    return _totals(e for e in expenses if e.is_personal)
