"""Tests for category aggregation."""

from decimal import Decimal

from splitledger.engine import (
    group_totals_by_category,
    personal_totals_by_category,
    totals_by_category,
)
from splitledger.models import ExpenseCategory


class TestCategoryTotals:
    """Tests for the three category views."""

    def _expenses(self, make_expense):
        return [
            make_expense("30", "a", {"a": "15", "b": "15"}, group_id="g", category=ExpenseCategory.FOOD),
            make_expense("12.50", "a", {"a": "12.50"}, category=ExpenseCategory.FOOD),
            make_expense("40", "a", {"a": "40"}, category=ExpenseCategory.TRANSPORT),
            make_expense("8", "b", {"a": "4", "b": "4"}, group_id="g", is_settled=True),
        ]

    def test_global_totals_sum_full_amounts(self, make_expense):
        totals = totals_by_category(self._expenses(make_expense))
        assert totals == {
            ExpenseCategory.FOOD: Decimal("42.50"),
            ExpenseCategory.TRANSPORT: Decimal("40"),
            ExpenseCategory.OTHER: Decimal("8"),
        }

    def test_group_scoped(self, make_expense):
        totals = group_totals_by_category(self._expenses(make_expense))
        assert totals == {
            ExpenseCategory.FOOD: Decimal("30"),
            ExpenseCategory.OTHER: Decimal("8"),
        }

    def test_personal_scoped(self, make_expense):
        totals = personal_totals_by_category(self._expenses(make_expense))
        assert totals == {
            ExpenseCategory.FOOD: Decimal("12.50"),
            ExpenseCategory.TRANSPORT: Decimal("40"),
        }

    def test_categories_without_expenses_are_absent(self, make_expense):
        totals = totals_by_category(self._expenses(make_expense))
        assert ExpenseCategory.HEALTHCARE not in totals

    def test_partition_property(self, make_expense):
        """Global total equals group-scoped plus personal."""
        expenses = self._expenses(make_expense)
        assert sum(totals_by_category(expenses).values()) == (
            sum(group_totals_by_category(expenses).values())
            + sum(personal_totals_by_category(expenses).values())
        )

    def test_empty(self):
        assert totals_by_category([]) == {}
