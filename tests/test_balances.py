"""Tests for the balance engine."""

import pytest
from decimal import Decimal

from splitledger.engine import (
    balances_by_user,
    compute_balances,
    compute_group_balance,
    compute_group_balances,
    expense_net_deltas,
    qualifying_expenses,
    total_balance,
    total_exposure,
)
from splitledger.models import Balance, Group


class TestNetDeltas:
    """Per-expense contributions."""

    def test_two_way_equal_split(self, make_expense):
        """A pays 100 split 50/50: A -50, B +50."""
        expense = make_expense("100", "a", {"a": "50", "b": "50"})
        assert expense_net_deltas(expense) == {"a": Decimal("-50"), "b": Decimal("50")}

    @pytest.mark.parametrize(
        "amount,shares",
        [
            ("100", {"a": "50", "b": "50"}),
            ("90", {"a": "30", "b": "30", "c": "30"}),
            ("10.00", {"a": "3.34", "b": "3.33", "c": "3.33"}),
            ("42.17", {"a": "0", "b": "42.17"}),
        ],
    )
    def test_conservation_per_expense(self, make_expense, amount, shares):
        """Shares summing to the amount with the payer listed net to zero."""
        expense = make_expense(amount, "a", shares)
        assert sum(expense_net_deltas(expense).values()) == 0

    def test_payer_not_listed_gets_no_row(self, make_expense):
        expense = make_expense("20", "carol", {"a": "10", "b": "10"})
        deltas = expense_net_deltas(expense)
        assert "carol" not in deltas
        assert sum(deltas.values()) == Decimal("20")


class TestComputeBalances:
    """Global balance list."""

    def test_three_way_group_scenario(self, make_expense):
        """A pays 90 among A, B, C: A -60, B +30, C +30."""
        expense = make_expense("90", "a", {"a": "30", "b": "30", "c": "30"}, group_id="g")
        balances = balances_by_user(compute_balances([expense]))
        assert balances == {"a": Decimal("-60"), "b": Decimal("30"), "c": Decimal("30")}

    def test_accumulates_across_expenses(self, make_expense):
        expenses = [
            make_expense("100", "a", {"a": "50", "b": "50"}),
            make_expense("60", "b", {"a": "30", "b": "30"}),
        ]
        balances = balances_by_user(compute_balances(expenses))
        assert balances == {"a": Decimal("-20"), "b": Decimal("20")}

    def test_never_payer_is_debtor(self, make_expense):
        expenses = [
            make_expense("30", "a", {"a": "15", "c": "15"}),
            make_expense("40", "b", {"b": "20", "c": "20"}),
        ]
        balances = balances_by_user(compute_balances(expenses))
        assert balances["c"] == Decimal("35")

    def test_settled_expenses_excluded_by_default(self, make_expense):
        expenses = [
            make_expense("100", "a", {"a": "50", "b": "50"}, is_settled=True),
            make_expense("20", "b", {"a": "10", "b": "10"}),
        ]
        default = balances_by_user(compute_balances(expenses))
        full = balances_by_user(compute_balances(expenses, include_settled=True))
        assert default == {"a": Decimal("10"), "b": Decimal("-10")}
        assert full == {"a": Decimal("-40"), "b": Decimal("40")}

    def test_first_snapshot_name_kept(self, make_expense):
        first = make_expense("10", "a", {"a": "5", "b": "5"})
        second = make_expense("10", "a", {"a": "5", "b": "5"})
        second.participants[1].name = "Bobby"
        balances = compute_balances([first, second])
        assert [b.name for b in balances] == ["A", "B"]

    def test_empty_input(self):
        assert compute_balances([]) == []
        assert total_balance([]) == 0

    def test_qualifying_expenses_filter(self, make_expense):
        settled = make_expense("10", "a", {"a": "10"}, is_settled=True)
        open_ = make_expense("10", "a", {"a": "10"})
        assert qualifying_expenses([settled, open_]) == [open_]
        assert qualifying_expenses([settled, open_], include_settled=True) == [settled, open_]


class TestTotals:
    """Total balance and exposure."""

    def test_total_balance_zero_for_consistent_ledger(self, make_expense):
        expenses = [
            make_expense("90", "a", {"a": "30", "b": "30", "c": "30"}),
            make_expense("45.50", "c", {"b": "20.25", "c": "25.25"}),
        ]
        assert total_balance(compute_balances(expenses)) == 0

    def test_total_balance_flags_mismatched_shares(self, make_expense):
        expense = make_expense("100", "a", {"a": "40", "b": "50"})
        assert total_balance(compute_balances([expense])) == Decimal("-10")

    def test_total_exposure_is_half_absolute_sum(self):
        balances = [
            Balance(user_id="a", name="A", amount=Decimal("-60")),
            Balance(user_id="b", name="B", amount=Decimal("30")),
            Balance(user_id="c", name="C", amount=Decimal("30")),
        ]
        assert total_exposure(balances) == Decimal("60")

    def test_decimal_sum_has_no_drift(self, make_expense):
        """Ten 0.10 expenses sum to exactly 1.00."""
        expenses = [make_expense("0.10", "a", {"a": "0", "b": "0.10"}) for _ in range(10)]
        balances = balances_by_user(compute_balances(expenses))
        assert balances["b"] == Decimal("1.00")


class TestGroupBalances:
    """Per-group balance views."""

    def test_group_balance_scenario_total(self, make_expense):
        group = Group(id="g", name="Trip")
        expense = make_expense("90", "a", {"a": "30", "b": "30", "c": "30"}, group_id="g")
        gb = compute_group_balance(group, [expense])
        assert gb.group_name == "Trip"
        assert gb.total_amount == Decimal("60")
        assert gb.balance_for("a").amount == Decimal("-60")

    def test_group_balance_ignores_other_groups(self, make_expense):
        group = Group(id="g", name="Trip")
        expenses = [
            make_expense("90", "a", {"a": "30", "b": "30", "c": "30"}, group_id="g"),
            make_expense("50", "b", {"a": "25", "b": "25"}, group_id="other"),
            make_expense("10", "b", {"a": "10", "b": "0"}),
        ]
        gb = compute_group_balance(group, expenses)
        assert balances_by_user(gb.balances) == {
            "a": Decimal("-60"),
            "b": Decimal("30"),
            "c": Decimal("30"),
        }

    def test_one_entry_per_group_including_empty(self, make_expense):
        groups = [Group(id="g1", name="One"), Group(id="g2", name="Two")]
        expenses = [make_expense("20", "a", {"a": "10", "b": "10"}, group_id="g1")]
        result = compute_group_balances(groups, expenses)
        assert [gb.group_id for gb in result] == ["g1", "g2"]
        assert result[1].balances == []
        assert result[1].total_amount == 0

    def test_total_amount_matches_half_absolute_sum(self, make_expense):
        group = Group(id="g", name="Flat")
        expenses = [
            make_expense("120", "a", {"a": "40", "b": "40", "c": "40"}, group_id="g"),
            make_expense("33", "b", {"a": "11", "b": "11", "c": "11"}, group_id="g"),
        ]
        gb = compute_group_balance(group, expenses)
        expected = sum(abs(b.amount) for b in gb.balances) / 2
        assert gb.total_amount == expected
