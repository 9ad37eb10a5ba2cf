"""
Ledger Engine Package

Pure functions over the loaded expense, group and friend collections:
balances, category totals, participant resolution, splits and settlement
records. Nothing in this package performs I/O.
"""

from splitledger.engine.balances import (
    balances_by_user,
    compute_balances,
    compute_group_balance,
    compute_group_balances,
    expense_net_deltas,
    qualifying_expenses,
    total_balance,
    total_exposure,
)
from splitledger.engine.categories import (
    group_totals_by_category,
    personal_totals_by_category,
    totals_by_category,
)
from splitledger.engine.members import (
    ParticipantCandidate,
    find_participant,
    find_settlement_party,
    friend_directory,
    resolve_participants,
)
from splitledger.engine.settlement import (
    SETTLEMENT_TITLE,
    build_settlement_expense,
    settled_fields,
    unsettled_expense_ids,
)
from splitledger.engine.splits import (
    SplitError,
    build_participants,
    custom_split,
    equal_split,
    percentage_split,
    within_tolerance,
)

__all__ = [
    # Balances
    "balances_by_user",
    "compute_balances",
    "compute_group_balance",
    "compute_group_balances",
    "expense_net_deltas",
    "qualifying_expenses",
    "total_balance",
    "total_exposure",
    # Categories
    "group_totals_by_category",
    "personal_totals_by_category",
    "totals_by_category",
    # Members
    "ParticipantCandidate",
    "find_participant",
    "find_settlement_party",
    "friend_directory",
    "resolve_participants",
    # Settlement
    "SETTLEMENT_TITLE",
    "build_settlement_expense",
    "settled_fields",
    "unsettled_expense_ids",
    # Splits
    "SplitError",
    "build_participants",
    "custom_split",
    "equal_split",
    "percentage_split",
    "within_tolerance",
]
