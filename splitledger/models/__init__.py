"""
Data Models Package

This package contains all Pydantic models used in SplitLedger.
All data flowing through the system must conform to these schemas.
"""

from splitledger.models.expense import (
    Balance,
    Expense,
    ExpenseCategory,
    ExpenseParticipant,
    Friend,
    Group,
    GroupBalance,
    GroupMember,
    LedgerSnapshot,
    SplitType,
    User,
    new_id,
    utc_now,
)
from splitledger.models.validation import (
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Ledger models
    "Balance",
    "Expense",
    "ExpenseCategory",
    "ExpenseParticipant",
    "Friend",
    "Group",
    "GroupBalance",
    "GroupMember",
    "LedgerSnapshot",
    "SplitType",
    "User",
    "new_id",
    "utc_now",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
]
