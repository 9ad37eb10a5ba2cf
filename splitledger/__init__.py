"""
SplitLedger - Source Package

A personal and shared expense tracker. Expenses are recorded with a payer
and per-participant shares; balances are derived from them on every read.

DESIGN PRINCIPLES:
1. Expense records are the only source of truth
2. Balances are recomputed, never stored
3. Settlements append or flag records, they never rewrite history
4. Fail early, fail visibly
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SplitLedger Team"
