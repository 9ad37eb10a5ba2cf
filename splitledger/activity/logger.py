"""
Activity Logger

Every ledger mutation is logged as a structured event. This gives:
1. Debugging capability when a balance looks wrong
2. A local record of what the user did in a session

Events go to the standard logging tree through structlog, rendered as
JSON. Nothing is persisted by this module.
"""

from decimal import Decimal
from typing import Any, Optional

import structlog


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class ActivityLogger:
    """
    Central activity logging service.

    One method per ledger event, so call sites stay short and the event
    names stay consistent.
    """

    def __init__(self, name: str = "splitledger"):
        self._logger = structlog.get_logger(name)

    def _info(self, event: str, **fields: Any) -> None:
        self._logger.info(event, **fields)

    def expense_added(
        self,
        expense_id: str,
        amount: Decimal,
        paid_by: str,
        group_id: Optional[str],
        participant_count: int,
    ) -> None:
        self._info(
            "expense_added",
            expense_id=expense_id,
            amount=str(amount),
            paid_by=paid_by,
            group_id=group_id,
            participant_count=participant_count,
        )

    def expense_updated(self, expense_id: str, fields: list[str]) -> None:
        self._info("expense_updated", expense_id=expense_id, fields=sorted(fields))

    def expense_deleted(self, expense_id: str) -> None:
        self._info("expense_deleted", expense_id=expense_id)

    def group_settled(self, group_id: str, expense_count: int) -> None:
        self._info("group_settled", group_id=group_id, expense_count=expense_count)

    def settlement_recorded(
        self,
        group_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: Decimal,
        expense_id: str,
    ) -> None:
        self._info(
            "settlement_recorded",
            group_id=group_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=str(amount),
            expense_id=expense_id,
        )

    def group_saved(self, group_id: str, name: str) -> None:
        self._info("group_saved", group_id=group_id, name=name)

    def group_deleted(self, group_id: str, expense_count: int) -> None:
        self._info("group_deleted", group_id=group_id, expense_count=expense_count)

    def member_added(self, group_id: str, friend_id: str) -> None:
        self._info("member_added", group_id=group_id, friend_id=friend_id)

    def member_removed(self, group_id: str, friend_id: str) -> None:
        self._info("member_removed", group_id=group_id, friend_id=friend_id)

    def friend_saved(self, friend_id: str) -> None:
        self._info("friend_saved", friend_id=friend_id)

    def friend_deleted(self, friend_id: str) -> None:
        self._info("friend_deleted", friend_id=friend_id)

    def ledger_loaded(self, expenses: int, groups: int, friends: int) -> None:
        self._info("ledger_loaded", expenses=expenses, groups=groups, friends=friends)

    def balance_drift(self, total: Decimal) -> None:
        """Total balance is not zero: some expense's shares don't match its amount."""
        self._logger.warning("balance_drift", total=str(total))

    def operation_failed(self, operation: str, error: Exception, **details: Any) -> None:
        self._logger.error(
            "operation_failed",
            operation=operation,
            error_type=type(error).__name__,
            error=str(error),
            **details,
        )
