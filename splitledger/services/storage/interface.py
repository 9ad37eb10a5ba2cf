"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a JSON file or a real database
2. Use in-memory storage for testing
3. Keep the balance engine decoupled from persistence

The interface is intentionally narrow: bulk reads and single-entity
mutations. Filtering and every derived view happen in Python, over
the loaded collections.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from splitledger.models.expense import Expense, Friend, Group, User


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Expenses, groups and friends are independent collections. Every
    mutation is a read-modify-write of one collection.
    """

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def load_expenses(self) -> list[Expense]:
        """
        Load every stored expense, in insertion order.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def append_expense(self, expense: Expense) -> None:
        """
        Append a new expense.

        Raises:
            DuplicateError: If an expense with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def replace_expense(
        self,
        expense_id: str,
        fields: dict[str, Any],
    ) -> Expense:
        """
        Shallow-merge `fields` over the stored expense.

        Args:
            expense_id: The expense to update
            fields: Field name -> new value. Unlisted fields are kept.

        Returns:
            The merged expense as stored

        Raises:
            NotFoundError: If the expense doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def remove_expense(self, expense_id: str) -> None:
        """
        Hard-delete an expense.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def load_groups(self) -> list[Group]:
        pass

    @abstractmethod
    async def append_group(self, group: Group) -> None:
        pass

    @abstractmethod
    async def replace_group(
        self,
        group_id: str,
        fields: dict[str, Any],
    ) -> Group:
        """Shallow-merge `fields` over the stored group (NotFoundError if absent)."""
        pass

    @abstractmethod
    async def remove_group(self, group_id: str) -> None:
        pass

    # -------------------------------------------------------------------------
    # Friends
    # -------------------------------------------------------------------------

    @abstractmethod
    async def load_friends(self) -> list[Friend]:
        pass

    @abstractmethod
    async def append_friend(self, friend: Friend) -> None:
        pass

    @abstractmethod
    async def replace_friend(
        self,
        friend_id: str,
        fields: dict[str, Any],
    ) -> Friend:
        pass

    @abstractmethod
    async def remove_friend(self, friend_id: str) -> None:
        pass

    # -------------------------------------------------------------------------
    # Local user
    # -------------------------------------------------------------------------

    @abstractmethod
    async def load_user(self) -> Optional[User]:
        """Return the stored local user, or None on first run."""
        pass

    @abstractmethod
    async def save_user(self, user: User) -> None:
        pass


def merge_fields(entity, fields: dict[str, Any]):
    """
    Shallow merge used by every backend's replace_* method.

    The merged result is re-validated, so a bad field value raises
    instead of being stored.
    """
    unknown = set(fields) - set(type(entity).model_fields)
    if unknown:
        raise StorageError(f"Unknown fields for {type(entity).__name__}: {sorted(unknown)}")
    data = entity.model_dump()
    data.update(fields)
    return type(entity).model_validate(data)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
