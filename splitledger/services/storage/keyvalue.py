"""
Key-Value Storage Implementation

Each collection (expenses, groups, friends, user) is serialized as one
JSON document under a fixed key. Any MutableMapping[str, str] can hold
the documents:

- InMemoryStore: a plain dict, used for tests and throwaway sessions
- JsonFileStore: every key lives in a single JSON file on disk

TRADEOFFS:
- Every mutation rewrites the whole collection (fine for a personal ledger)
- No transactions: one write per collection, expenses before groups
"""

import json
import os
import tempfile
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any, Iterator, Optional

from pydantic import TypeAdapter, ValidationError

from splitledger.models.expense import Expense, Friend, Group, User
from splitledger.services.storage.interface import (
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    merge_fields,
)


STORAGE_KEYS = {
    "expenses": "expenses",
    "groups": "groups",
    "friends": "friends",
    "user": "user",
}

_EXPENSES = TypeAdapter(list[Expense])
_GROUPS = TypeAdapter(list[Group])
_FRIENDS = TypeAdapter(list[Friend])


class InMemoryStore(dict):
    """Dict-backed document store."""


class JsonFileStore(MutableMapping):
    """
    MutableMapping persisted to one JSON file.

    The file is re-read on every access and rewritten atomically on every
    change, so two stores pointing at the same path see each other's writes.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {self._path}: {e}")
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected content in {self._path}")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self._path)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise StorageError(f"Failed to write {self._path}: {e}")

    def __getitem__(self, key: str) -> str:
        return self._read()[key]

    def __setitem__(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def __delitem__(self, key: str) -> None:
        data = self._read()
        del data[key]
        self._write(data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._read())

    def __len__(self) -> int:
        return len(self._read())


class KeyValueLedgerStorage(LedgerStorageInterface):
    """
    Ledger storage over a string key-value store.

    Collections are read in full and written back in full on every
    mutation (read-modify-write, single writer assumed).
    """

    def __init__(self, store: Optional[MutableMapping] = None):
        self._store = store if store is not None else InMemoryStore()

    # Generic collection helpers

    def _load(self, key: str, adapter: TypeAdapter) -> list:
        raw = self._store.get(STORAGE_KEYS[key])
        if not raw:
            return []
        try:
            return adapter.validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt {key} collection: {e}")

    def _save(self, key: str, adapter: TypeAdapter, items: list) -> None:
        self._store[STORAGE_KEYS[key]] = adapter.dump_json(items).decode("utf-8")

    def _append(self, key: str, adapter: TypeAdapter, item) -> None:
        items = self._load(key, adapter)
        if any(existing.id == item.id for existing in items):
            raise DuplicateError(f"{key[:-1].capitalize()} already exists: {item.id}")
        items.append(item)
        self._save(key, adapter, items)

    def _replace(self, key: str, adapter: TypeAdapter, entity_id: str, fields: dict[str, Any]):
        items = self._load(key, adapter)
        for idx, existing in enumerate(items):
            if existing.id == entity_id:
                merged = merge_fields(existing, fields)
                items[idx] = merged
                self._save(key, adapter, items)
                return merged
        raise NotFoundError(f"{key[:-1].capitalize()} not found: {entity_id}")

    def _remove(self, key: str, adapter: TypeAdapter, entity_id: str) -> None:
        items = self._load(key, adapter)
        remaining = [item for item in items if item.id != entity_id]
        if len(remaining) == len(items):
            raise NotFoundError(f"{key[:-1].capitalize()} not found: {entity_id}")
        self._save(key, adapter, remaining)

    # Expenses

    async def load_expenses(self) -> list[Expense]:
        return self._load("expenses", _EXPENSES)

    async def append_expense(self, expense: Expense) -> None:
        self._append("expenses", _EXPENSES, expense)

    async def replace_expense(self, expense_id: str, fields: dict[str, Any]) -> Expense:
        return self._replace("expenses", _EXPENSES, expense_id, fields)

    async def remove_expense(self, expense_id: str) -> None:
        self._remove("expenses", _EXPENSES, expense_id)

    # Groups

    async def load_groups(self) -> list[Group]:
        return self._load("groups", _GROUPS)

    async def append_group(self, group: Group) -> None:
        self._append("groups", _GROUPS, group)

    async def replace_group(self, group_id: str, fields: dict[str, Any]) -> Group:
        return self._replace("groups", _GROUPS, group_id, fields)

    async def remove_group(self, group_id: str) -> None:
        self._remove("groups", _GROUPS, group_id)

    # Friends

    async def load_friends(self) -> list[Friend]:
        return self._load("friends", _FRIENDS)

    async def append_friend(self, friend: Friend) -> None:
        self._append("friends", _FRIENDS, friend)

    async def replace_friend(self, friend_id: str, fields: dict[str, Any]) -> Friend:
        return self._replace("friends", _FRIENDS, friend_id, fields)

    async def remove_friend(self, friend_id: str) -> None:
        self._remove("friends", _FRIENDS, friend_id)

    # Local user

    async def load_user(self) -> Optional[User]:
        raw = self._store.get(STORAGE_KEYS["user"])
        if not raw:
            return None
        try:
            return User.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt user record: {e}")

    async def save_user(self, user: User) -> None:
        self._store[STORAGE_KEYS["user"]] = user.model_dump_json()
