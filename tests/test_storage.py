"""
Tests for storage backends.

The key-value backend runs on both shipped stores. The Google Sheets
backend runs against in-memory fake worksheets with the same call surface
as gspread.Worksheet.
"""

import asyncio
import json
from decimal import Decimal

import pytest

from splitledger.models import Expense, Friend, Group, User
from splitledger.services.storage import (
    DuplicateError,
    GoogleSheetsLedgerStorage,
    InMemoryStore,
    JsonFileStore,
    KeyValueLedgerStorage,
    NotFoundError,
    StorageError,
)
from splitledger.services.storage.google_sheets import (
    EXPENSE_COLUMNS,
    FRIEND_COLUMNS,
    GROUP_COLUMNS,
    USER_COLUMNS,
)


class FakeWorksheet:
    """Rows of strings, header in row 1, 1-based like gspread."""

    def __init__(self, columns):
        self.rows = [list(columns)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def update_cell(self, row, col, value):
        target = self.rows[row - 1]
        while len(target) < col:
            target.append("")
        target[col - 1] = str(value)

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)
        self.groups = FakeWorksheet(GROUP_COLUMNS)
        self.friends = FakeWorksheet(FRIEND_COLUMNS)
        self.user = FakeWorksheet(USER_COLUMNS)

    def get_expenses_sheet(self):
        return self.expenses

    def get_groups_sheet(self):
        return self.groups

    def get_friends_sheet(self):
        return self.friends

    def get_user_sheet(self):
        return self.user


@pytest.fixture(params=["memory", "json", "sheets"])
def backend(request, tmp_path):
    if request.param == "memory":
        return KeyValueLedgerStorage(InMemoryStore())
    if request.param == "json":
        return KeyValueLedgerStorage(JsonFileStore(tmp_path / "ledger.json"))
    return GoogleSheetsLedgerStorage(FakeSheetsClient())


class TestLedgerStorageContract:
    """Every backend honours the same interface."""

    def test_empty_collections(self, backend):
        assert asyncio.run(backend.load_expenses()) == []
        assert asyncio.run(backend.load_groups()) == []
        assert asyncio.run(backend.load_friends()) == []
        assert asyncio.run(backend.load_user()) is None

    def test_append_and_load_expense(self, backend, make_expense):
        expense = make_expense("12.34", "me", {"me": "6.17", "alice": "6.17"}, group_id="g")
        asyncio.run(backend.append_expense(expense))
        loaded = asyncio.run(backend.load_expenses())
        assert len(loaded) == 1
        assert loaded[0].id == expense.id
        assert loaded[0].amount == Decimal("12.34")
        assert loaded[0].group_id == "g"
        assert [p.user_id for p in loaded[0].participants] == ["me", "alice"]
        assert loaded[0].participants[1].amount == Decimal("6.17")

    def test_insertion_order_kept(self, backend, make_expense):
        first = make_expense("1", "me", {"me": "1"}, title="First")
        second = make_expense("2", "me", {"me": "2"}, title="Second")
        asyncio.run(backend.append_expense(first))
        asyncio.run(backend.append_expense(second))
        assert [e.title for e in asyncio.run(backend.load_expenses())] == ["First", "Second"]

    def test_duplicate_append_rejected(self, backend, make_expense):
        expense = make_expense("1", "me", {"me": "1"})
        asyncio.run(backend.append_expense(expense))
        with pytest.raises(DuplicateError):
            asyncio.run(backend.append_expense(expense))

    def test_replace_is_shallow_merge(self, backend, make_expense):
        expense = make_expense("10", "me", {"me": "5", "alice": "5"}, title="Lunch")
        asyncio.run(backend.append_expense(expense))

        merged = asyncio.run(backend.replace_expense(expense.id, {"is_settled": True}))
        assert merged.is_settled is True
        assert merged.title == "Lunch"
        assert merged.amount == Decimal("10")

        stored = asyncio.run(backend.load_expenses())[0]
        assert stored.is_settled is True
        assert stored.title == "Lunch"

    def test_replace_unknown_expense(self, backend):
        with pytest.raises(NotFoundError, match="Expense not found"):
            asyncio.run(backend.replace_expense("missing", {"title": "X"}))

    def test_replace_unknown_field(self, backend, make_expense):
        expense = make_expense("10", "me", {"me": "10"})
        asyncio.run(backend.append_expense(expense))
        with pytest.raises(StorageError):
            asyncio.run(backend.replace_expense(expense.id, {"colour": "red"}))

    def test_remove_expense(self, backend, make_expense):
        keep = make_expense("1", "me", {"me": "1"})
        drop = make_expense("2", "me", {"me": "2"})
        asyncio.run(backend.append_expense(keep))
        asyncio.run(backend.append_expense(drop))
        asyncio.run(backend.remove_expense(drop.id))
        assert [e.id for e in asyncio.run(backend.load_expenses())] == [keep.id]

    def test_remove_unknown_expense(self, backend):
        with pytest.raises(NotFoundError):
            asyncio.run(backend.remove_expense("missing"))

    def test_group_round_trip_and_friend_ids(self, backend, trip):
        asyncio.run(backend.append_group(trip))
        updated = asyncio.run(backend.replace_group(trip.id, {"friend_ids": ["alice"]}))
        assert updated.friend_ids == ["alice"]

        loaded = asyncio.run(backend.load_groups())[0]
        assert loaded.name == "Lisbon Trip"
        assert loaded.currency == "EUR"
        assert loaded.friend_ids == ["alice"]

        asyncio.run(backend.remove_group(trip.id))
        assert asyncio.run(backend.load_groups()) == []

    def test_friend_round_trip(self, backend, alice):
        asyncio.run(backend.append_friend(alice))
        asyncio.run(backend.replace_friend(alice.id, {"email": "alice@example.com"}))
        loaded = asyncio.run(backend.load_friends())[0]
        assert loaded.name == "Alice"
        assert loaded.email == "alice@example.com"

        asyncio.run(backend.remove_friend(alice.id))
        with pytest.raises(NotFoundError, match="Friend not found"):
            asyncio.run(backend.remove_friend(alice.id))

    def test_user_saved_and_overwritten(self, backend, local_user):
        asyncio.run(backend.save_user(local_user))
        renamed = local_user.model_copy(update={"name": "Me Again"})
        asyncio.run(backend.save_user(renamed))

        loaded = asyncio.run(backend.load_user())
        assert loaded.id == local_user.id
        assert loaded.name == "Me Again"


class TestKeyValueStorage:
    """Details of the key-value layout."""

    def test_collections_live_under_fixed_keys(self, store, storage, make_expense, local_user):
        asyncio.run(storage.append_expense(make_expense("1", "me", {"me": "1"})))
        asyncio.run(storage.save_user(local_user))
        assert set(store) == {"expenses", "user"}
        assert json.loads(store["expenses"])[0]["amount"] == "1"

    def test_corrupt_collection_raises(self, store, storage):
        store["expenses"] = "[{\"title\": 1}]"
        with pytest.raises(StorageError, match="Corrupt expenses"):
            asyncio.run(storage.load_expenses())


class TestJsonFileStore:
    """Tests for the on-disk mapping."""

    def test_two_stores_share_one_file(self, tmp_path):
        path = tmp_path / "nested" / "ledger.json"
        writer = JsonFileStore(path)
        reader = JsonFileStore(path)
        writer["groups"] = "[]"
        assert reader["groups"] == "[]"
        assert path.exists()

    def test_missing_key_and_delete(self, tmp_path):
        store = JsonFileStore(tmp_path / "ledger.json")
        assert store.get("expenses") is None
        store["expenses"] = "[]"
        del store["expenses"]
        assert len(store) == 0

    def test_unreadable_file_raises(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(StorageError, match="Failed to read"):
            JsonFileStore(path)["expenses"]

    def test_non_object_file_raises(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StorageError, match="Unexpected content"):
            list(JsonFileStore(path))


class TestGoogleSheetsStorage:
    """Sheet-specific layout details."""

    def test_expense_row_layout(self, make_expense):
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        expense = make_expense("9.99", "me", {"me": "9.99"})
        asyncio.run(storage.append_expense(expense))

        header, row = client.expenses.rows
        assert header == EXPENSE_COLUMNS
        assert row[0] == expense.id
        assert row[3] == "9.99"
        assert row[7] == ""
        assert json.loads(row[13])[0]["user_id"] == "me"

    def test_short_rows_use_defaults(self):
        client = FakeSheetsClient()
        client.friends.rows.append(
            ["f1", "Frank", "", "", "2024-01-01T00:00:00+00:00", "2024-01-01T00:00:00+00:00"]
        )
        client.groups.rows.append(
            ["g1", "Flat", "", "", "", "2024-01-01T00:00:00+00:00", "2024-01-01T00:00:00+00:00"]
        )
        storage = GoogleSheetsLedgerStorage(client)

        friend = asyncio.run(storage.load_friends())[0]
        assert friend.email is None

        group = asyncio.run(storage.load_groups())[0]
        assert group.color == "#6366F1"
        assert group.currency == "USD"
        assert group.friend_ids == []
        assert group.members == []

    def test_blank_rows_skipped(self):
        client = FakeSheetsClient()
        client.friends.rows.append([""])
        assert asyncio.run(GoogleSheetsLedgerStorage(client).load_friends()) == []

    def test_malformed_row_raises(self):
        client = FakeSheetsClient()
        client.friends.rows.append(["f1", "Frank", "", "", "yesterday", "today"])
        with pytest.raises(StorageError, match="Malformed row"):
            asyncio.run(GoogleSheetsLedgerStorage(client).load_friends())

    def test_user_sheet_single_row(self, local_user):
        client = FakeSheetsClient()
        storage = GoogleSheetsLedgerStorage(client)
        asyncio.run(storage.save_user(local_user))
        asyncio.run(storage.save_user(local_user.model_copy(update={"name": "Renamed"})))
        assert len(client.user.rows) == 2
        assert client.user.rows[1][1] == "Renamed"
