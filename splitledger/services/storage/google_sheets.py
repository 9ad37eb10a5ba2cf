"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Non-technical users can view their expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. A shared spreadsheet is an easy way to hand a ledger to someone else

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions (one collection per worksheet, written independently)
- Limited query capabilities (we filter in Python)

Nested values (expense participants, group members, friend ids) are
stored as JSON in a single cell.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from splitledger.config import get_settings
from splitledger.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseParticipant,
    Friend,
    Group,
    GroupMember,
    SplitType,
    User,
)
from splitledger.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    merge_fields,
)


# Column mappings, one list per worksheet
EXPENSE_COLUMNS = [
    "id",
    "title",
    "description",
    "amount",
    "currency",
    "category",
    "paid_by",
    "group_id",
    "split_type",
    "created_at",
    "updated_at",
    "is_settled",
    "receipt",
    "participants_json",
]

GROUP_COLUMNS = [
    "id",
    "name",
    "description",
    "color",
    "currency",
    "created_at",
    "updated_at",
    "members_json",
    "friend_ids_json",
]

FRIEND_COLUMNS = [
    "id",
    "name",
    "email",
    "avatar_url",
    "created_at",
    "updated_at",
]

USER_COLUMNS = [
    "id",
    "name",
    "email",
    "default_currency",
    "created_at",
]


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.expenses_sheet_name, EXPENSE_COLUMNS, 5000)

    def get_groups_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.groups_sheet_name, GROUP_COLUMNS, 200)

    def get_friends_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.friends_sheet_name, FRIEND_COLUMNS, 500)

    def get_user_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.user_sheet_name, USER_COLUMNS, 10)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    One row per entity, first column is the entity id, row 1 is the header.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    def _expense_to_row(self, expense: Expense) -> list:
        """Convert an Expense to a spreadsheet row."""
        return [
            expense.id,
            expense.title,
            expense.description or "",
            str(expense.amount),
            expense.currency,
            expense.category.value,
            expense.paid_by,
            expense.group_id or "",
            expense.split_type.value,
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
            str(expense.is_settled),
            expense.receipt or "",
            json.dumps([p.model_dump(mode="json") for p in expense.participants]),
        ]

    def _row_to_expense(self, row: list) -> Expense:
        """Convert a spreadsheet row to an Expense."""
        participants_json = _cell(row, 13)
        participants = [
            ExpenseParticipant.model_validate(p)
            for p in (json.loads(participants_json) if participants_json else [])
        ]
        return Expense(
            id=_cell(row, 0),
            title=_cell(row, 1),
            description=_cell(row, 2) or None,
            amount=Decimal(_cell(row, 3, "0")),
            currency=_cell(row, 4, "USD"),
            category=ExpenseCategory(_cell(row, 5, "other")),
            paid_by=_cell(row, 6),
            group_id=_cell(row, 7) or None,
            split_type=SplitType(_cell(row, 8, "equal")),
            created_at=datetime.fromisoformat(_cell(row, 9)),
            updated_at=datetime.fromisoformat(_cell(row, 10)),
            is_settled=_cell(row, 11).lower() == "true",
            receipt=_cell(row, 12) or None,
            participants=participants,
        )

    def _group_to_row(self, group: Group) -> list:
        return [
            group.id,
            group.name,
            group.description or "",
            group.color,
            group.currency,
            group.created_at.isoformat(),
            group.updated_at.isoformat(),
            json.dumps([m.model_dump(mode="json") for m in group.members]),
            json.dumps(group.friend_ids),
        ]

    def _row_to_group(self, row: list) -> Group:
        members_json = _cell(row, 7)
        friend_ids_json = _cell(row, 8)
        return Group(
            id=_cell(row, 0),
            name=_cell(row, 1),
            description=_cell(row, 2) or None,
            color=_cell(row, 3, "#6366F1"),
            currency=_cell(row, 4, "USD"),
            created_at=datetime.fromisoformat(_cell(row, 5)),
            updated_at=datetime.fromisoformat(_cell(row, 6)),
            members=[
                GroupMember.model_validate(m)
                for m in (json.loads(members_json) if members_json else [])
            ],
            friend_ids=json.loads(friend_ids_json) if friend_ids_json else [],
        )

    def _friend_to_row(self, friend: Friend) -> list:
        return [
            friend.id,
            friend.name,
            friend.email or "",
            friend.avatar_url or "",
            friend.created_at.isoformat(),
            friend.updated_at.isoformat(),
        ]

    def _row_to_friend(self, row: list) -> Friend:
        return Friend(
            id=_cell(row, 0),
            name=_cell(row, 1),
            email=_cell(row, 2) or None,
            avatar_url=_cell(row, 3) or None,
            created_at=datetime.fromisoformat(_cell(row, 4)),
            updated_at=datetime.fromisoformat(_cell(row, 5)),
        )

    # -------------------------------------------------------------------------
    # Generic sheet operations
    # -------------------------------------------------------------------------

    def _load_rows(self, sheet: gspread.Worksheet, parse: Callable[[list], Any]) -> list:
        entities = []
        # Skip header
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                entities.append(parse(row))
            except (ValueError, KeyError, TypeError) as e:
                raise StorageError(f"Malformed row for {row[0]}: {e}")
        return entities

    def _find_row(self, sheet: gspread.Worksheet, entity_id: str) -> tuple[int, list]:
        all_rows = sheet.get_all_values()
        # Start from 2 (row 1 is header)
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == entity_id:
                return idx, row
        raise NotFoundError(f"Row not found: {entity_id}")

    def _append(self, sheet: gspread.Worksheet, entity_id: str, row: list) -> None:
        for existing in sheet.get_all_values()[1:]:
            if existing and existing[0] == entity_id:
                raise DuplicateError(f"Already stored: {entity_id}")
        sheet.append_row(row, value_input_option="RAW")

    def _replace(
        self,
        sheet: gspread.Worksheet,
        entity_id: str,
        fields: dict[str, Any],
        parse: Callable[[list], Any],
        to_row: Callable[[Any], list],
    ):
        idx, row = self._find_row(sheet, entity_id)
        merged = merge_fields(parse(row), fields)
        for col_idx, value in enumerate(to_row(merged), start=1):
            sheet.update_cell(idx, col_idx, value)
        return merged

    def _remove(self, sheet: gspread.Worksheet, entity_id: str) -> None:
        idx, _ = self._find_row(sheet, entity_id)
        sheet.delete_rows(idx)

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    async def load_expenses(self) -> list[Expense]:
        try:
            return self._load_rows(self._client.get_expenses_sheet(), self._row_to_expense)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load expenses: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def append_expense(self, expense: Expense) -> None:
        try:
            self._append(
                self._client.get_expenses_sheet(),
                expense.id,
                self._expense_to_row(expense),
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save expense: {e}")

    async def replace_expense(self, expense_id: str, fields: dict[str, Any]) -> Expense:
        try:
            return self._replace(
                self._client.get_expenses_sheet(),
                expense_id,
                fields,
                self._row_to_expense,
                self._expense_to_row,
            )
        except NotFoundError:
            raise NotFoundError(f"Expense not found: {expense_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update expense: {e}")

    async def remove_expense(self, expense_id: str) -> None:
        try:
            self._remove(self._client.get_expenses_sheet(), expense_id)
        except NotFoundError:
            raise NotFoundError(f"Expense not found: {expense_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete expense: {e}")

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    async def load_groups(self) -> list[Group]:
        try:
            return self._load_rows(self._client.get_groups_sheet(), self._row_to_group)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load groups: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def append_group(self, group: Group) -> None:
        try:
            self._append(self._client.get_groups_sheet(), group.id, self._group_to_row(group))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save group: {e}")

    async def replace_group(self, group_id: str, fields: dict[str, Any]) -> Group:
        try:
            return self._replace(
                self._client.get_groups_sheet(),
                group_id,
                fields,
                self._row_to_group,
                self._group_to_row,
            )
        except NotFoundError:
            raise NotFoundError(f"Group not found: {group_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update group: {e}")

    async def remove_group(self, group_id: str) -> None:
        try:
            self._remove(self._client.get_groups_sheet(), group_id)
        except NotFoundError:
            raise NotFoundError(f"Group not found: {group_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete group: {e}")

    # -------------------------------------------------------------------------
    # Friends
    # -------------------------------------------------------------------------

    async def load_friends(self) -> list[Friend]:
        try:
            return self._load_rows(self._client.get_friends_sheet(), self._row_to_friend)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load friends: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(DuplicateError),
        reraise=True,
    )
    async def append_friend(self, friend: Friend) -> None:
        try:
            self._append(self._client.get_friends_sheet(), friend.id, self._friend_to_row(friend))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save friend: {e}")

    async def replace_friend(self, friend_id: str, fields: dict[str, Any]) -> Friend:
        try:
            return self._replace(
                self._client.get_friends_sheet(),
                friend_id,
                fields,
                self._row_to_friend,
                self._friend_to_row,
            )
        except NotFoundError:
            raise NotFoundError(f"Friend not found: {friend_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update friend: {e}")

    async def remove_friend(self, friend_id: str) -> None:
        try:
            self._remove(self._client.get_friends_sheet(), friend_id)
        except NotFoundError:
            raise NotFoundError(f"Friend not found: {friend_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete friend: {e}")

    # -------------------------------------------------------------------------
    # Local user (single data row under the header)
    # -------------------------------------------------------------------------

    async def load_user(self) -> Optional[User]:
        try:
            rows = self._client.get_user_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to load user: {e}")
        for row in rows:
            if row and row[0]:
                return User(
                    id=_cell(row, 0),
                    name=_cell(row, 1),
                    email=_cell(row, 2) or None,
                    default_currency=_cell(row, 3, "USD"),
                    created_at=datetime.fromisoformat(_cell(row, 4)),
                )
        return None

    async def save_user(self, user: User) -> None:
        row = [
            user.id,
            user.name,
            user.email or "",
            user.default_currency,
            user.created_at.isoformat(),
        ]
        try:
            sheet = self._client.get_user_sheet()
            existing = sheet.get_all_values()[1:]
            if any(r and r[0] for r in existing):
                for col_idx, value in enumerate(row, start=1):
                    sheet.update_cell(2, col_idx, value)
            else:
                sheet.append_row(row, value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save user: {e}")
