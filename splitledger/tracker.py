"""
Expense Tracker

This module ties together storage, validation, the ledger engine and the
activity log. It owns the in-memory copy of the three collections and
exposes every user action and every derived view.

DESIGN DECISION: The tracker enforces the boundaries:
- Storage is written first; the in-memory copy only changes after the
  write returned
- Nothing is written when a referenced group, expense or friend is missing
- Nothing is written when validation reports an error
- Derived views (balances, category totals) are recomputed on every call

Single writer is assumed: each mutation is a read-modify-write of one
collection and there is no locking.
"""

from decimal import Decimal
from typing import Any, Awaitable, Iterable, Optional, TypeVar, Union

from splitledger.activity import ActivityLogger
from splitledger.config import StorageBackend, get_settings
from splitledger.engine import (
    ParticipantCandidate,
    SplitError,
    build_participants,
    build_settlement_expense,
    compute_balances,
    compute_group_balance,
    compute_group_balances,
    custom_split,
    equal_split,
    find_participant,
    find_settlement_party,
    group_totals_by_category,
    percentage_split,
    personal_totals_by_category,
    resolve_participants,
    settled_fields,
    total_balance,
    totals_by_category,
    unsettled_expense_ids,
)
from splitledger.models import (
    Balance,
    Expense,
    ExpenseCategory,
    Friend,
    Group,
    GroupBalance,
    LedgerSnapshot,
    SplitType,
    User,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from splitledger.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryStore,
    JsonFileStore,
    KeyValueLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    merge_fields,
)
from splitledger.validation import ExpenseValidationError, ExpenseValidator


T = TypeVar("T")
Amount = Union[Decimal, int, str]

# Fields a caller may never change through update_*
_IMMUTABLE_FIELDS = {"id", "created_at"}


def to_amount(value: Amount) -> Decimal:
    """Coerce user input to Decimal without passing through binary floats."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class ExpenseTracker:
    """
    Facade over one ledger.

    Call `load()` before anything else. Every mutating method is async
    because it goes through the storage collaborator; every view is a
    plain synchronous recomputation.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        logger: Optional[ActivityLogger] = None,
        validator: Optional[ExpenseValidator] = None,
    ):
        self._storage = storage
        self._logger = logger or ActivityLogger()
        self._validator = validator or ExpenseValidator()
        self._settings = get_settings().ledger

        self._expenses: list[Expense] = []
        self._groups: list[Group] = []
        self._friends: list[Friend] = []
        self._user: Optional[User] = None

    # =========================================================================
    # Loading
    # =========================================================================

    async def load(self) -> None:
        """
        Load all collections from storage.

        On first run there is no local user; a default one is created from
        settings and saved.
        """
        expenses = await self._persist("load", self._storage.load_expenses())
        groups = await self._persist("load", self._storage.load_groups())
        friends = await self._persist("load", self._storage.load_friends())
        user = await self._persist("load", self._storage.load_user())

        if user is None:
            user = User(
                name=self._settings.local_user_name,
                email=self._settings.local_user_email,
                default_currency=self._settings.default_currency,
            )
            await self._persist("load", self._storage.save_user(user))

        self._expenses = expenses
        self._groups = groups
        self._friends = friends
        self._user = user
        self._logger.ledger_loaded(len(expenses), len(groups), len(friends))

    async def refresh(self) -> None:
        await self.load()

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def user(self) -> User:
        if self._user is None:
            raise RuntimeError("Ledger not loaded; call load() first")
        return self._user

    @property
    def expenses(self) -> list[Expense]:
        return list(self._expenses)

    @property
    def groups(self) -> list[Group]:
        return list(self._groups)

    @property
    def friends(self) -> list[Friend]:
        return list(self._friends)

    def get_expense(self, expense_id: str) -> Expense:
        for expense in self._expenses:
            if expense.id == expense_id:
                return expense
        raise NotFoundError(f"Expense not found: {expense_id}")

    def get_group(self, group_id: str) -> Group:
        for group in self._groups:
            if group.id == group_id:
                return group
        raise NotFoundError(f"Group not found: {group_id}")

    def get_friend(self, friend_id: str) -> Friend:
        for friend in self._friends:
            if friend.id == friend_id:
                return friend
        raise NotFoundError(f"Friend not found: {friend_id}")

    def expenses_by_group(self, group_id: str) -> list[Expense]:
        return [e for e in self._expenses if e.group_id == group_id]

    def recent_expenses(self, limit: Optional[int] = None) -> list[Expense]:
        """Newest first. The stored order is left alone."""
        if limit is None:
            limit = self._settings.recent_expenses_limit
        return sorted(self._expenses, key=lambda e: e.created_at, reverse=True)[:limit]

    def participants_for_group(self, group_id: Optional[str]) -> list[ParticipantCandidate]:
        """Choices for a new expense: local user, then the group's friends."""
        group = self.get_group(group_id) if group_id else None
        return resolve_participants(group, self._friends, self.user)

    # =========================================================================
    # Derived views
    # =========================================================================

    def balances(self, include_settled: bool = False) -> list[Balance]:
        return compute_balances(self._expenses, include_settled)

    def group_balances(self, include_settled: bool = False) -> list[GroupBalance]:
        return compute_group_balances(self._groups, self._expenses, include_settled)

    def group_balance(self, group_id: str, include_settled: bool = False) -> GroupBalance:
        return compute_group_balance(self.get_group(group_id), self._expenses, include_settled)

    def total_balance(self) -> Decimal:
        total = total_balance(self.balances())
        if total != 0:
            self._logger.balance_drift(total)
        return total

    def expenses_by_category(self) -> dict[ExpenseCategory, Decimal]:
        return totals_by_category(self._expenses)

    def group_expenses_by_category(self) -> dict[ExpenseCategory, Decimal]:
        return group_totals_by_category(self._expenses)

    def personal_expenses_by_category(self) -> dict[ExpenseCategory, Decimal]:
        return personal_totals_by_category(self._expenses)

    def export_data(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            user=self._user,
            expenses=self.expenses,
            groups=self.groups,
            friends=self.friends,
        )

    # =========================================================================
    # Expenses
    # =========================================================================

    async def add_expense(self, expense: Expense) -> Expense:
        """
        Validate and store a fully built expense.

        Raises:
            NotFoundError: If the expense names a group that doesn't exist
            ExpenseValidationError: If validation reports an error
        """
        if expense.group_id is not None:
            self._require_group("add_expense", expense.group_id)
        self._check(self._validator.validate(expense), "add_expense")

        await self._persist(
            "add_expense",
            self._storage.append_expense(expense),
            expense_id=expense.id,
        )
        self._expenses.append(expense)
        self._logger.expense_added(
            expense_id=expense.id,
            amount=expense.amount,
            paid_by=expense.paid_by,
            group_id=expense.group_id,
            participant_count=len(expense.participants),
        )
        return expense

    async def record_expense(
        self,
        title: str,
        amount: Amount,
        *,
        group_id: Optional[str] = None,
        paid_by: Optional[str] = None,
        participant_ids: Optional[Iterable[str]] = None,
        split_type: SplitType = SplitType.EQUAL,
        shares: Optional[dict[str, Amount]] = None,
        percentages: Optional[dict[str, Amount]] = None,
        category: ExpenseCategory = ExpenseCategory.OTHER,
        description: Optional[str] = None,
        currency: Optional[str] = None,
        receipt: Optional[str] = None,
    ) -> Expense:
        """
        Build an expense from user input and store it.

        Participants default to everyone the group resolves to (only the
        local user for a personal expense); the payer defaults to the local
        user. Display names are snapshotted from the resolver.

        - equal: `amount` split evenly over `participant_ids`
        - custom: `shares` maps participant id to owed amount
        - percentage: `percentages` maps participant id to percent
        """
        amount = to_amount(amount)
        group = self._require_group("record_expense", group_id) if group_id else None
        candidates = resolve_participants(group, self._friends, self.user)
        payer = paid_by or self.user.id

        if split_type == SplitType.CUSTOM:
            split_input = {uid: to_amount(v) for uid, v in (shares or {}).items()}
        elif split_type == SplitType.PERCENTAGE:
            split_input = {uid: to_amount(v) for uid, v in (percentages or {}).items()}
        else:
            split_input = None

        if participant_ids is not None:
            ids = list(participant_ids)
        elif split_input is not None:
            ids = list(split_input)
        else:
            ids = [c.user_id for c in candidates]

        names = {}
        for uid in dict.fromkeys([payer, *ids]):
            candidate = self._resolve("record_expense", group, uid, candidates)
            names[uid] = candidate.name

        try:
            if split_type == SplitType.CUSTOM:
                owed = custom_split(
                    amount,
                    {uid: split_input.get(uid, Decimal("0")) for uid in ids},
                    self._validator.tolerance,
                )
            elif split_type == SplitType.PERCENTAGE:
                owed = percentage_split(
                    amount,
                    {uid: split_input.get(uid, Decimal("0")) for uid in ids},
                    self._validator.tolerance,
                )
            else:
                owed = equal_split(amount, ids)
        except SplitError as e:
            raise self._fail("record_expense", _split_failure(e))

        expense = Expense(
            title=title,
            description=description,
            amount=amount,
            currency=currency or (group.currency if group else self.user.default_currency),
            category=category,
            paid_by=payer,
            group_id=group.id if group else None,
            participants=build_participants(owed, candidates, names=names),
            split_type=split_type,
            receipt=receipt,
        )
        return await self.add_expense(expense)

    async def update_expense(self, expense_id: str, **fields: Any) -> Expense:
        """
        Shallow-merge `fields` over an expense and refresh `updated_at`.

        The merged record is validated before anything is written.
        """
        current = self._find("update_expense", self.get_expense, expense_id)
        changes = self._clean_changes("update_expense", fields)

        preview = merge_fields(current, changes)
        if preview.group_id is not None:
            self._require_group("update_expense", preview.group_id)
        self._check(self._validator.validate(preview), "update_expense")

        updated = await self._persist(
            "update_expense",
            self._storage.replace_expense(expense_id, changes),
            expense_id=expense_id,
        )
        self._replace_cached(self._expenses, updated)
        self._logger.expense_updated(expense_id, [k for k in changes if k != "updated_at"])
        return updated

    async def delete_expense(self, expense_id: str) -> None:
        self._find("delete_expense", self.get_expense, expense_id)
        await self._persist(
            "delete_expense",
            self._storage.remove_expense(expense_id),
            expense_id=expense_id,
        )
        self._expenses = [e for e in self._expenses if e.id != expense_id]
        self._logger.expense_deleted(expense_id)

    # =========================================================================
    # Settlement
    # =========================================================================

    async def settle_group(self, group_id: str) -> list[str]:
        """
        Flag every unsettled expense in the group as settled.

        Already-settled expenses are not touched, so settling twice is a
        no-op. Returns the ids that were flagged.
        """
        self._require_group("settle_group", group_id)
        expense_ids = unsettled_expense_ids(self._expenses, group_id)

        settled_at = utc_now()
        for expense_id in expense_ids:
            updated = await self._persist(
                "settle_group",
                self._storage.replace_expense(expense_id, settled_fields(settled_at)),
                group_id=group_id,
                expense_id=expense_id,
            )
            self._replace_cached(self._expenses, updated)

        self._logger.group_settled(group_id, len(expense_ids))
        return expense_ids

    async def settle_between(
        self,
        group_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: Amount,
    ) -> Expense:
        """
        Record that `from_user_id` paid `amount` to `to_user_id`.

        Appends a settlement expense; no existing expense changes. The
        amount is not checked against the actual debt.

        Either side may be a member who has since left the group, as long
        as the friend directory or the group's expenses still know them.

        Raises:
            ExpenseValidationError: amount <= 0, or from and to are the same
            NotFoundError: group or either participant unknown
        """
        amount = to_amount(amount)
        self._check(self._validator.validate_settlement_amount(amount), "settle_between")
        if from_user_id == to_user_id:
            raise self._fail("settle_between", ExpenseValidationError(ValidationResult(
                schema_valid=False,
                semantic_valid=False,
                is_valid=False,
                issues=[ValidationIssue(
                    field="to_user_id",
                    issue_type="invalid_value",
                    message="Cannot settle with yourself",
                    severity="error",
                )],
            )))

        group = self._require_group("settle_between", group_id)
        source = self._settlement_party(group, from_user_id)
        target = self._settlement_party(group, to_user_id)

        expense = build_settlement_expense(group, source, target, amount)
        await self._persist(
            "settle_between",
            self._storage.append_expense(expense),
            group_id=group_id,
            expense_id=expense.id,
        )
        self._expenses.append(expense)
        self._logger.settlement_recorded(
            group_id=group_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=amount,
            expense_id=expense.id,
        )
        return expense

    # =========================================================================
    # Groups
    # =========================================================================

    async def add_group(self, group: Group) -> Group:
        await self._persist("add_group", self._storage.append_group(group), group_id=group.id)
        self._groups.append(group)
        self._logger.group_saved(group.id, group.name)
        return group

    async def update_group(self, group_id: str, **fields: Any) -> Group:
        self._require_group("update_group", group_id)
        changes = self._clean_changes("update_group", fields)
        updated = await self._persist(
            "update_group",
            self._storage.replace_group(group_id, changes),
            group_id=group_id,
        )
        self._replace_cached(self._groups, updated)
        self._logger.group_saved(updated.id, updated.name)
        return updated

    async def delete_group(self, group_id: str) -> int:
        """
        Delete a group and every expense recorded in it.

        Expenses go first and the group record last, so a cascade that
        fails part-way leaves the group in place and can be run again.
        Returns the number of expenses removed.
        """
        self._require_group("delete_group", group_id)

        removed = 0
        for expense in self.expenses_by_group(group_id):
            await self._persist(
                "delete_group",
                self._storage.remove_expense(expense.id),
                group_id=group_id,
                expense_id=expense.id,
            )
            self._expenses = [e for e in self._expenses if e.id != expense.id]
            removed += 1

        await self._persist("delete_group", self._storage.remove_group(group_id), group_id=group_id)
        self._groups = [g for g in self._groups if g.id != group_id]
        self._logger.group_deleted(group_id, removed)
        return removed

    async def add_member_to_group(self, group_id: str, friend_id: str) -> Group:
        group = self._require_group("add_member_to_group", group_id)
        self._find("add_member_to_group", self.get_friend, friend_id)
        if friend_id in group.friend_ids:
            return group

        updated = await self.update_group(group_id, friend_ids=[*group.friend_ids, friend_id])
        self._logger.member_added(group_id, friend_id)
        return updated

    async def remove_member_from_group(self, group_id: str, friend_id: str) -> Group:
        """
        Drop a friend from the group's friend list.

        Historical expenses keep the friend's shares and snapshotted name.
        """
        group = self._require_group("remove_member_from_group", group_id)
        if friend_id not in group.friend_ids:
            return group

        updated = await self.update_group(
            group_id,
            friend_ids=[fid for fid in group.friend_ids if fid != friend_id],
        )
        self._logger.member_removed(group_id, friend_id)
        return updated

    # =========================================================================
    # Friends and the local user
    # =========================================================================

    async def add_friend(self, friend: Friend) -> Friend:
        await self._persist("add_friend", self._storage.append_friend(friend), friend_id=friend.id)
        self._friends.append(friend)
        self._logger.friend_saved(friend.id)
        return friend

    async def update_friend(self, friend_id: str, **fields: Any) -> Friend:
        self._find("update_friend", self.get_friend, friend_id)
        changes = self._clean_changes("update_friend", fields)
        updated = await self._persist(
            "update_friend",
            self._storage.replace_friend(friend_id, changes),
            friend_id=friend_id,
        )
        self._replace_cached(self._friends, updated)
        self._logger.friend_saved(friend_id)
        return updated

    async def delete_friend(self, friend_id: str) -> None:
        """
        Remove a friend from the directory.

        Groups may keep the id; the resolver skips it from then on.
        """
        self._find("delete_friend", self.get_friend, friend_id)
        await self._persist(
            "delete_friend",
            self._storage.remove_friend(friend_id),
            friend_id=friend_id,
        )
        self._friends = [f for f in self._friends if f.id != friend_id]
        self._logger.friend_deleted(friend_id)

    async def update_user(self, user: User) -> User:
        await self._persist("update_user", self._storage.save_user(user))
        self._user = user
        return user

    # =========================================================================
    # Internals
    # =========================================================================

    async def _persist(self, operation: str, call: Awaitable[T], **details: Any) -> T:
        """Await a storage call, logging any failure before it propagates."""
        try:
            return await call
        except Exception as e:
            self._logger.operation_failed(operation, e, **details)
            raise

    def _fail(self, operation: str, error: Exception) -> Exception:
        self._logger.operation_failed(operation, error)
        return error

    def _check(self, result: ValidationResult, operation: str) -> None:
        if result.has_errors:
            raise self._fail(operation, ExpenseValidationError(result))

    def _find(self, operation: str, lookup, entity_id: str):
        try:
            return lookup(entity_id)
        except NotFoundError as e:
            raise self._fail(operation, e)

    def _require_group(self, operation: str, group_id: str) -> Group:
        return self._find(operation, self.get_group, group_id)

    def _resolve(
        self,
        operation: str,
        group: Optional[Group],
        user_id: str,
        candidates: list[ParticipantCandidate],
    ) -> ParticipantCandidate:
        if group is not None:
            found = find_participant(group, self._friends, self.user, user_id)
        else:
            found = next((c for c in candidates if c.user_id == user_id), None)
        if found is None:
            raise self._fail(operation, NotFoundError(f"Participant not found: {user_id}"))
        return found

    def _settlement_party(self, group: Group, user_id: str) -> ParticipantCandidate:
        found = find_settlement_party(group, self._friends, self.user, self._expenses, user_id)
        if found is None:
            raise self._fail("settle_between", NotFoundError(f"Participant not found: {user_id}"))
        return found

    def _clean_changes(self, operation: str, fields: dict[str, Any]) -> dict[str, Any]:
        blocked = _IMMUTABLE_FIELDS & set(fields)
        if blocked:
            raise self._fail(operation, ValueError(f"Cannot change {sorted(blocked)}"))
        return {**fields, "updated_at": utc_now()}

    @staticmethod
    def _replace_cached(items: list, updated) -> None:
        for idx, item in enumerate(items):
            if item.id == updated.id:
                items[idx] = updated
                return


def _split_failure(error: SplitError) -> ExpenseValidationError:
    return ExpenseValidationError(ValidationResult(
        schema_valid=True,
        semantic_valid=False,
        is_valid=False,
        issues=[ValidationIssue(
            field="participants",
            issue_type="split_mismatch",
            message=str(error),
            severity="error",
        )],
    ))


def create_tracker(
    backend: Optional[StorageBackend] = None,
    storage: Optional[LedgerStorageInterface] = None,
) -> ExpenseTracker:
    """
    Factory function to create a tracker on the configured backend.

    Args:
        backend: Overrides LEDGER_STORAGE_BACKEND.
        storage: Use this storage directly (tests, custom backends).

    The returned tracker is not loaded yet.
    """
    if storage is None:
        settings = get_settings().ledger
        backend = backend or settings.storage_backend

        if backend == StorageBackend.GOOGLE_SHEETS:
            storage = GoogleSheetsLedgerStorage(GoogleSheetsClient())
        elif backend == StorageBackend.JSON:
            storage = KeyValueLedgerStorage(JsonFileStore(settings.data_file))
        else:
            storage = KeyValueLedgerStorage(InMemoryStore())

    return ExpenseTracker(storage)
