"""
Shared fixtures for SplitLedger tests.

No network: every tracker runs on the in-memory key-value store, and the
Google Sheets backend is exercised against fake worksheets.
"""

import asyncio
from decimal import Decimal

import pytest

from splitledger.models import (
    Expense,
    ExpenseCategory,
    ExpenseParticipant,
    Friend,
    Group,
    SplitType,
    User,
)
from splitledger.services.storage import InMemoryStore, KeyValueLedgerStorage
from splitledger.tracker import ExpenseTracker


@pytest.fixture
def make_expense():
    """Factory for expenses; shares maps user id -> share amount."""

    def _make(
        amount,
        paid_by,
        shares,
        group_id=None,
        is_settled=False,
        category=ExpenseCategory.OTHER,
        split_type=SplitType.EQUAL,
        title="Dinner",
    ):
        return Expense(
            title=title,
            amount=Decimal(str(amount)),
            paid_by=paid_by,
            group_id=group_id,
            is_settled=is_settled,
            category=category,
            split_type=split_type,
            participants=[
                ExpenseParticipant(user_id=uid, name=uid.capitalize(), amount=Decimal(str(share)))
                for uid, share in shares.items()
            ],
        )

    return _make


@pytest.fixture
def local_user():
    return User(id="me", name="Me", email="me@example.com")


@pytest.fixture
def alice():
    return Friend(id="alice", name="Alice")


@pytest.fixture
def bob():
    return Friend(id="bob", name="Bob")


@pytest.fixture
def trip(alice, bob):
    return Group(id="trip", name="Lisbon Trip", currency="EUR", friend_ids=[alice.id, bob.id])


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def storage(store):
    return KeyValueLedgerStorage(store)


@pytest.fixture
def tracker(storage, local_user):
    """Loaded tracker holding only the local user."""
    asyncio.run(storage.save_user(local_user))
    tracker = ExpenseTracker(storage)
    asyncio.run(tracker.load())
    return tracker


@pytest.fixture
def trip_tracker(tracker, alice, bob, trip):
    """Tracker with Alice, Bob and the trip group stored."""
    asyncio.run(tracker.add_friend(alice))
    asyncio.run(tracker.add_friend(bob))
    asyncio.run(tracker.add_group(trip))
    return tracker
