"""
Core Data Models for SplitLedger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage
4. Keep a snapshot of display names on every expense participant

DESIGN DECISION: Amounts are Decimal everywhere.
Balances are sums over many expenses, and binary floating point
drift is not acceptable for money.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current time used for every created/updated stamp."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a unique, stable identifier for a stored entity."""
    return uuid4().hex


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent aggregation in the category views.
    """
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    TRAVEL = "travel"
    EDUCATION = "education"
    OTHER = "other"


class SplitType(str, Enum):
    """
    How the participant shares were derived.

    Descriptive only: balances always use the stored per-participant share.
    """
    EQUAL = "equal"
    CUSTOM = "custom"
    PERCENTAGE = "percentage"


def _normalize_currency(v: str) -> str:
    code = v.strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(f"Invalid currency code: {v!r}")
    return code


# =============================================================================
# PEOPLE
# =============================================================================

class User(BaseModel):
    """The local user of this ledger."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=200)
    default_currency: str = Field(default="USD")
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('default_currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _normalize_currency(v)


class Friend(BaseModel):
    """
    Someone the local user shares expenses with.

    Only used to resolve display names. A friend has no owed-amount
    semantics of their own.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=200)
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class GroupMember(BaseModel):
    """A member entry stored on a group."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = None
    joined_at: datetime = Field(default_factory=utc_now)


class Group(BaseModel):
    """
    A set of people sharing expenses.

    Membership for balance purposes is the local user plus friend_ids,
    resolved through the friend directory. `members` keeps the explicit
    member entries the group was created with.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    color: str = Field(default="#6366F1")
    currency: str = Field(default="USD")
    members: list[GroupMember] = Field(default_factory=list)
    friend_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _normalize_currency(v)

    @field_validator('friend_ids')
    @classmethod
    def dedupe_friend_ids(cls, v: list[str]) -> list[str]:
        """Keep the first occurrence of every friend id, in order."""
        return list(dict.fromkeys(v))

    def member_name(self, user_id: str) -> Optional[str]:
        for member in self.members:
            if member.user_id == user_id:
                return member.name
        return None


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseParticipant(BaseModel):
    """
    One participant's owed share on an expense.

    `name` is a snapshot taken when the expense was written. It is never
    joined against the friend directory afterwards.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Owed share in the expense currency"
    )
    is_settled: bool = False
    settled_at: Optional[datetime] = None


class Expense(BaseModel):
    """
    A single recorded expense.

    CRITICAL: participant shares are the authoritative owed amounts.
    `split_type` only records how they were derived.

    Shares SHOULD sum to `amount`; that is enforced by the split
    calculators and the validator, not here.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: str = Field(default_factory=new_id)

    # Description
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)

    # Money
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Total amount paid by the payer"
    )
    currency: str = Field(default="USD")
    category: ExpenseCategory = ExpenseCategory.OTHER

    # Who paid and who shares
    paid_by: str = Field(..., min_length=1)
    group_id: Optional[str] = None
    participants: list[ExpenseParticipant] = Field(default_factory=list)
    split_type: SplitType = SplitType.EQUAL

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Set by bulk group settlement
    is_settled: bool = False

    # Receipt image reference
    receipt: Optional[str] = None

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _normalize_currency(v)

    @field_validator('group_id')
    @classmethod
    def blank_group_is_personal(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode='after')
    def validate_participants(self) -> 'Expense':
        """Participant ids must be unique within one expense."""
        ids = [p.user_id for p in self.participants]
        if len(ids) != len(set(ids)):
            raise ValueError("Participant appears more than once on the expense")
        return self

    @property
    def is_personal(self) -> bool:
        return self.group_id is None

    @property
    def share_total(self) -> Decimal:
        return sum((p.amount for p in self.participants), Decimal("0"))

    def participant(self, user_id: str) -> Optional[ExpenseParticipant]:
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class Balance(BaseModel):
    """
    Net balance of one participant.

    Sign convention: positive = owes money into the pool (net debtor),
    negative = is owed money by the pool (net creditor).
    """

    user_id: str
    name: str
    amount: Decimal = Decimal("0")

    @property
    def owes(self) -> bool:
        return self.amount > 0

    @property
    def is_owed(self) -> bool:
        return self.amount < 0


class GroupBalance(BaseModel):
    """Balances between the members of one group."""

    group_id: str
    group_name: str
    balances: list[Balance] = Field(default_factory=list)
    total_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Total absolute exposure: sum of |balance| / 2"
    )

    def balance_for(self, user_id: str) -> Optional[Balance]:
        for balance in self.balances:
            if balance.user_id == user_id:
                return balance
        return None


class LedgerSnapshot(BaseModel):
    """Everything the ledger holds, as exported by the tracker."""

    exported_at: datetime = Field(default_factory=utc_now)
    user: Optional[User] = None
    expenses: list[Expense] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)
    friends: list[Friend] = Field(default_factory=list)
