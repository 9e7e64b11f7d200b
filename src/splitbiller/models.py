"""Pydantic domain models for SplitBiller."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

SplitType = Literal["equal", "percentage", "exact"]

# ============================================================================
# API Models
# ============================================================================


class User(BaseModel):
    """A SplitBiller user (also used for group members and payers)."""

    id: str
    name: str
    email: str = ""
    username: str | None = None
    phone: str | None = None


class Split(BaseModel):
    """A member's assigned portion of an expense."""

    user: User
    share: Decimal
    settled: bool = False
    settled_at: datetime | None = None


class Expense(BaseModel):
    """An expense recorded in a group."""

    id: str
    title: str
    amount: Decimal
    paid_by: User
    split_type: SplitType = "equal"
    splits: list[Split] = Field(default_factory=list)
    category: str = "general"
    notes: str | None = None
    created_at: datetime
    group_id: str | None = None
    group_name: str | None = None

    def get_split(self, user_id: str) -> Split | None:
        """Get the split for a specific user, or None if they are not part of it."""
        for split in self.splits:
            if split.user.id == user_id:
                return split
        return None

    def is_paid_by(self, user_id: str) -> bool:
        """Check whether the given user paid for this expense."""
        return self.paid_by.id == user_id


class Group(BaseModel):
    """A group of members sharing expenses."""

    id: str
    name: str
    members: list[User] = Field(default_factory=list)
    created_by: User | None = None
    created_at: datetime | None = None

    def get_member(self, user_id: str) -> User | None:
        """Find a member by ID."""
        for member in self.members:
            if member.id == user_id:
                return member
        return None

    def is_creator(self, user_id: str) -> bool:
        """Check whether the given user created the group."""
        return self.created_by is not None and self.created_by.id == user_id


class Invitation(BaseModel):
    """A pending invitation to join a group."""

    id: str
    group_id: str
    group_name: str = ""
    email: str = ""
    invited_by: str | None = None
    status: str = "pending"
    message: str | None = None
    created_at: datetime | None = None


class InviteInfo(BaseModel):
    """Result of verifying an invite link token."""

    group_id: str
    group_name: str = ""
    email: str = ""
    has_account: bool = False


class UserStats(BaseModel):
    """Server-computed balance statistics across all of a user's groups."""

    total_owed: Decimal = Decimal("0")
    total_owing: Decimal = Decimal("0")
    overall_balance: Decimal = Decimal("0")
    total_groups: int = 0
    total_expenses: int = 0


# ============================================================================
# Session Models
# ============================================================================


class Session(BaseModel):
    """An authenticated session: the bearer token and who it belongs to."""

    token: str
    user: User
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def user_id(self) -> str:
        return self.user.id


# ============================================================================
# Derived Balance Models
# ============================================================================


class UserBalanceSummary(BaseModel):
    """Current user's aggregate share and contribution within a group.

    Sign convention: positive net_balance means the user is a net creditor.
    """

    total_share: Decimal = Decimal("0")
    total_contribution: Decimal = Decimal("0")
    net_balance: Decimal = Decimal("0")


class DirectDebt(BaseModel):
    """Unsettled pairwise balance between the current user and one member."""

    member: User
    amount: Decimal  # always positive
    is_current_user_creditor: bool  # True = member owes the current user


class SettledPayment(BaseModel):
    """A settled split, as shown in the settlement history."""

    expense_id: str
    expense_title: str
    counterparty: User
    amount: Decimal
    created_at: datetime
    settled_at: datetime | None = None


class GroupBalances(BaseModel):
    """A snapshot of everything the group view derives from one fetch.

    generation increases with every fetch started for the same group; a
    snapshot from an older generation is never published over a newer one.
    """

    group: Group
    expenses: list[Expense]
    summary: UserBalanceSummary
    direct_debts: list[DirectDebt]
    others_yet_to_pay: Decimal
    others_total_contributions: Decimal
    total_expenses: Decimal
    payments_received: list[SettledPayment] = Field(default_factory=list)
    payments_made: list[SettledPayment] = Field(default_factory=list)
    generation: int = 0


class JoinOutcome(str, Enum):
    """What happened when following an invite link."""

    JOINED = "joined"
    ALREADY_MEMBER = "already_member"
    LOGIN_REQUIRED = "login_required"
    REGISTER_REQUIRED = "register_required"


# ============================================================================
# Request Models
# ============================================================================


class ExpenseDraft(BaseModel):
    """A validated expense ready to be sent to the API.

    For equal splits only selected_member_ids is sent; for percentage and
    exact splits, splits maps each selected member to a percentage or amount.
    """

    title: str
    amount: Decimal
    group_id: str
    split_type: SplitType = "equal"
    selected_member_ids: list[str] = Field(default_factory=list)
    splits: dict[str, Decimal] = Field(default_factory=dict)
    category: str = "general"
    notes: str = ""

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body for POST /api/expenses."""
        payload: dict[str, Any] = {
            "title": self.title,
            "amount": float(self.amount),
            "groupId": self.group_id,
            "splitType": self.split_type,
            "category": self.category,
            "notes": self.notes,
        }
        if self.split_type == "equal":
            payload["selectedMembers"] = list(self.selected_member_ids)
        else:
            payload["splits"] = {
                member_id: float(value) for member_id, value in self.splits.items()
            }
        return payload
