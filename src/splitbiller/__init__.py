"""SplitBiller - Split expenses with your groups and keep balances straight."""

__version__ = "0.1.0"

from .balances import (
    compute_direct_debts,
    compute_others_total_contributions,
    compute_others_yet_to_pay,
    compute_user_balance_summary,
    reconcile_group,
)
from .config import Settings, load_settings
from .db import Database
from .models import (
    DirectDebt,
    Expense,
    Group,
    GroupBalances,
    Session,
    Split,
    User,
    UserBalanceSummary,
)
from .service import SplitBillerService
from .session import SessionManager

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "DirectDebt",
    "Expense",
    "Group",
    "GroupBalances",
    "Session",
    "Split",
    "User",
    "UserBalanceSummary",
    "compute_direct_debts",
    "compute_others_total_contributions",
    "compute_others_yet_to_pay",
    "compute_user_balance_summary",
    "reconcile_group",
    "SplitBillerService",
    "SessionManager",
]
