"""Service layer that composes the API client, session and balance logic.

Every operation opens a short-lived client. Balances are never patched in
place: after any mutation the group's snapshot is discarded and rebuilt from
a fresh fetch.
"""

import itertools
import logging
import threading
from collections.abc import Callable

from .balances import expenses_to_settle_with, reconcile_group
from .clients.api import SplitBillerClient
from .config import Settings
from .exceptions import APIError, NothingToSettleError, SessionExpiredError
from .expenses import ExpenseFilter, filter_and_sort_expenses
from .models import (
    Expense,
    ExpenseDraft,
    Group,
    GroupBalances,
    Invitation,
    InviteInfo,
    JoinOutcome,
    Session,
    User,
    UserStats,
)
from .notifications import InvitationPoller
from .session import SessionManager

logger = logging.getLogger(__name__)


class SplitBillerService:
    """Service for SplitBiller groups, expenses, balances and invitations."""

    def __init__(self, settings: Settings, sessions: SessionManager):
        """Initialize the service."""
        self.settings = settings
        self.sessions = sessions

        self._lock = threading.Lock()
        self._generation_counter = itertools.count(1)
        self._generations: dict[str, int] = {}
        self._snapshots: dict[str, GroupBalances] = {}

    def _client(self, authenticated: bool = True) -> SplitBillerClient:
        """
        Create an API client.

        Authenticated clients carry the session token and clear the session
        on any 401 response.

        Raises:
            NotLoggedInError: If authenticated and no session is active
        """
        token = self.sessions.current.token if authenticated else self.sessions.token
        return SplitBillerClient(
            self.settings.splitbiller_api_url,
            token=token,
            timeout=self.settings.request_timeout,
            on_unauthorized=self.sessions.invalidate,
        )

    # ========================================================================
    # Auth
    # ========================================================================

    def login(self, email: str, password: str) -> Session:
        """Log in and start a new session."""
        with self._client(authenticated=False) as client:
            session = client.login(email, password)

        self.sessions.start(session)
        self._forget_snapshots()
        return session

    def register(
        self, name: str, email: str, password: str, phone: str = ""
    ) -> Session:
        """Create an account and start a new session."""
        with self._client(authenticated=False) as client:
            session = client.register(name, email, password, phone)

        self.sessions.start(session)
        self._forget_snapshots()
        return session

    def logout(self):
        """End the current session."""
        self.sessions.invalidate()
        self._forget_snapshots()

    def get_profile(self) -> User:
        """Fetch the current user's profile."""
        with self._client() as client:
            return client.get_me()

    def update_profile(self, **fields: str) -> User:
        """Update the current user's profile and the stored session user."""
        with self._client() as client:
            user = client.update_me(**fields)

        self.sessions.update_user(user)
        logger.info("Profile updated")
        return user

    def get_user_stats(self) -> UserStats:
        """Fetch server-computed stats across all groups."""
        with self._client() as client:
            return client.get_user_stats()

    # ========================================================================
    # Groups & balances
    # ========================================================================

    def list_groups(self) -> list[Group]:
        """List the current user's groups."""
        with self._client() as client:
            groups: list[Group] = client.get_groups()

        logger.info(f"Fetched {len(groups)} groups")
        return groups

    def get_group(self, group_id: str) -> Group:
        """Fetch one group with its members, without touching balances."""
        with self._client() as client:
            return client.get_group(group_id)

    def create_group(self, name: str) -> Group | None:
        """Create a group."""
        if not name.strip():
            raise ValueError("Group name is required")

        with self._client() as client:
            return client.create_group(name.strip())

    def delete_group(self, group_id: str):
        """Delete a group and drop its snapshot."""
        with self._client() as client:
            client.delete_group(group_id)

        self._forget_group(group_id)
        logger.info(f"Deleted group {group_id}")

    def load_group_balances(self, group_id: str) -> GroupBalances:
        """
        Fetch a group and its expenses, then recompute every balance.

        If a newer fetch for the same group has started by the time this one
        completes, this result is discarded (last fetch wins). The newer
        snapshot is returned instead once it has been published.

        Args:
            group_id: The group ID

        Returns:
            The published balance snapshot
        """
        user_id = self.sessions.current.user_id
        generation = self._begin_fetch(group_id)

        with self._client() as client:
            group = client.get_group(group_id)
            expenses = client.get_group_expenses(group_id)

        balances = reconcile_group(user_id, group, expenses, generation=generation)

        logger.info(
            f"Reconciled {len(expenses)} expenses in '{group.name}': "
            f"net {balances.summary.net_balance:.2f}, "
            f"{len(balances.direct_debts)} open debts"
        )

        return self._publish(group_id, balances)

    def latest_balances(self, group_id: str) -> GroupBalances | None:
        """The most recently published snapshot for a group, if any."""
        with self._lock:
            return self._snapshots.get(group_id)

    def refresh_group_balances(self, group_id: str) -> GroupBalances:
        """Discard the group's snapshot and recompute it from a fresh fetch."""
        with self._lock:
            self._snapshots.pop(group_id, None)
        return self.load_group_balances(group_id)

    def _begin_fetch(self, group_id: str) -> int:
        # Generations come from one counter shared by all groups, so they keep
        # increasing even after the per-group entries are forgotten
        with self._lock:
            generation = next(self._generation_counter)
            self._generations[group_id] = generation
            return generation

    def _publish(self, group_id: str, balances: GroupBalances) -> GroupBalances:
        """
        Store a finished fetch unless a newer fetch for the group has started.

        A stale result is never stored. The published snapshot is returned in
        its place when there is one; otherwise the stale result is returned
        to its caller as-is.
        """
        with self._lock:
            latest = self._generations.get(group_id)
            if latest is None or balances.generation < latest:
                published = self._snapshots.get(group_id)
                logger.debug(
                    f"Discarding stale snapshot for group {group_id} "
                    f"(generation {balances.generation}, latest {latest})"
                )
                return published if published is not None else balances

            self._snapshots[group_id] = balances
            return balances

    def _forget_group(self, group_id: str):
        with self._lock:
            self._snapshots.pop(group_id, None)
            self._generations.pop(group_id, None)

    def _forget_snapshots(self):
        with self._lock:
            self._snapshots.clear()
            self._generations.clear()

    # ========================================================================
    # Expenses
    # ========================================================================

    def list_expenses(self, filters: ExpenseFilter | None = None) -> list[Expense]:
        """List the user's expenses across groups, filtered and sorted."""
        with self._client() as client:
            expenses: list[Expense] = client.get_expenses()

        return filter_and_sort_expenses(expenses, filters)

    def get_expense(self, expense_id: str) -> Expense:
        """Fetch one expense."""
        with self._client() as client:
            return client.get_expense(expense_id)

    def add_expense(self, draft: ExpenseDraft) -> GroupBalances:
        """Create an expense and return the group's recomputed balances."""
        with self._client() as client:
            client.create_expense(draft)

        logger.info(f"Added expense '{draft.title}' ({draft.amount:.2f})")
        return self.refresh_group_balances(draft.group_id)

    def delete_expense(
        self, expense_id: str, group_id: str | None = None
    ) -> GroupBalances | None:
        """
        Delete an expense.

        Returns:
            The group's recomputed balances when group_id is given, else None
        """
        with self._client() as client:
            client.delete_expense(expense_id)

        logger.info(f"Deleted expense {expense_id}")
        if group_id is None:
            return None
        return self.refresh_group_balances(group_id)

    def settle_expense(
        self, expense_id: str, group_id: str | None = None
    ) -> GroupBalances | None:
        """Mark every split of an expense settled."""
        with self._client() as client:
            client.settle_expense(expense_id)

        logger.info(f"Settled expense {expense_id}")
        if group_id is None:
            return None
        return self.refresh_group_balances(group_id)

    def settle_split(
        self, expense_id: str, user_id: str, group_id: str | None = None
    ) -> GroupBalances | None:
        """Mark one member's split of an expense settled."""
        with self._client() as client:
            client.settle_split(expense_id, user_id)

        logger.info(f"Settled split of {user_id} on expense {expense_id}")
        if group_id is None:
            return None
        return self.refresh_group_balances(group_id)

    def settle_debt_with(self, group_id: str, member_id: str) -> GroupBalances:
        """
        Settle everything a member owes the current user in a group.

        Settles the member's unsettled split on every expense the current user
        paid, one call per expense, then recomputes the group's balances.

        Raises:
            NothingToSettleError: If the member has no unsettled splits to settle
        """
        user_id = self.sessions.current.user_id

        with self._client() as client:
            group = client.get_group(group_id)
            expenses = client.get_group_expenses(group_id)

            relevant = expenses_to_settle_with(user_id, member_id, expenses)
            if not relevant:
                member = group.get_member(member_id)
                raise NothingToSettleError(member.name if member else member_id)

            for expense in relevant:
                client.settle_split(expense.id, member_id)

        logger.info(f"Settled {len(relevant)} expenses with member {member_id}")
        return self.refresh_group_balances(group_id)

    # ========================================================================
    # Invitations
    # ========================================================================

    def list_group_invitations(self, group_id: str) -> list[Invitation]:
        """List pending invitations of a group."""
        with self._client() as client:
            invitations: list[Invitation] = client.get_group_invitations(group_id)

        logger.info(f"Loaded {len(invitations)} valid invitations")
        return invitations

    def invite_member(self, group_id: str, email: str, message: str = ""):
        """Invite someone to a group by email."""
        if not email.strip():
            raise ValueError("Email is required")

        with self._client() as client:
            client.invite_member(group_id, email.strip(), message)

        logger.info(f"Invitation sent to {email}")

    def resend_invitation(self, group_id: str, invitation_id: str):
        """Resend a pending group invitation."""
        with self._client() as client:
            client.resend_invitation(group_id, invitation_id)

    def list_invitations(self) -> list[Invitation]:
        """List invitations addressed to the current user."""
        with self._client() as client:
            return client.get_invitations()

    def accept_invitation(self, invitation_id: str):
        """Accept an invitation."""
        with self._client() as client:
            client.accept_invitation(invitation_id)

    def reject_invitation(self, invitation_id: str):
        """Reject an invitation."""
        with self._client() as client:
            client.reject_invitation(invitation_id)

    def join_with_invite(self, token: str) -> tuple[JoinOutcome, InviteInfo]:
        """
        Follow an invite link.

        When logged in, joins the group directly (being a member already is
        not an error). Otherwise tells the caller whether the invitee should
        log in or register first.

        Returns:
            Tuple of (outcome, invite info)
        """
        with self._client(authenticated=False) as client:
            info = client.verify_invite(token)

            if self.sessions.is_active:
                try:
                    client.join_group(token)
                    logger.info(f"Joined group {info.group_id}")
                    return JoinOutcome.JOINED, info
                except SessionExpiredError:
                    logger.info("Session expired while joining, login required")
                except APIError as e:
                    if e.status_code == 400 and "already a member" in str(e):
                        return JoinOutcome.ALREADY_MEMBER, info
                    raise

        if info.has_account:
            return JoinOutcome.LOGIN_REQUIRED, info
        return JoinOutcome.REGISTER_REQUIRED, info

    def watch_invitations(
        self,
        on_new: Callable[[list[Invitation]], None],
        interval: float | None = None,
    ) -> InvitationPoller:
        """Create (but do not start) a poller for new invitations."""
        return InvitationPoller(
            fetch=self.list_invitations,
            on_new=on_new,
            interval=interval or self.settings.notification_poll_interval,
        )
