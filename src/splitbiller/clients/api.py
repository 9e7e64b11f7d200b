"""SplitBiller REST API client."""

import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

from ..exceptions import APIError, NotFoundError, SessionExpiredError
from ..models import (
    Expense,
    ExpenseDraft,
    Group,
    Invitation,
    InviteInfo,
    Session,
    Split,
    User,
    UserStats,
)

logger = logging.getLogger(__name__)

# Mongo ObjectIDs are 24 hex characters
OBJECT_ID_LENGTH = 24


def _parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO timestamp from the API (accepts a trailing Z)."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _object_id(data: dict[str, Any]) -> str:
    """Get an object's identifier (the API uses _id, plain id is accepted too)."""
    return str(data.get("_id") or data.get("id") or "")


def _parse_user(data: dict[str, Any] | str) -> User:
    """Parse a populated user object, or a bare user ID."""
    if isinstance(data, str):
        return User(id=data, name="")
    return User(
        id=_object_id(data),
        name=data.get("name", ""),
        email=data.get("email", ""),
        username=data.get("username"),
        phone=data.get("phone"),
    )


def _parse_expense(data: dict[str, Any]) -> Expense:
    """Parse an expense, including its splits and (optional) populated group."""
    splits = []
    for split_data in data.get("splits", []):
        splits.append(
            Split(
                user=_parse_user(split_data["user"]),
                share=Decimal(str(split_data.get("share", 0))),
                settled=split_data.get("settled", False),
                settled_at=_parse_datetime(split_data.get("settledAt")),
            )
        )

    group_data = data.get("groupId")
    group_id: str | None = None
    group_name: str | None = None
    if isinstance(group_data, dict):
        group_id = _object_id(group_data)
        group_name = group_data.get("name")
    elif group_data:
        group_id = str(group_data)

    return Expense(
        id=_object_id(data),
        title=data.get("title", ""),
        amount=Decimal(str(data.get("amount", 0))),
        paid_by=_parse_user(data["paidBy"]),
        split_type=data.get("splitType", "equal"),
        splits=splits,
        category=data.get("category") or "general",
        notes=data.get("notes"),
        created_at=_parse_datetime(data["createdAt"]),
        group_id=group_id,
        group_name=group_name,
    )


def _parse_group(data: dict[str, Any]) -> Group:
    created_by = data.get("createdBy")
    return Group(
        id=_object_id(data),
        name=data.get("name", ""),
        members=[_parse_user(member) for member in data.get("members", [])],
        created_by=_parse_user(created_by) if created_by else None,
        created_at=_parse_datetime(data.get("createdAt")),
    )


def _parse_invitation(data: dict[str, Any]) -> Invitation:
    group_data = data.get("groupId") or data.get("group") or {}
    if isinstance(group_data, dict):
        group_id = _object_id(group_data)
        group_name = group_data.get("name", "")
    else:
        group_id = str(group_data)
        group_name = data.get("groupName", "")

    invited_by = data.get("invitedBy")
    if isinstance(invited_by, dict):
        invited_by = invited_by.get("name")

    return Invitation(
        id=_object_id(data),
        group_id=group_id,
        group_name=group_name,
        email=data.get("email", ""),
        invited_by=invited_by,
        status=data.get("status", "pending"),
        message=data.get("message"),
        created_at=_parse_datetime(data.get("createdAt")),
    )


def _parse_session(data: dict[str, Any]) -> Session:
    """Parse a login/register response (user fields plus token)."""
    return Session(token=data["token"], user=_parse_user(data))


def _error_message(response: httpx.Response, default: str) -> str:
    """Extract the API's error message from a response body."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return default


class SplitBillerClient:
    """Client for the SplitBiller REST API."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        on_unauthorized: Callable[[], None] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the SplitBiller client.

        Args:
            base_url: API root, e.g. http://localhost:5000
            token: Bearer token of the active session, if any
            timeout: Request timeout in seconds
            on_unauthorized: Called before raising on any 401 response
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url
        self.on_unauthorized = on_unauthorized

        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        invalidate_on_401: bool = True,
        **kwargs: Any,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            SessionExpiredError: On 401 (after calling on_unauthorized)
            NotFoundError: On 404
            APIError: On any other error status or transport failure
        """
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"Could not reach SplitBiller API at {self.base_url}: {e}")
            raise APIError(f"Could not reach SplitBiller API: {e}") from e

        if response.status_code == 401 and invalidate_on_401:
            logger.warning(f"{method} {path} returned 401, clearing session")
            if self.on_unauthorized:
                self.on_unauthorized()
            raise SessionExpiredError()

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(response, f"{method} {path} failed")
            logger.error(f"SplitBiller API error: {e}")
            logger.debug(f"Response body: {response.text}")
            if response.status_code == 404:
                raise NotFoundError(message, status_code=404) from e
            raise APIError(message, status_code=response.status_code) from e

        if not response.content:
            return None
        return response.json()

    # ========================================================================
    # Auth
    # ========================================================================

    def login(self, email: str, password: str) -> Session:
        """Log in and return the new session."""
        data = self._request(
            "POST",
            "/api/auth/login",
            invalidate_on_401=False,
            json={"email": email, "password": password},
        )
        return _parse_session(data)

    def register(self, name: str, email: str, password: str, phone: str = "") -> Session:
        """Create an account and return the new session."""
        data = self._request(
            "POST",
            "/api/auth/register",
            invalidate_on_401=False,
            json={"name": name, "email": email, "phone": phone, "password": password},
        )
        return _parse_session(data)

    def get_me(self) -> User:
        """Get the authenticated user's profile."""
        return _parse_user(self._request("GET", "/api/auth/me"))

    def update_me(self, **fields: str) -> User:
        """
        Update the authenticated user's profile.

        Only non-empty fields are sent (so an empty password is left unchanged).
        """
        payload = {key: value for key, value in fields.items() if value}
        return _parse_user(self._request("PUT", "/api/auth/me", json=payload))

    def get_user_stats(self) -> UserStats:
        """Get server-computed balance stats across all groups."""
        data = self._request("GET", "/api/users/stats") or {}
        return UserStats(
            total_owed=Decimal(str(data.get("totalOwed", 0))),
            total_owing=Decimal(str(data.get("totalOwing", 0))),
            overall_balance=Decimal(str(data.get("overallBalance", 0))),
            total_groups=data.get("totalGroups", 0),
            total_expenses=data.get("totalExpenses", 0),
        )

    # ========================================================================
    # Groups
    # ========================================================================

    def get_groups(self) -> list[Group]:
        """List the groups the user belongs to."""
        return [_parse_group(item) for item in self._request("GET", "/api/groups")]

    def create_group(self, name: str) -> Group | None:
        """Create a group."""
        data = self._request("POST", "/api/groups", json={"name": name})
        return _parse_group(data) if data else None

    def get_group(self, group_id: str) -> Group:
        """Get a group with its members."""
        return _parse_group(self._request("GET", f"/api/groups/{group_id}"))

    def delete_group(self, group_id: str) -> None:
        """Delete a group."""
        self._request("DELETE", f"/api/groups/{group_id}")

    def get_group_expenses(self, group_id: str) -> list[Expense]:
        """List all expenses of a group."""
        data = self._request("GET", f"/api/groups/{group_id}/expenses")
        return [_parse_expense(item) for item in data or []]

    def get_group_invitations(self, group_id: str) -> list[Invitation]:
        """
        List pending invitations of a group.

        Entries without a valid 24-character object ID are dropped.
        """
        data = self._request("GET", f"/api/groups/{group_id}/invitations")
        if not isinstance(data, list):
            logger.error(f"Invalid invitations data received: {data!r}")
            return []

        invitations = []
        for item in data:
            invite_id = _object_id(item) if isinstance(item, dict) else ""
            if len(invite_id) != OBJECT_ID_LENGTH:
                logger.warning(f"Skipping invitation with invalid ID: {item!r}")
                continue
            invitations.append(_parse_invitation(item))

        if len(invitations) != len(data):
            logger.warning(
                f"Filtered out {len(data) - len(invitations)} invalid invitations"
            )
        return invitations

    def invite_member(self, group_id: str, email: str, message: str = "") -> None:
        """Send an invitation email for a group."""
        self._request(
            "POST",
            f"/api/groups/{group_id}/invite",
            json={"email": email, "message": message},
        )

    def resend_invitation(self, group_id: str, invitation_id: str) -> None:
        """Resend a pending group invitation."""
        self._request("POST", f"/api/groups/{group_id}/invite/resend/{invitation_id}")

    def verify_invite(self, token: str) -> InviteInfo:
        """Look up an invite link token."""
        data = self._request(
            "GET", f"/api/groups/verify-invite/{token}", invalidate_on_401=False
        )
        return InviteInfo(
            group_id=str(data["groupId"]),
            group_name=data.get("groupName", ""),
            email=data.get("email", ""),
            has_account=data.get("hasAccount", False),
        )

    def join_group(self, token: str) -> None:
        """Join the group behind an invite link token."""
        self._request("GET", f"/api/groups/join/{token}")

    # ========================================================================
    # Expenses
    # ========================================================================

    def get_expenses(self) -> list[Expense]:
        """List the user's expenses across all groups."""
        data = self._request("GET", "/api/expenses")
        return [_parse_expense(item) for item in data or []]

    def get_expense(self, expense_id: str) -> Expense:
        """Get one expense."""
        return _parse_expense(self._request("GET", f"/api/expenses/{expense_id}"))

    def create_expense(self, draft: ExpenseDraft) -> None:
        """Create an expense from a validated draft."""
        payload = draft.to_payload()
        logger.debug(f"Expense payload: {payload}")
        self._request("POST", "/api/expenses", json=payload)

    def delete_expense(self, expense_id: str) -> None:
        """Delete an expense."""
        self._request("DELETE", f"/api/expenses/{expense_id}")

    def settle_expense(self, expense_id: str) -> None:
        """Mark every split of an expense as settled."""
        self._request("POST", f"/api/expenses/{expense_id}/settle")

    def settle_split(self, expense_id: str, user_id: str) -> None:
        """Mark one member's split of an expense as settled."""
        self._request(
            "POST",
            f"/api/expenses/{expense_id}/settle-split",
            json={"userId": user_id},
        )

    # ========================================================================
    # Invitations
    # ========================================================================

    def get_invitations(self) -> list[Invitation]:
        """List invitations addressed to the authenticated user."""
        data = self._request("GET", "/api/invitations")
        return [_parse_invitation(item) for item in data or []]

    def accept_invitation(self, invitation_id: str) -> None:
        """Accept an invitation."""
        self._request("POST", f"/api/invitations/{invitation_id}/accept")

    def reject_invitation(self, invitation_id: str) -> None:
        """Reject an invitation."""
        self._request("POST", f"/api/invitations/{invitation_id}/reject")
