"""Explicit session lifecycle.

A session is created at login/register, read by every authenticated call and
cleared at logout or as soon as the API answers 401.
"""

import logging
import threading

from .db import Database
from .exceptions import NotLoggedInError
from .models import Session, User

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the active session and keeps it in sync with the database."""

    def __init__(self, database: Database):
        """Initialize the manager, restoring a previously stored session."""
        self.db = database
        self._lock = threading.Lock()
        self._session: Session | None = database.get_session()

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def current(self) -> Session:
        """
        Get the active session.

        Raises:
            NotLoggedInError: If nobody is logged in
        """
        session = self._session
        if session is None:
            raise NotLoggedInError()
        return session

    @property
    def token(self) -> str | None:
        """Bearer token of the active session, or None."""
        session = self._session
        return session.token if session else None

    def start(self, session: Session):
        """Make a new session active and persist it."""
        with self._lock:
            self._session = session
            self.db.save_session(session)
        logger.info(f"Session started for {session.user.email or session.user.id}")

    def update_user(self, user: User):
        """Refresh the stored user details after a profile update."""
        with self._lock:
            if self._session is None:
                raise NotLoggedInError()
            self._session = self._session.model_copy(update={"user": user})
            self.db.save_session(self._session)

    def invalidate(self):
        """Clear the active session (logout or 401)."""
        with self._lock:
            if self._session is None:
                return
            self._session = None
            self.db.delete_session()
        logger.info("Session cleared")
