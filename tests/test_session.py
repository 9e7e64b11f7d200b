"""Tests for session persistence and lifecycle."""

import pytest

from splitbiller.db import Database
from splitbiller.exceptions import NotLoggedInError
from splitbiller.models import Session, User
from splitbiller.session import SessionManager


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def session():
    return Session(
        token="tok-1", user=User(id="a", name="Alice", email="alice@example.com")
    )


class TestDatabase:
    """Tests for the session table."""

    def test_empty_database_has_no_session(self, db):
        assert db.get_session() is None

    def test_save_and_load(self, db, session):
        """A saved session loads back unchanged."""
        db.save_session(session)

        loaded = db.get_session()
        assert loaded == session

    def test_save_replaces_previous_session(self, db, session):
        """Only one session is ever stored."""
        db.save_session(session)
        db.save_session(
            Session(token="tok-2", user=User(id="b", name="Bob", email="b@x"))
        )

        loaded = db.get_session()
        assert loaded.token == "tok-2"
        assert loaded.user.id == "b"

    def test_delete(self, db, session):
        db.save_session(session)
        db.delete_session()

        assert db.get_session() is None


class TestSessionManager:
    """Tests for the session lifecycle."""

    def test_current_without_session_raises(self, db):
        """Reading the session while logged out is an error."""
        manager = SessionManager(db)

        assert manager.is_active is False
        assert manager.token is None
        with pytest.raises(NotLoggedInError):
            _ = manager.current

    def test_start_persists(self, db, session):
        """A started session survives a new manager (next CLI run)."""
        SessionManager(db).start(session)

        restored = SessionManager(db)
        assert restored.current.user_id == "a"
        assert restored.token == "tok-1"

    def test_invalidate_clears_memory_and_storage(self, db, session):
        """Invalidation (logout or 401) clears both copies."""
        manager = SessionManager(db)
        manager.start(session)

        manager.invalidate()

        assert manager.is_active is False
        assert db.get_session() is None

    def test_invalidate_twice_is_harmless(self, db):
        manager = SessionManager(db)

        manager.invalidate()
        manager.invalidate()

        assert manager.is_active is False

    def test_update_user_keeps_token(self, db, session):
        """Profile updates replace the user but not the token."""
        manager = SessionManager(db)
        manager.start(session)

        manager.update_user(User(id="a", name="Alicia", email="alicia@example.com"))

        assert manager.current.token == "tok-1"
        assert db.get_session().user.name == "Alicia"

    def test_update_user_requires_session(self, db):
        with pytest.raises(NotLoggedInError):
            SessionManager(db).update_user(User(id="a", name="Alice"))
