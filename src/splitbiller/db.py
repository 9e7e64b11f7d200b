"""SQLite storage for the active SplitBiller session."""

import sqlite3
from datetime import datetime
from pathlib import Path

from .models import Session, User


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Single-row table: at most one active session
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS session (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                token TEXT NOT NULL,
                user_id TEXT NOT NULL,
                user_name TEXT NOT NULL,
                user_email TEXT NOT NULL DEFAULT '',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    # ========================================================================
    # Session operations
    # ========================================================================

    def save_session(self, session: Session):
        """Store the session, replacing any previous one."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO session (id, token, user_id, user_name, user_email, created_at)
            VALUES (1, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                token = excluded.token,
                user_id = excluded.user_id,
                user_name = excluded.user_name,
                user_email = excluded.user_email,
                created_at = excluded.created_at
            """,
            (
                session.token,
                session.user.id,
                session.user.name,
                session.user.email,
                session.created_at.isoformat(),
            ),
        )
        self.conn.commit()

    def get_session(self) -> Session | None:
        """Load the stored session, if any."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT token, user_id, user_name, user_email, created_at
            FROM session
            WHERE id = 1
            """
        )
        row = cursor.fetchone()
        if not row:
            return None

        return Session(
            token=row["token"],
            user=User(
                id=row["user_id"], name=row["user_name"], email=row["user_email"]
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def delete_session(self):
        """Remove the stored session."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM session")
        self.conn.commit()
