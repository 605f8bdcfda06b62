"""
SQLite ledger of processed roster rows.

An optional second safeguard on top of membership matching: every contact
outcome is recorded by row ID, and rows already recorded as successful are
not sent to GroupMe again, even if the group's own duplicate detection
would miss them.
"""

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

SCHEMA = """
CREATE TABLE IF NOT EXISTS processed_rows (
    id INTEGER PRIMARY KEY,
    row_id TEXT NOT NULL,
    contact_name TEXT NOT NULL,
    status TEXT NOT NULL,
    success BOOLEAN NOT NULL,
    processed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(row_id)
);

CREATE INDEX IF NOT EXISTS idx_processed_rows_row_id ON processed_rows(row_id);

CREATE TABLE IF NOT EXISTS ledger_state (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    last_run_at TIMESTAMP
);
"""


class LedgerError(Exception):
    """Raised when the ledger database cannot be read or written."""

    pass


@dataclass(frozen=True)
class ProcessedRow:
    """A recorded outcome for one roster row."""

    row_id: str
    contact_name: str
    status: str
    success: bool
    processed_at: Optional[datetime] = None


class RowLedger:
    """
    SQLite-backed ledger of processed rows.

    Usage:
        ledger = RowLedger('/path/to/ledger.db')
        ledger.initialize()

        if not ledger.is_processed(contact.row_id()):
            ...
        ledger.mark_processed(contact.row_id(), contact.name, "added", True)

        # In-memory for testing:
        ledger = RowLedger(':memory:')
    """

    def __init__(self, db_path: str):
        """
        Args:
            db_path: Path to SQLite database file, or ':memory:'
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        # In-memory databases share one connection so the schema persists
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager yielding a connection; commits on success."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise LedgerError(f"Cannot open ledger {self.db_path}: {e}") from e

        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise LedgerError(f"Ledger operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the ledger tables if they don't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    def is_processed(self, row_id: str) -> bool:
        """True if the row was recorded with a successful outcome."""
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT success FROM processed_rows WHERE row_id = ?", (row_id,)
            )
            row = cursor.fetchone()
        return bool(row and row["success"])

    def get(self, row_id: str) -> Optional[ProcessedRow]:
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT row_id, contact_name, status, success, processed_at "
                "FROM processed_rows WHERE row_id = ?",
                (row_id,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return ProcessedRow(
            row_id=row["row_id"],
            contact_name=row["contact_name"],
            status=row["status"],
            success=bool(row["success"]),
            processed_at=_parse_timestamp(row["processed_at"]),
        )

    def mark_processed(
        self, row_id: str, contact_name: str, status: str, success: bool
    ) -> None:
        """Insert or replace the outcome for a row."""
        now = datetime.now().isoformat()
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO processed_rows
                    (row_id, contact_name, status, success, processed_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(row_id) DO UPDATE SET
                    contact_name = excluded.contact_name,
                    status = excluded.status,
                    success = excluded.success,
                    processed_at = excluded.processed_at
                """,
                (row_id, contact_name, status, success, now),
            )
            conn.execute(
                "INSERT INTO ledger_state (id, last_run_at) VALUES (1, ?) "
                "ON CONFLICT(id) DO UPDATE SET last_run_at = excluded.last_run_at",
                (now,),
            )

    def get_last_run(self) -> Optional[datetime]:
        with self.connection() as conn:
            cursor = conn.execute("SELECT last_run_at FROM ledger_state WHERE id = 1")
            row = cursor.fetchone()
        return _parse_timestamp(row["last_run_at"]) if row else None

    def count(self) -> int:
        with self.connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM processed_rows")
            return int(cursor.fetchone()[0])

    def clear(self) -> None:
        """Remove every recorded row."""
        with self.connection() as conn:
            conn.execute("DELETE FROM processed_rows")
            conn.execute("DELETE FROM ledger_state")

    def close(self) -> None:
        if self._shared_connection is not None:
            self._shared_connection.close()
            self._shared_connection = None

    def __repr__(self) -> str:
        return f"RowLedger(db_path={self.db_path!r})"


def _parse_timestamp(value: object) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None
