"""
Unit tests for the storage module.

Tests the RowLedger class for recording processed roster rows.
"""

from datetime import datetime

import pytest

from groupme_sync.storage.ledger import LedgerError, RowLedger


@pytest.fixture
def ledger():
    ledger = RowLedger(":memory:")
    ledger.initialize()
    yield ledger
    ledger.close()


class TestRowLedgerInitialization:
    """Tests for ledger initialization."""

    def test_initialize_creates_tables(self, ledger):
        """Test that initialize creates the required tables."""
        with ledger.connection() as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            )
            tables = [row["name"] for row in cursor.fetchall()]

        assert "processed_rows" in tables
        assert "ledger_state" in tables

    def test_initialize_is_idempotent(self, ledger):
        """Test that initialize can run twice."""
        ledger.initialize()

        assert ledger.count() == 0

    def test_uninitialized_raises_ledger_error(self):
        """Test reads before initialize raise LedgerError."""
        ledger = RowLedger(":memory:")

        with pytest.raises(LedgerError):
            ledger.is_processed("abc")

    def test_file_database_persists(self, tmp_path):
        """Test a file ledger keeps rows across instances."""
        db_path = str(tmp_path / "ledger.db")
        first = RowLedger(db_path)
        first.initialize()
        first.mark_processed("row1", "Alice", "added", True)

        second = RowLedger(db_path)

        assert second.is_processed("row1")


class TestRowLedgerOperations:
    """Tests for recording and querying rows."""

    def test_unknown_row(self, ledger):
        """Test a row never recorded is not processed."""
        assert ledger.is_processed("missing") is False
        assert ledger.get("missing") is None

    def test_mark_successful(self, ledger):
        """Test a successful outcome marks the row processed."""
        ledger.mark_processed("row1", "Alice", "added", True)

        assert ledger.is_processed("row1") is True
        row = ledger.get("row1")
        assert row.contact_name == "Alice"
        assert row.status == "added"
        assert row.success is True
        assert isinstance(row.processed_at, datetime)

    def test_failed_row_not_processed(self, ledger):
        """Test a failed outcome leaves the row eligible for retry."""
        ledger.mark_processed("row1", "Alice", "error", False)

        assert ledger.is_processed("row1") is False
        assert ledger.get("row1").success is False

    def test_mark_overwrites(self, ledger):
        """Test a later outcome replaces the earlier one."""
        ledger.mark_processed("row1", "Alice", "error", False)
        ledger.mark_processed("row1", "Alice", "added", True)

        assert ledger.count() == 1
        assert ledger.get("row1").status == "added"

    def test_last_run(self, ledger):
        """Test the last run time is tracked."""
        assert ledger.get_last_run() is None

        ledger.mark_processed("row1", "Alice", "added", True)

        assert isinstance(ledger.get_last_run(), datetime)

    def test_clear(self, ledger):
        """Test clear removes every row and the last run time."""
        ledger.mark_processed("row1", "Alice", "added", True)
        ledger.mark_processed("row2", "Bob", "skipped", True)

        ledger.clear()

        assert ledger.count() == 0
        assert ledger.get_last_run() is None

    def test_repr(self, ledger):
        """Test the repr names the database path."""
        assert repr(ledger) == "RowLedger(db_path=':memory:')"
