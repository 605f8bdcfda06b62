"""
Tests for the reconciliation pass.

Uses the in-memory FakeSheet / FakeGroup capabilities from conftest.
"""

from unittest.mock import MagicMock

import pytest

from groupme_sync.api.groupme_api import AddMemberError, MembershipFetchError
from groupme_sync.api.sheets_api import RowFetchError
from groupme_sync.storage.ledger import LedgerError, RowLedger
from groupme_sync.sync.contact import Contact, GroupMember, MembershipAddResult
from groupme_sync.sync.extractor import ColumnMapping, ColumnMappingError
from groupme_sync.sync.reconciler import PassState, Reconciler, SyncError
from groupme_sync.sync.result import SkipReason, SyncStatus
from tests.conftest import FakeGroup, FakeSheet

FULL_PASS = [
    PassState.IDLE,
    PassState.FETCHING,
    PassState.EXTRACTING,
    PassState.CHANGE_CHECK,
    PassState.MATCHING,
    PassState.ADDING,
    PassState.AGGREGATING,
    PassState.DONE,
]

JOHN_ROWS = [["Name", "Email"], ["John Doe", "john@x.com"]]


def make_reconciler(sheet, group, **kwargs):
    return Reconciler(
        row_source=sheet,
        membership=group,
        sheet_id="sheet-1",
        group_id="group-1",
        **kwargs,
    )


class TestReconcilerScenarios:
    """Single-contact scenarios."""

    def test_new_contact_added(self):
        """Test an absent contact is added."""
        group = FakeGroup()
        reconciler = make_reconciler(FakeSheet(JOHN_ROWS), group)

        result = reconciler.run()

        assert (result.added, result.skipped, result.errors) == (1, 0, 0)
        assert [d.status for d in result.details] == [SyncStatus.ADDED]
        assert group.added[0].nickname == "John Doe"
        assert group.added[0].email == "john@x.com"

    def test_member_with_same_email_skipped(self):
        """Test a contact already in the group by email is skipped."""
        group = FakeGroup(members=[GroupMember("1", "Johnny", email="john@x.com")])
        reconciler = make_reconciler(FakeSheet(JOHN_ROWS), group)

        result = reconciler.run()

        assert (result.added, result.skipped) == (0, 1)
        assert result.details[0].error == SkipReason.ALREADY_IN_GROUP.value
        assert group.added == []

    def test_already_exists_response_skipped(self):
        """Test an already-exists add result is a skip, not an error."""
        group = FakeGroup()
        group.add_results["John Doe"] = MembershipAddResult(
            success=False, already_exists=True
        )

        result = make_reconciler(FakeSheet(JOHN_ROWS), group).run()

        assert (result.added, result.skipped, result.errors) == (0, 1, 0)
        assert result.details[0].error == SkipReason.ALREADY_EXISTS.value
        assert result.failed_rows == []

    def test_unsuccessful_add_recorded_as_error(self):
        """Test success=False with a message becomes an error with that message."""
        group = FakeGroup()
        group.add_results["John Doe"] = MembershipAddResult(
            success=False, error_message="API limit exceeded"
        )

        result = make_reconciler(FakeSheet(JOHN_ROWS), group).run()

        assert (result.added, result.errors) == (0, 1)
        assert len(result.failed_rows) == 1
        assert result.failed_rows[0].error == "API limit exceeded"
        assert result.failed_rows[0].contact == Contact("John Doe", "john@x.com")

    def test_unsuccessful_add_without_message(self):
        """Test a missing error message defaults to Unknown error."""
        group = FakeGroup()
        group.add_results["John Doe"] = MembershipAddResult(success=False)

        result = make_reconciler(FakeSheet(JOHN_ROWS), group).run()

        assert result.details[0].error == "Unknown error"

    def test_header_only_sheet(self):
        """Test a header-only sheet makes no calls beyond the row fetch."""
        sheet = FakeSheet([["Name", "Email"]])
        group = MagicMock()
        reconciler = make_reconciler(sheet, group)

        result = reconciler.run()

        assert result.is_empty
        assert len(sheet.calls) == 1
        group.get_members.assert_not_called()
        group.add_member.assert_not_called()
        assert PassState.SHORT_CIRCUIT in reconciler.last_pass.history

    def test_empty_sheet(self):
        """Test an empty sheet is a successful zero result."""
        group = MagicMock()
        reconciler = make_reconciler(FakeSheet([]), group)

        result = reconciler.run()

        assert result.is_empty
        group.get_members.assert_not_called()
        assert reconciler.last_pass.history == [
            PassState.IDLE,
            PassState.FETCHING,
            PassState.SHORT_CIRCUIT,
            PassState.DONE,
        ]


class TestReconcilerPass:
    """Multi-contact behaviour."""

    def test_full_pass_history(self, fake_sheet, fake_group):
        """Test a complete pass walks every state in order."""
        reconciler = make_reconciler(fake_sheet, fake_group)

        reconciler.run()

        assert reconciler.last_pass.history == FULL_PASS

    def test_details_in_sheet_order(self, fake_sheet, fake_group):
        """Test every contact gets a detail, in sheet order."""
        result = make_reconciler(fake_sheet, fake_group).run()

        assert [d.name for d in result.details] == [
            "Alice Smith",
            "Bob Jones",
            "Carol White",
        ]
        assert result.added == 3

    def test_membership_fetched_once(self, fake_sheet, fake_group):
        """Test the membership snapshot is fetched once per pass."""
        make_reconciler(fake_sheet, fake_group).run()

        assert fake_group.fetch_count == 1

    def test_mixed_outcomes(self, fake_sheet):
        """Test added, skipped and failed contacts in one pass."""
        group = FakeGroup(members=[GroupMember("1", "bob jones")])
        group.add_errors["Carol White"] = AddMemberError("503 - unavailable", status=503)

        result = make_reconciler(fake_sheet, group).run()

        assert (result.added, result.skipped, result.errors) == (1, 1, 1)
        assert result.added + result.skipped + result.errors == len(result.details)
        assert [d.status for d in result.details] == [
            SyncStatus.ADDED,
            SyncStatus.SKIPPED,
            SyncStatus.ERROR,
        ]
        assert result.details[2].error == "503 - unavailable"

    def test_add_failure_does_not_stop_later_contacts(self, fake_sheet):
        """Test a failing add is isolated to its contact."""
        group = FakeGroup()
        group.add_errors["Alice Smith"] = AddMemberError("timeout")

        result = make_reconciler(fake_sheet, group).run()

        assert result.errors == 1
        assert result.added == 2
        assert [m.nickname for m in group.added] == ["Bob Jones", "Carol White"]
        assert result.failed_rows[0].contact.name == "Alice Smith"

    def test_unexpected_add_exception_isolated(self, fake_sheet):
        """Test any exception from add_member becomes an error outcome."""
        group = FakeGroup()
        group.add_errors["Bob Jones"] = RuntimeError()

        result = make_reconciler(fake_sheet, group).run()

        assert result.errors == 1
        assert result.details[1].error == "RuntimeError"

    def test_duration_from_clock(self, fake_sheet, fake_group):
        """Test duration is measured with the injected clock, in ms."""
        clock = MagicMock(side_effect=[100.0, 100.25])

        result = make_reconciler(fake_sheet, fake_group, clock=clock).run()

        assert result.duration == 250

    def test_separate_name_columns(self, fake_group):
        """Test first/last name columns build the display name."""
        sheet = FakeSheet([["First", "Last"], ["Ann", "Lee"]])
        mapping = ColumnMapping(first_name="First", last_name="Last")

        make_reconciler(sheet, fake_group, column_mapping=mapping).run()

        assert fake_group.added[0].nickname == "Ann Lee"

    def test_range_passed_to_row_source(self, fake_sheet, fake_group):
        """Test the configured sheet id and range are used."""
        make_reconciler(fake_sheet, fake_group, range_spec="Roster!A:C").run()

        assert fake_sheet.calls == [("sheet-1", "Roster!A:C")]


class TestChangeDetection:
    """Tests for fingerprint short-circuiting across passes."""

    def test_second_pass_unchanged_is_zero(self, fake_sheet, fake_group):
        """Test an unchanged sheet makes no membership or add calls."""
        reconciler = make_reconciler(fake_sheet, fake_group)
        reconciler.run()
        fake_group.fetch_count = 0
        adds_before = len(fake_group.added)

        result = reconciler.run()

        assert (result.added, result.skipped, result.errors) == (0, 0, 0)
        assert fake_group.fetch_count == 0
        assert len(fake_group.added) == adds_before

    def test_reordered_rows_unchanged(self, fake_sheet, fake_group):
        """Test row order alone does not trigger a pass."""
        reconciler = make_reconciler(fake_sheet, fake_group)
        reconciler.run()
        fake_sheet.rows = [fake_sheet.rows[0]] + list(reversed(fake_sheet.rows[1:]))

        result = reconciler.run()

        assert result.is_empty
        assert PassState.MATCHING not in reconciler.last_pass.history

    def test_changed_sheet_runs_again(self, fake_sheet, fake_group):
        """Test a new row triggers a pass that only adds the new contact."""
        reconciler = make_reconciler(fake_sheet, fake_group)
        reconciler.run()
        fake_sheet.rows.append(["Dan Brown", "dan@example.com", ""])

        result = reconciler.run()

        assert (result.added, result.skipped) == (1, 3)
        assert fake_group.added[-1].nickname == "Dan Brown"

    def test_reset_forces_full_pass(self, fake_sheet, fake_group):
        """Test reset clears the fingerprint; everyone is then skipped."""
        reconciler = make_reconciler(fake_sheet, fake_group)
        reconciler.run()
        reconciler.reset()

        result = reconciler.run()

        assert (result.added, result.skipped) == (0, 3)


class TestPassFailures:
    """Tests for failures that abort a pass."""

    def test_row_fetch_error_propagates(self):
        """Test a row fetch failure aborts the pass."""
        group = MagicMock()
        reconciler = make_reconciler(FakeSheet(error=RowFetchError("down")), group)

        with pytest.raises(RowFetchError):
            reconciler.run()

        group.get_members.assert_not_called()

    def test_column_mapping_error_propagates(self):
        """Test a missing name column aborts before any membership call."""
        group = MagicMock()
        sheet = FakeSheet([["Email"], ["a@x.com"]])

        with pytest.raises(ColumnMappingError):
            make_reconciler(sheet, group).run()

        group.get_members.assert_not_called()

    def test_membership_failure_never_proceeds(self, fake_sheet):
        """Test a failed membership fetch aborts with no add calls."""
        group = FakeGroup(fetch_error=MembershipFetchError("502 - bad gateway"))

        with pytest.raises(SyncError) as exc_info:
            make_reconciler(fake_sheet, group).run()

        assert str(exc_info.value).startswith(
            "Cannot sync without member list - duplicate detection would be disabled"
        )
        assert "502 - bad gateway" in str(exc_info.value)
        assert group.added == []

    def test_failed_pass_does_not_record_fingerprint(self, fake_sheet):
        """Test a retry after a failed pass is not short-circuited."""
        group = FakeGroup(fetch_error=MembershipFetchError("down"))
        reconciler = make_reconciler(fake_sheet, group)
        with pytest.raises(SyncError):
            reconciler.run()

        group.fetch_error = None
        result = reconciler.run()

        assert result.added == 3
        assert reconciler.change_detector.last_fingerprint is not None

    def test_pass_without_result_raises(self, fake_sheet, fake_group):
        """Test a pass that reaches done without a result is an error."""
        reconciler = make_reconciler(fake_sheet, fake_group)
        reconciler._handlers[PassState.AGGREGATING] = lambda ctx: PassState.DONE

        with pytest.raises(SyncError, match="without a result"):
            reconciler.run()


class TestDryRun:
    """Tests for dry-run passes."""

    def test_dry_run_never_adds(self, fake_sheet):
        """Test would-be adds are recorded as dry_run skips."""
        group = FakeGroup(members=[GroupMember("1", "Alice Smith")])

        result = make_reconciler(fake_sheet, group, dry_run=True).run()

        assert group.added == []
        assert result.added == 0
        assert result.skipped == 3
        assert [d.error for d in result.details] == [
            SkipReason.ALREADY_IN_GROUP.value,
            SkipReason.DRY_RUN.value,
            SkipReason.DRY_RUN.value,
        ]

    def test_dry_run_does_not_record_fingerprint(self, fake_sheet, fake_group):
        """Test a dry run leaves the next real pass unaffected."""
        reconciler = make_reconciler(fake_sheet, fake_group, dry_run=True)

        reconciler.run()

        assert reconciler.change_detector.last_fingerprint is None


class TestLedger:
    """Tests for the optional processed-row ledger."""

    @pytest.fixture
    def ledger(self):
        ledger = RowLedger(":memory:")
        ledger.initialize()
        yield ledger
        ledger.close()

    def test_outcomes_recorded(self, fake_sheet, ledger):
        """Test every processed contact is recorded."""
        group = FakeGroup()
        group.add_errors["Carol White"] = AddMemberError("boom")

        make_reconciler(fake_sheet, group, ledger=ledger).run()

        assert ledger.count() == 3
        carol = Contact("Carol White", phone="(555) 000-0003")
        assert ledger.get(carol.row_id()).success is False

    def test_processed_rows_skipped_even_if_group_forgets(self, fake_sheet, ledger):
        """Test recorded rows are not re-sent when the membership lost them."""
        make_reconciler(fake_sheet, FakeGroup(), ledger=ledger).run()
        empty_group = FakeGroup()

        result = make_reconciler(fake_sheet, empty_group, ledger=ledger).run()

        assert result.skipped == 3
        assert {d.error for d in result.details} == {SkipReason.ALREADY_PROCESSED.value}
        assert empty_group.added == []

    def test_failed_rows_retried(self, fake_sheet, ledger):
        """Test rows recorded as failed are attempted again."""
        group = FakeGroup()
        group.add_errors["Alice Smith"] = AddMemberError("boom")
        make_reconciler(fake_sheet, group, ledger=ledger).run()
        retry_group = FakeGroup()

        result = make_reconciler(fake_sheet, retry_group, ledger=ledger).run()

        assert result.added == 1
        assert [m.nickname for m in retry_group.added] == ["Alice Smith"]

    def test_dry_run_does_not_write_ledger(self, fake_sheet, fake_group, ledger):
        """Test dry runs leave the ledger untouched."""
        make_reconciler(fake_sheet, fake_group, ledger=ledger, dry_run=True).run()

        assert ledger.count() == 0

    def test_ledger_failure_does_not_abort(self, fake_sheet, fake_group):
        """Test ledger errors are logged and the pass continues."""
        ledger = MagicMock()
        ledger.is_processed.side_effect = LedgerError("locked")
        ledger.mark_processed.side_effect = LedgerError("locked")

        result = make_reconciler(fake_sheet, fake_group, ledger=ledger).run()

        assert result.added == 3
