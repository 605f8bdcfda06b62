"""
Tests for the retrying sync runner.
"""

from unittest.mock import MagicMock

import pytest

from groupme_sync.notify.discord import NotificationError
from groupme_sync.sync.extractor import ColumnMappingError
from groupme_sync.sync.reconciler import SyncError
from groupme_sync.sync.result import SyncResult
from groupme_sync.sync.retry import (
    NO_RETRY,
    Finish,
    GiveUp,
    PassFailed,
    PassSucceeded,
    RetryAfter,
    RetryPolicy,
    SyncRunner,
    attempt_pass,
    decide,
)


def ok_result():
    return SyncResult(added=2, skipped=1, errors=0, duration=5)


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_default_schedule(self):
        """Test the default waits are 2s, 4s, 8s."""
        assert RetryPolicy().schedule() == [2.0, 4.0, 8.0]

    def test_custom_schedule(self):
        """Test base delay and retry count are configurable."""
        assert RetryPolicy(base_delay=0.5, max_retries=2).schedule() == [0.5, 1.0]

    def test_no_retry(self):
        """Test NO_RETRY has an empty schedule."""
        assert NO_RETRY.schedule() == []

    def test_negative_values_rejected(self):
        """Test invalid policies are rejected."""
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-1)
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)


class TestDecide:
    """Tests for the pure retry decision."""

    def test_success_finishes(self):
        """Test a successful attempt finishes with its result."""
        result = ok_result()

        action = decide(PassSucceeded(result), 1, RetryPolicy())

        assert action == Finish(result)

    def test_failure_retries_with_backoff(self):
        """Test failures map to growing delays while retries remain."""
        policy = RetryPolicy()
        failed = PassFailed(SyncError("down"))

        assert decide(failed, 1, policy) == RetryAfter(2.0, failed.error)
        assert decide(failed, 2, policy) == RetryAfter(4.0, failed.error)
        assert decide(failed, 3, policy) == RetryAfter(8.0, failed.error)

    def test_gives_up_after_last_retry(self):
        """Test the attempt after the last retry gives up."""
        error = SyncError("down")

        action = decide(PassFailed(error), 4, RetryPolicy())

        assert isinstance(action, GiveUp)
        assert action.error is error

    def test_column_mapping_error_not_retried(self):
        """Test configuration errors give up immediately."""
        error = ColumnMappingError("Name", ["Email"])

        action = decide(PassFailed(error), 1, RetryPolicy())

        assert isinstance(action, GiveUp)


class TestAttemptPass:
    """Tests for attempt_pass."""

    def test_captures_result(self):
        """Test a successful pass is wrapped."""
        reconciler = MagicMock()
        reconciler.run.return_value = ok_result()

        assert attempt_pass(reconciler) == PassSucceeded(ok_result())

    def test_captures_exception(self):
        """Test an exception is captured rather than raised."""
        reconciler = MagicMock()
        error = RuntimeError("boom")
        reconciler.run.side_effect = error

        outcome = attempt_pass(reconciler)

        assert isinstance(outcome, PassFailed)
        assert outcome.error is error


class TestSyncRunner:
    """Tests for SyncRunner."""

    def test_success_first_attempt(self, mock_notifier, no_sleep):
        """Test one successful pass notifies and returns its result."""
        reconciler = MagicMock()
        reconciler.run.return_value = ok_result()
        runner = SyncRunner(reconciler, mock_notifier, sleep=no_sleep)

        result = runner.run()

        assert result == ok_result()
        no_sleep.assert_not_called()
        mock_notifier.notify_success.assert_called_once_with(
            {"added": 2, "skipped": 1, "errors": 0}
        )
        mock_notifier.notify_error.assert_not_called()

    def test_retry_then_success(self, mock_notifier, no_sleep):
        """Test retrying stops as soon as a pass succeeds."""
        reconciler = MagicMock()
        reconciler.run.side_effect = [SyncError("a"), SyncError("b"), ok_result()]
        runner = SyncRunner(reconciler, mock_notifier, sleep=no_sleep)

        result = runner.run()

        assert result.added == 2
        assert reconciler.run.call_count == 3
        assert [c.args[0] for c in no_sleep.call_args_list] == [2.0, 4.0]
        mock_notifier.notify_error.assert_not_called()

    def test_exhausted_retries(self, mock_notifier, no_sleep):
        """Test four failed attempts give a one-error result and an alert."""
        error = SyncError("still down")
        reconciler = MagicMock()
        reconciler.run.side_effect = error
        runner = SyncRunner(reconciler, mock_notifier, sleep=no_sleep)

        result = runner.run()

        assert reconciler.run.call_count == 4
        assert [c.args[0] for c in no_sleep.call_args_list] == [2.0, 4.0, 8.0]
        assert result.counts() == {"added": 0, "skipped": 0, "errors": 1}
        assert result.duration == 0
        mock_notifier.notify_error.assert_called_once_with(error)
        mock_notifier.notify_success.assert_not_called()

    def test_column_mapping_error_single_attempt(self, mock_notifier, no_sleep):
        """Test a missing column is reported without retrying."""
        reconciler = MagicMock()
        reconciler.run.side_effect = ColumnMappingError("Name", ["Email"])
        runner = SyncRunner(reconciler, mock_notifier, sleep=no_sleep)

        result = runner.run()

        assert reconciler.run.call_count == 1
        no_sleep.assert_not_called()
        assert result.errors == 1
        mock_notifier.notify_error.assert_called_once()

    def test_run_once(self, mock_notifier, no_sleep):
        """Test run_once makes a single attempt."""
        reconciler = MagicMock()
        reconciler.run.side_effect = SyncError("down")
        runner = SyncRunner(reconciler, mock_notifier, sleep=no_sleep)

        result = runner.run_once()

        assert reconciler.run.call_count == 1
        assert result.errors == 1
        no_sleep.assert_not_called()

    def test_success_notification_failure_ignored(self, mock_notifier, no_sleep):
        """Test a failed success webhook does not change the result."""
        reconciler = MagicMock()
        reconciler.run.return_value = ok_result()
        mock_notifier.notify_success.side_effect = NotificationError("503")

        result = SyncRunner(reconciler, mock_notifier, sleep=no_sleep).run()

        assert result == ok_result()

    def test_unexpected_success_notification_error_ignored(self, mock_notifier, no_sleep):
        """Test any exception from the notifier keeps the computed result."""
        reconciler = MagicMock()
        reconciler.run.return_value = SyncResult(added=1)
        mock_notifier.notify_success.side_effect = RuntimeError("webhook blew up")
        runner = SyncRunner(reconciler, mock_notifier, NO_RETRY, sleep=no_sleep)

        result = runner.run()

        assert result.added == 1

    def test_unexpected_error_notification_error_ignored(self, mock_notifier, no_sleep):
        """Test any exception from the error webhook still gives the failure result."""
        reconciler = MagicMock()
        reconciler.run.side_effect = SyncError("down")
        mock_notifier.notify_error.side_effect = ValueError("bad payload")
        runner = SyncRunner(reconciler, mock_notifier, NO_RETRY, sleep=no_sleep)

        result = runner.run()

        assert result.errors == 1
        assert result.details[0].error == "down"

    def test_error_notification_failure_ignored(self, mock_notifier, no_sleep):
        """Test a failed error webhook still returns the failure result."""
        reconciler = MagicMock()
        reconciler.run.side_effect = SyncError("down")
        mock_notifier.notify_error.side_effect = NotificationError("503")
        runner = SyncRunner(reconciler, mock_notifier, NO_RETRY, sleep=no_sleep)

        result = runner.run()

        assert result.errors == 1

    def test_default_notifier(self, no_sleep):
        """Test the runner works without a notifier."""
        reconciler = MagicMock()
        reconciler.run.return_value = ok_result()

        assert SyncRunner(reconciler, sleep=no_sleep).run() == ok_result()
