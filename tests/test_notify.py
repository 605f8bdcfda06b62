"""
Tests for Discord webhook notifications.
"""

from unittest.mock import MagicMock

import pytest
from requests.exceptions import Timeout

from groupme_sync.notify.discord import (
    COLOR_ERROR,
    COLOR_PARTIAL,
    COLOR_SUCCESS,
    WEBHOOK_USERNAME,
    DiscordNotifier,
    NotificationError,
    NullNotifier,
)

WEBHOOK = "https://discord.com/api/webhooks/1/abc"


@pytest.fixture
def session():
    session = MagicMock()
    session.post.return_value = MagicMock(ok=True, status_code=204)
    return session


@pytest.fixture
def notifier(session):
    return DiscordNotifier(WEBHOOK, session=session)


def sent_embed(session):
    payload = session.post.call_args.kwargs["json"]
    return payload["embeds"][0]


class TestDiscordNotifier:
    """Tests for DiscordNotifier."""

    def test_success_embed(self, notifier, session):
        """Test the success embed carries the three counts."""
        notifier.notify_success({"added": 2, "skipped": 5, "errors": 0})

        assert session.post.call_args.args[0] == WEBHOOK
        payload = session.post.call_args.kwargs["json"]
        assert payload["username"] == WEBHOOK_USERNAME
        embed = sent_embed(session)
        assert embed["title"] == "Sync Complete"
        assert embed["color"] == COLOR_SUCCESS
        assert [(f["name"], f["value"]) for f in embed["fields"]] == [
            ("Added", "2"),
            ("Skipped", "5"),
            ("Errors", "0"),
        ]

    def test_success_with_errors_uses_partial_color(self, notifier, session):
        """Test a pass with errors is highlighted."""
        notifier.notify_success({"added": 1, "skipped": 0, "errors": 3})

        assert sent_embed(session)["color"] == COLOR_PARTIAL

    def test_error_embed(self, notifier, session):
        """Test the error embed carries the error text."""
        notifier.notify_error(RuntimeError("sheet unreachable"))

        embed = sent_embed(session)
        assert embed["title"] == "Sync Error"
        assert embed["description"] == "sheet unreachable"
        assert embed["color"] == COLOR_ERROR
        assert embed["fields"][0]["name"] == "Time"

    def test_timeout_passed(self, session):
        """Test the configured timeout is used for the webhook call."""
        DiscordNotifier(WEBHOOK, timeout=3.0, session=session).notify_error("x")

        assert session.post.call_args.kwargs["timeout"] == 3.0

    def test_http_failure_raises(self, notifier, session):
        """Test a non-2xx webhook response raises NotificationError."""
        session.post.return_value = MagicMock(ok=False, status_code=404)

        with pytest.raises(NotificationError, match="404"):
            notifier.notify_success({"added": 0, "skipped": 0, "errors": 0})

    def test_transport_failure_raises(self, notifier, session):
        """Test a transport failure raises NotificationError."""
        session.post.side_effect = Timeout("slow")

        with pytest.raises(NotificationError, match="slow"):
            notifier.notify_error("boom")


class TestNullNotifier:
    """Tests for NullNotifier."""

    def test_never_raises(self):
        """Test the null notifier accepts both kinds of call."""
        notifier = NullNotifier()

        notifier.notify_success({"added": 0, "skipped": 0, "errors": 0})
        notifier.notify_error(RuntimeError("x"))
