"""
Discord webhook notifications for sync outcomes.

Notifications are best-effort: callers catch NotificationError and log it,
so a failed webhook never changes an already computed SyncResult.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import requests
from requests.exceptions import RequestException

WEBHOOK_USERNAME = "Sheets to GroupMe"
WEBHOOK_AVATAR_URL = "https://i.imgur.com/AfFp7pu.png"

COLOR_SUCCESS = 0x44FF44
COLOR_PARTIAL = 0xFFAA00
COLOR_ERROR = 0xFF4444

DEFAULT_TIMEOUT = 10.0  # seconds

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotificationError(Exception):
    """Raised when a notification cannot be delivered."""

    pass


class Notifier(Protocol):
    """Notification channel used by the sync runner."""

    def notify_success(self, summary: dict[str, int]) -> None: ...

    def notify_error(self, error: BaseException | str) -> None: ...


class NullNotifier:
    """Notifier used when no webhook is configured; only logs."""

    def notify_success(self, summary: dict[str, int]) -> None:
        logger.debug(f"Notifications disabled; success summary: {summary}")

    def notify_error(self, error: BaseException | str) -> None:
        logger.debug(f"Notifications disabled; error: {error}")


class DiscordNotifier:
    """
    Posts sync results to a Discord channel webhook.

    Usage:
        notifier = DiscordNotifier(webhook_url)
        notifier.notify_success({"added": 2, "skipped": 10, "errors": 0})
        notifier.notify_error(exc)
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _send(self, payload: dict[str, Any]) -> None:
        try:
            response = self.session.post(
                self.webhook_url, json=payload, timeout=self.timeout
            )
        except RequestException as e:
            raise NotificationError(f"Failed to send Discord notification: {e}") from e

        if not response.ok:
            raise NotificationError(f"Discord API error: {response.status_code}")

    def notify_success(self, summary: dict[str, int]) -> None:
        """
        Send a "Sync Complete" embed.

        Args:
            summary: Counts with keys added, skipped, errors

        Raises:
            NotificationError: If the webhook call fails
        """
        timestamp = _timestamp()
        added = summary.get("added", 0)
        skipped = summary.get("skipped", 0)
        errors = summary.get("errors", 0)

        payload = {
            "username": WEBHOOK_USERNAME,
            "avatar_url": WEBHOOK_AVATAR_URL,
            "embeds": [
                {
                    "title": "Sync Complete",
                    "description": (
                        f"Added {added}, skipped {skipped}, errors {errors}"
                    ),
                    "color": COLOR_PARTIAL if errors > 0 else COLOR_SUCCESS,
                    "fields": [
                        {"name": "Added", "value": str(added), "inline": True},
                        {"name": "Skipped", "value": str(skipped), "inline": True},
                        {"name": "Errors", "value": str(errors), "inline": True},
                    ],
                    "timestamp": timestamp,
                }
            ],
        }

        self._send(payload)
        logger.info("Success notification sent to Discord")

    def notify_error(self, error: BaseException | str) -> None:
        """
        Send a "Sync Error" embed.

        Raises:
            NotificationError: If the webhook call fails
        """
        timestamp = _timestamp()
        payload = {
            "username": WEBHOOK_USERNAME,
            "avatar_url": WEBHOOK_AVATAR_URL,
            "embeds": [
                {
                    "title": "Sync Error",
                    "description": str(error),
                    "color": COLOR_ERROR,
                    "fields": [{"name": "Time", "value": timestamp, "inline": True}],
                    "timestamp": timestamp,
                }
            ],
        }

        self._send(payload)
        logger.info("Error notification sent to Discord")
