"""groupme_sync.notify - Sync outcome notifications."""

from groupme_sync.notify.discord import (
    DiscordNotifier,
    NotificationError,
    Notifier,
    NullNotifier,
)

__all__ = ["DiscordNotifier", "NotificationError", "Notifier", "NullNotifier"]
