"""
groupme_sync.daemon - Scheduler module

Runs sync passes at a fixed interval with PID-file control and signal
handling.
"""

import re

INTERVAL_MULTIPLIERS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}


def parse_interval(interval: str | int) -> int:
    """Parse an interval string into seconds.

    Args:
        interval: Interval specification. Examples:
            - "30s" -> 30 seconds
            - "5m" -> 300 seconds
            - "1h" -> 3600 seconds
            - "1d" -> 86400 seconds
            - 3600 or "3600" -> 3600 seconds

    Returns:
        Interval in seconds.

    Raises:
        ValueError: If the format is invalid or the interval is not positive.
    """
    if isinstance(interval, bool) or not isinstance(interval, (int, str)):
        raise ValueError(
            f"Invalid interval type: {type(interval).__name__}. Expected str or int."
        )

    if isinstance(interval, int):
        seconds = interval
    else:
        text = interval.lower().strip()
        if text.isdigit():
            seconds = int(text)
        else:
            match = re.match(r"^(\d+)\s*([smhd])$", text)
            if not match:
                raise ValueError(
                    f"Invalid interval format: '{interval}'. "
                    "Use format like '30s', '5m', '1h', or '1d'."
                )
            seconds = int(match.group(1)) * INTERVAL_MULTIPLIERS[match.group(2)]

    if seconds <= 0:
        raise ValueError(f"Interval must be positive, got {interval!r}")
    return seconds


# Imported after parse_interval so scheduler can import from this package
from groupme_sync.daemon.scheduler import (  # noqa: E402
    DEFAULT_INTERVAL,
    DEFAULT_PID_FILE,
    DaemonAlreadyRunningError,
    DaemonError,
    DaemonScheduler,
    DaemonStats,
    PIDFileError,
    PIDFileManager,
)

__all__ = [
    "parse_interval",
    "DaemonScheduler",
    "DaemonStats",
    "DaemonError",
    "PIDFileError",
    "DaemonAlreadyRunningError",
    "PIDFileManager",
    "DEFAULT_INTERVAL",
    "DEFAULT_PID_FILE",
]
