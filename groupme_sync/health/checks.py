"""
Connectivity check for the Google Sheets API.

Used by the `health` CLI command and by the daemon, which waits for the
network before its first scheduled pass.
"""

import logging
import time
from collections.abc import Callable
from typing import Optional

import requests
from requests.exceptions import RequestException

HEALTH_CHECK_URL = "https://sheets.googleapis.com"
HEALTH_CHECK_TIMEOUT = 2.0  # seconds

NETWORK_WAIT_ATTEMPTS = 30
NETWORK_WAIT_DELAY = 2.0  # seconds

logger = logging.getLogger(__name__)


class HealthCheckError(Exception):
    """Raised when the Google Sheets API cannot be reached."""

    pass


def check_health(
    session: Optional[requests.Session] = None,
    url: str = HEALTH_CHECK_URL,
    timeout: float = HEALTH_CHECK_TIMEOUT,
) -> dict[str, str]:
    """
    Probe the Google Sheets API with a HEAD request.

    Any HTTP response counts as reachable; only transport failures
    (DNS, connection refused, timeout) make the check fail.

    Returns:
        {"status": "healthy"}

    Raises:
        HealthCheckError: If the API is unreachable
    """
    http = session or requests.Session()
    try:
        http.head(url, timeout=timeout)
    except RequestException as e:
        raise HealthCheckError("Google Sheets API unreachable") from e
    return {"status": "healthy"}


def wait_for_network(
    max_attempts: int = NETWORK_WAIT_ATTEMPTS,
    delay: float = NETWORK_WAIT_DELAY,
    check: Callable[[], object] = check_health,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Poll the health check until it succeeds or attempts run out.

    Never raises: on timeout a warning is logged and the caller proceeds.

    Returns:
        True if the network became ready, False on timeout
    """
    logger.info("Checking network readiness...")

    for attempt in range(1, max_attempts + 1):
        try:
            check()
        except HealthCheckError:
            logger.debug(f"Network not ready (attempt {attempt}/{max_attempts})")
        else:
            logger.info(f"Network ready after {(attempt - 1) * delay:.0f}s")
            return True
        sleep(delay)

    logger.warning(
        f"Network readiness check timed out after {max_attempts * delay:.0f}s, "
        "proceeding anyway"
    )
    return False
