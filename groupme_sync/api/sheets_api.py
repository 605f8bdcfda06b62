"""
Google Sheets API wrapper for reading the contact roster.

Provides:
- Row fetching through spreadsheets.values.get
- Exponential backoff retry for rate limits and server errors
"""

import logging
import time
from collections.abc import Callable
from typing import Any

from google.auth.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

DEFAULT_RANGE = "A:Z"

# Retry configuration defaults
DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 60.0  # seconds

logger = logging.getLogger(__name__)


class RowFetchError(Exception):
    """Raised when sheet rows cannot be read."""

    pass


class SheetsAuthError(RowFetchError):
    """Raised when the service account is not allowed to read the sheet."""

    pass


class SheetsAPI:
    """
    Google Sheets API wrapper for reading rows.

    Attributes:
        credentials: Google credentials with the spreadsheets.readonly scope

    Usage:
        api = SheetsAPI(credentials)
        rows = api.fetch_rows(sheet_id, "A:Z")
    """

    def __init__(
        self,
        credentials: Credentials,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the Sheets API wrapper.

        Args:
            credentials: Valid Google credentials
            max_retries: Maximum attempts for a throttled call (default 5)
            initial_retry_delay: Initial backoff delay in seconds (default 1.0)
            max_retry_delay: Maximum backoff delay in seconds (default 60.0)
            sleep: Sleep function, replaceable in tests
        """
        self.credentials = credentials
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self._sleep = sleep
        self._service = None

    @property
    def service(self) -> Any:
        """
        Get or create the Google API service object.

        Raises:
            RowFetchError: If the service cannot be created
        """
        if self._service is None:
            try:
                self._service = build(
                    "sheets", "v4", credentials=self.credentials, cache_discovery=False
                )
                logger.debug("Created Sheets API service")
            except Exception as e:
                logger.error(f"Failed to create Sheets API service: {e}")
                raise RowFetchError(f"Failed to create API service: {e}") from e
        return self._service

    def _retry_with_backoff(
        self, operation: Callable[[], Any], operation_name: str
    ) -> Any:
        """
        Execute an operation with exponential backoff retry.

        Only 429 and 5xx responses are retried here; anything else is a
        RowFetchError straight away.
        """
        delay = self.initial_retry_delay

        for attempt in range(self.max_retries):
            try:
                return operation()

            except HttpError as e:
                status_code = e.resp.status

                if status_code in (401, 403):
                    raise SheetsAuthError(
                        f"{operation_name} not authorized ({status_code}): "
                        "check that the sheet is shared with the service account"
                    ) from e

                retryable = status_code == 429 or status_code >= 500
                if retryable and attempt < self.max_retries - 1:
                    logger.warning(
                        f"{operation_name} failed ({status_code}), retrying in "
                        f"{delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    self._sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue

                logger.error(f"{operation_name} failed with status {status_code}: {e}")
                raise RowFetchError(f"{operation_name} failed: {e}") from e

            except OSError as e:
                raise RowFetchError(f"{operation_name} failed: {e}") from e

        raise RowFetchError(f"{operation_name} failed after all retries")

    def fetch_rows(self, sheet_id: str, range_spec: str = DEFAULT_RANGE) -> list[list[str]]:
        """
        Read a range of cells as rows of strings.

        Args:
            sheet_id: Spreadsheet ID
            range_spec: A1 range, e.g. "A:Z" or "Roster!A:D"

        Returns:
            Rows of cell strings; an empty sheet yields []

        Raises:
            RowFetchError: If the read fails
        """
        logger.debug(f"Fetching rows from sheet {sheet_id} (range={range_spec})")

        def execute_get() -> Any:
            return (
                self.service.spreadsheets()
                .values()
                .get(spreadsheetId=sheet_id, range=range_spec)
                .execute()
            )

        response = self._retry_with_backoff(execute_get, "fetch_rows")
        values = response.get("values", []) if response else []
        rows = [[str(cell) for cell in row] for row in values]

        logger.info(f"Fetched {len(rows)} rows from sheet")
        return rows
