"""
Service-account authentication for reading the roster sheet.

Credentials come either from a downloaded service-account JSON key file
or from individual settings (client email, private key, project ID),
which is how they are usually supplied as deployment secrets.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from google.oauth2 import service_account

# Read-only access is all the sync needs
SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

TOKEN_URI = "https://oauth2.googleapis.com/token"

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when service-account credentials are missing or invalid."""

    pass


def normalize_private_key(private_key: str) -> str:
    """Turn literal "\\n" sequences (common in env vars) into newlines."""
    return private_key.replace("\\n", "\n")


class GoogleAuth:
    """
    Builds Google credentials for a service account.

    Attributes:
        service_account_file: Path to a JSON key file, if configured
        client_email: Service account email (used when no key file)
        private_key: PEM private key (used when no key file)
        project_id: Google Cloud project ID

    Usage:
        auth = GoogleAuth(service_account_file=Path("key.json"))
        credentials = auth.get_credentials()

        auth = GoogleAuth(
            client_email="sync@project.iam.gserviceaccount.com",
            private_key=os.environ["GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY"],
            project_id="project",
        )
    """

    def __init__(
        self,
        service_account_file: Optional[Path] = None,
        client_email: Optional[str] = None,
        private_key: Optional[str] = None,
        project_id: Optional[str] = None,
        scopes: Optional[list[str]] = None,
    ):
        self.service_account_file = (
            Path(service_account_file).expanduser() if service_account_file else None
        )
        self.client_email = client_email
        self.private_key = normalize_private_key(private_key) if private_key else None
        self.project_id = project_id
        self.scopes = scopes or list(SCOPES)

    def is_configured(self) -> bool:
        """True when either a key file or an email/key pair is available."""
        return bool(
            self.service_account_file or (self.client_email and self.private_key)
        )

    def service_account_info(self) -> dict[str, Any]:
        """
        Assemble the service-account info dict from individual settings.

        Raises:
            AuthenticationError: If the email or private key is missing
        """
        if not self.client_email or not self.private_key:
            raise AuthenticationError(
                "Service account email and private key are required "
                "when no service account file is configured"
            )
        return {
            "type": "service_account",
            "project_id": self.project_id or "",
            "client_email": self.client_email,
            "private_key": self.private_key,
            "token_uri": TOKEN_URI,
        }

    def get_credentials(self) -> service_account.Credentials:
        """
        Build credentials for the configured service account.

        Returns:
            Service-account credentials scoped for read-only sheet access

        Raises:
            AuthenticationError: If nothing is configured or the key is invalid
        """
        if not self.is_configured():
            raise AuthenticationError(
                "No Google service account configured. Set "
                "GOOGLE_SERVICE_ACCOUNT_FILE, or GOOGLE_SERVICE_ACCOUNT_EMAIL "
                "and GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY."
            )

        try:
            if self.service_account_file:
                if not self.service_account_file.exists():
                    raise AuthenticationError(
                        f"Service account file not found: {self.service_account_file}"
                    )
                credentials = service_account.Credentials.from_service_account_file(
                    str(self.service_account_file), scopes=self.scopes
                )
                logger.debug(
                    f"Loaded service account credentials from {self.service_account_file}"
                )
            else:
                credentials = service_account.Credentials.from_service_account_info(
                    self.service_account_info(), scopes=self.scopes
                )
                logger.debug(f"Loaded service account credentials for {self.client_email}")
        except ValueError as e:
            raise AuthenticationError(f"Invalid service account credentials: {e}") from e

        return credentials
