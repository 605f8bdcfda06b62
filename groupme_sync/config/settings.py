"""
Typed application settings.

Settings are assembled from three sources, highest priority first:
environment variables, the YAML configuration file, built-in defaults.
Secrets (access token, private key) are normally supplied through the
environment so the YAML file can be committed or shared.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, NamedTuple, Optional

from groupme_sync.auth.google_auth import GoogleAuth
from groupme_sync.sync.extractor import ColumnMapping
from groupme_sync.sync.retry import DEFAULT_BASE_DELAY, DEFAULT_MAX_RETRIES, RetryPolicy
from groupme_sync.utils import resolve_config_dir

DEFAULT_SHEET_RANGE = "A:Z"
DEFAULT_HTTP_TIMEOUT = 30.0  # seconds
DEFAULT_DAEMON_INTERVAL = "1h"
DEFAULT_STARTUP_DELAY = 3.0  # seconds
DEFAULT_LEDGER_FILE = "ledger.db"
DEFAULT_PID_FILE = "daemon.pid"
DEFAULT_LOG_RETENTION_COUNT = 10

TRUE_VALUES = ("1", "true", "yes", "on")

logger = logging.getLogger(__name__)


class SettingsError(Exception):
    """Raised when a required setting is missing or a value cannot be parsed."""

    pass


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


class _Sources:
    """Lookup helper: environment variable, then YAML key, then default."""

    def __init__(self, config: Mapping[str, Any], environ: Mapping[str, str]):
        self.config = config
        self.environ = environ

    def get(self, key: str, env_var: Optional[str] = None, default: Any = None) -> Any:
        if env_var:
            env_value = self.environ.get(env_var)
            if env_value is not None and env_value != "":
                return env_value
        value = self.config.get(key)
        if value is None:
            return default
        return value

    def get_str(
        self, key: str, env_var: Optional[str] = None, default: Optional[str] = None
    ) -> Optional[str]:
        value = self.get(key, env_var, default)
        return None if value is None else str(value)


class RequiredSettings(NamedTuple):
    """The identifiers a sync pass cannot run without."""

    sheet_id: str
    group_id: str
    access_token: str


@dataclass
class GoogleSettings:
    """Where the roster lives and how to authenticate to it."""

    sheet_id: Optional[str] = None
    sheet_range: str = DEFAULT_SHEET_RANGE
    service_account_file: Optional[Path] = None
    client_email: Optional[str] = None
    private_key: Optional[str] = None
    project_id: Optional[str] = None

    def auth(self) -> GoogleAuth:
        return GoogleAuth(
            service_account_file=self.service_account_file,
            client_email=self.client_email,
            private_key=self.private_key,
            project_id=self.project_id,
        )


@dataclass
class GroupMeSettings:
    group_id: Optional[str] = None
    access_token: Optional[str] = None


@dataclass
class DaemonSettings:
    interval: str = DEFAULT_DAEMON_INTERVAL
    startup_delay: float = DEFAULT_STARTUP_DELAY
    pid_file: Optional[Path] = None


@dataclass
class LedgerSettings:
    enabled: bool = False
    path: Optional[Path] = None


@dataclass
class AppSettings:
    """
    Complete runtime settings for the sync service.

    Usage:
        config = ConfigLoader().load_and_validate()
        settings = AppSettings.from_sources(config)
        settings.require()
    """

    google: GoogleSettings = field(default_factory=GoogleSettings)
    groupme: GroupMeSettings = field(default_factory=GroupMeSettings)
    columns: ColumnMapping = field(default_factory=ColumnMapping)
    dry_run: bool = False
    discord_webhook_url: Optional[str] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    daemon: DaemonSettings = field(default_factory=DaemonSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    log_dir: Optional[Path] = None
    log_retention_count: int = DEFAULT_LOG_RETENTION_COUNT

    @classmethod
    def from_sources(
        cls,
        config: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
        config_dir: Optional[Path] = None,
    ) -> AppSettings:
        """
        Build settings from a loaded YAML dict and the environment.

        Args:
            config: Parsed configuration file (may be empty)
            environ: Environment mapping; defaults to os.environ
            config_dir: Base directory for the default ledger and PID paths

        Raises:
            SettingsError: If a numeric value cannot be parsed
        """
        src = _Sources(config or {}, os.environ if environ is None else environ)
        base_dir = resolve_config_dir(config_dir)

        service_account_file = src.get_str(
            "google_service_account_file", "GOOGLE_SERVICE_ACCOUNT_FILE"
        )
        google = GoogleSettings(
            sheet_id=src.get_str("google_sheet_id", "GOOGLE_SHEET_ID"),
            sheet_range=src.get_str(
                "google_sheet_range", "GOOGLE_SHEET_RANGE", DEFAULT_SHEET_RANGE
            )
            or DEFAULT_SHEET_RANGE,
            service_account_file=(
                Path(service_account_file).expanduser() if service_account_file else None
            ),
            client_email=src.get_str(
                "google_service_account_email", "GOOGLE_SERVICE_ACCOUNT_EMAIL"
            ),
            private_key=src.get_str(
                "google_service_account_private_key",
                "GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY",
            ),
            project_id=src.get_str("google_project_id", "GOOGLE_PROJECT_ID"),
        )

        groupme = GroupMeSettings(
            group_id=src.get_str("groupme_group_id", "GROUPME_GROUP_ID"),
            access_token=src.get_str("groupme_access_token", "GROUPME_ACCESS_TOKEN"),
        )

        columns = ColumnMapping(
            name=src.get_str("column_name", "COLUMN_NAME", "Name") or "Name",
            first_name=src.get_str("column_first_name", "COLUMN_FIRST_NAME", "") or "",
            last_name=src.get_str("column_last_name", "COLUMN_LAST_NAME", "") or "",
            email=src.get_str("column_email", "COLUMN_EMAIL", "Email") or "Email",
            phone=src.get_str("column_phone", "COLUMN_PHONE", "Phone") or "Phone",
        )

        try:
            retry = RetryPolicy(
                base_delay=float(src.get("retry_base_delay", default=DEFAULT_BASE_DELAY)),
                max_retries=int(src.get("retry_max_retries", default=DEFAULT_MAX_RETRIES)),
            )
            http_timeout = float(src.get("http_timeout", default=DEFAULT_HTTP_TIMEOUT))
            startup_delay = float(
                src.get("daemon_startup_delay", default=DEFAULT_STARTUP_DELAY)
            )
            log_retention_count = int(
                src.get("log_retention_count", default=DEFAULT_LOG_RETENTION_COUNT)
            )
        except (TypeError, ValueError) as e:
            raise SettingsError(f"Invalid numeric setting: {e}") from e

        pid_file = src.get_str("daemon_pid_file")
        daemon = DaemonSettings(
            interval=src.get_str("daemon_interval", default=DEFAULT_DAEMON_INTERVAL)
            or DEFAULT_DAEMON_INTERVAL,
            startup_delay=startup_delay,
            pid_file=(
                Path(pid_file).expanduser() if pid_file else base_dir / DEFAULT_PID_FILE
            ),
        )

        ledger_path = src.get_str("ledger_path")
        ledger = LedgerSettings(
            enabled=parse_bool(src.get("ledger_enabled", default=False)),
            path=(
                Path(ledger_path).expanduser()
                if ledger_path
                else base_dir / DEFAULT_LEDGER_FILE
            ),
        )

        log_dir = src.get_str("log_dir")

        return cls(
            google=google,
            groupme=groupme,
            columns=columns,
            dry_run=parse_bool(src.get("dry_run", "DRY_RUN", False)),
            discord_webhook_url=src.get_str("discord_webhook_url", "DISCORD_WEBHOOK_URL"),
            retry=retry,
            http_timeout=http_timeout,
            daemon=daemon,
            ledger=ledger,
            log_dir=Path(log_dir).expanduser() if log_dir else None,
            log_retention_count=log_retention_count,
        )

    def missing_required(self) -> list[str]:
        """Names (as environment variables) of required settings that are unset."""
        missing = []
        if not self.google.sheet_id:
            missing.append("GOOGLE_SHEET_ID")
        if not self.groupme.group_id:
            missing.append("GROUPME_GROUP_ID")
        if not self.groupme.access_token:
            missing.append("GROUPME_ACCESS_TOKEN")
        if not self.google.auth().is_configured():
            missing.append(
                "GOOGLE_SERVICE_ACCOUNT_FILE or "
                "GOOGLE_SERVICE_ACCOUNT_EMAIL/GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY"
            )
        return missing

    def require(self) -> RequiredSettings:
        """
        Check that everything a sync pass needs is configured.

        Returns:
            RequiredSettings with the sheet ID, group ID and access token

        Raises:
            SettingsError: Listing every missing setting
        """
        missing = self.missing_required()
        if missing or not (
            self.google.sheet_id and self.groupme.group_id and self.groupme.access_token
        ):
            raise SettingsError(f"Missing required settings: {', '.join(missing)}")
        return RequiredSettings(
            sheet_id=self.google.sheet_id,
            group_id=self.groupme.group_id,
            access_token=self.groupme.access_token,
        )
