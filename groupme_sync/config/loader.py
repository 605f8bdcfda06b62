"""
Configuration loader module for the sheet-to-GroupMe sync.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Basic validation of configuration structure
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from groupme_sync.utils import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

CONFIG_FILE_ENV_VAR = "GROUPME_SYNC_CONFIG_FILE"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load()

        # With custom path
        loader = ConfigLoader(config_dir=Path("/custom/path"))
        config = loader.load()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(self, config_dir: Path | None = None, config_file: str | None = None):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.groupme-sync/ or $GROUPME_SYNC_CONFIG_DIR
            config_file: Name of the configuration file. Defaults to
                       $GROUPME_SYNC_CONFIG_FILE or config.yaml
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = (
            config_file or os.environ.get(CONFIG_FILE_ENV_VAR) or DEFAULT_CONFIG_FILE
        )

    def get_config_path(self) -> Path:
        """Full path to the configuration file."""
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self.get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Returns an empty dict if the file doesn't exist, so the service can
        run from environment variables alone.

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if config is None:
                logger.debug(f"Configuration file is empty: {path}")
                return {}

            if not isinstance(config, dict):
                raise ConfigError(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(config).__name__}"
                )

            logger.debug(f"Loaded configuration from {path}")
            return config

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Unknown keys are ignored; known keys are type- and range-checked.

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        valid_keys: dict[str, type[Any] | tuple[type[Any], ...]] = {
            # Google Sheets
            "google_sheet_id": str,
            "google_sheet_range": str,
            "google_service_account_file": str,
            "google_service_account_email": str,
            "google_service_account_private_key": str,
            "google_project_id": str,
            # GroupMe
            "groupme_group_id": (str, int),
            "groupme_access_token": str,
            # Column mapping
            "column_name": str,
            "column_first_name": str,
            "column_last_name": str,
            "column_email": str,
            "column_phone": str,
            # Sync behaviour
            "dry_run": bool,
            "discord_webhook_url": str,
            "retry_base_delay": (int, float),
            "retry_max_retries": int,
            "http_timeout": (int, float),
            # Daemon options
            "daemon_interval": (str, int),
            "daemon_startup_delay": (int, float),
            "daemon_pid_file": str,
            # Ledger options
            "ledger_enabled": bool,
            "ledger_path": str,
            # Logging options
            "verbose": bool,
            "log_dir": str,
            "log_retention_count": int,
        }

        for key, value in config.items():
            if key not in valid_keys:
                continue
            expected_type = valid_keys[key]
            # bool is an int subclass; don't let `true` pass as a number
            is_bool_mismatch = isinstance(value, bool) and expected_type is not bool
            if is_bool_mismatch or not isinstance(value, expected_type):
                if isinstance(expected_type, tuple):
                    type_name = " or ".join(t.__name__ for t in expected_type)
                else:
                    type_name = expected_type.__name__
                raise ConfigError(
                    f"Invalid type for '{key}': expected {type_name}, "
                    f"got {type(value).__name__}"
                )

        # Non-negative values (zero disables the retry / the delay)
        for key in ("retry_base_delay", "retry_max_retries", "daemon_startup_delay"):
            if key in config and config[key] < 0:
                raise ConfigError(f"{key} must be >= 0, got {config[key]}")

        # Positive values
        for key in ("http_timeout", "log_retention_count"):
            if key in config and config[key] <= 0:
                raise ConfigError(f"{key} must be > 0, got {config[key]}")

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
