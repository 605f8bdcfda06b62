"""
Configuration file generator.

Writes a commented YAML template documenting every option the service
reads from its configuration file.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Every option is commented out, so the generated file parses to an
    empty configuration until the user edits it.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Google Sheets to GroupMe Sync Configuration
# ===========================================
#
# Environment variables always override the values in this file. Keep
# secrets (GROUPME_ACCESS_TOKEN, GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY) in the
# environment rather than here.
#
# To use this configuration:
#   1. Save as ~/.groupme-sync/config.yaml (or custom location)
#   2. Uncomment and modify options as needed
#   3. Run `groupme-sync validate`, then `groupme-sync sync`


# Google Sheets
# -------------

# Spreadsheet ID (the long token in the sheet URL)
# Env: GOOGLE_SHEET_ID (required)
# google_sheet_id: 1AbCdEfGhIjKlMnOpQrStUvWxYz

# A1 range to read; the first row must hold the column headers
# Env: GOOGLE_SHEET_RANGE
# Default: A:Z
# google_sheet_range: A:Z

# Service account JSON key file
# Env: GOOGLE_SERVICE_ACCOUNT_FILE
# google_service_account_file: ~/.groupme-sync/service-account.json

# Alternatively, individual service account fields
# Env: GOOGLE_SERVICE_ACCOUNT_EMAIL, GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY,
#      GOOGLE_PROJECT_ID
# google_service_account_email: sync@my-project.iam.gserviceaccount.com
# google_project_id: my-project


# GroupMe
# -------

# Group to add members to
# Env: GROUPME_GROUP_ID (required)
# groupme_group_id: "12345678"

# Env: GROUPME_ACCESS_TOKEN (required)


# Column Mapping
# --------------
# Header names are matched case-insensitively. Email and phone columns are
# optional in the sheet.

# Full-name column
# Env: COLUMN_NAME
# Default: Name
# column_name: Name

# Separate first/last name columns; when column_first_name is set, names
# are built from these instead of column_name
# Env: COLUMN_FIRST_NAME, COLUMN_LAST_NAME
# column_first_name: First Name
# column_last_name: Last Name

# Env: COLUMN_EMAIL
# Default: Email
# column_email: Email

# Env: COLUMN_PHONE
# Default: Phone
# column_phone: Phone


# Sync Behavior
# -------------

# Run the whole pass but never add anyone
# Env: DRY_RUN
# Default: false
# dry_run: false

# Discord webhook for success/error notifications
# Env: DISCORD_WEBHOOK_URL
# Default: notifications disabled
# discord_webhook_url: https://discord.com/api/webhooks/...

# Retries after a failed pass: waits of base, 2*base, 4*base, ... seconds
# Default: 2.0 and 3
# retry_base_delay: 2.0
# retry_max_retries: 3

# Timeout for GroupMe API calls, in seconds
# Default: 30
# http_timeout: 30


# Daemon Options
# --------------

# Interval between scheduled passes (e.g. 30m, 1h, 1d)
# Default: 1h
# daemon_interval: 1h

# Seconds to wait before the first pass after startup
# Default: 3
# daemon_startup_delay: 3

# Default: ~/.groupme-sync/daemon.pid
# daemon_pid_file: ~/.groupme-sync/daemon.pid


# Processed-Row Ledger
# --------------------

# Remember rows that were already handled and never resend them
# Default: false
# ledger_enabled: false

# Default: ~/.groupme-sync/ledger.db
# ledger_path: ~/.groupme-sync/ledger.db


# Logging Options
# ---------------

# Default: false
# verbose: false

# Default: logs/ in the project directory
# log_dir: ~/.groupme-sync/logs

# Number of daily log files to keep
# Default: 10
# log_retention_count: 10
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves the
    configuration readable by the owner only.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
