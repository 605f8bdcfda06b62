"""CLI package for groupme_sync."""

from groupme_sync.cli.formatters import (
    show_daemon_stats,
    show_details,
    show_sync_result,
)
from groupme_sync.cli.main import (
    build_reconciler,
    build_runner,
    cli,
    get_config_dir,
    get_config_file,
)
from groupme_sync.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "build_reconciler",
    "build_runner",
    "cli",
    "get_config_dir",
    "get_config_file",
    "show_daemon_stats",
    "show_details",
    "show_sync_result",
]
