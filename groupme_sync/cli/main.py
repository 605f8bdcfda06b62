"""
Command-line interface for groupme_sync.

Provides CLI commands for running the sheet-to-GroupMe sync once or on a
schedule, checking configuration and connectivity, and managing state.

Usage:
    # Show help
    groupme-sync --help

    # Check configuration
    groupme-sync validate

    # Run synchronization
    groupme-sync sync
    groupme-sync sync --dry-run

    # Run every hour until stopped
    groupme-sync daemon start
"""

import sys
from pathlib import Path

import click

from groupme_sync import __version__
from groupme_sync.api.groupme_api import GroupMeAPI, GroupMeAPIError
from groupme_sync.api.sheets_api import RowFetchError, SheetsAPI
from groupme_sync.auth.google_auth import AuthenticationError
from groupme_sync.cli.formatters import show_daemon_stats, show_details, show_sync_result
from groupme_sync.config.generator import save_config_file
from groupme_sync.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from groupme_sync.config.settings import AppSettings, SettingsError
from groupme_sync.health.checks import HealthCheckError, check_health, wait_for_network
from groupme_sync.notify.discord import DiscordNotifier, Notifier, NullNotifier
from groupme_sync.storage.ledger import LedgerError, RowLedger
from groupme_sync.sync.extractor import ColumnMappingError, resolve_column_indices
from groupme_sync.sync.reconciler import Reconciler
from groupme_sync.sync.retry import SyncRunner
from groupme_sync.utils import resolve_config_dir
from groupme_sync.utils.logging import cleanup_old_logs, get_logger, setup_logging


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_dir: Path, config_file: str | None) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def load_settings(ctx: click.Context) -> AppSettings:
    """Build settings from the loaded config file and the environment."""
    try:
        return AppSettings.from_sources(
            ctx.obj.get("config", {}), config_dir=ctx.obj["config_dir"]
        )
    except SettingsError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


def open_ledger(settings: AppSettings) -> RowLedger | None:
    """Open the processed-row ledger, or None when it is disabled."""
    if not settings.ledger.enabled or settings.ledger.path is None:
        return None
    settings.ledger.path.parent.mkdir(parents=True, exist_ok=True)
    ledger = RowLedger(str(settings.ledger.path))
    ledger.initialize()
    return ledger


def build_notifier(settings: AppSettings) -> Notifier:
    if settings.discord_webhook_url:
        return DiscordNotifier(settings.discord_webhook_url)
    return NullNotifier()


def build_reconciler(settings: AppSettings, dry_run: bool = False) -> Reconciler:
    """
    Wire the reconciler to the real Sheets and GroupMe clients.

    Raises:
        SettingsError: If required settings are missing
        AuthenticationError: If the service account cannot be loaded
        LedgerError: If the ledger is enabled but cannot be opened
    """
    required = settings.require()

    credentials = settings.google.auth().get_credentials()
    return Reconciler(
        row_source=SheetsAPI(credentials),
        membership=GroupMeAPI(
            required.access_token, timeout=settings.http_timeout
        ),
        sheet_id=required.sheet_id,
        group_id=required.group_id,
        column_mapping=settings.columns,
        range_spec=settings.google.sheet_range,
        dry_run=dry_run,
        ledger=open_ledger(settings),
    )


def build_runner(settings: AppSettings, dry_run: bool = False) -> SyncRunner:
    """Reconciler plus retry policy and notifications, ready to run."""
    return SyncRunner(
        build_reconciler(settings, dry_run=dry_run),
        notifier=build_notifier(settings),
        policy=settings.retry,
    )


@click.group()
@click.version_option(version=__version__, prog_name="groupme-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="GROUPME_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.groupme-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="GROUPME_SYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Google Sheets to GroupMe Sync.

    Adds everyone listed in a Google Sheet roster to a GroupMe group,
    skipping people who are already members.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config = {}
    try:
        loader = ConfigLoader(
            config_dir=resolved_config_dir, config_file=str(resolved_config_file)
        )
        config = loader.load_and_validate()
    except ConfigError as e:
        # Keep going: everything can also come from the environment
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    ctx.obj["config"] = config

    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = None
    if config.get("log_dir"):
        log_dir = Path(config["log_dir"]).expanduser()

    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Run the whole pass without adding anyone."
)
@click.option(
    "--no-retry", is_flag=True, help="Make a single attempt instead of retrying."
)
@click.pass_context
def sync_command(ctx: click.Context, dry_run: bool, no_retry: bool) -> None:
    """
    Run one sync pass.

    Reads the roster sheet, compares it with the group's current members,
    and adds everyone who is missing. Failed passes are retried with
    exponential backoff unless --no-retry is given.

    Exits with status 1 if any contact failed or the pass itself failed.

    Examples:

        # Preview who would be added
        groupme-sync sync --dry-run

        # Single attempt, detailed output
        groupme-sync -v sync --no-retry
    """
    logger = get_logger(__name__)
    verbose = ctx.obj["verbose"]

    settings = load_settings(ctx)
    effective_dry_run = dry_run or settings.dry_run
    try:
        runner = build_runner(settings, dry_run=effective_dry_run)
    except (SettingsError, AuthenticationError, LedgerError) as e:
        logger.error(f"Cannot start sync: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if effective_dry_run:
        click.echo(click.style("Dry run: no members will be added.", fg="cyan"))

    result = runner.run_once() if no_retry else runner.run()

    show_sync_result(result, dry_run=effective_dry_run)
    if verbose:
        show_details(result)

    if result.errors:
        sys.exit(1)

    click.echo(click.style("\nSync complete.", fg="green"))


# =============================================================================
# Validate Command
# =============================================================================


@cli.command("validate")
@click.pass_context
def validate_command(ctx: click.Context) -> None:
    """
    Check settings, credentials and sheet layout without syncing.

    Verifies that the GroupMe token is accepted, the sheet can be read
    with the service account, and the header row contains the configured
    columns.

    Example:

        groupme-sync validate
    """
    logger = get_logger(__name__)

    settings = load_settings(ctx)
    try:
        required = settings.require()
    except SettingsError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    failures = 0

    click.echo("=== Configuration Check ===\n")

    try:
        user = GroupMeAPI(
            required.access_token, timeout=settings.http_timeout
        ).validate_token()
        click.echo(
            f"GroupMe token: {click.style('OK', fg='green')} "
            f"({user.get('name', 'unknown user')})"
        )
    except GroupMeAPIError as e:
        failures += 1
        click.echo(f"GroupMe token: {click.style('FAILED', fg='red')} ({e})")

    try:
        credentials = settings.google.auth().get_credentials()
        rows = SheetsAPI(credentials).fetch_rows(
            required.sheet_id, settings.google.sheet_range
        )
        click.echo(
            f"Google Sheet:  {click.style('OK', fg='green')} ({len(rows)} row(s))"
        )
        if rows:
            indices = resolve_column_indices(rows[0], settings.columns)
            mode = "first/last name" if indices.use_separate_names else "full name"
            click.echo(f"Columns:       {click.style('OK', fg='green')} ({mode})")
        else:
            click.echo(f"Columns:       {click.style('SKIPPED', fg='yellow')} (empty sheet)")
    except (AuthenticationError, RowFetchError) as e:
        failures += 1
        click.echo(f"Google Sheet:  {click.style('FAILED', fg='red')} ({e})")
    except ColumnMappingError as e:
        failures += 1
        click.echo(f"Columns:       {click.style('FAILED', fg='red')} ({e})")

    click.echo()
    if failures:
        logger.error(f"Validation failed with {failures} problem(s)")
        click.echo(click.style(f"{failures} check(s) failed.", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("All checks passed.", fg="green"))


# =============================================================================
# Health Command
# =============================================================================


@cli.command("health")
def health_command() -> None:
    """
    Check that the Google Sheets API is reachable.

    Prints "healthy", or "unhealthy" with a reason and exits with status 1.
    Useful for container health checks.

    Example:

        groupme-sync health
    """
    try:
        status = check_health()
    except HealthCheckError as e:
        click.echo(f"unhealthy: {e}")
        sys.exit(1)
    click.echo(status["status"])


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        groupme-sync init-config
        groupme-sync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Set the sheet ID, group ID and service account options")
        click.echo("2. Export GROUPME_ACCESS_TOKEN in your environment")
        click.echo("3. Run 'groupme-sync validate'")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


# =============================================================================
# Daemon Commands
# =============================================================================


@cli.group("daemon")
def daemon_group() -> None:
    """
    Run syncs on a fixed interval.

    Examples:

        groupme-sync daemon start --interval 30m
        groupme-sync daemon status
        groupme-sync daemon stop
    """


@daemon_group.command("start")
@click.option(
    "--interval",
    "-i",
    default=None,
    help=(
        "Sync interval (e.g., '30s', '5m', '1h', '1d'). "
        "Defaults to config value or '1h'."
    ),
)
@click.option(
    "--no-initial-sync",
    is_flag=True,
    help="Wait one interval before the first sync.",
)
@click.pass_context
def daemon_start_command(
    ctx: click.Context, interval: str | None, no_initial_sync: bool
) -> None:
    """
    Start the sync scheduler in the foreground.

    The scheduler waits for the network, runs a sync (unless
    --no-initial-sync), then repeats at the interval until it receives
    SIGTERM or SIGINT. A pass never starts while another is running.
    """
    logger = get_logger(__name__)

    from groupme_sync.daemon import (
        DaemonAlreadyRunningError,
        DaemonError,
        DaemonScheduler,
        parse_interval,
    )

    settings = load_settings(ctx)

    effective_interval = interval or settings.daemon.interval
    try:
        interval_seconds = parse_interval(effective_interval)
    except ValueError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    try:
        runner = build_runner(settings, dry_run=settings.dry_run)
    except (SettingsError, AuthenticationError, LedgerError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"Starting daemon with {effective_interval} sync interval...")
    click.echo("Running in foreground mode (Ctrl+C to stop)")

    scheduler = DaemonScheduler(
        interval=interval_seconds,
        pid_file=settings.daemon.pid_file,
        run_immediately=not no_initial_sync,
        startup_delay=settings.daemon.startup_delay,
    )
    scheduler.set_network_check(wait_for_network)
    scheduler.set_sync_callback(runner.run)

    try:
        logger.info(f"Daemon starting (interval={interval_seconds}s)")
        scheduler.run()
    except DaemonAlreadyRunningError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        click.echo("Use 'groupme-sync daemon stop' to stop the running daemon.")
        sys.exit(1)
    except DaemonError as e:
        logger.error(f"Daemon error: {e}")
        click.echo(click.style(f"Daemon error: {e}", fg="red"), err=True)
        sys.exit(1)

    show_daemon_stats(scheduler.stats)
    click.echo(click.style("Daemon stopped gracefully.", fg="green"))


@daemon_group.command("stop")
@click.pass_context
def daemon_stop_command(ctx: click.Context) -> None:
    """
    Stop the running scheduler.

    Sends SIGTERM; the daemon finishes any in-progress sync first.
    """
    from groupme_sync.daemon import DaemonScheduler

    pid_file = load_settings(ctx).daemon.pid_file
    pid = DaemonScheduler.get_running_pid(pid_file)

    if pid is None:
        click.echo("No daemon is currently running.")
        return

    click.echo(f"Stopping daemon (PID: {pid})...")

    if DaemonScheduler.stop_running_daemon(pid_file):
        click.echo(click.style("Stop signal sent successfully.", fg="green"))
    else:
        click.echo(
            click.style("Failed to send stop signal to daemon.", fg="red"), err=True
        )
        sys.exit(1)


@daemon_group.command("status")
@click.pass_context
def daemon_status_command(ctx: click.Context) -> None:
    """Show whether the scheduler is running."""
    from groupme_sync.daemon import DaemonScheduler, PIDFileManager

    pid_file = load_settings(ctx).daemon.pid_file
    pid = DaemonScheduler.get_running_pid(pid_file)

    click.echo("=== Daemon Status ===\n")

    if pid is not None:
        click.echo(f"Status: {click.style('Running', fg='green')}")
        click.echo(f"Process ID: {pid}")
    else:
        click.echo(f"Status: {click.style('Stopped', fg='yellow')}")
        stale_pid = PIDFileManager(pid_file).read()
        if stale_pid is not None:
            click.echo(f"Stale PID file exists (PID: {stale_pid})")
            click.echo("It will be cleaned up on next daemon start.")
        else:
            click.echo("No daemon is currently running.")

    if ctx.obj.get("verbose"):
        click.echo(f"\nPID file: {pid_file}")


# =============================================================================
# Ledger Commands
# =============================================================================


@cli.group("ledger")
def ledger_group() -> None:
    """Inspect or reset the processed-row ledger."""


@ledger_group.command("status")
@click.pass_context
def ledger_status_command(ctx: click.Context) -> None:
    """Show how many rows the ledger has recorded."""
    settings = load_settings(ctx)
    path = settings.ledger.path

    click.echo(f"Ledger: {'enabled' if settings.ledger.enabled else 'disabled'}")
    click.echo(f"Path: {path}")

    if path is None or not path.exists():
        click.echo("No ledger database found.")
        return

    try:
        ledger = RowLedger(str(path))
        ledger.initialize()
        last_run = ledger.get_last_run()
        click.echo(f"Recorded rows: {ledger.count()}")
        click.echo(f"Last run: {last_run.isoformat() if last_run else 'never'}")
    except LedgerError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


@ledger_group.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def ledger_clear_command(ctx: click.Context, yes: bool) -> None:
    """
    Forget every recorded row.

    Rows are then matched against the group membership alone on the next
    sync. This does NOT remove anyone from the group.
    """
    logger = get_logger(__name__)
    path = load_settings(ctx).ledger.path

    if path is None or not path.exists():
        click.echo("No ledger database found. Nothing to clear.")
        return

    if not yes:
        click.confirm("This will clear every recorded row.\nContinue?", abort=True)

    try:
        ledger = RowLedger(str(path))
        ledger.initialize()
        ledger.clear()
    except LedgerError as e:
        logger.error(f"Ledger clear failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("Ledger has been cleared.", fg="green"))
    logger.info("Ledger cleared")
