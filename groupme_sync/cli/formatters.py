"""CLI output formatting functions.

This module contains functions for displaying sync results and the
outcome of each contact on the command line.
"""

from typing import TYPE_CHECKING

import click

from groupme_sync.sync.result import SkipReason, SyncStatus

if TYPE_CHECKING:
    from groupme_sync.daemon import DaemonStats
    from groupme_sync.sync.result import SyncResult

# Maximum rows listed per section before truncating
MAX_LISTED = 10

STATUS_COLORS = {
    SyncStatus.ADDED: "green",
    SyncStatus.SKIPPED: "yellow",
    SyncStatus.ERROR: "red",
}


def _truncation_note(total: int) -> None:
    if total > MAX_LISTED:
        click.echo(f"  ... and {total - MAX_LISTED} more")


def show_sync_result(result: "SyncResult", dry_run: bool = False) -> None:
    """
    Display the counts of a pass, plus failed rows and dry-run previews.

    Args:
        result: The SyncResult of the pass
        dry_run: Whether the pass ran without adding anyone
    """
    click.echo("\n=== Sync Summary ===")
    click.echo(f"  Added:    {click.style(str(result.added), fg='green')}")
    click.echo(f"  Skipped:  {click.style(str(result.skipped), fg='yellow')}")
    errors_color = "red" if result.errors else "green"
    click.echo(f"  Errors:   {click.style(str(result.errors), fg=errors_color)}")
    click.echo(f"  Duration: {result.duration}ms")

    if dry_run:
        show_dry_run_preview(result)

    if result.failed_rows:
        show_failed_rows(result)

    if result.is_empty and not result.details:
        click.echo("\nNothing to sync.")


def show_dry_run_preview(result: "SyncResult") -> None:
    """List the contacts a real run would have added."""
    would_add = [d for d in result.details if d.error == SkipReason.DRY_RUN.value]
    if not would_add:
        return

    click.echo(f"\nWould add {len(would_add)} member(s):")
    for detail in would_add[:MAX_LISTED]:
        click.echo(f"  + {detail.name}")
    _truncation_note(len(would_add))


def show_failed_rows(result: "SyncResult") -> None:
    """List contacts whose add failed, with the error for each."""
    click.echo(click.style(f"\nFailed rows ({len(result.failed_rows)}):", fg="red"))
    for row in result.failed_rows[:MAX_LISTED]:
        click.echo(f"  ! {row.contact}: {row.error}")
    _truncation_note(len(result.failed_rows))


def show_details(result: "SyncResult") -> None:
    """Print one line per processed contact (verbose mode)."""
    if not result.details:
        return

    click.echo("\n=== Contacts ===")
    for detail in result.details:
        status = click.style(
            detail.status.value.ljust(7), fg=STATUS_COLORS[detail.status]
        )
        suffix = f" ({detail.error})" if detail.error else ""
        click.echo(f"  {status} {detail.name}{suffix}")


def show_daemon_stats(stats: "DaemonStats") -> None:
    """Summarize a daemon run after it stops."""
    click.echo(
        f"Ran {stats.sync_count} sync(s): {stats.sync_success_count} clean, "
        f"{stats.sync_error_count} with errors, {stats.total_added} member(s) added"
    )
