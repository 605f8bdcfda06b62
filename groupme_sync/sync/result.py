"""
Result types for a reconciliation pass.

A SyncResult always satisfies added + skipped + errors == len(details).
Failed rows are additionally kept in failed_rows so an operator can
inspect or retry them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from groupme_sync.sync.contact import Contact


class SyncStatus(str, Enum):
    """Outcome of processing a single contact."""

    ADDED = "added"
    SKIPPED = "skipped"
    ERROR = "error"


class SkipReason(str, Enum):
    """Why a contact was skipped."""

    ALREADY_IN_GROUP = "already_in_group"  # Matched the membership snapshot
    ALREADY_EXISTS = "already_exists"  # Joined after the snapshot was taken
    ALREADY_PROCESSED = "already_processed"  # Recorded in the row ledger
    DRY_RUN = "dry_run"  # Would have been added


UNKNOWN_ERROR = "Unknown error"

# Detail name used for a pass that failed as a whole
PASS_FAILURE_NAME = "sync"


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class SyncResultDetail:
    """Per-contact outcome. For skips and errors, `error` holds the reason."""

    name: str
    status: SyncStatus
    error: Optional[str] = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class SyncResultFailedRow:
    """A contact whose add failed, kept for inspection and retry."""

    contact: Contact
    error: str
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "contact": self.contact.to_dict(),
            "error": self.error,
            "timestamp": self.timestamp,
        }


@dataclass
class SyncResult:
    """
    Aggregate outcome of one reconciliation pass.

    Attributes:
        added: Contacts newly added to the group
        skipped: Contacts not added because they were already present
        errors: Contacts whose add failed (or 1 for a failed pass)
        duration: Wall-clock duration of the pass in milliseconds
        details: One entry per processed contact, in sheet order
        failed_rows: Contacts whose add failed
    """

    added: int = 0
    skipped: int = 0
    errors: int = 0
    duration: int = 0
    details: list[SyncResultDetail] = field(default_factory=list)
    failed_rows: list[SyncResultFailedRow] = field(default_factory=list)

    @classmethod
    def empty(cls, duration: int = 0) -> "SyncResult":
        """Zero-valued result used for short-circuited passes."""
        return cls(duration=duration)

    @classmethod
    def failure(cls, error: BaseException | str | None = None) -> "SyncResult":
        """Synthetic result for a pass that failed after all retries."""
        message = str(error) if error is not None else ""
        detail = SyncResultDetail(
            name=PASS_FAILURE_NAME,
            status=SyncStatus.ERROR,
            error=message or UNKNOWN_ERROR,
        )
        return cls(errors=1, details=[detail])

    @classmethod
    def from_details(
        cls,
        details: list[SyncResultDetail],
        failed_rows: list[SyncResultFailedRow],
        duration: int,
    ) -> "SyncResult":
        """Aggregate per-contact details into counts."""
        return cls(
            added=sum(1 for d in details if d.status is SyncStatus.ADDED),
            skipped=sum(1 for d in details if d.status is SyncStatus.SKIPPED),
            errors=sum(1 for d in details if d.status is SyncStatus.ERROR),
            duration=duration,
            details=list(details),
            failed_rows=list(failed_rows),
        )

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.skipped or self.errors)

    def counts(self) -> dict[str, int]:
        """The summary handed to the success notification."""
        return {"added": self.added, "skipped": self.skipped, "errors": self.errors}

    def summary(self) -> str:
        return (
            f"added={self.added}, skipped={self.skipped}, "
            f"errors={self.errors}, duration={self.duration}ms"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.counts(),
            "duration": self.duration,
            "details": [d.to_dict() for d in self.details],
            "failedRows": [r.to_dict() for r in self.failed_rows],
        }
