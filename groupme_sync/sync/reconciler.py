"""
Reconciliation engine: sheet roster -> GroupMe membership.

One pass walks an explicit state machine:

    IDLE -> FETCHING -> EXTRACTING -> CHANGE_CHECK -> MATCHING -> ADDING
         -> AGGREGATING -> DONE

with SHORT_CIRCUIT reachable from FETCHING (empty sheet), EXTRACTING (no
contacts) and CHANGE_CHECK (unchanged fingerprint). Failures before ADDING
abort the pass and propagate to the caller; a failure for a single
contact during ADDING is recorded in the result and processing continues.

Contacts are processed one at a time in sheet order against a single
membership snapshot fetched once per pass.
"""

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from groupme_sync.storage.ledger import LedgerError, RowLedger
from groupme_sync.sync.contact import (
    Contact,
    GroupMember,
    MembershipAddResult,
    NewMember,
)
from groupme_sync.sync.extractor import ColumnMapping, extract_contacts
from groupme_sync.sync.fingerprint import ChangeDetector, compute_fingerprint
from groupme_sync.sync.matcher import find_match
from groupme_sync.sync.result import (
    UNKNOWN_ERROR,
    SkipReason,
    SyncResult,
    SyncResultDetail,
    SyncResultFailedRow,
    SyncStatus,
)

DEFAULT_RANGE = "A:Z"

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Raised when a reconciliation pass cannot complete."""

    pass


class RowSource(Protocol):
    """Capability that reads the raw roster rows."""

    def fetch_rows(self, sheet_id: str, range_spec: str) -> list[list[str]]: ...


class MembershipService(Protocol):
    """Capability that reads and extends group membership."""

    def get_members(self, group_id: str) -> list[GroupMember]: ...

    def add_member(self, group_id: str, member: NewMember) -> MembershipAddResult: ...


class PassState(Enum):
    """States of a single reconciliation pass."""

    IDLE = "idle"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    CHANGE_CHECK = "change_check"
    MATCHING = "matching"
    ADDING = "adding"
    AGGREGATING = "aggregating"
    SHORT_CIRCUIT = "short_circuit"
    DONE = "done"


@dataclass
class PassContext:
    """Data accumulated while a pass moves through its states."""

    started_at: float
    rows: list[list[str]] = field(default_factory=list)
    contacts: list[Contact] = field(default_factory=list)
    fingerprint: Optional[str] = None
    members: list[GroupMember] = field(default_factory=list)
    details: list[SyncResultDetail] = field(default_factory=list)
    failed_rows: list[SyncResultFailedRow] = field(default_factory=list)
    short_circuit_reason: Optional[str] = None
    result: Optional[SyncResult] = None
    history: list[PassState] = field(default_factory=list)


@dataclass(frozen=True)
class ContactOutcome:
    """Decision for one contact: its detail, plus a failed row on error."""

    detail: SyncResultDetail
    failed_row: Optional[SyncResultFailedRow] = None


class Reconciler:
    """
    Reconciles the roster sheet against the group's membership.

    Attributes:
        sheet_id: Spreadsheet holding the roster
        group_id: GroupMe group to add members to
        column_mapping: Header names for the contact columns
        dry_run: If True, never call add-member
        change_detector: Holds the fingerprint of the last successful pass

    Usage:
        reconciler = Reconciler(
            row_source=SheetsAPI(credentials),
            membership=GroupMeAPI(token),
            sheet_id=sheet_id,
            group_id=group_id,
        )
        result = reconciler.run()
    """

    def __init__(
        self,
        row_source: RowSource,
        membership: MembershipService,
        sheet_id: str,
        group_id: str,
        column_mapping: Optional[ColumnMapping] = None,
        range_spec: str = DEFAULT_RANGE,
        dry_run: bool = False,
        ledger: Optional[RowLedger] = None,
        change_detector: Optional[ChangeDetector] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.row_source = row_source
        self.membership = membership
        self.sheet_id = sheet_id
        self.group_id = group_id
        self.column_mapping = column_mapping or ColumnMapping()
        self.range_spec = range_spec
        self.dry_run = dry_run
        self.ledger = ledger
        self.change_detector = change_detector or ChangeDetector()
        self._clock = clock
        self.last_pass: Optional[PassContext] = None

        self._handlers: dict[PassState, Callable[[PassContext], PassState]] = {
            PassState.IDLE: self._start,
            PassState.FETCHING: self._fetch,
            PassState.EXTRACTING: self._extract,
            PassState.CHANGE_CHECK: self._check_changes,
            PassState.MATCHING: self._fetch_members,
            PassState.ADDING: self._add_contacts,
            PassState.AGGREGATING: self._aggregate,
            PassState.SHORT_CIRCUIT: self._short_circuit,
        }

    # =========================================================================
    # State machine
    # =========================================================================

    def run(self) -> SyncResult:
        """
        Execute one reconciliation pass.

        Returns:
            SyncResult for the pass (zero-valued when short-circuited)

        Raises:
            ColumnMappingError: If a required column is missing
            SyncError: If the membership snapshot cannot be fetched
            Exception: Whatever the row source raises when rows can't be read
        """
        ctx = PassContext(started_at=self._clock())
        self.last_pass = ctx
        state = PassState.IDLE

        while state is not PassState.DONE:
            ctx.history.append(state)
            next_state = self.step(state, ctx)
            logger.debug(f"Pass state {state.value} -> {next_state.value}")
            state = next_state

        ctx.history.append(PassState.DONE)
        if ctx.result is None:
            raise SyncError("Pass finished without a result")
        return ctx.result

    def step(self, state: PassState, ctx: PassContext) -> PassState:
        """Run the handler for `state` and return the next state."""
        handler = self._handlers.get(state)
        if handler is None:
            raise SyncError(f"No transition defined from state {state.value}")
        return handler(ctx)

    def _elapsed_ms(self, ctx: PassContext) -> int:
        return int((self._clock() - ctx.started_at) * 1000)

    def _start(self, ctx: PassContext) -> PassState:
        logger.info("Starting sync..." + (" (dry run)" if self.dry_run else ""))
        return PassState.FETCHING

    def _fetch(self, ctx: PassContext) -> PassState:
        ctx.rows = self.row_source.fetch_rows(self.sheet_id, self.range_spec)
        if not ctx.rows:
            ctx.short_circuit_reason = "No rows found in Google Sheet"
            return PassState.SHORT_CIRCUIT
        return PassState.EXTRACTING

    def _extract(self, ctx: PassContext) -> PassState:
        ctx.contacts = extract_contacts(ctx.rows, self.column_mapping)
        if not ctx.contacts:
            ctx.short_circuit_reason = "No valid user contacts found"
            return PassState.SHORT_CIRCUIT
        logger.info(f"Found {len(ctx.contacts)} user contacts")
        return PassState.CHANGE_CHECK

    def _check_changes(self, ctx: PassContext) -> PassState:
        ctx.fingerprint = compute_fingerprint(ctx.rows)
        if self.change_detector.is_unchanged(ctx.fingerprint):
            ctx.short_circuit_reason = "No changes detected in sheet data, skipping sync"
            return PassState.SHORT_CIRCUIT
        return PassState.MATCHING

    def _fetch_members(self, ctx: PassContext) -> PassState:
        try:
            ctx.members = list(self.membership.get_members(self.group_id))
        except Exception as e:
            raise SyncError(
                "Cannot sync without member list - duplicate detection "
                f"would be disabled: {e}"
            ) from e
        logger.info(f"Found {len(ctx.members)} existing members in group")
        return PassState.ADDING

    def _add_contacts(self, ctx: PassContext) -> PassState:
        for contact in ctx.contacts:
            outcome = self.process_contact(contact, ctx.members)
            ctx.details.append(outcome.detail)
            if outcome.failed_row is not None:
                ctx.failed_rows.append(outcome.failed_row)
            self._record_in_ledger(contact, outcome.detail)
        return PassState.AGGREGATING

    def _aggregate(self, ctx: PassContext) -> PassState:
        ctx.result = SyncResult.from_details(
            ctx.details, ctx.failed_rows, duration=self._elapsed_ms(ctx)
        )
        # Only a completed, non-dry-run pass updates the fingerprint, so a
        # pass that failed before this point is retried in full.
        if ctx.fingerprint is not None and not self.dry_run:
            self.change_detector.record(ctx.fingerprint)
        logger.info(f"Sync complete: {ctx.result.summary()}")
        return PassState.DONE

    def _short_circuit(self, ctx: PassContext) -> PassState:
        logger.info(ctx.short_circuit_reason or "Nothing to sync")
        ctx.result = SyncResult.empty(duration=self._elapsed_ms(ctx))
        return PassState.DONE

    # =========================================================================
    # Per-contact decision
    # =========================================================================

    def process_contact(
        self, contact: Contact, members: Sequence[GroupMember]
    ) -> ContactOutcome:
        """
        Decide and apply the outcome for one contact.

        Never raises: add failures become error outcomes.
        """
        if self._already_in_ledger(contact):
            logger.debug(f"Skipping {contact.name}: already processed")
            return _skipped(contact, SkipReason.ALREADY_PROCESSED)

        match = find_match(contact, members)
        if match.is_match:
            logger.debug(f"Skipping {contact.name}: already in group ({match.reason})")
            return _skipped(contact, SkipReason.ALREADY_IN_GROUP)

        if self.dry_run:
            logger.info(f"[dry run] Would add {contact}")
            return _skipped(contact, SkipReason.DRY_RUN)

        try:
            add_result = self.membership.add_member(
                self.group_id, contact.to_new_member()
            )
        except Exception as e:
            return _failed(contact, str(e) or type(e).__name__)

        if add_result.already_exists:
            logger.debug(f"Skipping {contact.name}: already exists in GroupMe")
            return _skipped(contact, SkipReason.ALREADY_EXISTS)

        if not add_result.success:
            return _failed(contact, add_result.error_message or UNKNOWN_ERROR)

        logger.info(
            f"Added {contact.name} to group"
            + (f" (member {add_result.member_id})" if add_result.member_id else "")
        )
        return ContactOutcome(
            detail=SyncResultDetail(name=contact.name, status=SyncStatus.ADDED)
        )

    # =========================================================================
    # Ledger
    # =========================================================================

    def _already_in_ledger(self, contact: Contact) -> bool:
        if self.ledger is None:
            return False
        try:
            return self.ledger.is_processed(contact.row_id())
        except LedgerError as e:
            logger.warning(f"Ledger lookup failed for {contact.name}: {e}")
            return False

    def _record_in_ledger(self, contact: Contact, detail: SyncResultDetail) -> None:
        if self.ledger is None or self.dry_run:
            return
        if detail.error == SkipReason.ALREADY_PROCESSED.value:
            return
        try:
            self.ledger.mark_processed(
                contact.row_id(),
                contact.name,
                detail.status.value,
                detail.status is not SyncStatus.ERROR,
            )
        except LedgerError as e:
            logger.warning(f"Could not record {contact.name} in ledger: {e}")

    def reset(self) -> None:
        """Forget the last fingerprint so the next pass runs in full."""
        self.change_detector.reset()

    def __repr__(self) -> str:
        return (
            f"Reconciler(sheet_id={self.sheet_id!r}, group_id={self.group_id!r}, "
            f"dry_run={self.dry_run})"
        )


def _skipped(contact: Contact, reason: SkipReason) -> ContactOutcome:
    return ContactOutcome(
        detail=SyncResultDetail(
            name=contact.name, status=SyncStatus.SKIPPED, error=reason.value
        )
    )


def _failed(contact: Contact, message: str) -> ContactOutcome:
    logger.error(f"Failed to add member {contact.name}: {message}")
    detail = SyncResultDetail(name=contact.name, status=SyncStatus.ERROR, error=message)
    return ContactOutcome(
        detail=detail,
        failed_row=SyncResultFailedRow(
            contact=contact, error=message, timestamp=detail.timestamp
        ),
    )
