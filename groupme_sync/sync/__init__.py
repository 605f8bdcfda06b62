"""
groupme_sync.sync - Reconciliation engine

Contact extraction, membership matching, change detection, the
reconciliation pass, and the retry wrapper around it.
"""

from groupme_sync.sync.contact import (
    Contact,
    GroupMember,
    MembershipAddResult,
    NewMember,
)
from groupme_sync.sync.extractor import (
    ColumnIndices,
    ColumnMapping,
    ColumnMappingError,
    extract_contacts,
    resolve_column_indices,
)
from groupme_sync.sync.fingerprint import ChangeDetector, compute_fingerprint
from groupme_sync.sync.matcher import (
    find_match,
    is_contact_in_group,
    matches_by_email,
    matches_by_name,
    matches_by_phone,
    normalize_phone,
)
from groupme_sync.sync.reconciler import PassState, Reconciler, SyncError
from groupme_sync.sync.result import (
    SkipReason,
    SyncResult,
    SyncResultDetail,
    SyncResultFailedRow,
    SyncStatus,
)
from groupme_sync.sync.retry import RetryPolicy, SyncRunner

__all__ = [
    "Contact",
    "GroupMember",
    "MembershipAddResult",
    "NewMember",
    "ColumnIndices",
    "ColumnMapping",
    "ColumnMappingError",
    "extract_contacts",
    "resolve_column_indices",
    "ChangeDetector",
    "compute_fingerprint",
    "find_match",
    "is_contact_in_group",
    "matches_by_email",
    "matches_by_name",
    "matches_by_phone",
    "normalize_phone",
    "PassState",
    "Reconciler",
    "SyncError",
    "SkipReason",
    "SyncResult",
    "SyncResultDetail",
    "SyncResultFailedRow",
    "SyncStatus",
    "RetryPolicy",
    "SyncRunner",
]
