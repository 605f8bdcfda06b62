"""
Change detection for sheet data.

A fingerprint is a SHA-256 digest over the whole dataset with rows sorted
first, so reordering rows does not look like a change while any edited
cell, added row, or removed row does.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence
from typing import Optional


def _serialize_row(row: Sequence[str]) -> str:
    return json.dumps([str(cell) for cell in row], ensure_ascii=False)


def compute_fingerprint(rows: Sequence[Sequence[str]]) -> str:
    """
    Compute an order-independent digest of sheet rows.

    Each row is serialized on its own (so cell boundaries are preserved),
    the serialized rows are sorted, and the sorted list is hashed.

    Args:
        rows: Sheet values, header included

    Returns:
        Hex SHA-256 digest. An empty dataset has a well-defined digest.
    """
    serialized = sorted(_serialize_row(row) for row in rows)
    data = json.dumps(serialized, ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


class ChangeDetector:
    """
    Remembers the fingerprint of the previous pass.

    State lives only in process memory; a restart always triggers a full pass.

    Usage:
        detector = ChangeDetector()
        if detector.is_unchanged(fingerprint):
            ...  # short-circuit
        detector.record(fingerprint)
    """

    def __init__(self) -> None:
        self._last_fingerprint: Optional[str] = None

    @property
    def last_fingerprint(self) -> Optional[str]:
        return self._last_fingerprint

    def is_unchanged(self, fingerprint: str) -> bool:
        """True when a previous fingerprint exists and equals this one."""
        return self._last_fingerprint is not None and (
            self._last_fingerprint == fingerprint
        )

    def record(self, fingerprint: str) -> None:
        self._last_fingerprint = fingerprint

    def reset(self) -> None:
        """Forget the stored fingerprint so the next pass always runs."""
        self._last_fingerprint = None
