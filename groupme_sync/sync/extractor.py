"""
Contact extraction from raw sheet rows.

Turns the 2-D grid returned by the Sheets API (first row = headers) into
validated Contact records using a header-based column mapping.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from groupme_sync.sync.contact import Contact

logger = logging.getLogger(__name__)

NOT_FOUND = -1


class ColumnMappingError(Exception):
    """Raised when a required column is missing from the sheet header."""

    def __init__(self, column: str, headers: Sequence[str] | None = None):
        self.column = column
        self.headers = list(headers or [])
        message = f"Required column '{column}' not found in sheet header"
        if self.headers:
            message += f" (available: {', '.join(self.headers)})"
        super().__init__(message)


@dataclass(frozen=True)
class ColumnMapping:
    """
    Configured header names for the contact columns.

    Attributes:
        name: Full-name column header
        email: Email column header (optional column)
        phone: Phone column header (optional column)
        first_name: First-name column header. When set, names are built
                    from first/last name columns instead of `name`.
        last_name: Last-name column header (optional column)
    """

    name: str = "Name"
    email: str = "Email"
    phone: str = "Phone"
    first_name: str = ""
    last_name: str = ""


@dataclass(frozen=True)
class ColumnIndices:
    """Resolved 0-based column positions; NOT_FOUND (-1) marks a missing column."""

    name: int = NOT_FOUND
    email: int = NOT_FOUND
    phone: int = NOT_FOUND
    first_name: int = NOT_FOUND
    last_name: int = NOT_FOUND

    @property
    def use_separate_names(self) -> bool:
        """True when a first-name column was configured and found."""
        return self.first_name != NOT_FOUND


def _normalize_header(value: str) -> str:
    return value.strip().lower()


def _find_column(headers: Sequence[str], column: str) -> int:
    if not column or not column.strip():
        return NOT_FOUND
    wanted = _normalize_header(column)
    for index, header in enumerate(headers):
        if _normalize_header(header) == wanted:
            return index
    return NOT_FOUND


def resolve_column_indices(
    headers: Sequence[str], mapping: ColumnMapping
) -> ColumnIndices:
    """
    Locate the mapped columns in a header row.

    Matching is case-insensitive and ignores surrounding whitespace.

    Raises:
        ColumnMappingError: If the first-name column (separate-name mode) or
                            the name column (single-name mode) is missing.
    """
    indices = ColumnIndices(
        name=_find_column(headers, mapping.name),
        email=_find_column(headers, mapping.email),
        phone=_find_column(headers, mapping.phone),
        first_name=_find_column(headers, mapping.first_name),
        last_name=_find_column(headers, mapping.last_name),
    )

    if mapping.first_name.strip():
        if indices.first_name == NOT_FOUND:
            raise ColumnMappingError(mapping.first_name, headers)
    elif indices.name == NOT_FOUND:
        raise ColumnMappingError(mapping.name, headers)

    return indices


def _cell(row: Sequence[str], index: int) -> str:
    # The Sheets API drops trailing empty cells, so short rows are normal
    if index == NOT_FOUND or index >= len(row):
        return ""
    value = row[index]
    return "" if value is None else str(value).strip()


def _row_name(row: Sequence[str], indices: ColumnIndices) -> str:
    if not indices.use_separate_names:
        return _cell(row, indices.name)

    first = _cell(row, indices.first_name)
    last = _cell(row, indices.last_name)
    return " ".join(part for part in (first, last) if part)


def extract_contacts(
    rows: Sequence[Sequence[str]], mapping: ColumnMapping
) -> list[Contact]:
    """
    Convert raw sheet rows into contacts.

    Args:
        rows: Sheet values; the first row is the header
        mapping: Configured column headers

    Returns:
        Contacts in sheet order. Rows whose resolved name is blank are dropped.

    Raises:
        ColumnMappingError: If a required column is missing
    """
    if not rows:
        return []

    headers = [str(h) for h in rows[0]]
    indices = resolve_column_indices(headers, mapping)

    contacts: list[Contact] = []
    for row_number, row in enumerate(rows[1:], start=2):
        name = _row_name(row, indices)
        if not name:
            logger.debug(f"Skipping row {row_number}: no name")
            continue

        contacts.append(
            Contact.create(
                name=name,
                email=_cell(row, indices.email),
                phone=_cell(row, indices.phone),
            )
        )

    return contacts
