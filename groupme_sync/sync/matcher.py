"""
Deterministic contact-to-member matching.

A roster contact is considered already in the group when ANY of its
name, email, or phone matches the corresponding field of ANY existing
member. Comparison is exact:

- Name and email: case-insensitive string equality
- Phone: equality of the digit sequences (see normalize_phone)
- A missing value on either side never matches

There is no fuzzy or partial matching; substrings never match.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from groupme_sync.sync.contact import Contact, GroupMember

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


class MatchField(Enum):
    """Field on which a contact matched an existing member."""

    NAME = "name"
    EMAIL = "email"
    PHONE = "phone"


@dataclass(frozen=True)
class MatchResult:
    """Result of looking a contact up in a membership snapshot."""

    is_match: bool
    field: Optional[MatchField] = None
    member: Optional[GroupMember] = None

    @property
    def reason(self) -> str:
        """Human-readable explanation for logs."""
        if not self.is_match or self.member is None or self.field is None:
            return "no matching member"
        return (
            f"matched member {self.member.id} "
            f"({self.member.display_name}) by {self.field.value}"
        )


NO_MATCH = MatchResult(is_match=False)


def normalize_phone(phone: Optional[str]) -> str:
    """
    Strip every non-digit character from a phone number.

    Country codes are not canonicalized: "+1 555 123 4567" and
    "555-123-4567" normalize to different digit sequences and do not match.
    """
    if not phone:
        return ""
    return _NON_DIGITS.sub("", phone)


def _equal_ignoring_case(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


def matches_by_name(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive exact name equality."""
    return _equal_ignoring_case(a, b)


def matches_by_email(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive exact email equality."""
    return _equal_ignoring_case(a, b)


def matches_by_phone(a: Optional[str], b: Optional[str]) -> bool:
    """Equality of the digit-only forms of two phone numbers."""
    if a is None or b is None:
        return False
    return normalize_phone(a) == normalize_phone(b)


def match_member(contact: Contact, member: GroupMember) -> Optional[MatchField]:
    """
    Compare a contact with one member.

    Returns:
        The first field that matched (name, then email, then phone), or None
    """
    if matches_by_name(contact.name, member.display_name):
        return MatchField.NAME
    if matches_by_email(contact.email, member.email):
        return MatchField.EMAIL
    if matches_by_phone(contact.phone, member.phone):
        return MatchField.PHONE
    return None


def find_match(contact: Contact, members: Iterable[GroupMember]) -> MatchResult:
    """
    Find the first member that matches the contact on any field.

    Args:
        contact: Roster contact to look up
        members: Membership snapshot

    Returns:
        MatchResult describing the first match, or NO_MATCH
    """
    for member in members:
        matched_field = match_member(contact, member)
        if matched_field is not None:
            return MatchResult(is_match=True, field=matched_field, member=member)
    return NO_MATCH


def is_contact_in_group(contact: Contact, members: Iterable[GroupMember]) -> bool:
    """Return True if any member matches the contact by name, email, or phone."""
    return find_match(contact, members).is_match
