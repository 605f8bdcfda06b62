"""
Data model for roster contacts and GroupMe group members.

Provides:
- Contact: a validated row from the roster sheet
- GroupMember: a read-only snapshot of an existing group member
- NewMember: the payload sent when adding a member
- MembershipAddResult: the outcome of a single add-member call
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Contact:
    """
    A contact extracted from the roster sheet.

    Attributes:
        name: Trimmed, non-empty display name
        email: Trimmed email address, or None when the cell was blank
        phone: Trimmed phone number as written in the sheet, or None

    Usage:
        contact = Contact.create("  John Doe ", email="john@example.com")
        payload = contact.to_new_member().to_api_format()
    """

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Contact name must be a non-empty string")

    @classmethod
    def create(
        cls,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> "Contact":
        """
        Build a Contact from raw values, trimming every field.

        Blank email/phone values become None rather than empty strings.

        Raises:
            ValueError: If the trimmed name is empty
        """
        return cls(
            name=(name or "").strip(),
            email=_blank_to_none(email),
            phone=_blank_to_none(phone),
        )

    def to_new_member(self) -> "NewMember":
        """Convert to the payload used by the add-member call."""
        return NewMember(nickname=self.name, email=self.email, phone_number=self.phone)

    def row_id(self) -> str:
        """
        Stable identifier derived from the contact's fields.

        Returns:
            First 16 hex characters of SHA-256 over "name|email|phone"
        """
        data = "|".join([self.name, self.email or "", self.phone or ""])
        return hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]

    def to_dict(self) -> dict[str, Any]:
        """Serialize, omitting absent optional fields."""
        data: dict[str, Any] = {"name": self.name}
        if self.email is not None:
            data["email"] = self.email
        if self.phone is not None:
            data["phone"] = self.phone
        return data

    def __str__(self) -> str:
        parts = [self.name]
        if self.email:
            parts.append(f"<{self.email}>")
        if self.phone:
            parts.append(self.phone)
        return " ".join(parts)


@dataclass(frozen=True)
class GroupMember:
    """
    An existing member of the GroupMe group.

    Re-fetched on every reconciliation pass and never persisted.
    """

    id: str
    display_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_api_response(cls, member: dict[str, Any]) -> "GroupMember":
        """
        Create a GroupMember from a GroupMe API member object.

        Example API member::

            {
                "user_id": "1234567",
                "nickname": "John Doe",
                "email": "john@example.com",
                "phone_number": "+1 5551234567"
            }
        """
        return cls(
            id=str(member.get("user_id") or member.get("id") or ""),
            display_name=member.get("nickname") or member.get("name") or "",
            email=member.get("email") or None,
            phone=member.get("phone_number") or None,
        )


@dataclass(frozen=True)
class NewMember:
    """Payload for adding a member to a group."""

    nickname: str
    email: Optional[str] = None
    phone_number: Optional[str] = None

    def to_api_format(self) -> dict[str, str]:
        """Convert to the GroupMe members/add member object."""
        data = {"nickname": self.nickname}
        if self.email is not None:
            data["email"] = self.email
        if self.phone_number is not None:
            data["phone_number"] = self.phone_number
        return data


@dataclass(frozen=True)
class MembershipAddResult:
    """
    Outcome of one add-member call.

    already_exists=True means the member joined between the membership
    snapshot and the add call; it is a normal skip, not an error.
    """

    success: bool
    member_id: Optional[str] = None
    user_id: Optional[str] = None
    already_exists: bool = False
    error_message: Optional[str] = None


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
