"""
Shared fixtures for the groupme_sync test suite.

Provides in-memory stand-ins for the sheet and GroupMe capabilities so
reconciliation tests never touch the network.
"""

from unittest.mock import MagicMock

import pytest

from groupme_sync.sync.contact import GroupMember, MembershipAddResult, NewMember

HEADER = ["Name", "Email", "Phone"]


class FakeSheet:
    """Row source returning canned rows, or raising a canned error."""

    def __init__(self, rows=None, error=None):
        self.rows = rows if rows is not None else []
        self.error = error
        self.calls = []

    def fetch_rows(self, sheet_id, range_spec):
        self.calls.append((sheet_id, range_spec))
        if self.error is not None:
            raise self.error
        return [list(row) for row in self.rows]


class FakeGroup:
    """
    Membership service backed by a list.

    Successful adds append to the member list, so a second pass sees the
    members added by the first one.
    """

    def __init__(self, members=None, fetch_error=None):
        self.members = list(members or [])
        self.fetch_error = fetch_error
        self.add_results = {}
        self.add_errors = {}
        self.added = []
        self.fetch_count = 0

    def get_members(self, group_id):
        self.fetch_count += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.members)

    def add_member(self, group_id, member: NewMember):
        if member.nickname in self.add_errors:
            raise self.add_errors[member.nickname]
        if member.nickname in self.add_results:
            return self.add_results[member.nickname]

        member_id = str(len(self.members) + 1000)
        self.members.append(
            GroupMember(
                id=member_id,
                display_name=member.nickname,
                email=member.email,
                phone=member.phone_number,
            )
        )
        self.added.append(member)
        return MembershipAddResult(success=True, member_id=member_id, user_id=member_id)


@pytest.fixture
def fake_sheet():
    """Three-contact roster."""
    return FakeSheet(
        rows=[
            HEADER,
            ["Alice Smith", "alice@example.com", "555-0001"],
            ["Bob Jones", "bob@example.com", ""],
            ["Carol White", "", "(555) 000-0003"],
        ]
    )


@pytest.fixture
def fake_group():
    """Empty group."""
    return FakeGroup()


@pytest.fixture
def mock_notifier():
    """Notifier whose calls can be asserted."""
    return MagicMock()


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    return MagicMock(return_value=None)
