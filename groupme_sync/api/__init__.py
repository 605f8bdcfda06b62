"""
groupme_sync.api - Remote service clients

Google Sheets (roster rows) and GroupMe (group membership).
"""

from groupme_sync.api.groupme_api import (
    AddMemberError,
    GroupMeAPI,
    GroupMeAPIError,
    GroupMeUnauthorizedError,
    MembershipFetchError,
)
from groupme_sync.api.sheets_api import RowFetchError, SheetsAPI, SheetsAuthError

__all__ = [
    "AddMemberError",
    "GroupMeAPI",
    "GroupMeAPIError",
    "GroupMeUnauthorizedError",
    "MembershipFetchError",
    "RowFetchError",
    "SheetsAPI",
    "SheetsAuthError",
]
