"""
GroupMe REST API client for group membership.

Provides:
- Access token validation
- Reading the current member list of a group
- Adding a member, translating "already a member" into a normal result
"""

import json
import logging
from typing import Any, Optional

import requests
from requests.exceptions import RequestException

from groupme_sync.sync.contact import GroupMember, MembershipAddResult, NewMember

GROUPME_API_BASE = "https://api.groupme.com"

DEFAULT_TIMEOUT = 30.0  # seconds

# Substrings GroupMe uses in error bodies when the member is already present
ALREADY_MEMBER_MARKERS = ("already_member", "already in group")

logger = logging.getLogger(__name__)


class GroupMeAPIError(Exception):
    """Raised when a GroupMe API call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class GroupMeUnauthorizedError(GroupMeAPIError):
    """Raised when GroupMe rejects the access token (HTTP 401)."""

    pass


class MembershipFetchError(GroupMeAPIError):
    """Raised when the member list of a group cannot be read."""

    pass


class AddMemberError(GroupMeAPIError):
    """Raised when an add-member call fails at the transport or API level."""

    pass


class GroupMeAPI:
    """
    GroupMe v3 API client.

    The access token is sent as the `token` query parameter on every request.

    Usage:
        api = GroupMeAPI(access_token)

        user = api.validate_token()
        members = api.get_members(group_id)
        result = api.add_member(group_id, NewMember(nickname="John Doe"))
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = GROUPME_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the GroupMe client.

        Args:
            access_token: GroupMe developer access token
            base_url: API base URL
            timeout: Per-request timeout in seconds
            session: Optional requests session (for connection reuse or tests)
        """
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[dict[str, Any]] = None,
    ) -> requests.Response:
        return self.session.request(
            method,
            f"{self.base_url}{path}",
            params={"token": self.access_token},
            json=json_body,
            timeout=self.timeout,
        )

    def _parse_json(self, response: requests.Response, context: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise GroupMeAPIError(
                f"{context}: Failed to parse JSON", status=response.status_code
            ) from e

    def _check_unauthorized(self, response: requests.Response) -> None:
        if response.status_code == 401:
            raise GroupMeUnauthorizedError(
                "Unauthorized - check GroupMe access token", status=401
            )

    def validate_token(self) -> dict[str, Any]:
        """
        Check the access token by fetching the current user.

        Returns:
            The user object (id, name, email)

        Raises:
            GroupMeUnauthorizedError: If the token is rejected
            GroupMeAPIError: For any other failure
        """
        context = "Token validation failed"
        try:
            response = self._request("GET", "/v3/users/me")
        except RequestException as e:
            raise GroupMeAPIError(f"{context}: {e}") from e

        self._check_unauthorized(response)
        if not response.ok:
            raise GroupMeAPIError(
                f"{context}: {response.status_code} - {response.text}",
                status=response.status_code,
            )

        data = self._parse_json(response, context)
        user = (data or {}).get("response") or {}
        logger.debug(f"Authenticated to GroupMe as {user.get('name', 'unknown')}")
        return user

    def get_members(self, group_id: str) -> list[GroupMember]:
        """
        Read the current member list of a group.

        Args:
            group_id: GroupMe group ID

        Returns:
            Members of the group (empty if the group has none)

        Raises:
            GroupMeUnauthorizedError: If the token is rejected
            MembershipFetchError: For any other failure
        """
        context = "Failed to get group members"
        try:
            response = self._request("GET", f"/v3/groups/{group_id}")
        except RequestException as e:
            raise MembershipFetchError(f"{context}: {e}") from e

        self._check_unauthorized(response)
        if not response.ok:
            raise MembershipFetchError(
                f"{context}: {response.status_code} - {response.text}",
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MembershipFetchError(
                f"{context}: Failed to parse JSON", status=response.status_code
            ) from e

        raw_members = ((data or {}).get("response") or {}).get("members") or []
        members = [GroupMember.from_api_response(m) for m in raw_members]
        logger.debug(f"Fetched {len(members)} members of group {group_id}")
        return members

    def add_member(self, group_id: str, member: NewMember) -> MembershipAddResult:
        """
        Add one member to a group.

        An "already a member" response is returned as
        MembershipAddResult(success=False, already_exists=True) instead of
        being raised.

        Args:
            group_id: GroupMe group ID
            member: Nickname plus optional email / phone number

        Returns:
            MembershipAddResult for the call

        Raises:
            GroupMeUnauthorizedError: If the token is rejected
            AddMemberError: For transport failures and other API errors
        """
        try:
            response = self._request(
                "POST",
                f"/v3/groups/{group_id}/members/add",
                json_body={"members": [member.to_api_format()]},
            )
        except RequestException as e:
            raise AddMemberError(f"Request failed: {e}") from e

        self._check_unauthorized(response)

        if response.ok:
            try:
                data = response.json()
            except ValueError as e:
                raise AddMemberError(
                    "Failed to parse JSON response", status=response.status_code
                ) from e

            results = ((data or {}).get("response") or {}).get("results") or []
            first = results[0] if results else {}
            return MembershipAddResult(
                success=True,
                member_id=_optional_str(first.get("member_id")),
                user_id=_optional_str(first.get("user_id")),
            )

        body = response.text or ""
        if any(marker in body for marker in ALREADY_MEMBER_MARKERS):
            return MembershipAddResult(
                success=False,
                already_exists=True,
                member_id=_parse_existing_member_id(body),
                error_message="Member already exists in group",
            )

        raise AddMemberError(
            f"{response.status_code} - {body}", status=response.status_code
        )


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _parse_existing_member_id(body: str) -> Optional[str]:
    """Pull meta.member_id or response.member_id out of an error body, if any."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    for section in ("meta", "response"):
        value = data.get(section)
        if isinstance(value, dict) and value.get("member_id"):
            return str(value["member_id"])
    return None
