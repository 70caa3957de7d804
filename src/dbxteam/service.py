"""Team-level Dropbox Business API calls and their console rendering.

:class:`TeamService` wraps the three read-only endpoints the demo shows:

* ``team/get_info`` -- team id, name and sharing policies.
* ``team/members/list`` -- the first page of team members.
* ``team_log/get_events`` -- the most recent audit log events.

Each ``fetch_*`` method returns the decoded response and prints it to
stdout: the raw JSON in ``--json`` mode, a short human-readable summary
otherwise. Dropbox union values (``{".tag": "invite"}``) are shown by their
tag.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from dbxteam.client import DropboxClient
from dbxteam.exceptions import DbxTeamError, InvalidUsageError
from dbxteam.output import OutputFormat, error, get_output

logger = logging.getLogger(__name__)

API_BASE = "https://api.dropboxapi.com/2"
TEAM_INFO_URL = f"{API_BASE}/team/get_info"
MEMBERS_LIST_URL = f"{API_BASE}/team/members/list"
EVENTS_URL = f"{API_BASE}/team_log/get_events"

DEFAULT_MEMBERS_LIMIT = 100
DEFAULT_EVENTS_LIMIT = 20
MAX_PAGE_LIMIT = 1000

_RULE = "=" * 36


def _tag(value: Any) -> str:
    """Render a Dropbox union (``{".tag": ...}``) as its tag, anything else as text."""
    if isinstance(value, dict) and ".tag" in value:
        return str(value[".tag"])
    if value is None:
        return ""
    return str(value)


def _check_limit(name: str, limit: int) -> int:
    if not 1 <= limit <= MAX_PAGE_LIMIT:
        raise InvalidUsageError(f"{name} must be between 1 and {MAX_PAGE_LIMIT}, got {limit}")
    return limit


def _sharing_policies(info: dict[str, Any]) -> Optional[dict[str, Any]]:
    policies = info.get("sharing_policies")
    if isinstance(policies, dict):
        return policies
    nested = info.get("policies")
    if isinstance(nested, dict) and isinstance(nested.get("sharing"), dict):
        return nested["sharing"]
    return None


class TeamService:
    """Fetch and print team information with an open :class:`DropboxClient`.

    Args:
        client: An entered :class:`~dbxteam.client.DropboxClient`.
        members_limit: Page size for ``team/members/list``.
        events_limit: Page size for ``team_log/get_events``.
    """

    def __init__(
        self,
        client: DropboxClient,
        members_limit: int = DEFAULT_MEMBERS_LIMIT,
        events_limit: int = DEFAULT_EVENTS_LIMIT,
    ) -> None:
        self._client = client
        self.members_limit = members_limit
        self.events_limit = events_limit

    def fetch_team_info(self, access_token: str) -> dict[str, Any]:
        """Print the team id, name and sharing policies."""
        info = self._client.post_json(TEAM_INFO_URL, None, access_token)
        if self._emit_json(info):
            return info

        policies = _sharing_policies(info)
        if policies:
            rendered = ", ".join(f"{key}={_tag(value)}" for key, value in policies.items())
        else:
            rendered = "N/A"

        out = get_output()
        out.print_data("")
        out.print_data("===== TEAM / ORGANIZATION INFO =====")
        out.print_data(f"Team ID: {info.get('team_id') or 'N/A'}")
        out.print_data(f"Team Name: {info.get('name') or 'N/A'}")
        out.print_data(f"Sharing Policies: {rendered}")
        out.print_data(_RULE)
        return info

    def fetch_members(self, access_token: str, limit: Optional[int] = None) -> dict[str, Any]:
        """Print one ``n. email (status)`` line per member and the total returned."""
        limit = _check_limit("members limit", self.members_limit if limit is None else limit)
        response = self._client.post_json(MEMBERS_LIST_URL, {"limit": limit}, access_token)
        if self._emit_json(response):
            return response

        members = response.get("members") or []
        out = get_output()
        out.print_data("")
        out.print_data("===== TEAM MEMBERS LIST =====")
        for index, member in enumerate(members, 1):
            profile = member.get("profile") if isinstance(member, dict) else None
            if not isinstance(profile, dict):
                continue
            out.print_data(
                f"{index}. {profile.get('email', '')} ({_tag(profile.get('status'))})"
            )
        out.print_data(f"Total members returned: {len(members)}")
        if response.get("has_more"):
            out.print_data("(more members available)")
        out.print_data(_RULE)
        return response

    def fetch_events(self, access_token: str, limit: Optional[int] = None) -> dict[str, Any]:
        """Print one ``n. [timestamp] category - event_type`` line per event."""
        limit = _check_limit("events limit", self.events_limit if limit is None else limit)
        response = self._client.post_json(EVENTS_URL, {"limit": limit}, access_token)
        if self._emit_json(response):
            return response

        events = response.get("events") or []
        out = get_output()
        out.print_data("")
        out.print_data(f"===== TEAM EVENTS (Recent {limit}) =====")
        if not events:
            out.print_data("No events found.")
        for index, event in enumerate(events, 1):
            out.print_data(
                f"{index}. [{event.get('timestamp', '')}] "
                f"{_tag(event.get('event_category') or event.get('category'))} - "
                f"{_tag(event.get('event_type'))}"
            )
        out.print_data(_RULE)
        return response

    def run_all(self, access_token: str) -> list[str]:
        """Run every section, continuing past failures.

        Returns:
            The names of the sections that failed (empty on full success).
        """
        sections = (
            ("team info", self.fetch_team_info),
            ("team members", self.fetch_members),
            ("team events", self.fetch_events),
        )
        failed: list[str] = []
        for name, fetch in sections:
            try:
                fetch(access_token)
            except DbxTeamError as exc:
                logger.debug("Section %s failed", name, exc_info=True)
                error(f"Could not fetch {name}: {exc}")
                failed.append(name)
        return failed

    @staticmethod
    def _emit_json(data: dict[str, Any]) -> bool:
        output = get_output()
        if output.format != OutputFormat.JSON:
            return False
        output.format_response(data)
        return True
