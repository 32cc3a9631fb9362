"""Team membership lookup"""

import logging
from typing import Any, Dict, List, Optional

import requests

from pgcluster.errors import TeamsAPIError

logger = logging.getLogger("postgres-operator.teams")


class TeamsAPI:
    """Minimal client for the Teams API: team id in, member ids out"""

    def __init__(self, url: str, timeout: float = 30, session: Optional[requests.Session] = None):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def team_info(self, team_id: str, token: Optional[str]) -> Dict[str, Any]:
        url = f"{self.url}/teams/{team_id}"
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        try:
            r = self.session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TeamsAPIError(f"Request to {url} failed: {e}") from e

        if r.status_code != 200:
            raise TeamsAPIError(f"Teams API returned {r.status_code} for team {team_id!r}: {r.text}")

        try:
            return r.json()
        except ValueError as e:
            raise TeamsAPIError(f"Teams API returned invalid JSON for team {team_id!r}: {e}") from e

    def team_members(self, team_id: str, token: Optional[str]) -> List[str]:
        """
        Resolve a team into the ordered list of its member ids

        Raises:
            TeamsAPIError: The lookup failed or returned an unexpected payload
        """
        info = self.team_info(team_id, token)
        members = info.get("members")
        if members is None:
            logger.debug(f"Team {team_id} has no members field")
            return []
        if not isinstance(members, list):
            raise TeamsAPIError(f"Unexpected members payload for team {team_id!r}")
        return [str(m) for m in members]
