"""
Structured Blackboard contract: JSON API with bearer tokens.

Endpoints used:
- GET  /me                                  profile of the token owner
- POST /login/refresh                       exchange a token for a fresh one
- GET  /courses                             enrolled courses
- GET  /courses/{id}/assignments            assignment listing
- GET  /courses/{id}/assignments/{id}       assignment detail
"""

import logging
from typing import Dict, List, Optional

from blackboard_bot.backends.base import BlackboardBackend
from blackboard_bot.config import Settings
from blackboard_bot.errors import RemoteError
from blackboard_bot.models import Assignment, Course

logger = logging.getLogger(__name__)

REJECTED_STATUSES = {401, 403}


class ApiBackend(BlackboardBackend):
    """Talks to the Blackboard JSON API with a bearer token."""

    def __init__(self, settings: Settings, http=None):
        if not settings.blackboard_api_base:
            raise ValueError("BLACKBOARD_API_BASE must be set to use the api backend")
        super().__init__(settings, http)
        self._token: Optional[str] = None

    @property
    def base_url(self) -> str:
        return self.settings.blackboard_api_base

    def load_credential(self, credential: str) -> None:
        self._token = credential or None

    def current_credential(self) -> Optional[str]:
        return self._token

    def clear_credential(self) -> None:
        self._token = None

    def _auth_headers(self) -> Dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    async def _get_json(self, path: str):
        response = await self._send("GET", f"{self.base_url}{path}", headers=self._auth_headers())
        self._ensure_ok(response)
        return self._json(response)

    async def validate(self) -> str:
        """
        Read the display name from ``/me``.

        Returns:
            str: Display name, empty if the token is missing or rejected
        """
        if not self._token:
            return ""

        response = await self._send("GET", f"{self.base_url}/me", headers=self._auth_headers())
        if response.status_code in REJECTED_STATUSES:
            return ""
        self._ensure_ok(response)

        profile = self._json(response)
        if not isinstance(profile, dict):
            raise RemoteError("Invalid profile payload received from the Blackboard API.")

        name = profile.get("name")
        if not name:
            name = " ".join(p for p in (profile.get("first_name"), profile.get("last_name")) if p)
        return (name or "").strip()

    async def keep_alive(self) -> bool:
        """
        Refresh the bearer token.

        Returns:
            bool: True if a new token was issued and installed
        """
        if not self._token:
            return False

        response = await self._send(
            "POST", f"{self.base_url}/login/refresh", headers=self._auth_headers()
        )
        if response.status_code in REJECTED_STATUSES:
            return False
        self._ensure_ok(response)

        data = self._json(response)
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise RemoteError("Token refresh did not return a token.")

        self._token = token
        logger.debug("Refreshed Blackboard API token")
        return True

    async def fetch_courses(self) -> List[Course]:
        return self.courses.parse_api(await self._get_json("/courses"))

    async def fetch_assignments(self, course: Course) -> List[Assignment]:
        payload = await self._get_json(f"/courses/{course.id}/assignments")
        return self.assignments.parse_api(payload, course)

    async def fetch_assignment_detail(
        self,
        course: Course,
        assignment: Assignment,
    ) -> Optional[Assignment]:
        record = await self._get_json(f"/courses/{course.id}/assignments/{assignment.id}")
        detailed = self.assignments.parse_api_record(record, course)
        if detailed is not None:
            # The listing position is authoritative for ordering
            detailed.cursor = assignment.cursor
        return detailed
