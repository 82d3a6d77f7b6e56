"""
Base class for the remote Blackboard contracts.

A backend owns the HTTP client and the credential of exactly one user and
knows how to validate it, keep it alive and fetch raw data for the
scrapers. Each client talks to a single backend, so the two contracts are
never mixed.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from dateutil.tz import gettz

from blackboard_bot.config import Settings
from blackboard_bot.errors import RemoteError
from blackboard_bot.models import Assignment, Course
from blackboard_bot.scrapers import AssignmentScraper, CourseScraper

logger = logging.getLogger(__name__)


class BlackboardBackend(ABC):
    """
    Abstract remote contract.

    Transport failures and unexpected responses surface as RemoteError so
    callers can retry them; a rejected credential is reported by returning
    an empty name from ``validate``.
    """

    def __init__(self, settings: Settings, http: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.http = http or httpx.AsyncClient(follow_redirects=True)
        self.http.headers["User-Agent"] = settings.user_agent

        tz = gettz(settings.alert_timezone)
        self.courses = CourseScraper(tz)
        self.assignments = AssignmentScraper(tz)

    @property
    @abstractmethod
    def base_url(self) -> str:
        """Base URL that relative course and assignment links resolve against."""

    @abstractmethod
    def load_credential(self, credential: str) -> None:
        """Install a credential (cookie string or token) for later requests."""

    @abstractmethod
    def current_credential(self) -> Optional[str]:
        """Return the credential as it stands now, including refreshed parts."""

    @abstractmethod
    def clear_credential(self) -> None:
        """Forget the credential."""

    @abstractmethod
    async def validate(self) -> str:
        """
        Check the credential against Blackboard.

        Returns:
            str: The user's display name, or "" if the credential is rejected

        Raises:
            RemoteError: On transport failures or unexpected responses
        """

    async def keep_alive(self) -> bool:
        """Keep the session from idling out. Returns True while it is valid."""
        return bool(await self.validate())

    @abstractmethod
    async def fetch_courses(self) -> List[Course]:
        """Fetch and normalize every enrolled course."""

    @abstractmethod
    async def fetch_assignments(self, course: Course) -> List[Assignment]:
        """Fetch and normalize the assignments of one course."""

    async def fetch_assignment_detail(
        self,
        course: Course,
        assignment: Assignment,
    ) -> Optional[Assignment]:
        """
        Fetch a richer version of one assignment.

        Returns None when the contract has no detail view.
        """
        return None

    async def aclose(self) -> None:
        await self.http.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e!r}")
            raise RemoteError(f"Request to Blackboard failed: {e}") from e

    @staticmethod
    def _json(response: httpx.Response):
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"Blackboard returned invalid JSON from {response.url}") from e

    @staticmethod
    def _ensure_ok(response: httpx.Response) -> None:
        if response.status_code != 200:
            raise RemoteError(
                f"Invalid response status code {response.status_code} from {response.url}"
            )
