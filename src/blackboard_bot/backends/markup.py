"""
Legacy Blackboard contract: session cookies and HTML scraping.

The user pastes the cookies of a logged-in browser session; every request
carries them through the client's cookie jar, which also absorbs any
cookies Blackboard rotates on the way.
"""

import logging
from typing import List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from blackboard_bot.backends.base import BlackboardBackend
from blackboard_bot.errors import RemoteError
from blackboard_bot.models import Assignment, Course

logger = logging.getLogger(__name__)

STREAM_VIEWER_BODY = {
    "cmd": "loadStream",
    "streamName": "mygrades",
    "providers": "{}",
    "forOverview": "false",
}

STREAM_VIEWER_HEADERS = {
    "Accept": "text/javascript, text/html, application/xml, text/xml, */*",
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "Pragma": "no-cache",
    "Cache-Control": "no-cache",
}


class MarkupBackend(BlackboardBackend):
    """Scrapes the Blackboard portal with the user's browser cookies."""

    @property
    def base_url(self) -> str:
        return self.settings.blackboard_base_url

    @property
    def _domain(self) -> str:
        return urlparse(self.base_url).hostname or ""

    def load_credential(self, credential: str) -> None:
        """Parse a ``key=value; key2=value2`` cookie string into the jar."""
        for part in (credential or "").split(";"):
            key, _, value = part.strip().partition("=")
            if key:
                self.http.cookies.set(key, value, domain=self._domain)

    def current_credential(self) -> Optional[str]:
        cookies = [f"{cookie.name}={cookie.value}" for cookie in self.http.cookies.jar]
        return "; ".join(cookies) or None

    def clear_credential(self) -> None:
        self.http.cookies.clear()

    async def validate(self) -> str:
        """
        Load the portal home page and read the user's name from the nav bar.

        Returns:
            str: Display name, empty if the page is not a logged-in view

        Raises:
            RemoteError: On a non-200 status or a redirect away from the portal
        """
        response = await self._send("GET", f"{self.base_url}/")
        self._ensure_ok(response)
        if not str(response.url).startswith(self.base_url):
            raise RemoteError(f"Blackboard redirected to {response.url}")

        soup = BeautifulSoup(response.text, "lxml")
        nav = soup.select_one("#global-nav-link")
        if nav is None:
            return ""

        # The link also holds avatar and badge elements; only the text is the name
        for child in nav.find_all(True):
            child.decompose()
        return nav.get_text(" ", strip=True)

    async def fetch_courses(self) -> List[Course]:
        response = await self._send(
            "POST",
            self.settings.stream_viewer_url,
            data=STREAM_VIEWER_BODY,
            headers=STREAM_VIEWER_HEADERS,
        )
        self._ensure_ok(response)
        return self.courses.parse_stream(self._json(response))

    async def fetch_assignments(self, course: Course) -> List[Assignment]:
        if not course.urls.grades:
            logger.debug(f"Course {course.id} has no grades page")
            return []

        response = await self._send("GET", f"{self.base_url}{course.urls.grades}")
        self._ensure_ok(response)
        return self.assignments.parse_grades_page(response.text, course)
