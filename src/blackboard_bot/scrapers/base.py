"""
Base scraper class with shared utilities.

Provides the parsing helpers common to course and assignment extraction:
timestamps, text cleanup, grade fragments and inline handler attributes.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from blackboard_bot.models import AssignmentStatus, Grade

logger = logging.getLogger(__name__)

# Timestamps above this are milliseconds rather than seconds (year 3000 in seconds)
_EPOCH_SECONDS_LIMIT = 32503680000

_TRAILING_BRACKETS = re.compile(r"\s*\[[^\[\]]*\]\s*$")

_STATUS_ALIASES = {
    "UPCOMING": AssignmentStatus.UPCOMING,
    "SUBMITTED": AssignmentStatus.SUBMITTED,
    "PAST_DUE": AssignmentStatus.PAST_DUE,
    "OVERDUE": AssignmentStatus.PAST_DUE,
    "GRADED": AssignmentStatus.GRADED,
    "NOT_AVAILABLE": AssignmentStatus.NOT_AVAILABLE,
}


class BaseScraper:
    """
    Base class for Blackboard payload parsers.

    Scrapers never perform I/O; backends hand them response bodies and get
    typed records back.
    """

    def __init__(self, tz=None):
        """
        Args:
            tz: Timezone applied to naive date strings (defaults to UTC)
        """
        self.timezone = tz or timezone.utc

    def parse_timestamp(self, value: Any) -> Optional[datetime]:
        """
        Parse an epoch (seconds or milliseconds) or date string into an aware datetime.

        Returns:
            datetime or None if the value is empty, non-positive or unparseable
        """
        if value is None or value == "":
            return None

        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            value = int(value.strip())

        if isinstance(value, (int, float)):
            if value <= 0:
                return None
            if value > _EPOCH_SECONDS_LIMIT:
                value = value / 1000
            try:
                return datetime.fromtimestamp(value, tz=timezone.utc)
            except (ValueError, OverflowError, OSError):
                return None

        if isinstance(value, str):
            try:
                parsed = date_parser.parse(self.clean_text(value))
            except (ValueError, OverflowError) as e:
                logger.debug(f"Could not parse date '{value}': {e}")
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=self.timezone)
            return parsed

        return None

    def clean_text(self, text: Optional[str]) -> str:
        """Collapse whitespace and strip."""
        if not text:
            return ""
        return re.sub(r"\s+", " ", text).strip()

    def simplify_course_name(self, name: str) -> str:
        """
        Drop a trailing bracketed course code.

        ``"Data Structures [CSC326-1234]"`` becomes ``"Data Structures"``; names
        that would become empty are returned unchanged.
        """
        name = self.clean_text(name)
        simplified = _TRAILING_BRACKETS.sub("", name).strip()
        return simplified or name

    def parse_grade(self, text: Optional[str], comments: Optional[str] = None) -> Optional[Grade]:
        """
        Parse a ``score / possible`` fragment.

        Whitespace and newlines anywhere in the fragment are ignored. Anything
        that does not yield two numbers with a positive ``possible`` gives None.
        """
        parts = self._split_grade(text)
        if parts is None:
            return None

        score, possible = parts
        return Grade(
            score=score,
            possible=possible,
            percent=round(score / possible * 100, 2),
            comments=comments,
        )

    def _split_grade(self, text: Optional[str]) -> Optional[Tuple[float, float]]:
        if not text:
            return None
        compact = re.sub(r"\s+", "", text)
        pieces = compact.split("/")
        if len(pieces) != 2:
            return None
        try:
            score, possible = float(pieces[0]), float(pieces[1])
        except ValueError:
            return None
        if possible <= 0:
            return None
        return score, possible

    def extract_feedback(self, handler: Optional[str]) -> Optional[str]:
        """
        Pull instructor comments out of an inline feedback handler.

        Blackboard embeds the feedback HTML in the ``onclick`` attribute; each
        ``<p>...</p>`` paragraph becomes one line.
        """
        if not handler:
            return None
        chunks = handler.split("<p>")
        if len(chunks) < 2:
            return None

        lines = []
        for chunk in chunks[1:]:
            paragraph = chunk.split("</p>")[0]
            text = BeautifulSoup(paragraph, "lxml").get_text(" ", strip=True)
            lines.append(text)
        comments = "\n".join(lines).strip()
        return comments or None

    def extract_handler_url(self, handler: Optional[str]) -> Optional[str]:
        """Return the first single-quoted segment of an inline click handler."""
        if not handler:
            return None
        pieces = handler.split("'")
        if len(pieces) < 3 or not pieces[1]:
            return None
        return pieces[1]

    def derive_status(
        self,
        label: Optional[str],
        deadline_at: Optional[datetime],
        now: datetime,
    ) -> Optional[AssignmentStatus]:
        """
        Map a status label onto AssignmentStatus.

        Returns None for an empty label. Upcoming items whose deadline has
        passed are past due; unknown labels are treated as not available.
        """
        key = self.clean_text(label).upper().replace(" ", "_").replace("-", "_")
        if not key:
            return None

        status = _STATUS_ALIASES.get(key)
        if status is None:
            logger.debug(f"Unknown assignment status label '{label}'")
            return AssignmentStatus.NOT_AVAILABLE

        if status == AssignmentStatus.UPCOMING and deadline_at is not None and deadline_at < now:
            return AssignmentStatus.PAST_DUE
        return status
