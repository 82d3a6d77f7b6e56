"""
Course scraper for Blackboard.

Turns either the stream viewer "mygrades" payload (markup backend) or the
``/courses`` listing (JSON API backend) into Course records.
"""

import logging
from typing import Any, Dict, List, Optional

from blackboard_bot.errors import RemoteError
from blackboard_bot.models import Course, CourseUrls
from blackboard_bot.scrapers.base import BaseScraper

logger = logging.getLogger(__name__)


class CourseScraper(BaseScraper):
    """
    Extracts enrolled courses.

    Results are sorted by ``updated_at`` descending, most recent first.
    """

    def parse_stream(self, payload: Any) -> List[Course]:
        """
        Parse the stream viewer payload.

        The payload carries two collections keyed by the same course id:
        ``sv_streamEntries`` (timestamp and grades URL) and
        ``sv_extras.sx_courses`` (name and home page URL).

        Args:
            payload: Decoded JSON body of the stream viewer POST

        Returns:
            List[Course]: Courses with a positive timestamp

        Raises:
            RemoteError: If either collection is missing
        """
        if not isinstance(payload, dict):
            raise RemoteError("Invalid courses payload received from Blackboard.")

        entries = payload.get("sv_streamEntries")
        extras = payload.get("sv_extras") or {}
        known = extras.get("sx_courses") if isinstance(extras, dict) else None

        if not isinstance(entries, list) or not isinstance(known, list):
            raise RemoteError("Invalid courses payload received from Blackboard.")

        by_id: Dict[str, dict] = {
            str(course.get("id")): course
            for course in known
            if isinstance(course, dict) and course.get("id")
        }

        courses: Dict[str, Course] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            course_id = str(entry.get("se_courseId") or "")
            info = by_id.get(course_id)
            if info is None:
                continue

            updated_at = self.parse_timestamp(entry.get("se_timestamp"))
            if updated_at is None:
                continue

            name = info.get("name") or ""
            course = Course(
                id=course_id,
                name=self.simplify_course_name(name),
                full_name=name,
                updated_at=updated_at,
                urls=CourseUrls(home=info.get("homePageUrl"), grades=entry.get("se_rhs")),
            )

            # The stream can list a course several times; keep its latest entry
            previous = courses.get(course_id)
            if previous is None or previous.updated_at < course.updated_at:
                courses[course_id] = course

        result = self._sorted(courses.values())
        logger.debug(f"Parsed {len(result)} courses from stream payload")
        return result

    def parse_api(self, payload: Any) -> List[Course]:
        """
        Parse the JSON API ``/courses`` response.

        Accepts either a bare list or an object with a ``results`` list.

        Raises:
            RemoteError: If the payload has no list of courses
        """
        records = payload.get("results") if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            raise RemoteError("Invalid courses payload received from the Blackboard API.")

        courses = []
        for record in records:
            course = self._parse_api_record(record)
            if course:
                courses.append(course)
        return self._sorted(courses)

    def _parse_api_record(self, record: Any) -> Optional[Course]:
        if not isinstance(record, dict):
            return None

        course_id = record.get("id")
        name = record.get("name") or ""
        updated_at = self.parse_timestamp(record.get("updated_at"))
        if not course_id or updated_at is None:
            return None

        urls = record.get("urls") or {}
        return Course(
            id=str(course_id),
            name=self.simplify_course_name(name),
            full_name=name,
            updated_at=updated_at,
            urls=CourseUrls(home=urls.get("home"), grades=urls.get("grades")),
        )

    @staticmethod
    def _sorted(courses) -> List[Course]:
        return sorted(courses, key=lambda c: c.updated_at, reverse=True)
