"""
Assignment scraper for Blackboard.

Scrapes the "My Grades" table of a course (markup backend) or normalizes
the ``/courses/{id}/assignments`` records (JSON API backend).
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from bs4 import BeautifulSoup, Tag

from blackboard_bot.errors import RemoteError
from blackboard_bot.models import Assignment, Course, utcnow
from blackboard_bot.scrapers.base import BaseScraper

logger = logging.getLogger(__name__)

SHOW_HISTORY_PATH = (
    "/webapps/assignment/uploadAssignment?action=showHistory"
    "&course_id={course_id}&outcome_definition_id={assignment_id}"
)
API_ASSIGNMENT_PATH = "/courses/{course_id}/assignments/{assignment_id}"


class AssignmentScraper(BaseScraper):
    """
    Extracts the assignments of one course.

    Results are always sorted by the position cursor, which is the order
    Blackboard displays them in.
    """

    def parse_grades_page(
        self,
        html: str,
        course: Course,
        now: Optional[datetime] = None,
    ) -> List[Assignment]:
        """
        Parse the rows of ``#grades_wrapper``.

        Rows without a status label are decorative (category headers,
        totals) and skipped.

        Args:
            html: Grades page markup
            course: Course the page belongs to
            now: Reference time for past-due detection

        Returns:
            List[Assignment]: Assignments in cursor order

        Raises:
            RemoteError: If the page has no grades table
        """
        now = now or utcnow()
        soup = BeautifulSoup(html, "lxml")
        wrapper = soup.find(id="grades_wrapper")
        if wrapper is None:
            raise RemoteError(f"No grades table found for course {course.id}")

        assignments = []
        for row in wrapper.find_all(True, recursive=False):
            assignment = self._parse_row(row, course, now)
            if assignment:
                assignments.append(assignment)

        assignments.sort(key=lambda a: a.cursor)
        logger.debug(f"Parsed {len(assignments)} assignments for course {course.id}")
        return assignments

    def _parse_row(self, row: Tag, course: Course, now: datetime) -> Optional[Assignment]:
        label_el = row.select_one(".cell.activity.timestamp .activityType")
        label = label_el.get_text() if label_el else ""
        deadline_at = self.parse_timestamp(row.get("duedate"))

        status = self.derive_status(label, deadline_at, now)
        if status is None:
            return None

        assignment_id = row.get("id") or ""
        gradable = row.select_one(".cell.gradable")
        title_el = gradable.find(True) if gradable else None
        name = self.clean_text(title_el.get_text()) if title_el else ""

        grade = None
        grade_cell = row.select_one(".cell.grade")
        if grade_cell is not None:
            comments = None
            feedback = grade_cell.select_one(".grade-feedback")
            if feedback is not None:
                comments = self.extract_feedback(feedback.get("onclick"))
                feedback.decompose()
            grade = self.parse_grade(grade_cell.get_text(), comments)

        url = self.extract_handler_url(title_el.get("onclick")) if title_el else None
        if url is None:
            url = SHOW_HISTORY_PATH.format(course_id=course.id, assignment_id=assignment_id)

        return Assignment(
            id=assignment_id,
            course_id=course.id,
            name=name,
            url=url,
            cursor=self._parse_cursor(row.get("position")),
            status=status,
            grade=grade,
            updated_at=self.parse_timestamp(row.get("lastactivity")),
            deadline_at=deadline_at,
        )

    def parse_api(
        self,
        payload: Any,
        course: Course,
        now: Optional[datetime] = None,
    ) -> List[Assignment]:
        """
        Parse the JSON API assignment listing.

        Raises:
            RemoteError: If the payload has no list of assignments
        """
        now = now or utcnow()
        records = payload.get("results") if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            raise RemoteError(f"Invalid assignments payload for course {course.id}")

        assignments = []
        for record in records:
            assignment = self.parse_api_record(record, course, now)
            if assignment:
                assignments.append(assignment)

        assignments.sort(key=lambda a: a.cursor)
        return assignments

    def parse_api_record(
        self,
        record: Any,
        course: Course,
        now: Optional[datetime] = None,
    ) -> Optional[Assignment]:
        """Parse one assignment record (listing entry or detail response)."""
        if not isinstance(record, dict) or not record.get("id"):
            return None

        now = now or utcnow()
        deadline_at = self.parse_timestamp(record.get("due_at"))
        status = self.derive_status(record.get("status"), deadline_at, now)
        if status is None:
            return None

        grade = None
        score, possible = record.get("score"), record.get("possible")
        if score is not None and possible is not None:
            comments = record.get("feedback")
            if comments:
                comments = BeautifulSoup(comments, "lxml").get_text("\n", strip=True) or None
            grade = self.parse_grade(f"{score} / {possible}", comments)

        assignment_id = str(record["id"])
        return Assignment(
            id=assignment_id,
            course_id=course.id,
            name=self.clean_text(record.get("name")),
            url=API_ASSIGNMENT_PATH.format(course_id=course.id, assignment_id=assignment_id),
            cursor=self._parse_cursor(record.get("position")),
            status=status,
            grade=grade,
            updated_at=self.parse_timestamp(record.get("updated_at")),
            deadline_at=deadline_at,
        )

    @staticmethod
    def _parse_cursor(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0
