"""
Data models for Blackboard Session Bot.

Defines Pydantic models for everything the client produces or persists:
- Course / Assignment / Grade
- CacheEntry
- Alert
- SessionSnapshot
- Summary
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssignmentStatus(str, Enum):
    """Status of an assignment."""
    UPCOMING = "UPCOMING"
    SUBMITTED = "SUBMITTED"
    PAST_DUE = "PAST_DUE"
    GRADED = "GRADED"
    NOT_AVAILABLE = "NOT_AVAILABLE"


class AlertInterval(str, Enum):
    """How often an alert repeats."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


class SummaryType(str, Enum):
    """Kinds of assignment summaries an alert can deliver."""
    UPCOMING_ASSIGNMENTS = "UPCOMING_ASSIGNMENTS"
    PAST_DUE_ASSIGNMENTS = "PAST_DUE_ASSIGNMENTS"
    RECENTLY_GRADED_ASSIGNMENTS = "RECENTLY_GRADED_ASSIGNMENTS"

    @property
    def title(self) -> str:
        return {
            SummaryType.UPCOMING_ASSIGNMENTS: "Upcoming To-Do Assignments",
            SummaryType.PAST_DUE_ASSIGNMENTS: "Past Due-Date Assignments",
            SummaryType.RECENTLY_GRADED_ASSIGNMENTS: "Recently Graded Assignments",
        }[self]


class CourseUrls(BaseModel):
    """Relative URLs of a course on the portal."""
    home: Optional[str] = None
    grades: Optional[str] = None


class Course(BaseModel):
    """
    Represents one enrollment on Blackboard.

    Attributes:
        id: Stable Blackboard course identifier
        name: Simplified display name (trailing bracketed code removed)
        full_name: Name exactly as Blackboard returned it
        updated_at: Last activity in the course
        urls: Navigable class and grades pages
    """
    id: str
    name: str
    full_name: Optional[str] = None
    updated_at: datetime
    urls: CourseUrls = Field(default_factory=CourseUrls)

    def age(self, now: Optional[datetime] = None) -> timedelta:
        """Time elapsed since the course was last updated."""
        return (now or utcnow()) - self.updated_at


class Grade(BaseModel):
    """A parsed ``score / possible`` grade."""
    score: float
    possible: float
    percent: float
    comments: Optional[str] = None


class Assignment(BaseModel):
    """
    Represents one gradable item within a course.

    Attributes:
        id: Stable assignment identifier
        course_id: Identifier of the owning course
        name: Assignment title
        url: Deep link to the assignment, relative to the backend base URL
        cursor: Position used for the canonical display order
        status: Derived status of the assignment
        grade: Parsed grade, if one is posted
        updated_at: Last activity on the assignment
        deadline_at: Due date
        newly_graded: Whether the score changed since the last snapshot
    """
    id: str
    course_id: str
    name: str
    url: Optional[str] = None
    cursor: int = 0
    status: AssignmentStatus
    grade: Optional[Grade] = None
    updated_at: Optional[datetime] = None
    deadline_at: Optional[datetime] = None
    newly_graded: bool = False

    @property
    def needs_detail(self) -> bool:
        """Whether the list view leaves the status ambiguous."""
        if self.status == AssignmentStatus.PAST_DUE:
            return True
        return self.status == AssignmentStatus.GRADED and self.grade is None


class CacheEntry(BaseModel):
    """A cached value together with the time it was stored."""
    value: Any = None
    updated_at: datetime = Field(default_factory=utcnow)

    def is_fresh(self, max_age: timedelta, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) - self.updated_at < max_age


class Alert(BaseModel):
    """
    A recurring summary notification rule.

    Attributes:
        summary: Which summary to deliver
        channel: Destination channel identifier
        guild: Destination guild identifier
        interval: DAILY or WEEKLY
        hour_of_day: Wall clock hour (0-23) in the alert timezone
        max_courses_age: Courses older than this many months are skipped
    """
    summary: SummaryType
    channel: str
    guild: str
    interval: AlertInterval
    hour_of_day: int = Field(ge=0, le=23)
    max_courses_age: int = Field(default=6, ge=1, le=48)

    @computed_field
    @property
    def key(self) -> str:
        """Unique identifier of the rule: one alert per channel and summary."""
        return alert_key(self.channel, self.summary)

    @property
    def max_courses_timedelta(self) -> timedelta:
        return timedelta(days=30 * self.max_courses_age)


def alert_key(channel: str, summary) -> str:
    summary = SummaryType(summary)
    return f"{channel}:{summary.value}"


class SessionSnapshot(BaseModel):
    """
    Serializable state of one client.

    Emitted for persistence and accepted back by ``import_session``.
    """
    name: Optional[str] = None
    credential: Optional[str] = None
    ignore: Dict[str, List[str]] = Field(default_factory=dict)
    alerts: Dict[str, Alert] = Field(default_factory=dict)
    cache: Dict[str, CacheEntry] = Field(default_factory=dict)


class SummaryItem(BaseModel):
    course: Course
    assignment: Assignment


class Summary(BaseModel):
    """An aggregated view of assignments across non-ignored courses."""
    type: SummaryType
    title: str
    description: str
    items: List[SummaryItem] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items
