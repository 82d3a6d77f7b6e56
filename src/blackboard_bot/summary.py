"""
Assignment summaries.

Aggregates the assignments of every non-ignored course into one of the
summary views alerts deliver: upcoming, past due, or recently graded.
"""

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List, Optional, Union

from blackboard_bot.models import (
    Assignment,
    AssignmentStatus,
    Summary,
    SummaryItem,
    SummaryType,
    utcnow,
)

if TYPE_CHECKING:
    from blackboard_bot.client import BlackboardClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_COURSES_AGE = timedelta(days=30 * 6)
PAST_DUE_WINDOW = timedelta(days=30)

# (horizon, wording) pairs used to describe when upcoming work is due
UPCOMING_HORIZONS = [
    (timedelta(hours=24), "over the next 24 hours"),
    (timedelta(days=7), "this week"),
    (timedelta(days=14), "next week"),
]


def matches(summary_type: SummaryType, assignment: Assignment, now: datetime) -> bool:
    """Whether an assignment belongs in the given summary."""
    deadline = assignment.deadline_at

    if summary_type == SummaryType.UPCOMING_ASSIGNMENTS:
        return (
            assignment.status == AssignmentStatus.UPCOMING
            and deadline is not None
            and deadline > now
        )
    if summary_type == SummaryType.PAST_DUE_ASSIGNMENTS:
        return (
            assignment.status == AssignmentStatus.PAST_DUE
            and deadline is not None
            and now - deadline < PAST_DUE_WINDOW
        )
    if summary_type == SummaryType.RECENTLY_GRADED_ASSIGNMENTS:
        return assignment.status == AssignmentStatus.GRADED and assignment.newly_graded
    return False


def describe(summary_type: SummaryType, items: List[SummaryItem], now: datetime) -> str:
    if summary_type == SummaryType.PAST_DUE_ASSIGNMENTS:
        return f"You have *{len(items)}* past due assignment(s)."
    if summary_type == SummaryType.RECENTLY_GRADED_ASSIGNMENTS:
        return f"You have *{len(items)}* recently graded assignment(s)."

    if not items:
        return "You have *0* upcoming assignments."

    nearest = items[0].assignment.deadline_at - now
    horizon, wording = None, "in the future"
    for limit, label in UPCOMING_HORIZONS:
        if nearest < limit:
            horizon, wording = limit, label
            break

    count = sum(
        1 for item in items
        if horizon is None or item.assignment.deadline_at - now < horizon
    )
    return f"You have *{count}* upcoming assignment(s) due *{wording}*."


async def generate_summary(
    client: "BlackboardClient",
    summary_type: Union[SummaryType, str],
    max_courses_age: timedelta = DEFAULT_MAX_COURSES_AGE,
    now: Optional[datetime] = None,
) -> Summary:
    """
    Build a summary across every course the user does not ignore.

    Recently graded summaries consume the client's score snapshots, so an
    assignment is only reported once per grade change.

    Args:
        client: Authenticated client to read from
        summary_type: Which summary to build
        max_courses_age: Courses not updated within this window are skipped
        now: Reference time, defaults to the current time

    Returns:
        Summary: Items sorted by deadline (or by grading time for graded work)
    """
    summary_type = SummaryType(summary_type)
    now = now or utcnow()

    courses = await client.get_all_courses(max_age=max_courses_age)
    courses = [c for c in courses.values() if not client.ignored("course", c.id)]

    track_scores = summary_type == SummaryType.RECENTLY_GRADED_ASSIGNMENTS
    # One course at a time; detail fetches inside a course are already batched
    results = []
    for course in courses:
        results.append(await client.get_all_assignments(course, track_scores=track_scores))

    items = [
        SummaryItem(course=course, assignment=assignment)
        for course, assignments in zip(courses, results)
        for assignment in assignments
        if matches(summary_type, assignment, now)
    ]

    if summary_type == SummaryType.RECENTLY_GRADED_ASSIGNMENTS:
        items.sort(key=lambda i: i.assignment.updated_at or now, reverse=True)
    else:
        items.sort(key=lambda i: i.assignment.deadline_at)

    logger.debug(f"{summary_type.value} summary for {client.name}: {len(items)} item(s)")
    return Summary(
        type=summary_type,
        title=summary_type.title,
        description=describe(summary_type, items, now),
        items=items,
    )
