"""
Message formatters for Telegram notifications.

Formats summaries and session events into clean, readable Telegram messages.
"""

from datetime import datetime, tzinfo
from typing import Optional

from blackboard_bot.models import Assignment, Summary, SummaryType, utcnow


class MessageFormatter:
    """
    Formats notification content for Telegram messages.

    Creates well-structured, emoji-enhanced messages that are
    easy to read on mobile devices.
    """

    # Items listed per summary message; the rest are only counted
    MAX_ITEMS = 10

    SUMMARY_EMOJI = {
        SummaryType.UPCOMING_ASSIGNMENTS: "📋",
        SummaryType.PAST_DUE_ASSIGNMENTS: "⚠️",
        SummaryType.RECENTLY_GRADED_ASSIGNMENTS: "🎯",
    }

    @staticmethod
    def _truncate(text: str, max_length: int = 500) -> str:
        """Truncate text with ellipsis if too long."""
        if len(text) <= max_length:
            return text
        return text[:max_length - 3].rsplit(" ", 1)[0] + "..."

    @staticmethod
    def _format_datetime(dt: Optional[datetime], tz: Optional[tzinfo] = None) -> str:
        """Format datetime for display."""
        if dt is None:
            return "Not specified"
        if tz is not None:
            dt = dt.astimezone(tz)
        return dt.strftime("%a, %b %d, %Y at %I:%M %p")

    @staticmethod
    def _urgency(deadline: datetime, now: datetime) -> str:
        days_until = (deadline - now).days
        if days_until < 0:
            return "⚠️ OVERDUE"
        if days_until == 0:
            return "🔴 DUE TODAY"
        if days_until <= 2:
            return "🟠 DUE SOON"
        if days_until <= 7:
            return "🟡"
        return "🟢"

    @classmethod
    def format_assignment(
        cls,
        course_name: str,
        assignment: Assignment,
        base_url: str = "",
        now: Optional[datetime] = None,
        tz: Optional[tzinfo] = None,
    ) -> str:
        """
        Format one summary line block for an assignment.

        Args:
            course_name: Simplified name of the owning course
            assignment: The assignment to format
            base_url: Prefix for relative assignment links
            now: Reference time for the urgency marker
            tz: Timezone dates are shown in

        Returns:
            str: Formatted block
        """
        now = now or utcnow()
        lines = [
            f"📚 *{course_name}*",
            f"📝 {assignment.name}",
        ]

        if assignment.deadline_at:
            lines.append(
                f"📅 Due: {cls._format_datetime(assignment.deadline_at, tz)} "
                f"{cls._urgency(assignment.deadline_at, now)}"
            )

        if assignment.grade:
            grade = assignment.grade
            lines.append(f"🎯 Grade: {grade.score:g} / {grade.possible:g} ({grade.percent:.2f}%)")
            if grade.comments:
                lines.append(f"💬 {cls._truncate(grade.comments, 300)}")

        if assignment.url:
            url = assignment.url if assignment.url.startswith("http") else f"{base_url}{assignment.url}"
            lines.append(f"🔗 View: {url}")

        return "\n".join(lines)

    @classmethod
    def format_summary(
        cls,
        summary: Summary,
        base_url: str = "",
        now: Optional[datetime] = None,
        tz: Optional[tzinfo] = None,
    ) -> str:
        """
        Format a summary for delivery.

        Args:
            summary: Summary produced by an alert
            base_url: Prefix for relative assignment links
            now: Reference time for urgency markers
            tz: Timezone dates are shown in

        Returns:
            str: Formatted message string
        """
        emoji = cls.SUMMARY_EMOJI.get(summary.type, "📊")
        lines = [
            f"{emoji} *{summary.title}*",
            "",
            summary.description,
        ]

        for item in summary.items[:cls.MAX_ITEMS]:
            lines.extend([
                "",
                cls.format_assignment(item.course.name, item.assignment, base_url, now, tz),
            ])

        hidden = len(summary.items) - cls.MAX_ITEMS
        if hidden > 0:
            lines.extend(["", f"_...and {hidden} more_"])

        return "\n".join(lines)

    @classmethod
    def format_expired(cls, name: Optional[str] = None) -> str:
        """
        Format the notice sent when a session can no longer be kept alive.

        Args:
            name: Display name of the user, if known

        Returns:
            str: Formatted message string
        """
        who = f" for *{name}*" if name else ""
        return (
            f"🔒 *Blackboard session expired*{who}\n\n"
            "Alerts are paused until you log in again."
        )
