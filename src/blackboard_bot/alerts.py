"""
Alert scheduling.

Every alert rule becomes one asyncio job that wakes up at the rule's hour
(wall clock, fixed timezone), builds a summary and dispatches it when it
has content. The job set is always re-derived from scratch when the rules
change.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from dateutil import tz as dateutil_tz
from pydantic import ValidationError

from blackboard_bot.errors import SchedulingError
from blackboard_bot.models import Alert, AlertInterval, Summary, SummaryType, alert_key
from blackboard_bot.signals import Signal

logger = logging.getLogger(__name__)

INTERVAL_PERIODS = {
    AlertInterval.DAILY: timedelta(days=1),
    AlertInterval.WEEKLY: timedelta(days=7),
}

SummaryCallback = Callable[[Alert], Awaitable[Optional[Summary]]]


def next_trigger(hour_of_day: int, now: datetime, tz) -> datetime:
    """
    Next ``hour_of_day:00`` in ``tz`` strictly after ``now``.

    Args:
        hour_of_day: Hour on the 24 hour clock
        now: Aware reference time
        tz: tzinfo the hour is expressed in

    Returns:
        datetime: Aware datetime in ``tz``
    """
    local = now.astimezone(tz)
    candidate = local.replace(hour=hour_of_day, minute=0, second=0, microsecond=0)
    if candidate <= local:
        candidate += timedelta(days=1)
    return dateutil_tz.resolve_imaginary(candidate)


class AlertScheduler:
    """
    Holds the alert rules of one client and runs their jobs.

    Rules are keyed by ``channel:summary``; deploying a rule for an existing
    key replaces it.
    """

    def __init__(
        self,
        summarize: SummaryCallback,
        dispatch: Signal,
        persist: Signal,
        timezone_name: str = "America/New_York",
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.tz = dateutil_tz.gettz(timezone_name)
        if self.tz is None:
            raise ValueError(f"Unknown timezone: {timezone_name}")

        self.dispatch = dispatch
        self.persist = persist
        self._summarize = summarize
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep or asyncio.sleep
        self._alerts: Dict[str, Alert] = {}
        self._jobs: Dict[str, asyncio.Task] = {}

    @property
    def alerts(self) -> Dict[str, Alert]:
        """Copy of the current rules keyed by ``channel:summary``."""
        return {key: alert.model_copy() for key, alert in self._alerts.items()}

    @property
    def jobs(self) -> Dict[str, asyncio.Task]:
        """Active jobs keyed like the rules."""
        return {key: task for key, task in self._jobs.items() if not task.done()}

    def deploy_alert(self, alert: Union[Alert, Mapping[str, Any]]) -> bool:
        """
        Create or update a rule and reschedule.

        Returns:
            bool: True if the rule is new, False if it replaced one

        Raises:
            SchedulingError: If the rule is invalid (unknown interval, bad hour)
        """
        alert = self._validate(alert)

        created = alert.key not in self._alerts
        self._alerts[alert.key] = alert
        self.reschedule()
        self.persist.emit()

        logger.info(f"{'Created' if created else 'Updated'} alert {alert.key}")
        return created

    def delete_alert(self, channel: str, summary: Union[SummaryType, str]) -> bool:
        """
        Remove a rule and reschedule.

        Returns:
            bool: True if a rule existed and was removed
        """
        try:
            key = alert_key(channel, summary)
        except ValueError:
            return False

        existed = self._alerts.pop(key, None) is not None
        self.reschedule()
        if existed:
            self.persist.emit()
            logger.info(f"Deleted alert {key}")
        return existed

    def load(self, alerts: Mapping[str, Any]) -> None:
        """Replace the rules with persisted ones without starting jobs."""
        self._alerts = {}
        for value in alerts.values():
            try:
                alert = self._validate(value)
            except SchedulingError as e:
                logger.warning(f"Dropping invalid persisted alert: {e}")
                continue
            self._alerts[alert.key] = alert

    def reschedule(self) -> None:
        """Cancel every job and start one per rule."""
        self.cancel_all()
        for key, alert in self._alerts.items():
            self._jobs[key] = asyncio.create_task(self._run(alert), name=f"alert:{key}")
        logger.debug(f"Scheduled {len(self._jobs)} alert job(s)")

    def cancel_all(self) -> None:
        for task in self._jobs.values():
            task.cancel()
        self._jobs.clear()

    async def fire(self, alert: Alert) -> Optional[Summary]:
        """
        Build the alert's summary and dispatch it if it has items.

        Failures are logged; the job keeps its schedule.
        """
        try:
            summary = await self._summarize(alert)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Could not build summary for alert {alert.key}")
            return None

        if summary is None or summary.is_empty:
            logger.debug(f"Alert {alert.key} has nothing to report")
            return summary

        self.dispatch.emit(alert.guild, alert.channel, summary.description, summary)
        return summary

    async def _run(self, alert: Alert) -> None:
        period = INTERVAL_PERIODS[alert.interval]
        next_run = next_trigger(alert.hour_of_day, self._clock(), self.tz)

        while True:
            delay = (next_run - self._clock()).total_seconds()
            if delay > 0:
                await self._sleep(delay)
            await self.fire(alert)
            next_run = dateutil_tz.resolve_imaginary(next_run + period)

    @staticmethod
    def _validate(alert: Union[Alert, Mapping[str, Any]]) -> Alert:
        try:
            if isinstance(alert, Alert):
                alert = Alert.model_validate(alert.model_dump())
            else:
                alert = Alert.model_validate(dict(alert))
        except ValidationError as e:
            raise SchedulingError(f"Invalid alert: {e}") from e

        if alert.interval not in INTERVAL_PERIODS:
            raise SchedulingError(f"Unsupported alert interval: {alert.interval}")
        return alert
