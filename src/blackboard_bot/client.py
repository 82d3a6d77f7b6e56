"""
Blackboard client for one user.

Composes the session manager, data cache, ignore lists and alert scheduler
behind the operations the command layer calls. Side effects leave the
client only through its three signals:

- ``persist()``: state worth saving changed
- ``expired()``: the session expired and the user has to re-authenticate
- ``dispatch(guild, channel, text, summary)``: an alert produced a summary
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from blackboard_bot.alerts import AlertScheduler
from blackboard_bot.auth.session import SessionManager, SessionState
from blackboard_bot.backends import BlackboardBackend, create_backend
from blackboard_bot.cache import COURSES_KEY, COURSES_MAX_AGE, SCORES_KEY, SCORES_MAX_AGE, DataCache
from blackboard_bot.config import Settings, get_settings
from blackboard_bot.errors import BlackboardError
from blackboard_bot.ignore import IgnoreStore
from blackboard_bot.models import (
    Alert,
    Assignment,
    AssignmentStatus,
    Course,
    SessionSnapshot,
    Summary,
    SummaryType,
    utcnow,
)
from blackboard_bot.signals import Signal
from blackboard_bot.summary import DEFAULT_MAX_COURSES_AGE, generate_summary
from blackboard_bot.utils import MAX_IN_FLIGHT, gather_batched, with_retries

logger = logging.getLogger(__name__)


class BlackboardClient:
    """
    API client for one Blackboard user.

    Attributes:
        settings: Application settings
        backend: Remote contract used for every request
        session: Authentication state and keep-alive
        cache: Course list and score snapshots
        persist: Signal raised after durable state changes
        expired: Signal raised once when the session expires
        dispatch: Signal raised when an alert has something to deliver
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: Optional[BlackboardBackend] = None,
        clock: Optional[Callable[[], datetime]] = None,
        alert_sleep: Optional[Callable[[float], Any]] = None,
    ):
        """
        Initialize the client.

        Args:
            settings: Optional settings instance, will use default if not provided
            backend: Optional backend, built from settings if not provided
            clock: Source of the current time
            alert_sleep: Sleep function used by alert jobs
        """
        self.settings = settings or get_settings()
        self.backend = backend or create_backend(self.settings)
        self._clock = clock or utcnow

        self.persist = Signal("persist")
        self.dispatch = Signal("dispatch")

        self.session = SessionManager(
            self.backend,
            keep_alive_interval=self.settings.keep_alive_interval,
            retries=self.settings.request_retries,
            delay=self.settings.retry_delay,
        )
        self.expired = self.session.expired

        self.cache = DataCache()
        self._ignore = IgnoreStore(self.persist)
        self._scheduler = AlertScheduler(
            self._summarize_alert,
            self.dispatch,
            self.persist,
            timezone_name=self.settings.alert_timezone,
            clock=self._clock,
            sleep=alert_sleep,
        )
        self.expired.connect(self._scheduler.cancel_all)

    @property
    def name(self) -> Optional[str]:
        """Display name of the authenticated user."""
        return self.session.name

    @property
    def base_url(self) -> str:
        return self.backend.base_url

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def alerts(self) -> Dict[str, Alert]:
        """Copy of the alert rules keyed by ``channel:summary``."""
        return self._scheduler.alerts

    @property
    def scheduled_jobs(self) -> int:
        return len(self._scheduler.jobs)

    async def import_session(
        self,
        client: Union[SessionSnapshot, Mapping[str, Any], str],
        ping: bool = False,
        retries: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> bool:
        """
        Import a session snapshot (or a bare credential) and validate it.

        Fields present in the snapshot replace the client's own: ignore
        lists, alerts and cache entries are kept even when validation fails
        so the user's preferences survive an expired credential.

        Args:
            client: Snapshot, snapshot dict, or credential string
            ping: Only re-validate the stored credential
            retries: Attempts for the validation
            delay: Seconds between attempts

        Returns:
            bool: True if Blackboard accepted the credential
        """
        if ping:
            return await self.session.import_session(None, ping=True, retries=retries, delay=delay)

        if isinstance(client, str):
            snapshot = SessionSnapshot(credential=client)
        elif isinstance(client, SessionSnapshot):
            snapshot = client
        else:
            snapshot = SessionSnapshot.model_validate(dict(client))

        provided = snapshot.model_fields_set
        if "ignore" in provided:
            self._ignore.load(snapshot.ignore)
        if "alerts" in provided:
            self._scheduler.load(snapshot.alerts)
        if "cache" in provided:
            self.cache.load(snapshot.cache)

        valid = await self.session.import_session(snapshot.credential, retries=retries, delay=delay)

        if valid:
            self._scheduler.reschedule()
        else:
            self._scheduler.cancel_all()
        return valid

    def export(self) -> SessionSnapshot:
        """Snapshot of everything that should be persisted for this user."""
        return SessionSnapshot(
            name=self.session.name,
            credential=self.session.credential,
            ignore=self._ignore.export(),
            alerts=self._scheduler.alerts,
            cache=self.cache.export(),
        )

    # Ignore lists

    def ignored(self, type: str, identifier: str) -> bool:
        return self._ignore.ignored(type, identifier)

    def ignore(self, type: str, identifier: str) -> bool:
        return self._ignore.ignore(type, identifier)

    def unignore(self, type: str, identifier: str) -> bool:
        return self._ignore.unignore(type, identifier)

    # Courses and assignments

    async def get_all_courses(
        self,
        max_age: timedelta = DEFAULT_MAX_COURSES_AGE,
        max_cache_age: timedelta = COURSES_MAX_AGE,
        retries: Optional[int] = None,
        delay: Optional[float] = None,
    ) -> Dict[str, Course]:
        """
        Return the user's courses keyed ``#1``, ``#2``, ... by recency.

        The course list is cached for ``max_cache_age``; ``max_age`` filters
        out courses without recent activity on every call, cached or not.
        Ordinals are recomputed on each call and can shift as courses update.

        Args:
            max_age: Drop courses not updated within this window
            max_cache_age: Reuse a cached course list younger than this
            retries: Attempts per fetch
            delay: Seconds between attempts

        Returns:
            Dict[str, Course]: Ordinal key to course, most recent first

        Raises:
            NoClientError: If the session has no credential
            RemoteError: If Blackboard cannot be reached after all attempts
        """
        self.session.ensure_authenticated()
        retries, delay = self._retry_policy(retries, delay)
        now = self._clock()

        # An empty list is never cached, so a cached empty value counts as a miss
        cached = self.cache.get(COURSES_KEY, max_cache_age, now)
        if cached:
            courses = [Course.model_validate(value) for value in cached]
        else:
            courses = await self._fetch_courses(retries, delay)
            if courses:
                self.cache.set(COURSES_KEY, [c.model_dump(mode="json") for c in courses], now)
                self.persist.emit()
            else:
                logger.warning(f"Blackboard returned no courses for {self.name}; not caching")

        recent = [course for course in courses if course.age(now) <= max_age]
        return {f"#{index}": course for index, course in enumerate(recent, start=1)}

    async def _fetch_courses(self, retries: int, delay: float) -> List[Course]:
        courses = await with_retries(retries, delay, self.backend.fetch_courses)

        # An empty list is usually the portal hiccuping, not a user without courses
        if not courses:
            logger.info(f"No courses extracted for {self.name}, retrying once in {delay}s")
            await asyncio.sleep(delay)
            courses = await with_retries(retries, delay, self.backend.fetch_courses)

        return sorted(courses, key=lambda c: c.updated_at, reverse=True)

    async def get_all_assignments(
        self,
        course: Course,
        retries: Optional[int] = None,
        delay: Optional[float] = None,
        track_scores: bool = False,
    ) -> List[Assignment]:
        """
        Fetch the assignments of one course, always fresh.

        Past-due items and graded items without a grade are re-fetched from
        the detail view, at most MAX_IN_FLIGHT at a time.

        Args:
            course: Course from ``get_all_courses``
            retries: Attempts per request
            delay: Seconds between attempts
            track_scores: Compare grades with the stored score snapshot and
                flag changed ones as ``newly_graded``

        Returns:
            List[Assignment]: Assignments in cursor order

        Raises:
            NoClientError: If the session has no credential
            RemoteError: If Blackboard cannot be reached after all attempts
        """
        self.session.ensure_authenticated()
        retries, delay = self._retry_policy(retries, delay)

        assignments = await with_retries(
            retries, delay, lambda: self.backend.fetch_assignments(course)
        )

        ambiguous = [a for a in assignments if a.needs_detail]
        if ambiguous:
            details = await gather_batched(
                ambiguous,
                MAX_IN_FLIGHT,
                lambda a: self._fetch_detail(course, a, retries, delay),
            )
            replacements = {a.id: d for a, d in zip(ambiguous, details) if d is not None}
            assignments = [replacements.get(a.id, a) for a in assignments]
            assignments.sort(key=lambda a: a.cursor)

        if track_scores:
            self._track_scores(course, assignments)

        return assignments

    async def _fetch_detail(
        self,
        course: Course,
        assignment: Assignment,
        retries: int,
        delay: float,
    ) -> Optional[Assignment]:
        try:
            return await with_retries(
                retries, delay, lambda: self.backend.fetch_assignment_detail(course, assignment)
            )
        except BlackboardError as e:
            logger.warning(f"Could not load details of assignment {assignment.id}: {e}")
            return None

    def _track_scores(self, course: Course, assignments: List[Assignment]) -> None:
        now = self._clock()
        key = SCORES_KEY.format(course_id=course.id)
        previous = self.cache.get(key, SCORES_MAX_AGE, now) or {}
        current = dict(previous)

        changed = False
        for assignment in assignments:
            if assignment.status != AssignmentStatus.GRADED or assignment.grade is None:
                continue
            score = assignment.grade.score
            if previous.get(assignment.id) != score:
                assignment.newly_graded = True
                current[assignment.id] = score
                changed = True

        if changed:
            self.cache.set(key, current, now)
            self.persist.emit()

    def invalidate_cache(self, key: Optional[str] = None) -> bool:
        """Drop cached data. Returns True if anything was removed."""
        if not self.cache.invalidate(key):
            return False
        self.persist.emit()
        return True

    # Alerts

    def deploy_alert(self, alert: Union[Alert, Mapping[str, Any]]) -> bool:
        """Create or update an alert. Returns True if it was created."""
        return self._scheduler.deploy_alert(alert)

    def delete_alert(self, channel: str, summary: Union[SummaryType, str]) -> bool:
        """Delete an alert. Returns True if one existed."""
        return self._scheduler.delete_alert(channel, summary)

    async def summarize(
        self,
        summary_type: Union[SummaryType, str],
        max_courses_age: timedelta = DEFAULT_MAX_COURSES_AGE,
    ) -> Summary:
        return await generate_summary(self, summary_type, max_courses_age, now=self._clock())

    async def _summarize_alert(self, alert: Alert) -> Summary:
        return await self.summarize(alert.summary, alert.max_courses_timedelta)

    # Lifecycle

    def destroy(self) -> None:
        """Cancel the keep-alive task and every alert job."""
        self.session.destroy()
        self._scheduler.cancel_all()

    async def close(self) -> None:
        self.destroy()
        await self.backend.aclose()

    def _retry_policy(self, retries: Optional[int], delay: Optional[float]):
        return (
            self.settings.request_retries if retries is None else retries,
            self.settings.retry_delay if delay is None else delay,
        )
