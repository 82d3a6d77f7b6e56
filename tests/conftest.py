"""Shared fixtures: a scripted backend, an in-memory store and a fixed clock."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from blackboard_bot.backends.base import BlackboardBackend
from blackboard_bot.client import BlackboardClient
from blackboard_bot.config import Settings
from blackboard_bot.errors import RemoteError
from blackboard_bot.models import (
    Assignment,
    AssignmentStatus,
    Course,
    CourseUrls,
    Grade,
    SessionSnapshot,
)

BASE_URL = "https://blackboard.example.edu"
API_URL = "https://api.blackboard.example.edu/v1"
VALID_COOKIE = "s_session_id=valid"
NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


async def block_forever(delay: float) -> None:
    """Alert sleep that never returns, so jobs stay scheduled but never fire."""
    await asyncio.Event().wait()


async def wait_until(condition, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


def make_course(course_id: str, updated_at: datetime, name: Optional[str] = None) -> Course:
    name = name or f"Course {course_id}"
    return Course(
        id=course_id,
        name=name,
        full_name=f"{name} [{course_id.upper()}]",
        updated_at=updated_at,
        urls=CourseUrls(home=f"/courses/{course_id}", grades=f"/grades/{course_id}"),
    )


def make_assignment(
    assignment_id: str,
    course_id: str,
    status: AssignmentStatus,
    cursor: int = 0,
    deadline_at: Optional[datetime] = None,
    score: Optional[float] = None,
    possible: float = 100,
    updated_at: Optional[datetime] = None,
) -> Assignment:
    grade = None
    if score is not None:
        grade = Grade(score=score, possible=possible, percent=round(score / possible * 100, 2))
    return Assignment(
        id=assignment_id,
        course_id=course_id,
        name=f"Assignment {assignment_id}",
        url=f"/assignments/{assignment_id}",
        cursor=cursor,
        status=status,
        grade=grade,
        deadline_at=deadline_at,
        updated_at=updated_at,
    )


class FakeBackend(BlackboardBackend):
    """Backend whose remote answers are set by the test."""

    def __init__(self, settings: Settings, valid=(VALID_COOKIE,), name: str = "Jane Doe"):
        super().__init__(settings)
        self.valid = set(valid)
        self.display_name = name
        self.credential: Optional[str] = None

        self.validate_errors = 0
        self.validate_calls = 0
        self.alive = True
        self.keep_alive_results: List[bool] = []
        self.keep_alive_calls = 0

        self.courses_data: List[Course] = []
        self.course_results: List[List[Course]] = []
        self.assignments_data: Dict[str, List[Assignment]] = {}
        self.details: Dict[str, Assignment] = {}
        self.failing_details = set()

        self.course_calls = 0
        self.assignment_calls = 0
        self.detail_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @property
    def base_url(self) -> str:
        return self.settings.blackboard_base_url

    def load_credential(self, credential: str) -> None:
        self.credential = credential or None

    def current_credential(self) -> Optional[str]:
        return self.credential

    def clear_credential(self) -> None:
        self.credential = None

    async def validate(self) -> str:
        self.validate_calls += 1
        if self.validate_errors:
            self.validate_errors -= 1
            raise RemoteError("portal unavailable")
        return self.display_name if self.credential in self.valid else ""

    async def keep_alive(self) -> bool:
        self.keep_alive_calls += 1
        if self.keep_alive_results:
            return self.keep_alive_results.pop(0)
        return self.alive

    async def fetch_courses(self) -> List[Course]:
        self.course_calls += 1
        if self.course_results:
            return self.course_results.pop(0)
        return [course.model_copy(deep=True) for course in self.courses_data]

    async def fetch_assignments(self, course: Course) -> List[Assignment]:
        self.assignment_calls += 1
        return [a.model_copy(deep=True) for a in self.assignments_data.get(course.id, [])]

    async def fetch_assignment_detail(self, course: Course, assignment: Assignment) -> Optional[Assignment]:
        self.detail_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if assignment.id in self.failing_details:
                raise RemoteError("detail unavailable")
            detail = self.details.get(assignment.id)
            return detail.model_copy(deep=True) if detail else None
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True
        await super().aclose()


class FakeStore:
    """In-memory SessionStore."""

    def __init__(self, snapshots: Optional[Dict[str, SessionSnapshot]] = None):
        self.snapshots: Dict[str, SessionSnapshot] = dict(snapshots or {})
        self.saves: List[str] = []
        self.fail = False

    def load_all(self) -> Dict[str, SessionSnapshot]:
        return {key: value.model_copy(deep=True) for key, value in self.snapshots.items()}

    def save(self, identity: str, snapshot: SessionSnapshot) -> None:
        if self.fail:
            raise RuntimeError("store offline")
        self.saves.append(identity)
        self.snapshots[identity] = snapshot

    def delete(self, identity: str) -> None:
        self.snapshots.pop(identity, None)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        blackboard_base_url=BASE_URL,
        blackboard_api_base=API_URL,
        request_retries=2,
        retry_delay=0,
        clients_json=str(tmp_path / "clients.json"),
        telegram_bot_token="123:abc",
    )


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
async def backend(settings):
    backend = FakeBackend(settings)
    yield backend
    if not backend.closed:
        await backend.aclose()


@pytest.fixture
async def client(settings, backend, clock):
    client = BlackboardClient(settings, backend=backend, clock=clock, alert_sleep=block_forever)
    yield client
    await client.close()


@pytest.fixture
async def authed_client(client):
    assert await client.import_session(VALID_COOKIE)
    return client


@pytest.fixture
def recent_course():
    return make_course("c1", NOW - timedelta(days=10), "Data Structures")


@pytest.fixture
def stale_course():
    return make_course("c2", NOW - timedelta(days=400), "Old Seminar")
