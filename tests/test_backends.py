"""Tests for the markup and API backends against httpx.MockTransport."""

import json

import httpx
import pytest

from blackboard_bot.auth import perform_login
from blackboard_bot.backends import ApiBackend, MarkupBackend, create_backend
from blackboard_bot.errors import AuthenticationError, RemoteError

from tests.conftest import BASE_URL, NOW, make_course

HOME_PAGE = """
<html><body>
  <a id="global-nav-link" href="#">Jane Doe<span class="badge">3</span><img alt="avatar"></a>
</body></html>
"""

STREAM_PAYLOAD = {
    "sv_streamEntries": [
        {"se_courseId": "_1_1", "se_timestamp": 1700000000000, "se_rhs": "/webapps/grades/1"},
    ],
    "sv_extras": {"sx_courses": [{"id": "_1_1", "name": "Biology [BIO101]", "homePageUrl": "/home/1"}]},
}

GRADES_PAGE = """
<div id="grades_wrapper">
  <div class="row" id="a1" position="1" duedate="4102444800000">
    <div class="cell gradable"><a>Lab 1</a></div>
    <div class="cell activity timestamp"><span class="activityType">Upcoming</span></div>
  </div>
</div>
"""


def mock_http(handler, requests=None):
    def recording(request):
        if requests is not None:
            requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(recording), follow_redirects=True)


class TestMarkupBackend:
    async def test_validate_reads_name_and_sends_cookies(self, settings):
        requests = []
        backend = MarkupBackend(settings, mock_http(lambda r: httpx.Response(200, text=HOME_PAGE), requests))
        backend.load_credential("s_session_id=abc; web_client_cache_guid=xyz")

        assert await backend.validate() == "Jane Doe"
        assert "s_session_id=abc" in requests[0].headers["cookie"]
        assert requests[0].headers["user-agent"] == settings.user_agent
        await backend.aclose()

    async def test_logged_out_page_has_no_name(self, settings):
        backend = MarkupBackend(settings, mock_http(lambda r: httpx.Response(200, text="<html></html>")))

        assert await backend.validate() == ""
        await backend.aclose()

    async def test_redirect_away_from_portal_is_an_error(self, settings):
        def handler(request):
            if request.url.host == "blackboard.example.edu":
                return httpx.Response(302, headers={"location": "https://sso.example.edu/login"})
            return httpx.Response(200, text="<html>Sign in</html>")

        backend = MarkupBackend(settings, mock_http(handler))

        with pytest.raises(RemoteError):
            await backend.validate()
        await backend.aclose()

    async def test_bad_status_and_transport_errors(self, settings):
        backend = MarkupBackend(settings, mock_http(lambda r: httpx.Response(503)))
        with pytest.raises(RemoteError):
            await backend.validate()
        await backend.aclose()

        def broken(request):
            raise httpx.ConnectError("refused", request=request)

        backend = MarkupBackend(settings, mock_http(broken))
        with pytest.raises(RemoteError):
            await backend.validate()
        await backend.aclose()

    async def test_credential_round_trip(self, settings):
        backend = MarkupBackend(settings, mock_http(lambda r: httpx.Response(200)))
        backend.load_credential("a=1; b=2")

        assert backend.current_credential() == "a=1; b=2"
        backend.clear_credential()
        assert backend.current_credential() is None
        await backend.aclose()

    async def test_fetch_courses_posts_stream_request(self, settings):
        requests = []
        backend = MarkupBackend(settings, mock_http(lambda r: httpx.Response(200, json=STREAM_PAYLOAD), requests))

        (course,) = await backend.fetch_courses()

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/webapps/streamViewer/streamViewer"
        assert b"cmd=loadStream" in request.content
        assert b"streamName=mygrades" in request.content
        assert course.name == "Biology"
        await backend.aclose()

    async def test_invalid_json_is_an_error(self, settings):
        backend = MarkupBackend(settings, mock_http(lambda r: httpx.Response(200, text="<html>")))

        with pytest.raises(RemoteError):
            await backend.fetch_courses()
        await backend.aclose()

    async def test_fetch_assignments(self, settings):
        requests = []
        backend = MarkupBackend(settings, mock_http(lambda r: httpx.Response(200, text=GRADES_PAGE), requests))
        course = make_course("_1_1", NOW)
        course.urls.grades = "/webapps/grades/1"

        (assignment,) = await backend.fetch_assignments(course)

        assert str(requests[0].url) == f"{BASE_URL}/webapps/grades/1"
        assert assignment.name == "Lab 1"
        assert await backend.fetch_assignment_detail(course, assignment) is None
        await backend.aclose()


def api_handler(routes, requests=None):
    def handler(request):
        if requests is not None:
            requests.append(request)
        key = (request.method, request.url.path.replace("/v1", "", 1))
        status, body = routes.get(key, (404, {"error": "not found"}))
        return httpx.Response(status, json=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestApiBackend:
    async def test_requires_api_base(self, settings):
        settings.blackboard_api_base = None
        with pytest.raises(ValueError):
            ApiBackend(settings)

    async def test_validate_with_bearer_token(self, settings):
        requests = []
        backend = ApiBackend(settings, api_handler({("GET", "/me"): (200, {"first_name": "Jane", "last_name": "Doe"})}, requests))
        backend.load_credential("tok-1")

        assert await backend.validate() == "Jane Doe"
        assert requests[0].headers["authorization"] == "Bearer tok-1"
        await backend.aclose()

    async def test_rejected_token(self, settings):
        backend = ApiBackend(settings, api_handler({("GET", "/me"): (401, {})}))
        backend.load_credential("tok-1")

        assert await backend.validate() == ""
        await backend.aclose()

    async def test_validate_without_token_skips_request(self, settings):
        requests = []
        backend = ApiBackend(settings, api_handler({}, requests))

        assert await backend.validate() == ""
        assert requests == []
        await backend.aclose()

    async def test_keep_alive_refreshes_token(self, settings):
        backend = ApiBackend(settings, api_handler({("POST", "/login/refresh"): (200, {"token": "tok-2"})}))
        backend.load_credential("tok-1")

        assert await backend.keep_alive() is True
        assert backend.current_credential() == "tok-2"
        await backend.aclose()

    async def test_keep_alive_rejected_or_malformed(self, settings):
        backend = ApiBackend(settings, api_handler({("POST", "/login/refresh"): (403, {})}))
        backend.load_credential("tok-1")
        assert await backend.keep_alive() is False
        await backend.aclose()

        backend = ApiBackend(settings, api_handler({("POST", "/login/refresh"): (200, {"nope": 1})}))
        backend.load_credential("tok-1")
        with pytest.raises(RemoteError):
            await backend.keep_alive()
        await backend.aclose()

    async def test_fetch_courses_and_assignments(self, settings):
        routes = {
            ("GET", "/courses"): (200, {"results": [
                {"id": "c1", "name": "Physics [PHY2]", "updated_at": "2024-01-05T00:00:00Z"},
            ]}),
            ("GET", "/courses/c1/assignments"): (200, [
                {"id": "a2", "name": "Lab 2", "position": 2, "status": "past_due", "due_at": "2024-01-01T00:00:00Z"},
                {"id": "a1", "name": "Lab 1", "position": 1, "status": "submitted"},
            ]),
            ("GET", "/courses/c1/assignments/a2"): (200, {
                "id": "a2", "name": "Lab 2", "position": 99, "status": "graded",
                "score": 45, "possible": 50, "due_at": "2024-01-01T00:00:00Z",
            }),
        }
        backend = ApiBackend(settings, api_handler(routes))
        backend.load_credential("tok-1")

        (course,) = await backend.fetch_courses()
        lab1, lab2 = await backend.fetch_assignments(course)
        detail = await backend.fetch_assignment_detail(course, lab2)

        assert course.name == "Physics"
        assert lab1.id == "a1" and lab2.id == "a2"
        assert detail.grade.percent == 90.0
        assert detail.cursor == lab2.cursor == 2
        await backend.aclose()

    async def test_server_errors_raise(self, settings):
        backend = ApiBackend(settings, api_handler({("GET", "/courses"): (500, {})}))
        backend.load_credential("tok-1")

        with pytest.raises(RemoteError):
            await backend.fetch_courses()
        await backend.aclose()


async def test_create_backend_follows_settings(settings):
    markup = create_backend(settings)
    settings.backend = "api"
    api = create_backend(settings)

    assert isinstance(markup, MarkupBackend)
    assert isinstance(api, ApiBackend)
    await markup.aclose()
    await api.aclose()


class TestPerformLogin:
    async def test_login_returns_token(self, settings):
        requests = []
        http = api_handler({("POST", "/login"): (200, {"token": "tok-1"})}, requests)

        assert await perform_login("jdoe", "secret", settings=settings, http=http) == "tok-1"
        assert json.loads(requests[0].content) == {"username": "jdoe", "password": "secret"}
        await http.aclose()

    async def test_login_rejected(self, settings):
        http = api_handler({("POST", "/login"): (401, {"error": "bad credentials"})})

        with pytest.raises(AuthenticationError):
            await perform_login("jdoe", "wrong", settings=settings, http=http)
        await http.aclose()

    async def test_login_unreachable(self, settings):
        def broken(request):
            raise httpx.ConnectTimeout("timeout", request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(broken))
        with pytest.raises(RemoteError):
            await perform_login("jdoe", "secret", settings=settings, http=http)
        await http.aclose()
