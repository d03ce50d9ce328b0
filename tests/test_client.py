import pytest

import client as api_client
from client import ApiClient, ApiError


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(api_client.time, "sleep", lambda seconds: None)


def test_success():
    session = FakeSession(FakeResponse(200, [{"title": "P"}]))

    assert ApiClient("http://api.test/", session=session).get("/api/projects") == [{"title": "P"}]
    assert session.calls[0][1] == "http://api.test/api/projects"


def test_retries_once_when_database_not_connected():
    session = FakeSession(
        FakeResponse(503, {"message": "Database not connected. Please check your MongoDB connection."}),
        FakeResponse(200, {"ok": True}),
    )

    assert ApiClient("http://api.test", session=session).get("/api/profile") == {"ok": True}
    assert len(session.calls) == 2


def test_gives_up_after_second_failure():
    session = FakeSession(FakeResponse(500, {"message": "Internal server error"}),
                          FakeResponse(500, {"message": "Internal server error"}))

    with pytest.raises(ApiError) as info:
        ApiClient("http://api.test", session=session).get("/api/profile")

    assert info.value.status_code == 500
    assert len(session.calls) == 2


def test_client_errors_are_not_retried():
    session = FakeSession(FakeResponse(404, {"message": "Project not found"}))

    with pytest.raises(ApiError) as info:
        ApiClient("http://api.test", session=session).get("/api/projects/x")

    assert info.value.message == "Project not found"
    assert len(session.calls) == 1


def test_error_without_json_body():
    session = FakeSession(FakeResponse(502, None))

    with pytest.raises(ApiError) as info:
        ApiClient("http://api.test", session=session).get("/")

    assert info.value.message == "HTTP error! status: 502"


def test_login_stores_token_for_later_requests():
    session = FakeSession(FakeResponse(200, {"token": "abc", "user": {}}), FakeResponse(200, []))
    api = ApiClient("http://api.test", session=session)

    api.login("admin@portfolio.dev", "secret123")
    api.get("/api/admin/projects")

    assert session.calls[0][2]["json"] == {"email": "admin@portfolio.dev", "password": "secret123"}
    assert session.calls[1][2]["headers"]["Authorization"] == "Bearer abc"
