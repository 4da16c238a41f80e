"""Unit tests for the Microsoft Graph HTTP client."""
import json as jsonlib
from datetime import datetime, timedelta

import jwt
import pytest
import requests

from lifecycle.core.graph import client as graph_client
from lifecycle.core.graph import DirectoryAPIError, GraphClient, NotAuthenticatedError, create_client_with_token


class _StubResponse:
    def __init__(self, payload=None, status_code=200, url="https://graph.test/v1.0/x", headers=None):
        self._payload = payload
        self.status_code = status_code
        self.url = url
        self.headers = headers or {}
        self.text = jsonlib.dumps(payload) if payload is not None else ""
        self.content = self.text.encode()

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


@pytest.fixture
def http(monkeypatch):
    """Record requests.* calls and answer them from a queue per verb."""
    calls = []
    queues = {verb: [] for verb in ("get", "post", "put", "patch", "delete")}

    def make(verb):
        def _send(url, **kwargs):
            calls.append((verb, url, kwargs))
            return queues[verb].pop(0)
        return _send

    for verb in queues:
        monkeypatch.setattr(requests, verb, make(verb))
    return calls, queues


def _token_response(expires_in=3600, claims=None):
    token = jwt.encode(claims or {"tid": "tenant-1", "app_displayname": "Lifecycle"}, "k" * 32, algorithm="HS256")
    return _StubResponse({"access_token": token, "expires_in": expires_in})


def _client():
    return GraphClient("https://graph.test/v1.0", "https://login.test", timeout=7)


def test_client_credentials_flow(http):
    calls, queues = http
    queues["post"].append(_token_response())
    client = _client()

    client.authenticate_client_credentials("tenant-1", "app", "secret")

    verb, url, kwargs = calls[0]
    assert url == "https://login.test/tenant-1/oauth2/v2.0/token"
    assert kwargs["data"]["grant_type"] == "client_credentials"
    assert kwargs["data"]["scope"] == "https://graph.microsoft.com/.default"
    assert kwargs["timeout"] == 7
    assert client.is_authenticated()
    assert client.session_claims()["app_displayname"] == "Lifecycle"


def test_token_failure_raises(http):
    _, queues = http
    queues["post"].append(_StubResponse({"error": "invalid_client"}, status_code=401))
    with pytest.raises(DirectoryAPIError) as exc:
        _client().authenticate_client_credentials("tenant-1", "app", "bad")
    assert exc.value.status_code == 401


def test_requires_authentication():
    client = _client()
    assert not client.is_authenticated()
    with pytest.raises(NotAuthenticatedError):
        client.get("/users")


def test_get_sends_bearer_token(http):
    calls, queues = http
    client = create_client_with_token("abc", base_url="https://graph.test/v1.0")
    queues["get"].append(_StubResponse({"id": "1"}))

    resp = client.get("/users/alice@contoso.com", params={"$select": "id"})

    assert resp.json() == {"id": "1"}
    verb, url, kwargs = calls[0]
    assert url == "https://graph.test/v1.0/users/alice@contoso.com"
    assert kwargs["headers"]["Authorization"] == "Bearer abc"
    assert kwargs["params"] == {"$select": "id"}


def test_expiring_token_is_refreshed(http):
    calls, queues = http
    queues["post"].append(_token_response(expires_in=3600))
    client = _client()
    client.authenticate_client_credentials("tenant-1", "app", "secret")
    client._expires_at = datetime.now() + timedelta(seconds=30)

    queues["post"].append(_token_response())
    queues["get"].append(_StubResponse({"value": []}))
    client.get("/users")

    assert [c[0] for c in calls] == ["post", "post", "get"]


def test_error_uses_graph_message(http):
    _, queues = http
    client = create_client_with_token("abc", base_url="https://graph.test/v1.0")
    queues["patch"].append(
        _StubResponse({"error": {"code": "Request_BadRequest", "message": "Invalid value"}}, status_code=400)
    )
    with pytest.raises(DirectoryAPIError) as exc:
        client.patch("/users/1", json={"city": "x"})
    assert exc.value.status_code == 400
    assert exc.value.message == "Invalid value"


def test_get_all_follows_next_link(http):
    calls, queues = http
    client = create_client_with_token("abc", base_url="https://graph.test/v1.0")
    queues["get"].append(_StubResponse({"value": [{"id": "1"}], "@odata.nextLink": "https://graph.test/v1.0/page2"}))
    queues["get"].append(_StubResponse({"value": [{"id": "2"}]}))

    items = list(client.get_all("/groups"))

    assert [i["id"] for i in items] == ["1", "2"]
    assert calls[1][1] == "https://graph.test/v1.0/page2"


def test_request_timeout_default_from_module(monkeypatch):
    monkeypatch.setattr(graph_client, "REQUEST_TIMEOUT", 12)
    assert GraphClient().timeout == 12


def test_throttled_request_is_retried_after_delay(http, monkeypatch):
    calls, queues = http
    sleeps = []
    monkeypatch.setattr(graph_client.time, "sleep", sleeps.append)
    client = create_client_with_token("abc", base_url="https://graph.test/v1.0")
    queues["get"].append(_StubResponse({"error": {"message": "Too many requests"}}, 429, headers={"Retry-After": "5"}))
    queues["get"].append(_StubResponse({"id": "1"}))

    assert client.get("/users/1").json() == {"id": "1"}
    assert sleeps == [5]
    assert len(calls) == 2


def test_throttling_gives_up_after_max_retries(http, monkeypatch):
    calls, queues = http
    sleeps = []
    monkeypatch.setattr(graph_client.time, "sleep", sleeps.append)
    client = create_client_with_token("abc", base_url="https://graph.test/v1.0")
    for _ in range(graph_client.MAX_RETRIES + 1):
        queues["get"].append(_StubResponse({"error": {"message": "Service unavailable"}}, 503))

    with pytest.raises(DirectoryAPIError) as exc:
        client.get("/users")

    assert exc.value.status_code == 503
    assert len(calls) == graph_client.MAX_RETRIES + 1
    assert sleeps == [1, 2, 4]


def test_malformed_timeout_variable_does_not_reach_client(monkeypatch):
    monkeypatch.setenv("GRAPH_REQUEST_TIMEOUT", "soon")
    assert GraphClient().timeout == graph_client.REQUEST_TIMEOUT == 30
