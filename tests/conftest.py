"""Shared fixtures for all tests."""

import json
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import pytest
import requests

from dropbox_api_sdk import DropboxClient


def make_response(
    status: int = 200,
    json_body: Any = None,
    body: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    """Build a fully-read requests.Response."""
    response = requests.Response()
    response.status_code = status
    if body is None:
        body = json.dumps(json_body).encode("utf-8") if json_body is not None else b""
    response._content = body
    response._content_consumed = True
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response


@dataclass
class RecordedCall:
    method: str
    url: str
    headers: Dict[str, str]
    data: Any
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def host(self) -> str:
        return urlparse(self.url).netloc

    @property
    def endpoint(self) -> str:
        return urlparse(self.url).path

    @property
    def api_arg(self) -> Any:
        return json.loads(self.headers["Dropbox-API-Arg"])

    @property
    def json(self) -> Any:
        return json.loads(self.data)


class FakeDropbox:
    """
    Stands in for requests.Session.request.

    Responses are queued per endpoint path; the last queued response for an
    endpoint keeps being served once the queue is drained. A queued
    exception instance is raised instead of returned.
    """

    def __init__(self):
        self.calls = []
        self._routes = defaultdict(deque)

    def add(self, endpoint: str, *responses):
        self._routes[endpoint].extend(responses)

    def calls_to(self, endpoint: str):
        return [call for call in self.calls if call.endpoint == endpoint]

    def request(self, session, method, url, headers=None, data=None, **kwargs):
        if hasattr(data, "read"):
            data = data.read()
        call = RecordedCall(method, url, dict(headers or {}), data, kwargs)
        self.calls.append(call)

        queue = self._routes.get(call.endpoint)
        if not queue:
            raise AssertionError(f"Unexpected request to {call.endpoint}")
        outcome = queue.popleft() if len(queue) > 1 else queue[0]

        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_dropbox(monkeypatch: pytest.MonkeyPatch) -> FakeDropbox:
    """Route every HTTP request through a FakeDropbox."""
    fake = FakeDropbox()

    def request(session, method, url, **kwargs):
        return fake.request(session, method, url, **kwargs)

    monkeypatch.setattr(requests.Session, "request", request)
    return fake


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list:
    """Record retry delays instead of sleeping."""
    delays = []
    monkeypatch.setattr("dropbox_api_sdk.utils.time.sleep", delays.append)
    return delays


@pytest.fixture
def options() -> Dict[str, Any]:
    return {
        "app_key": "test_app_key",
        "app_secret": "test_app_secret",
        "access_token": "test_access_token",
    }


@pytest.fixture
def client(fake_dropbox, options):
    with DropboxClient(options) as dropbox_client:
        yield dropbox_client
