"""
Shared fixtures: canned HTTP responses and an in-memory RemoteControl endpoint
"""
import json

import pytest
import requests


TEST_ENDPOINT = "https://example.limequery.com/admin/remotecontrol"


def build_response(body, status_code: int = 200, headers=None) -> requests.Response:
    """Build a requests.Response; body None leaves the content unset"""
    response = requests.Response()
    response.status_code = status_code
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    if body is not None:
        response._content = body if isinstance(body, bytes) else body.encode("utf-8")
    return response


class FakeRemoteControl:
    """requests.Session stand-in answering JSON-RPC calls from handler functions"""

    def __init__(self, handlers):
        self.handlers = handlers
        self.calls = []
        self.closed = False

    def prepare_request(self, request):
        return request.prepare()

    def send(self, request, timeout=None):
        data = json.loads(request.body)
        self.calls.append((data["method"], data["params"]))
        result = self.handlers[data["method"]](*data["params"])
        return build_response(json.dumps({"id": data["id"], "result": result, "error": None}))

    def close(self):
        self.closed = True


@pytest.fixture
def endpoint():
    return TEST_ENDPOINT


@pytest.fixture
def make_response():
    """Factory for requests.Response objects"""
    return build_response


@pytest.fixture
def fake_remote_control():
    """Factory for FakeRemoteControl sessions"""
    return FakeRemoteControl
