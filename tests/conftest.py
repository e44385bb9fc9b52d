import os
import time

import httpx
import pytest

from rentdesk.navigation import Navigator
from rentdesk.schemas import User
from rentdesk.services.http_client import ApiClient
from rentdesk.services.session import MemoryTokenStore, Session

BASE_URL = "http://backend.test/api"


class FakeBackend:
    """In-process stand-in for the REST backend, routed by (method, path)"""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, method, path, json=None, status=200, handler=None):
        if handler is None:
            body = {} if json is None else json

            def handler(request):
                return httpx.Response(status, json=body)

        self.routes[(method.upper(), path)] = handler

    def requests_to(self, method, path):
        return [r for r in self.calls if r.method == method.upper() and self.path_of(r) == path]

    def count(self, method, path=None):
        if path is None:
            return sum(1 for r in self.calls if r.method == method.upper())
        return len(self.requests_to(method, path))

    @staticmethod
    def path_of(request):
        return request.url.path[len("/api"):]

    def __call__(self, request):
        self.calls.append(request)
        handler = self.routes.get((request.method, self.path_of(request)))
        if handler is None:
            return httpx.Response(404, json={"message": f"No route for {request.method} {self.path_of(request)}"})
        return handler(request)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_client(backend):
    def factory(role="admin", token="secret-token", route="/", **kwargs):
        session = Session(store=MemoryTokenStore())
        if token:
            user = User(id=1, username="tester", role=role) if role else None
            session.start(token, user)
        kwargs.setdefault("retry_backoff", 0)
        return ApiClient(
            session=session,
            navigator=Navigator(route),
            base_url=BASE_URL,
            transport=httpx.MockTransport(backend),
            **kwargs
        )
    return factory


@pytest.fixture(autouse=True)
def local_timezone():
    """Tests run in UTC; the returned setter switches to another POSIX zone"""
    original = os.environ.get("TZ")

    def use(zone):
        os.environ["TZ"] = zone
        time.tzset()

    use("UTC")
    yield use
    if original is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = original
    time.tzset()
