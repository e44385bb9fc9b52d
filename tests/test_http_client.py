import asyncio

import httpx
import pytest

from rentdesk.config import settings
from rentdesk.services.errors import (
    ApiError, BadRequestError, NetworkError, PermissionDeniedError, ServerError, SessionExpiredError
)
from rentdesk.services.session import AuthService


def test_bearer_token_is_attached(backend, make_client):
    backend.on("GET", "/customers", json={"customers": []})
    client = make_client()

    asyncio.run(client.get("/customers"))

    assert backend.calls[0].headers["Authorization"] == "Bearer secret-token"


def test_timing_out_request_is_attempted_four_times(backend, make_client):
    def timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    backend.on("GET", "/equipment", handler=timeout)
    client = make_client()

    with pytest.raises(NetworkError) as exc_info:
        asyncio.run(client.get("/equipment"))

    assert backend.count("GET", "/equipment") == 4
    assert exc_info.value.status_code is None
    assert not exc_info.value.has_response


def test_server_error_is_retried_until_success(backend, make_client):
    responses = [httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"orders": [{"id": 1}]})]
    backend.on("GET", "/orders", handler=lambda request: responses.pop(0))
    client = make_client()

    data = asyncio.run(client.get("/orders"))

    assert data == {"orders": [{"id": 1}]}
    assert backend.count("GET", "/orders") == 3


def test_post_is_never_retried(backend, make_client):
    backend.on("POST", "/sales", status=500, json={"message": "boom"})
    client = make_client()

    with pytest.raises(ServerError):
        asyncio.run(client.post("/sales", json={"equipment_id": 1}))

    assert backend.count("POST", "/sales") == 1


def test_bad_request_is_not_retried_and_keeps_backend_message(backend, make_client):
    backend.on("PUT", "/customers/3", status=400, json={"message": "Name is required."})
    client = make_client()

    with pytest.raises(BadRequestError) as exc_info:
        asyncio.run(client.put("/customers/3", json={}))

    assert backend.count("PUT", "/customers/3") == 1
    assert exc_info.value.backend_message == "Name is required."


def test_unauthorized_clears_token_and_redirects_after_delay(backend, make_client, monkeypatch):
    monkeypatch.setattr(settings, "session_expired_redirect_delay", 0.05)
    backend.on("GET", "/orders", status=401, json={"message": "Token expired"})
    client = make_client(route="/orders")

    async def scenario():
        with pytest.raises(SessionExpiredError):
            await client.get("/orders")
        assert client.session.token is None
        assert client.session.store.get("token") is None
        # the redirect waits for the delay
        assert client.navigator.current == "/orders"
        assert client.navigator.has_pending
        await client.navigator.settle()

    asyncio.run(scenario())

    assert client.navigator.current == "/login"


def test_unauthorized_on_login_route_does_not_redirect(backend, make_client):
    backend.on("GET", "/auth/profile", status=401)
    client = make_client(route="/login")

    async def scenario():
        with pytest.raises(SessionExpiredError):
            await client.get("/auth/profile")
        assert not client.navigator.has_pending

    asyncio.run(scenario())

    assert client.navigator.history == ["/login"]


def test_forbidden_keeps_session(backend, make_client):
    backend.on("DELETE", "/users/4", status=403, json={"message": "Admins only"})
    client = make_client()

    with pytest.raises(PermissionDeniedError):
        asyncio.run(client.delete("/users/4"))

    assert client.session.token == "secret-token"
    assert client.navigator.current == "/"


def test_bad_credentials_do_not_expire_session(backend, make_client):
    backend.on("POST", "/auth/login", status=401, json={"message": "Invalid username or password."})
    client = make_client(token=None, route="/login")

    async def scenario():
        with pytest.raises(ApiError) as exc_info:
            await AuthService(client).login("admin", "wrong")
        assert not isinstance(exc_info.value, SessionExpiredError)
        assert exc_info.value.backend_message == "Invalid username or password."
        assert not client.navigator.has_pending

    asyncio.run(scenario())


def test_login_stores_token(backend, make_client):
    backend.on("POST", "/auth/login", json={"token": "fresh", "user": {"id": 2, "username": "jana", "role": "user"}})
    client = make_client(token=None, route="/login")

    user = asyncio.run(AuthService(client).login("jana", "pw"))

    assert user.username == "jana"
    assert client.session.token == "fresh"
    assert client.session.store.get("token") == "fresh"
    assert not client.session.is_admin


def test_rejected_profile_discards_token(backend, make_client):
    backend.on("GET", "/auth/profile", status=401)
    client = make_client(route="/login")

    user = asyncio.run(AuthService(client).load_profile())

    assert user is None
    assert client.session.token is None
