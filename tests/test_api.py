import asyncio

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from fastapi.testclient import TestClient

from rentdesk.api import documents as documents_api
from rentdesk.api.documents import content_disposition, get_api_client
from rentdesk.main import app

WRITE_OFF = {
    "write_off": {
        "id": 7,
        "reason": "damaged",
        "write_off_date": "2024-03-02",
        "items": [{"equipment_name": "Vrtačka", "quantity": 1, "unit_value": 900, "total_value": 900}],
    }
}


@pytest.fixture
def api(backend, make_client):
    app.dependency_overrides[get_api_client] = lambda: make_client(role=None, token="caller-token")
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health():
    response = TestClient(app).get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_write_off_download(api, backend):
    backend.on("GET", "/write-offs/7", json=WRITE_OFF)

    response = api.get("/api/documents/write-off/7", params={"disposition": "attachment"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="Zapis-o-odpisu-7.pdf"'
    assert response.content.startswith(b"%PDF")
    assert backend.calls[0].headers["Authorization"] == "Bearer caller-token"


def test_billing_preview_is_inline(api, backend):
    backend.on("GET", "/orders/4/billing-data/31", json={"billingData": {"id": 31, "invoice_number": "INV-Z-4-20240531"}})

    response = api.get("/api/documents/billing/4-31")

    assert response.status_code == 200
    assert response.headers["content-disposition"] == 'inline; filename="Fakturacni-podklad-INV-Z-4-20240531.pdf"'


def test_unknown_kind_is_not_found(api, backend):
    response = api.get("/api/documents/invoice/1")

    assert response.status_code == 404
    assert backend.calls == []


def test_invalid_reference_is_bad_request(api, backend):
    response = api.get("/api/documents/inventory-check/abc")

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid record id."


def test_missing_record_is_passed_through(api, backend):
    response = api.get("/api/documents/inventory-check/99")

    assert response.status_code == 404


def test_backend_outage_is_bad_gateway(api, backend):
    backend.on("GET", "/write-offs/7", status=500)

    response = api.get("/api/documents/write-off/7")

    assert response.status_code == 502


def test_rejected_token_is_reported_without_redirect(backend, make_client):
    backend.on("GET", "/write-offs/7", status=401, json={"message": "Invalid token"})
    client = make_client(role=None, token="stale", expire_on_unauthorized=False)
    app.dependency_overrides[get_api_client] = lambda: client
    try:
        response = TestClient(app).get("/api/documents/write-off/7")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401
    assert not client.navigator.has_pending
    assert client.session.token == "stale"


def test_disposition_is_validated(api):
    response = api.get("/api/documents/write-off/7", params={"disposition": "download"})

    assert response.status_code == 422


def test_request_without_token_is_refused():
    response = TestClient(app).get("/api/documents/write-off/7")

    assert response.status_code in (401, 403)


def test_forwarding_client_uses_caller_token():
    async def scenario():
        dependency = get_api_client(HTTPAuthorizationCredentials(scheme="Bearer", credentials="abc"))
        client = await dependency.__anext__()
        try:
            return client.session.auth_headers, client.expire_on_unauthorized
        finally:
            await dependency.aclose()

    headers, expires = asyncio.run(scenario())

    assert headers == {"Authorization": "Bearer abc"}
    assert expires is False


def test_czech_file_name_is_downloadable(api, backend):
    backend.on("GET", "/orders/7/delivery-note", json={"deliveryNote": {"order_number": "Zakázka-č.7", "rentals": []}})

    response = api.get("/api/documents/delivery-note/7", params={"disposition": "attachment"})

    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"Dodaci-list-Zakazka-c.7.pdf\"; "
        "filename*=UTF-8''Dodaci-list-Zak%C3%A1zka-%C4%8D.7.pdf"
    )


def test_content_disposition():
    assert content_disposition("inline", "Inventura-2.pdf") == 'inline; filename="Inventura-2.pdf"'
    assert content_disposition("attachment", "Zápis o odpisu.pdf") == (
        "attachment; filename=\"Zapis-o-odpisu.pdf\"; filename*=UTF-8''Z%C3%A1pis%20o%20odpisu.pdf"
    )


def test_rendering_runs_in_a_worker_thread(api, backend, monkeypatch):
    backend.on("GET", "/write-offs/7", json=WRITE_OFF)
    threads = []

    def render(document):
        try:
            asyncio.get_running_loop()
            threads.append("event loop")
        except RuntimeError:
            threads.append("worker")
        return b"%PDF-1.4"

    monkeypatch.setattr(documents_api, "render_pdf", render)

    response = api.get("/api/documents/write-off/7")

    assert response.status_code == 200
    assert threads == ["worker"]


def test_malformed_backend_payload_is_bad_gateway(api, backend):
    backend.on("GET", "/write-offs/7", json={"write_off": {"id": "seven"}})

    response = api.get("/api/documents/write-off/7")

    assert response.status_code == 502
