import asyncio
import json

import pytest

from rentdesk.views.users import UserAccessView

CUSTOMERS = {"customers": [{"id": 1, "name": "Stavby Novák"}, {"id": 2, "name": "Jan Dvořák"}, {"id": 3, "name": "Beton s.r.o."}]}
ORDERS = {"orders": [{"id": 10, "order_number": "Z-10"}, {"id": 11, "order_number": "Z-11"}]}


@pytest.fixture
def access_backend(backend):
    backend.on("GET", "/users/5", json={"user": {"id": 5, "username": "petr", "role": "user"}})
    backend.on("GET", "/customers", json=CUSTOMERS)
    backend.on("GET", "/orders", json=ORDERS)
    backend.on("GET", "/users/5/customers", json={"customers": [{"id": 1, "name": "Stavby Novák", "access_type": "write"}]})
    backend.on("GET", "/users/5/orders", json={"orders": []})
    return backend


def mounted(client):
    view = UserAccessView(client, "5")
    asyncio.run(view.mount())
    return view


def test_assigned_records_are_not_offered_again(access_backend, make_client):
    view = mounted(make_client())

    assert view.user.username == "petr"
    assert [(c.id, c.access_type) for c in view.user_customers] == [(1, "write")]
    assert [c.id for c in view.available_customers] == [2, 3]
    assert [o.id for o in view.available_orders] == [10, 11]


def test_grant_customer_access(access_backend, make_client):
    access_backend.on("POST", "/users/5/customer-access", json={"message": "ok"})
    view = mounted(make_client())

    assert asyncio.run(view.grant_customer("2", "admin")) is True

    body = json.loads(access_backend.requests_to("POST", "/users/5/customer-access")[0].content)
    assert body == {"customerId": 2, "accessType": "admin"}
    assert [(c.name, c.access_type) for c in view.user_customers][-1] == ("Jan Dvořák", "admin")
    assert [c.id for c in view.available_customers] == [3]
    assert view.success == "Customer access granted."


def test_grant_without_selection_is_rejected(access_backend, make_client):
    view = mounted(make_client())

    assert asyncio.run(view.grant_order("")) is False
    assert view.error == "Select an order."
    assert asyncio.run(view.grant_customer(None)) is False
    assert view.error == "Select a customer."
    assert access_backend.count("POST") == 0


def test_unknown_access_type_is_rejected(access_backend, make_client):
    view = mounted(make_client())

    assert asyncio.run(view.grant_order(10, "owner")) is False
    assert view.error == "Unknown access type."
    assert access_backend.count("POST") == 0


def test_grant_order_access(access_backend, make_client):
    access_backend.on("POST", "/users/5/order-access", json={})
    view = mounted(make_client())

    assert asyncio.run(view.grant_order(11)) is True

    body = json.loads(access_backend.requests_to("POST", "/users/5/order-access")[0].content)
    assert body == {"orderId": 11, "accessType": "read"}
    assert [(o.order_number, o.access_type) for o in view.user_orders] == [("Z-11", "read")]


def test_revoke_customer_sends_body_with_delete(access_backend, make_client):
    access_backend.on("DELETE", "/users/5/customer-access", json={})
    view = mounted(make_client())

    assert asyncio.run(view.revoke_customer(1)) is True

    request = access_backend.requests_to("DELETE", "/users/5/customer-access")[0]
    assert json.loads(request.content) == {"customerId": 1}
    assert view.user_customers == []
    assert [c.id for c in view.available_customers] == [1, 2, 3]


def test_update_customer_access_level(access_backend, make_client):
    access_backend.on("PUT", "/users/5/customer-access", json={})
    view = mounted(make_client())

    assert asyncio.run(view.update_customer_access(1, "read")) is True

    body = json.loads(access_backend.requests_to("PUT", "/users/5/customer-access")[0].content)
    assert body == {"customerId": 1, "accessType": "read"}
    assert view.user_customers[0].access_type == "read"


def test_rejected_change_keeps_local_state(access_backend, make_client):
    access_backend.on("DELETE", "/users/5/order-access", status=404, json={"message": "Access not found"})
    access_backend.on("GET", "/users/5/orders", json={"orders": [{"id": 10, "order_number": "Z-10", "access_type": "read"}]})
    view = mounted(make_client())

    assert asyncio.run(view.revoke_order(10)) is False
    assert view.error == "Access not found"
    assert [o.id for o in view.user_orders] == [10]


def test_access_changes_require_admin(access_backend, make_client):
    view = mounted(make_client(role="user"))

    assert asyncio.run(view.grant_customer(2)) is False
    assert view.error == "Only administrators can perform this action."
    assert access_backend.count("POST") == 0
