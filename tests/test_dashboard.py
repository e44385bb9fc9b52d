import asyncio

from rentdesk.views.dashboard import DashboardView

ORDERS = {"orders": [
    {"id": 1, "status": "active"},
    {"id": 2, "status": "completed"},
    {"id": 3, "status": "active"},
]}

EQUIPMENT = {"equipment": [
    {"id": i, "name": f"Položka {i}", "status": status, "created_at": f"2024-05-0{i}T08:00:00.000Z"}
    for i, status in enumerate(
        ["available", "available", "borrowed", "maintenance", "retired", "available", "borrowed"], start=1
    )
] + [{"id": 8, "name": "Bez data", "status": "available", "created_at": None}]}


def test_admin_sees_stock_figures(backend, make_client):
    backend.on("GET", "/customers", json={"customers": [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}]})
    backend.on("GET", "/orders", json=ORDERS)
    backend.on("GET", "/equipment", json=EQUIPMENT)
    backend.on("GET", "/categories", json={"categories": [{"id": 1, "name": "Lešení"}]})
    view = DashboardView(make_client())

    asyncio.run(view.mount())

    assert view.error is None
    assert view.loading is False
    assert (view.customer_count, view.order_count, view.active_orders) == (2, 3, 2)
    assert view.equipment_counts == {"total": 8, "available": 4, "borrowed": 2, "maintenance": 1}
    assert [c.name for c in view.categories] == ["Lešení"]
    assert [e.id for e in view.recently_added] == [7, 6, 5, 4, 3]


def test_regular_user_gets_no_stock_requests(backend, make_client):
    backend.on("GET", "/customers", json={"customers": [{"id": 1, "name": "A"}]})
    backend.on("GET", "/orders", json=ORDERS)
    view = DashboardView(make_client(role="user"))

    asyncio.run(view.mount())

    assert view.customer_count == 1
    assert view.equipment_counts["total"] == 0
    assert backend.count("GET", "/equipment") == 0
    assert backend.count("GET", "/categories") == 0


def test_stock_failure_keeps_the_rest_of_the_dashboard(backend, make_client):
    backend.on("GET", "/customers", json={"customers": [{"id": 1, "name": "A"}]})
    backend.on("GET", "/orders", json=ORDERS)
    backend.on("GET", "/equipment", status=403, json={"message": "Forbidden"})
    backend.on("GET", "/categories", json={"categories": []})
    view = DashboardView(make_client())

    asyncio.run(view.mount())

    assert view.error is None
    assert view.active_orders == 2
    assert view.recently_added == []


def test_order_failure_is_a_dashboard_error(backend, make_client):
    backend.on("GET", "/customers", json={"customers": []})
    backend.on("GET", "/orders", status=400, json={})
    backend.on("GET", "/equipment", json=EQUIPMENT)
    backend.on("GET", "/categories", json={"categories": []})
    view = DashboardView(make_client())

    asyncio.run(view.mount())

    assert view.error == "Failed to load the dashboard data. Please try again later."
    assert view.orders == []


def test_signed_out_dashboard_loads_nothing(backend, make_client):
    view = DashboardView(make_client(token=None))

    asyncio.run(view.mount())

    assert backend.calls == []
