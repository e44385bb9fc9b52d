import asyncio
import json
from datetime import date

import pytest

from rentdesk.services.billing import (
    BillingOptions, due_date, invoice_number_for, last_day_of_month, periods_overlap
)
from rentdesk.services.errors import BillingOverlapError, ClientValidationError
from rentdesk.views.billing import CONFIGURE, GENERATED, BillingView

GENERATED_BILLING = {
    "billingData": {
        "id": 31,
        "order_id": 4,
        "invoice_number": "INV-Z-4-20240531",
        "billing_date": "2024-05-31",
        "period_from": "2024-05-01",
        "period_to": "2024-05-31",
        "items": [{"equipment_name": "Lešení", "days": 30, "quantity": 2, "daily_rate": 10, "total_price": 600}],
        "total_amount": 600,
    }
}


def order_response(status="active"):
    return {"order": {"id": 4, "order_number": "Z-4", "status": status, "customer_name": "Stavby Novák"}}


def mounted_view(backend, make_client, status="active"):
    backend.on("GET", "/orders/4", json=order_response(status))
    view = BillingView(make_client(), 4)
    asyncio.run(view.mount())
    return view


@pytest.mark.parametrize("a, b, expected", [
    ((date(2024, 5, 1), date(2024, 5, 31)), (date(2024, 5, 31), date(2024, 6, 30)), True),
    ((date(2024, 5, 1), date(2024, 5, 31)), (date(2024, 6, 1), date(2024, 6, 30)), False),
    ((date(2024, 5, 10), date(2024, 5, 12)), (date(2024, 5, 1), date(2024, 5, 31)), True),
    ((date(2024, 5, 1), date(2024, 5, 31)), (date(2024, 4, 1), date(2024, 4, 30)), False),
])
def test_periods_overlap_with_inclusive_bounds(a, b, expected):
    assert periods_overlap(*a, *b) is expected


def test_date_helpers():
    assert last_day_of_month(date(2024, 2, 10)) == date(2024, 2, 29)
    assert due_date(date(2024, 5, 31)) == date(2024, 6, 14)
    assert invoice_number_for("Z-4", date(2024, 5, 31)) == "INV-Z-4-20240531"


def test_automatic_period_is_not_sent():
    options = BillingOptions(billing_date=date(2024, 5, 31), period_from=date(2024, 5, 1), period_to=date(2024, 5, 2))

    assert options.payload() == {
        "billing_date": "2024-05-31",
        "include_returned_only": False,
        "is_final_billing": False,
    }


def test_custom_period_is_sent():
    options = BillingOptions(
        billing_date=date(2024, 5, 31),
        use_custom_period=True,
        period_from="2024-05-01",
        period_to="2024-05-15",
    )

    payload = options.payload()

    assert payload["period_from"] == "2024-05-01"
    assert payload["period_to"] == "2024-05-15"


@pytest.mark.parametrize("period_from, period_to", [
    ("", "2024-05-15"),
    ("2024-05-01", ""),
    ("2024-05-20", "2024-05-15"),
])
def test_invalid_manual_period_is_rejected_locally(period_from, period_to):
    options = BillingOptions(use_custom_period=True, period_from=period_from, period_to=period_to)

    with pytest.raises(ClientValidationError):
        options.validate_period()


def test_invalid_manual_period_sends_nothing(backend, make_client):
    view = mounted_view(backend, make_client)
    view.set_option("use_custom_period", True)
    view.set_option("period_from", "2024-05-20")
    view.set_option("period_to", "2024-05-15")

    assert asyncio.run(view.generate()) is None
    assert view.error == "The billing period cannot start after it ends."
    assert backend.count("POST") == 0
    assert view.phase == CONFIGURE


def test_generate_switches_to_generated_phase(backend, make_client):
    backend.on("POST", "/orders/4/billing-data", json=GENERATED_BILLING)
    view = mounted_view(backend, make_client)
    view.set_option("billing_date", "2024-05-31")

    billing = asyncio.run(view.generate())

    assert view.phase == GENERATED
    assert billing.invoice_number == "INV-Z-4-20240531"
    assert billing.billing_period_from == date(2024, 5, 1)
    assert view.due_date == date(2024, 6, 14)
    assert view.document().title == "FAKTURAČNÍ PODKLAD"
    assert backend.count("PUT") == 0


def test_overlap_rejection_explains_existing_record(backend, make_client):
    backend.on("POST", "/orders/4/billing-data", status=400, json={
        "message": "Billing period overlaps existing billing",
        "existingBilling": {
            "invoice_number": "INV-Z-4-20240430",
            "billing_date": "2024-04-30",
            "billing_period_from": "2024-04-01",
            "billing_period_to": "2024-05-05",
        },
        "requestedPeriod": {"from": "2024-05-01", "to": "2024-05-31"},
    })
    view = mounted_view(backend, make_client)

    assert asyncio.run(view.generate()) is None

    assert isinstance(view.rejection, BillingOverlapError)
    assert view.phase == CONFIGURE
    assert "INV-Z-4-20240430" in view.error
    assert "1. 4. 2024 - 5. 5. 2024" in view.error
    assert "1. 5. 2024 - 31. 5. 2024" in view.error


def test_empty_period_rejection_shows_backend_message(backend, make_client):
    backend.on("POST", "/orders/4/billing-data", status=400, json={
        "message": "No billable items for the period",
        "requestedPeriod": {"from": "2024-05-01", "to": "2024-05-31"},
    })
    view = mounted_view(backend, make_client)

    asyncio.run(view.generate())

    assert view.error.startswith("No billable items for the period")
    assert "Requested period: 1. 5. 2024 - 31. 5. 2024" in view.error
    assert view.phase == CONFIGURE


def test_other_failure_is_prefixed(backend, make_client):
    backend.on("POST", "/orders/4/billing-data", status=400, json={"message": "Order has no rentals"})
    view = mounted_view(backend, make_client)

    asyncio.run(view.generate())

    assert view.error == "Failed to generate billing data. Order has no rentals"


def test_final_billing_completes_active_order(backend, make_client):
    backend.on("POST", "/orders/4/billing-data", json=GENERATED_BILLING)
    backend.on("PUT", "/orders/4", json={"order": {"id": 4, "status": "completed"}})
    view = mounted_view(backend, make_client)
    view.set_option("is_final_billing", True)

    asyncio.run(view.generate())

    posted = json.loads(backend.requests_to("POST", "/orders/4/billing-data")[0].content)
    put = json.loads(backend.requests_to("PUT", "/orders/4")[0].content)
    assert posted["is_final_billing"] is True
    assert put["status"] == "completed"
    assert put["order_number"] == "Z-4"
    assert view.order.status == "completed"


def test_final_billing_is_disabled_on_completed_order(backend, make_client):
    backend.on("POST", "/orders/4/billing-data", json=GENERATED_BILLING)
    view = mounted_view(backend, make_client, status="completed")
    view.set_option("is_final_billing", True)

    asyncio.run(view.generate())

    assert view.final_billing_disabled
    posted = json.loads(backend.requests_to("POST", "/orders/4/billing-data")[0].content)
    assert posted["is_final_billing"] is False
    assert backend.count("PUT") == 0


def test_discard_returns_to_configuration(backend, make_client):
    backend.on("POST", "/orders/4/billing-data", json=GENERATED_BILLING)
    view = mounted_view(backend, make_client)

    async def scenario():
        await view.generate()
        assert await view.generate() is None
        view.discard()
        return await view.generate()

    assert asyncio.run(scenario()) is not None
    assert backend.count("POST", "/orders/4/billing-data") == 2


def test_non_admin_cannot_generate(backend, make_client):
    backend.on("GET", "/orders/4", json=order_response())
    view = BillingView(make_client(role="user"), 4)
    asyncio.run(view.mount())

    assert asyncio.run(view.generate()) is None
    assert backend.count("POST") == 0
