import asyncio
from typing import Any, Dict, List

from rentdesk.schemas import Customer, Equipment, Sale
from rentdesk.services.errors import ClientValidationError
from rentdesk.views.base import DetailView, ListView, in_date_range
from rentdesk.views.cart import CartFormView


class SaleListView(ListView):
    """Sales with the customer lookup for the customer filter"""

    resource = "sales"
    collection_key = "sales"
    model = Sale
    search_fields = ("invoice_number", "customer_name", "notes")
    empty_message = "No sales have been recorded yet."
    no_match_message = "No sales match the selected filters."
    load_error_message = "Failed to load sales. Please try again later."
    deleted_message = "Sale deleted and the quantity returned to stock."

    def __init__(self, client):
        super().__init__(client)
        self.customers: List[Customer] = []

    async def fetch(self):
        sales_data, customer_data = await asyncio.gather(
            self.client.get("/sales"),
            self.client.get("/customers")
        )
        self.customers = [Customer(**c) for c in customer_data.get("customers") or []]
        return [Sale(**s) for s in sales_data.get("sales") or []]

    def filter_record(self, record: Sale) -> bool:
        if not in_date_range(record.sale_date, self.filters.get("date_from"), self.filters.get("date_to")):
            return False
        customer = self.filters.get("customer_id")
        return customer is None or str(record.customer_id) == str(customer)


class SaleDetailView(DetailView):
    resource = "sales"
    record_key = "sale"
    model = Sale
    list_route = "/sales"
    not_found_message = "Sale not found."
    load_error_message = "Failed to load the sale. Please try again later."

    @property
    def total(self) -> float:
        if self.record is None:
            return 0.0
        if self.record.total_amount is not None:
            return self.record.total_amount
        return sum(item.total_price for item in self.record.items)


class SaleFormView(CartFormView):
    resource = "sales"
    record_key = "sale"
    list_route = "/sales"
    date_field = "sale_date"
    price_field = "unit_price"
    total_field = "total_amount"
    created_message = "Sale saved."
    updated_message = "Sale updated."
    save_error_message = "Error saving the sale. Please try again later."
    load_error_message = "Failed to load the sale. Please try again later."

    def __init__(self, client, record_id: Any = None):
        super().__init__(client, record_id)
        self.customers: List[Customer] = []

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "customer_id": "",
            "invoice_number": "",
            "sale_date": self.initial_date(),
            "payment_method": "cash",
            "notes": "",
        }

    def lookups(self) -> Dict[str, str]:
        return {"customers": "/customers", "warehouses": "/warehouses"}

    def apply_lookup(self, name: str, data: Dict[str, Any]):
        if name == "customers":
            self.customers = [Customer(**c) for c in data.get("customers") or []]
        super().apply_lookup(name, data)

    def is_offered(self, item: Equipment) -> bool:
        return super().is_offered(item) and ((item.purchase_price or 0) > 0 or (item.daily_rate or 0) > 0)

    def validate(self):
        super().validate()
        invalid = [line["equipment_name"] for line in self.cart if line["unit_price"] <= 0]
        if invalid:
            raise ClientValidationError(f"The following items have an invalid price: {', '.join(invalid)}")

    def payload(self) -> Dict[str, Any]:
        payload = dict(self.fields)
        payload["customer_id"] = payload.get("customer_id") or None
        return payload
