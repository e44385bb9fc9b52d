import asyncio
from typing import Any, Dict, List

from rentdesk.schemas import CUSTOMER_CATEGORIES, Customer, Order
from rentdesk.services.errors import ClientValidationError
from rentdesk.views.base import DetailView, FormView, ListView


class CustomerListView(ListView):
    resource = "customers"
    collection_key = "customers"
    model = Customer
    search_fields = ("name", "email")
    verbatim_fields = ("phone", "ico")
    empty_message = "No customers have been added yet."
    no_match_message = "No customers match your search."
    load_error_message = "Failed to load customers. Please try again later."
    deleted_message = "Customer deleted."

    def filter_record(self, record: Customer) -> bool:
        category = self.filters.get("category")
        return category is None or record.category == category


class CustomerDetailView(DetailView):
    """Customer card with the customer's orders"""

    resource = "customers"
    record_key = "customer"
    model = Customer
    list_route = "/customers"
    not_found_message = "Customer not found."
    load_error_message = "Failed to load data. Please try again later."

    def __init__(self, client, record_id: Any):
        super().__init__(client, record_id)
        self.orders: List[Order] = []

    async def fetch(self):
        return await asyncio.gather(
            self.client.get(self.path),
            self.client.get("/orders")
        )

    def apply(self, data):
        customer_data, orders_data = data
        super().apply(customer_data)
        self.orders = [
            Order(**row) for row in orders_data.get("orders") or []
            if row.get("customer_id") == self.record_id
        ]

    @property
    def active_orders(self) -> int:
        return sum(1 for o in self.orders if o.status == "active")

    @property
    def completed_orders(self) -> int:
        return sum(1 for o in self.orders if o.status == "completed")


class CustomerFormView(FormView):
    resource = "customers"
    record_key = "customer"
    list_route = "/customers"
    required_fields = {"name": "Customer name is required."}
    created_message = "Customer created."
    updated_message = "Customer updated."
    save_error_message = "Error saving the customer. Please try again later."
    load_error_message = "Failed to load the customer. Please try again later."

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "type": "individual",
            "name": "",
            "email": "",
            "phone": "",
            "address": "",
            "ico": "",
            "dic": "",
            "customer_category": "regular",
            "credit": 0,
        }

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        fields = super().fields_from_record(record)
        for key in ("email", "phone", "address", "ico", "dic"):
            fields[key] = fields.get(key) or ""
        fields["credit"] = fields.get("credit") or 0
        return fields

    def validate(self):
        super().validate()
        if self.fields.get("customer_category") not in CUSTOMER_CATEGORIES:
            raise ClientValidationError("Unknown customer category.", field="customer_category")
