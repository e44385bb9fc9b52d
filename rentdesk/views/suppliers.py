import asyncio
from typing import Any, Dict, List

from rentdesk.schemas import Equipment, Supplier
from rentdesk.views.base import DetailView, FormView, ListView


class SupplierListView(ListView):
    resource = "suppliers"
    collection_key = "suppliers"
    model = Supplier
    search_fields = ("name", "contact_person", "email")
    verbatim_fields = ("phone", "ico")
    empty_message = "No suppliers have been added yet."
    no_match_message = "No suppliers match your search."
    load_error_message = "Failed to load suppliers. Please try again later."
    deleted_message = "Supplier deleted."


class SupplierDetailView(DetailView):
    resource = "suppliers"
    record_key = "supplier"
    model = Supplier
    list_route = "/suppliers"
    not_found_message = "Supplier not found."
    load_error_message = "Failed to load data. Please try again later."

    def __init__(self, client, record_id: Any):
        super().__init__(client, record_id)
        self.equipment: List[Equipment] = []

    async def fetch(self):
        return await asyncio.gather(
            self.client.get(self.path),
            self.client.get(f"{self.path}/equipment")
        )

    def apply(self, data):
        supplier_data, equipment_data = data
        super().apply(supplier_data)
        self.equipment = [Equipment(**e) for e in equipment_data.get("equipment") or []]


class SupplierFormView(FormView):
    resource = "suppliers"
    record_key = "supplier"
    list_route = "/suppliers"
    required_fields = {"name": "Supplier name is required."}
    created_message = "Supplier created."
    updated_message = "Supplier updated."
    save_error_message = "Error saving the supplier."
    load_error_message = "Failed to load the supplier. Please try again later."

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "name": "",
            "contact_person": "",
            "email": "",
            "phone": "",
            "address": "",
            "ico": "",
            "dic": "",
            "bank_account": "",
            "notes": "",
        }

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {key: record.get(key) or "" for key in self.fields}
