import asyncio
from typing import Any, Dict, List

from rentdesk.schemas import Equipment, Supplier, Warehouse
from rentdesk.services.errors import ClientValidationError
from rentdesk.views.base import DetailView, FormView, ListView, is_blank


class WarehouseListView(ListView):
    resource = "warehouses"
    collection_key = "warehouses"
    model = Warehouse
    search_fields = ("name", "location", "description", "supplier_name")
    empty_message = "No warehouses have been added yet."
    no_match_message = "No warehouses match your search."
    load_error_message = "Failed to load warehouses. Please try again later."
    deleted_message = "Warehouse deleted."

    def filter_record(self, record: Warehouse) -> bool:
        kind = self.filters.get("kind")
        if kind == "internal":
            return not record.is_external
        if kind == "external":
            return bool(record.is_external)
        return True


class WarehouseDetailView(DetailView):
    """Warehouse and the equipment stored in it, fetched concurrently"""

    resource = "warehouses"
    record_key = "warehouse"
    model = Warehouse
    list_route = "/warehouses"
    not_found_message = "Warehouse not found."
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
        warehouse_data, equipment_data = data
        super().apply(warehouse_data)
        self.equipment = [Equipment(**e) for e in equipment_data.get("equipment") or []]

    @property
    def total_stock(self) -> int:
        return sum(e.total_stock or 0 for e in self.equipment)

    @property
    def available_stock(self) -> int:
        return sum(e.available_stock or 0 for e in self.equipment)


class WarehouseFormView(FormView):
    resource = "warehouses"
    record_key = "warehouse"
    list_route = "/warehouses"
    required_fields = {"name": "Warehouse name is required."}
    created_message = "Warehouse created."
    updated_message = "Warehouse updated."
    save_error_message = "Error saving the warehouse."
    load_error_message = "Failed to load the warehouse. Please try again later."

    def __init__(self, client, record_id: Any = None):
        super().__init__(client, record_id)
        self.suppliers: List[Supplier] = []

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "name": "",
            "description": "",
            "is_external": False,
            "supplier_id": "",
            "location": "",
            "contact_person": "",
            "phone": "",
            "email": "",
            "notes": "",
        }

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        fields = {key: record.get(key) or "" for key in self.fields}
        fields["is_external"] = bool(record.get("is_external"))
        return fields

    async def mount(self):
        data = await self.run(self.client.get("/suppliers"), "Failed to load suppliers.")
        if data is not None:
            with self.reading("Failed to load suppliers."):
                self.suppliers = [Supplier(**s) for s in data.get("suppliers") or []]
        await super().mount()

    def validate(self):
        super().validate()
        if self.fields.get("is_external") and is_blank(self.fields.get("supplier_id")):
            raise ClientValidationError("An external warehouse needs a supplier.", field="supplier_id")

    def payload(self) -> Dict[str, Any]:
        payload = dict(self.fields)
        if not payload["is_external"]:
            payload["supplier_id"] = None
        return payload
