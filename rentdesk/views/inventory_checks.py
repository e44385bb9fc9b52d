"""
Inventory check screens.

A check compares the expected stock of every equipment item in one warehouse
with the counted quantity; the detail view derives the reconciliation
statistics from the items as they are counted.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from rentdesk.schemas import InventoryCheck, InventoryCheckItem, InventoryStatistics, Warehouse, compute_statistics
from rentdesk.services.errors import ClientValidationError
from rentdesk.views.base import DetailView, FormView, ListView, parse_record_id

logger = logging.getLogger(__name__)


def parse_count_input(value: Any) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ClientValidationError("Enter the counted quantity.", field="actual_quantity")
    if count < 0:
        raise ClientValidationError("The counted quantity cannot be negative.", field="actual_quantity")
    return count


class InventoryCheckListView(ListView):
    resource = "inventory-checks"
    collection_key = "inventory_checks"
    model = InventoryCheck
    search_fields = ("warehouse_name", "notes", "created_by_name")
    empty_message = "No inventory checks have been started yet."
    no_match_message = "No inventory checks match the selected filters."
    load_error_message = "Failed to load inventory checks. Please try again later."

    def filter_record(self, record: InventoryCheck) -> bool:
        status = self.filters.get("status")
        return status is None or record.status == status


class InventoryCheckDetailView(DetailView):
    resource = "inventory-checks"
    record_key = "inventory_check"
    model = InventoryCheck
    list_route = "/inventory-checks"
    not_found_message = "Inventory check not found."
    load_error_message = "Failed to load the inventory check. Please try again later."

    def __init__(self, client, record_id: Any):
        super().__init__(client, record_id)
        self.only_differences = False

    @property
    def statistics(self) -> InventoryStatistics:
        return compute_statistics(self.record.items if self.record else [])

    @property
    def is_open(self) -> bool:
        return self.record is not None and self.record.status == "in_progress"

    @property
    def visible_items(self) -> List[InventoryCheckItem]:
        if self.record is None:
            return []
        if not self.only_differences:
            return list(self.record.items)
        return [item for item in self.record.items if item.is_checked and item.difference != 0]

    async def update_item(self, item_id: int, actual_quantity: Any, notes: Optional[str] = None) -> bool:
        if not self.is_open:
            self.error = "Only an inventory check in progress can be updated."
            return False
        try:
            count = parse_count_input(actual_quantity)
        except ClientValidationError as e:
            self.fail(e)
            return False
        result = await self.run(
            self.client.put(
                f"{self.path}/items/{item_id}",
                json={"actual_quantity": count, "notes": notes}
            ),
            "Failed to update the item."
        )
        if result is None:
            return False
        for item in self.record.items:
            if item.id == item_id:
                item.actual_quantity = count
                if notes is not None:
                    item.notes = notes
        return True

    async def _finish(self, action: str, body: Optional[Dict[str, Any]], message: str) -> bool:
        if not self.is_open or not self.check_admin():
            if not self.error:
                self.error = "The inventory check is already closed."
            return False
        data = await self.run(self.client.put(f"{self.path}/{action}", json=body), f"Failed to {action} the inventory check.")
        if data is None:
            return False
        if data.get(self.record_key):
            with self.reading(f"Failed to {action} the inventory check."):
                self.record = self.model(**data[self.record_key])
        else:
            self.record.status = "completed" if action == "complete" else "canceled"
        self.success = message
        return True

    async def complete(self, adjust_stock: bool = False) -> bool:
        return await self._finish("complete", {"adjust_stock": adjust_stock}, "Inventory check completed.")

    async def cancel(self) -> bool:
        return await self._finish("cancel", None, "Inventory check canceled.")


class InventoryCheckFormView(FormView):
    """
    Start an inventory check (or record counts of an open one).

    Choosing the warehouse loads its equipment as the items to count, each
    expecting the item's total stock.
    """

    resource = "inventory-checks"
    record_key = "inventory_check"
    list_route = "/inventory-checks"
    detail_after_create = True
    required_fields = {
        "warehouse_id": "Select a warehouse for the inventory check.",
        "check_date": "Check date is required.",
    }
    created_message = "Inventory check created."
    updated_message = "Inventory check updated."
    save_error_message = "Error saving the inventory check."
    load_error_message = "Failed to load the inventory check. Please try again later."

    def __init__(self, client, record_id: Any = None):
        super().__init__(client, record_id)
        self.warehouses: List[Warehouse] = []
        self.items: List[Dict[str, Any]] = []

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "warehouse_id": "",
            "check_date": date.today().isoformat(),
            "notes": "",
        }

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        check = InventoryCheck(**record)
        if check.status != "in_progress":
            logger.warning(f"Inventory check {check.id} is {check.status}; counts are read-only")
        self.items = [
            {
                "id": item.id,
                "equipment_id": item.equipment_id,
                "name": item.equipment_name,
                "inventory_number": item.inventory_number,
                "expected_quantity": item.expected_quantity,
                "actual_quantity": item.actual_quantity,
                "notes": item.notes or "",
            }
            for item in check.items
        ]
        return {
            "warehouse_id": check.warehouse_id or "",
            "check_date": check.check_date.isoformat() if check.check_date else "",
            "notes": check.notes or "",
        }

    async def mount(self):
        data = await self.run(self.client.get("/warehouses"), "Failed to load warehouses. Please try again later.")
        if data is not None:
            with self.reading("Failed to load warehouses. Please try again later."):
                self.warehouses = [Warehouse(**w) for w in data.get("warehouses") or []]
        await super().mount()

    async def select_warehouse(self, warehouse_id: Any):
        try:
            warehouse_id = parse_record_id(warehouse_id)
        except ClientValidationError as e:
            self.fail(e)
            return
        self.fields["warehouse_id"] = warehouse_id
        if self.is_edit and self.items:
            return
        data = await self.run(
            self.client.get(f"/warehouses/{warehouse_id}/equipment"),
            "Failed to load the warehouse equipment. Please try again later."
        )
        if data is None:
            return
        self.items = [
            {
                "equipment_id": e.get("id"),
                "name": e.get("name"),
                "inventory_number": e.get("inventory_number"),
                "category_name": e.get("category_name"),
                "expected_quantity": int(e.get("total_stock") or 0),
                "actual_quantity": None,
                "notes": "",
            }
            for e in data.get("equipment") or []
        ]

    def set_actual(self, index: int, value: Any) -> bool:
        if value in (None, ""):
            self.items[index]["actual_quantity"] = None
            return True
        try:
            self.items[index]["actual_quantity"] = parse_count_input(value)
        except ClientValidationError as e:
            self.fail(e)
            return False
        return True

    def mark_checked(self, index: int):
        self.items[index]["actual_quantity"] = self.items[index]["expected_quantity"]

    def auto_fill(self):
        for item in self.items:
            item["actual_quantity"] = item["expected_quantity"]

    def mark_all_checked(self):
        for item in self.items:
            if item["actual_quantity"] is None:
                item["actual_quantity"] = item["expected_quantity"]

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.is_edit:
            for item in self.items:
                if item["actual_quantity"] is not None and item.get("id"):
                    await self.client.put(
                        f"/{self.resource}/{self.record_id}/items/{item['id']}",
                        json={"actual_quantity": item["actual_quantity"], "notes": item["notes"]}
                    )
            return await self.client.get(f"/{self.resource}/{self.record_id}")
        return await self.client.post(f"/{self.resource}", json={
            **payload,
            "items": [
                {
                    "equipment_id": item["equipment_id"],
                    "expected_quantity": item["expected_quantity"],
                    "actual_quantity": item["actual_quantity"],
                    "notes": item["notes"],
                }
                for item in self.items
            ],
        })

    def redirect_route(self, saved: Dict[str, Any]) -> str:
        if saved.get("id"):
            return f"{self.list_route}/{saved['id']}"
        return self.list_route
