"""
Cart-style form shared by sales and write-offs.

Equipment is browsed per warehouse and collected into cart lines capped by
the available stock. A new record is saved as one POST per line; an edited
record is saved as a single PUT carrying every line.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from rentdesk.schemas import Equipment, Warehouse
from rentdesk.services.errors import ClientValidationError
from rentdesk.views.base import FormView, is_blank, parse_record_id

logger = logging.getLogger(__name__)


class CartFormView(FormView):
    date_field = ""
    price_field = ""
    total_field = ""
    detail_after_create = False

    def __init__(self, client, record_id: Any = None):
        super().__init__(client, record_id)
        self.warehouses: List[Warehouse] = []
        self.equipment: List[Equipment] = []
        self.selected_warehouse: Optional[int] = None
        self.cart: List[Dict[str, Any]] = []

    def lookups(self) -> Dict[str, str]:
        return {"warehouses": "/warehouses"}

    def apply_lookup(self, name: str, data: Dict[str, Any]):
        if name == "warehouses":
            self.warehouses = [Warehouse(**w) for w in data.get("warehouses") or []]

    async def mount(self):
        for name, path in self.lookups().items():
            data = await self.run(self.client.get(path), "Failed to load the required data. Please try again later.")
            if data is None:
                return
            with self.reading("Failed to load the required data. Please try again later."):
                self.apply_lookup(name, data)
        await super().mount()

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        fields = {key: record.get(key) or "" for key in self.fields}
        if fields.get(self.date_field):
            fields[self.date_field] = str(fields[self.date_field])[:10]
        self.cart = [self.line_from_item(item) for item in record.get("items") or []]
        return fields

    def line_from_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        quantity = int(item.get("quantity") or 1)
        price = float(item.get(self.price_field) or 0)
        return {
            "equipment_id": item.get("equipment_id"),
            "equipment_name": item.get("equipment_name") or "",
            "inventory_number": item.get("inventory_number") or "",
            "warehouse_id": item.get("warehouse_id"),
            "quantity": quantity,
            "stock_limit": quantity + int(item.get("available_stock") or 0),
            self.price_field: price,
        }

    def is_offered(self, item: Equipment) -> bool:
        return (item.available_stock or 0) > 0

    def default_price(self, item: Equipment) -> float:
        return float(item.purchase_price or item.daily_rate or 0)

    async def select_warehouse(self, warehouse_id: Any):
        try:
            self.selected_warehouse = parse_record_id(warehouse_id)
        except ClientValidationError as e:
            self.fail(e)
            return
        data = await self.run(
            self.client.get(f"/warehouses/{self.selected_warehouse}/equipment"),
            "Failed to load the warehouse equipment."
        )
        if data is None:
            return
        with self.reading("Failed to load the warehouse equipment."):
            items = [Equipment(**e) for e in data.get("equipment") or []]
            self.equipment = [item for item in items if self.is_offered(item)]

    def add_to_cart(self, equipment_id: Any, quantity: int = 1) -> bool:
        item = next((e for e in self.equipment if str(e.id) == str(equipment_id)), None)
        if item is None:
            self.error = "Select equipment from the warehouse."
            return False
        limit = item.available_stock or 0
        line = next((c for c in self.cart if str(c["equipment_id"]) == str(item.id)), None)
        new_quantity = quantity + (line["quantity"] if line else 0)
        if new_quantity > limit:
            self.error = f"Cannot add more than {limit} pieces of \"{item.name}\"."
            return False
        if line:
            line["quantity"] = new_quantity
        else:
            price = self.default_price(item)
            self.cart.append({
                "equipment_id": item.id,
                "equipment_name": item.name,
                "inventory_number": item.inventory_number,
                "warehouse_id": item.warehouse_id or self.selected_warehouse,
                "quantity": quantity,
                "stock_limit": limit,
                self.price_field: price,
            })
        self.error = None
        return True

    def set_quantity(self, index: int, quantity: int) -> bool:
        line = self.cart[index]
        if quantity < 1:
            self.error = "Quantity must be at least 1."
            return False
        if quantity > line["stock_limit"]:
            self.error = f"Cannot use more than {line['stock_limit']} pieces."
            return False
        line["quantity"] = quantity
        self.error = None
        return True

    def set_price(self, index: int, price: Any):
        try:
            self.cart[index][self.price_field] = float(price)
        except (TypeError, ValueError):
            self.cart[index][self.price_field] = 0.0

    def remove_line(self, index: int):
        del self.cart[index]

    def line_total(self, line: Dict[str, Any]) -> float:
        return line["quantity"] * line[self.price_field]

    @property
    def total(self) -> float:
        return sum(self.line_total(line) for line in self.cart)

    def validate(self):
        if is_blank(self.fields.get(self.date_field)):
            raise ClientValidationError("Date is required.", field=self.date_field)
        if not self.cart:
            raise ClientValidationError("Add at least one item to the cart.")
        super().validate()

    def line_payload(self, line: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "equipment_id": line["equipment_id"],
            "quantity": line["quantity"],
            self.price_field: line[self.price_field],
        }

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.is_edit:
            return await self.client.put(f"/{self.resource}/{self.record_id}", json={
                **payload,
                "items": [self.line_payload(line) for line in self.cart],
                self.total_field: self.total,
            })
        last: Dict[str, Any] = {}
        for line in self.cart:
            last = await self.client.post(f"/{self.resource}", json={**payload, **self.line_payload(line)})
        logger.info(f"Saved {len(self.cart)} {self.resource} line(s)")
        return last

    def initial_date(self) -> str:
        return date.today().isoformat()
