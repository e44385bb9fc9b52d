"""
Order screens: list, detail, order form, the rental cart that issues
equipment to an order and the batch return form.
"""
import asyncio
import logging
import random
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from rentdesk.schemas import (
    ORDER_STATUSES, RETURN_CONDITIONS, BillingData, Customer, Equipment, Order, Rental
)
from rentdesk.services.errors import ClientValidationError, ConflictError
from rentdesk.views.base import DetailView, FormView, ListView, View, is_blank, parse_record_id

logger = logging.getLogger(__name__)

DUPLICATE_ORDER_MESSAGE = "An order with this number already exists."


def make_batch_id(prefix: str, now: Optional[datetime] = None) -> str:
    """Batch identifier shared by every rental or return saved in one go"""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{now.strftime('%Y%m%d%H%M%S')}-{random.randint(0, 999)}"


def rental_price(rental: Rental) -> float:
    """Estimated price of one rental line: whole days x daily rate x quantity"""
    rate = rental.daily_rate or 0
    if rental.issue_date and rental.planned_return_date:
        days = (rental.planned_return_date - rental.issue_date).days
        return days * rate * rental.quantity
    return rate * rental.quantity


class OrderListView(ListView):
    resource = "orders"
    collection_key = "orders"
    model = Order
    search_fields = ("order_number", "customer_name")
    empty_message = "No orders have been created yet."
    no_match_message = "No orders match your search."
    load_error_message = "Failed to load orders. Please try again later."
    deleted_message = "Order deleted."

    def filter_record(self, record: Order) -> bool:
        status = self.filters.get("status")
        return status is None or record.status == status


class OrderDetailView(DetailView):
    """Order with its rentals and the billing records issued for it"""

    resource = "orders"
    record_key = "order"
    model = Order
    list_route = "/orders"
    not_found_message = "Order not found."
    load_error_message = "Failed to load data. Please try again later."

    def __init__(self, client, record_id: Any):
        super().__init__(client, record_id)
        self.rentals: List[Rental] = []
        self.billings: List[BillingData] = []

    async def fetch(self):
        return await asyncio.gather(
            self.client.get(self.path),
            self.client.get(f"{self.path}/billing-data")
        )

    def apply(self, data):
        order_data, billing_data = data
        super().apply(order_data)
        self.rentals = [Rental(**r) for r in order_data.get("rentals") or []]
        self.billings = [BillingData(**b) for b in billing_data.get("billingData") or []]

    @property
    def total_price(self) -> float:
        return sum(rental_price(r) for r in self.rentals)

    @property
    def active_rentals(self) -> int:
        return sum(1 for r in self.rentals if r.actual_return_date is None and r.status != "returned")

    @property
    def batch_ids(self) -> List[str]:
        """Issue batches in first-seen order, for batch delivery notes"""
        seen: List[str] = []
        for rental in self.rentals:
            if rental.batch_id and rental.batch_id not in seen:
                seen.append(rental.batch_id)
        return seen


class OrderFormView(FormView):
    resource = "orders"
    record_key = "order"
    list_route = "/orders"
    required_fields = {
        "customer_id": "Customer is required.",
        "order_number": "Order number is required.",
    }
    created_message = "Order created."
    updated_message = "Order updated."
    save_error_message = "Error saving the order."
    load_error_message = "Failed to load the order. Please try again later."

    def __init__(self, client, record_id: Any = None):
        super().__init__(client, record_id)
        self.customers: List[Customer] = []

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "customer_id": "",
            "order_number": "",
            "status": "created",
            "estimated_end_date": "",
            "notes": "",
        }

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        fields = {key: record.get(key) or "" for key in self.fields}
        fields["status"] = record.get("status") or "created"
        if fields["estimated_end_date"]:
            fields["estimated_end_date"] = str(fields["estimated_end_date"])[:10]
        return fields

    async def mount(self):
        data = await self.run(self.client.get("/customers"), "Failed to load customers.")
        if data is not None:
            with self.reading("Failed to load customers."):
                self.customers = [Customer(**c) for c in data.get("customers") or []]
        await super().mount()

    def validate(self):
        super().validate()
        try:
            parse_record_id(self.fields["customer_id"])
        except ClientValidationError:
            raise ClientValidationError("Select a valid customer.", field="customer_id")
        if self.fields.get("status") not in ORDER_STATUSES:
            raise ClientValidationError("Unknown order status.", field="status")

    def payload(self) -> Dict[str, Any]:
        payload = dict(self.fields)
        payload["customer_id"] = parse_record_id(payload["customer_id"])
        payload["estimated_end_date"] = payload.get("estimated_end_date") or None
        return payload

    def fail(self, exc: Exception, fallback: Optional[str] = None):
        if isinstance(exc, ConflictError):
            logger.error(f"{self.__class__.__name__}: {exc}")
            self.error = DUPLICATE_ORDER_MESSAGE
            return
        super().fail(exc, fallback)


class AddRentalView(FormView):
    """
    Issue equipment to an order.

    Lines are collected in a cart and saved one POST per line, all sharing one
    ISSUE batch id so a single delivery note covers them.
    """

    resource = "orders"
    record_key = "rental"

    def __init__(self, client, order_id: Any):
        super().__init__(client)
        self.order_param = order_id
        self.order_id: Optional[int] = None
        self.order: Optional[Order] = None
        self.equipment: List[Equipment] = []
        self.cart: List[Dict[str, Any]] = []
        self.batch_id: Optional[str] = None

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "issue_date": date.today().isoformat(),
            "planned_return_date": "",
            "status": "created",
            "note": "",
        }

    async def mount(self):
        try:
            self.order_id = parse_record_id(self.order_param)
        except ClientValidationError as e:
            self.fail(e)
            return
        data = await self.run(
            asyncio.gather(self.client.get(f"/orders/{self.order_id}"), self.client.get("/equipment")),
            "Failed to load data. Please try again later."
        )
        if data is None:
            return
        order_data, equipment_data = data
        with self.reading("Failed to load data. Please try again later."):
            self.order = Order(**(order_data.get("order") or {}))
            self.equipment = [Equipment(**e) for e in equipment_data.get("equipment") or []]

    def find_equipment(self, equipment_id: Any) -> Optional[Equipment]:
        for item in self.equipment:
            if str(item.id) == str(equipment_id):
                return item
        return None

    def add_to_cart(self, equipment_id: Any, quantity: int = 1) -> bool:
        item = self.find_equipment(equipment_id)
        if item is None:
            self.error = "Select equipment to rent."
            return False
        in_cart = next((line for line in self.cart if line["equipment_id"] == item.id), None)
        new_quantity = quantity + (in_cart["quantity"] if in_cart else 0)
        if item.available_stock is not None and new_quantity > item.available_stock:
            self.error = f"Cannot add more than {item.available_stock} pieces of \"{item.name}\"."
            return False
        if in_cart:
            in_cart["quantity"] = new_quantity
        else:
            self.cart.append({
                "equipment_id": item.id,
                "equipment_name": item.name,
                "quantity": quantity,
                "daily_rate": item.daily_rate or 0,
            })
        self.error = None
        return True

    def remove_from_cart(self, equipment_id: Any):
        self.cart = [line for line in self.cart if str(line["equipment_id"]) != str(equipment_id)]

    def validate(self):
        if not self.cart:
            raise ClientValidationError("Add at least one item to rent.")
        if is_blank(self.fields.get("issue_date")):
            raise ClientValidationError("Issue date is required.", field="issue_date")

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        batch_id = make_batch_id("ISSUE")
        saved = []
        for line in self.cart:
            data = await self.client.post(f"/orders/{self.order_id}/rentals", json={
                "order_id": self.order_id,
                "equipment_id": int(line["equipment_id"]),
                "quantity": int(line["quantity"]),
                "issue_date": payload["issue_date"],
                "planned_return_date": payload.get("planned_return_date") or None,
                "daily_rate": float(line["daily_rate"] or 0),
                "status": payload.get("status") or "created",
                "note": payload.get("note") or None,
                "batch_id": batch_id,
            })
            saved.append(data.get("rental") or {})
        self.batch_id = batch_id
        return {"rental": {"batch_id": batch_id, "count": len(saved)}}

    def redirect_route(self, saved: Dict[str, Any]) -> str:
        return f"/orders/{self.order_id}"

    async def submit(self):
        if self.order_id is None:
            self.error = "The order was not loaded."
            return None
        return await super().submit()


class BatchReturnView(View):
    """Return several rentals of one order at once under a shared batch id"""

    def __init__(self, client):
        super().__init__(client)
        self.orders: List[Order] = []
        self.order_id: Optional[int] = None
        self.rentals: List[Rental] = []
        self.selection: Dict[int, Dict[str, Any]] = {}
        self.fields: Dict[str, Any] = {
            "actual_return_date": date.today().isoformat(),
            "condition": "ok",
            "damage_description": "",
            "additional_charges": 0,
            "notes": "",
            "batch_id": make_batch_id("BATCH-RETURN"),
        }
        self.result: Optional[Dict[str, Any]] = None

    async def mount(self):
        data = await self.run(self.client.get("/orders"), "Failed to load orders. Please try again later.")
        if data is not None:
            with self.reading("Failed to load orders. Please try again later."):
                self.orders = [Order(**o) for o in data.get("orders") or []]

    async def select_order(self, order_id: Any):
        try:
            self.order_id = parse_record_id(order_id)
        except ClientValidationError as e:
            self.fail(e)
            return
        data = await self.run(
            self.client.get(f"/orders/{self.order_id}/rentals"),
            "Failed to load rentals. Please try again later."
        )
        if data is None:
            return
        with self.reading("Failed to load rentals. Please try again later."):
            self.rentals = [Rental(**r) for r in data.get("rentals") or [] if r.get("status") != "returned"]
        self.selection = {r.id: {"selected": False, "quantity": r.quantity} for r in self.rentals}

    def set_field(self, name: str, value: Any):
        self.fields[name] = value

    def toggle(self, rental_id: int):
        if rental_id in self.selection:
            self.selection[rental_id]["selected"] = not self.selection[rental_id]["selected"]

    def set_quantity(self, rental_id: int, quantity: Any) -> int:
        """Clamp the returned quantity to [1, rented]"""
        rental = next((r for r in self.rentals if r.id == rental_id), None)
        if rental is None:
            return 0
        try:
            value = int(quantity)
        except (TypeError, ValueError):
            value = 1
        value = min(max(1, value), rental.quantity)
        self.selection[rental_id]["quantity"] = value
        return value

    @property
    def selected(self) -> List[int]:
        return [rental_id for rental_id, s in self.selection.items() if s["selected"]]

    def validate(self):
        if not self.selected:
            raise ClientValidationError("Select at least one rental to return.")
        if self.fields.get("condition") not in RETURN_CONDITIONS:
            raise ClientValidationError("Unknown return condition.", field="condition")
        if self.fields["condition"] != "ok" and is_blank(self.fields.get("damage_description")):
            raise ClientValidationError(
                "Describe the damage for a rental that is not returned in order.",
                field="damage_description"
            )

    async def _post_returns(self) -> List[Dict[str, Any]]:
        returns = []
        for rental_id in self.selected:
            data = await self.client.post(
                f"/orders/{self.order_id}/rentals/{rental_id}/return",
                json={
                    **self.fields,
                    "rental_id": rental_id,
                    "return_quantity": self.selection[rental_id]["quantity"],
                }
            )
            returns.append(data)
        return returns

    async def submit(self) -> Optional[Dict[str, Any]]:
        if self.loading or not self.check_admin():
            return None
        try:
            self.validate()
        except ClientValidationError as e:
            self.fail(e)
            return None
        returns = await self.run(self._post_returns(), "Error processing the batch return.")
        if returns is None:
            return None
        self.result = {"success": len(returns), "batch_id": self.fields["batch_id"]}
        self.success = f"{len(returns)} rental(s) returned."
        return self.result
