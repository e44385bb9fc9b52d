from pydantic import BaseModel, BeforeValidator, Field, model_validator
from datetime import date, datetime
from typing import Annotated, Optional, List, Any, Dict


def parse_date(value: Any) -> Any:
    """Accept both plain dates and the ISO timestamps the backend emits for DATE columns"""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        # a timestamp is the UTC instant of a local midnight
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00')).astimezone().date()
        except ValueError:
            return value[:10]
    return value


def parse_number(value: Any) -> Any:
    # NUMERIC columns arrive as strings, empty form values as ''
    if value in (None, ''):
        return None
    return value


def parse_quantity(value: Any) -> Any:
    # a missing quantity means a single piece
    if value in (None, '', 0, '0'):
        return 1
    return value


def parse_count(value: Any) -> Any:
    if value in (None, ''):
        return 0
    return value


DateField = Annotated[Optional[date], BeforeValidator(parse_date)]
Number = Annotated[Optional[float], BeforeValidator(parse_number)]
Quantity = Annotated[int, BeforeValidator(parse_quantity)]
Count = Annotated[int, BeforeValidator(parse_count)]
Amount = Annotated[float, BeforeValidator(parse_count)]


CUSTOMER_CATEGORIES = ("regular", "vip", "wholesale")
EQUIPMENT_STATUSES = ("available", "borrowed", "maintenance", "retired")
ORDER_STATUSES = ("created", "active", "completed", "cancelled")
RETURN_CONDITIONS = ("ok", "damaged", "missing")
WRITE_OFF_REASONS = ("damaged", "lost", "expired", "other")
INVENTORY_CHECK_STATUSES = ("in_progress", "completed", "canceled")
USER_ROLES = ("admin", "user")
ACCESS_TYPES = ("read", "write", "admin")


class User(BaseModel):
    id: Optional[int] = None
    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = "user"

    @property
    def full_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or (self.username or "")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Customer(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = ""
    type: Optional[str] = None
    category: Optional[str] = "regular"
    credit: Number = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    ico: Optional[str] = None
    dic: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode='before')
    @classmethod
    def map_customer_category(cls, data: Any) -> Any:
        # the backend column is customer_category
        if isinstance(data, dict) and data.get("category") is None and data.get("customer_category"):
            data = {**data, "category": data["customer_category"]}
        return data


class Category(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = ""
    description: Optional[str] = None


class Supplier(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = ""
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    ico: Optional[str] = None
    dic: Optional[str] = None
    notes: Optional[str] = None


class Warehouse(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = ""
    location: Optional[str] = None
    description: Optional[str] = None
    is_external: Optional[bool] = False
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None


class Equipment(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = ""
    inventory_number: Optional[str] = ""
    article_number: Optional[str] = None
    product_designation: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    daily_rate: Number = None
    monthly_rate: Number = None
    purchase_price: Number = None
    material_value: Number = None
    weight_per_piece: Number = None
    square_meters_per_piece: Number = None
    total_square_meters: Number = None
    total_stock: Optional[int] = None
    available_stock: Optional[int] = None
    status: Optional[str] = "available"
    location: Optional[str] = None
    description: Optional[str] = None
    warehouse_id: Optional[int] = None
    warehouse_name: Optional[str] = None
    is_external: Optional[bool] = False
    supplier_id: Optional[int] = None
    photo_url: Optional[str] = None
    created_at: Optional[datetime] = None


class Order(BaseModel):
    id: Optional[int] = None
    order_number: Optional[str] = ""
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    ico: Optional[str] = None
    dic: Optional[str] = None
    status: Optional[str] = "created"
    creation_date: DateField = None
    estimated_end_date: DateField = None
    notes: Optional[str] = None


class CustomerAccess(Customer):
    """A customer assigned to a user, with the access level granted"""
    access_type: Optional[str] = "read"


class OrderAccess(Order):
    access_type: Optional[str] = "read"


class Rental(BaseModel):
    id: Optional[int] = None
    order_id: Optional[int] = None
    equipment_id: Optional[int] = None
    equipment_name: Optional[str] = None
    inventory_number: Optional[str] = None
    issue_date: DateField = None
    planned_return_date: DateField = None
    actual_return_date: DateField = None
    quantity: Quantity = 1
    daily_rate: Number = None
    status: Optional[str] = None
    batch_id: Optional[str] = None
    note: Optional[str] = None


class ReturnRecord(BaseModel):
    id: Optional[int] = None
    rental_id: Optional[int] = None
    equipment_name: Optional[str] = None
    inventory_number: Optional[str] = None
    order_number: Optional[str] = None
    return_date: DateField = None
    condition: Optional[str] = "ok"
    damage_description: Optional[str] = None
    additional_charges: Number = None
    quantity: Quantity = 1
    batch_id: Optional[str] = None
    notes: Optional[str] = None


class BillingItem(BaseModel):
    rental_id: Optional[int] = None
    equipment_name: Optional[str] = None
    inventory_number: Optional[str] = None
    description: Optional[str] = None
    issue_date: DateField = None
    return_date: DateField = None
    planned_return_date: DateField = None
    days: Count = 0
    quantity: Quantity = 1
    daily_rate: Number = None
    total_price: Number = None

    @model_validator(mode='before')
    @classmethod
    def map_stored_item(cls, data: Any) -> Any:
        """Stored billing items name the rate price_per_day"""
        if isinstance(data, dict) and data.get("daily_rate") is None and "price_per_day" in data:
            data = {**data, "daily_rate": data["price_per_day"]}
        return data


class BillingData(BaseModel):
    id: Optional[int] = None
    order_id: Optional[int] = None
    invoice_number: Optional[str] = ""
    billing_date: DateField = None
    billing_period_from: DateField = None
    billing_period_to: DateField = None
    items: List[BillingItem] = Field(default_factory=list)
    total_amount: Number = None
    is_final_billing: Optional[bool] = False
    note: Optional[str] = None
    order: Optional[Order] = None

    @model_validator(mode='before')
    @classmethod
    def normalize_payload(cls, data: Any) -> Any:
        """
        Generated billing data reports its period as period_from/period_to and
        nests the order; stored billing data uses billing_period_* and carries
        the order/customer columns flat.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("billing_period_from") is None and data.get("period_from"):
            data["billing_period_from"] = data["period_from"]
        if data.get("billing_period_to") is None and data.get("period_to"):
            data["billing_period_to"] = data["period_to"]
        if data.get("note") is None and data.get("notes"):
            data["note"] = data["notes"]
        if data.get("order") is None and data.get("order_number"):
            data["order"] = {
                "id": data.get("order_id"),
                "order_number": data.get("order_number"),
                "customer_name": data.get("customer_name"),
                "customer_address": data.get("customer_address"),
                "customer_email": data.get("customer_email"),
                "customer_phone": data.get("customer_phone"),
                "ico": data.get("ico"),
                "dic": data.get("dic"),
                "status": data.get("order_status") or "created",
            }
        return data

    @property
    def has_period(self) -> bool:
        return self.billing_period_from is not None and self.billing_period_to is not None


class SaleItem(BaseModel):
    equipment_id: Optional[int] = None
    equipment_name: Optional[str] = None
    inventory_number: Optional[str] = None
    quantity: Quantity = 1
    unit_price: Amount = 0.0
    total_price: Amount = 0.0


class Sale(BaseModel):
    id: Optional[int] = None
    invoice_number: Optional[str] = None
    sale_date: DateField = None
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    items: List[SaleItem] = Field(default_factory=list)
    total_amount: Number = None
    notes: Optional[str] = None
    created_by_name: Optional[str] = None


class WriteOffItem(BaseModel):
    equipment_id: Optional[int] = None
    equipment_name: Optional[str] = None
    inventory_number: Optional[str] = None
    warehouse_name: Optional[str] = None
    quantity: Quantity = 1
    unit_value: Amount = 0.0
    total_value: Amount = 0.0


class WriteOff(BaseModel):
    id: Optional[int] = None
    write_off_date: DateField = None
    reason: Optional[str] = None
    items: List[WriteOffItem] = Field(default_factory=list)
    total_value: Number = None
    notes: Optional[str] = None
    created_by_name: Optional[str] = None


class InventoryCheckItem(BaseModel):
    id: Optional[int] = None
    equipment_id: Optional[int] = None
    equipment_name: Optional[str] = None
    inventory_number: Optional[str] = None
    expected_quantity: Count = 0
    actual_quantity: Optional[int] = None
    notes: Optional[str] = None

    @property
    def is_checked(self) -> bool:
        return self.actual_quantity is not None

    @property
    def difference(self) -> int:
        if self.actual_quantity is None:
            return 0
        return self.actual_quantity - self.expected_quantity


class InventoryCheck(BaseModel):
    id: Optional[int] = None
    warehouse_id: Optional[int] = None
    warehouse_name: Optional[str] = None
    check_date: DateField = None
    status: Optional[str] = "in_progress"
    items: List[InventoryCheckItem] = Field(default_factory=list)
    notes: Optional[str] = None
    created_by_name: Optional[str] = None


class InventoryStatistics(BaseModel):
    total: int = 0
    checked: int = 0
    discrepancies: int = 0
    percentage_checked: int = 0
    missing_items: int = 0
    excess_items: int = 0
    total_missing: int = 0
    total_excess: int = 0


def compute_statistics(items: List[InventoryCheckItem]) -> InventoryStatistics:
    checked = [item for item in items if item.is_checked]
    missing = [item for item in checked if item.difference < 0]
    excess = [item for item in checked if item.difference > 0]
    total = len(items)
    return InventoryStatistics(
        total=total,
        checked=len(checked),
        discrepancies=len(missing) + len(excess),
        percentage_checked=int(round(len(checked) / total * 100)) if total else 0,
        missing_items=len(missing),
        excess_items=len(excess),
        total_missing=sum(-item.difference for item in missing),
        total_excess=sum(item.difference for item in excess),
    )


class DeliveryNote(BaseModel):
    """Delivery note for a rental batch or for a whole order"""
    delivery_note_number: Optional[str] = None
    batch_id: Optional[str] = None
    order_id: Optional[int] = None
    order_number: Optional[str] = None
    order: Optional[Order] = None
    rentals: List[Rental] = Field(default_factory=list)
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    customer_ico: Optional[str] = None
    customer_dic: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    created_at: DateField = None
    total_items: Count = 0

    @model_validator(mode='before')
    @classmethod
    def lift_order_customer(cls, data: Any) -> Any:
        """Order-level notes nest the customer inside the order"""
        if not isinstance(data, dict) or not isinstance(data.get("order"), dict):
            return data
        data = dict(data)
        order = data["order"]
        data.setdefault("order_number", order.get("order_number"))
        for field, source in (
            ("customer_name", "customer_name"),
            ("customer_address", "customer_address"),
            ("customer_ico", "ico"),
            ("customer_dic", "dic"),
            ("customer_email", "customer_email"),
            ("customer_phone", "customer_phone"),
        ):
            if data.get(field) is None:
                data[field] = order.get(source)
        return data


class ReturnNote(BaseModel):
    return_note_number: Optional[str] = None
    batch_id: Optional[str] = None
    returns: List[ReturnRecord] = Field(default_factory=list)
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    customer_ico: Optional[str] = None
    customer_dic: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    created_at: DateField = None
    total_items: Count = 0


class ImportRowError(BaseModel):
    row: Optional[int] = None
    message: Optional[str] = ""
    data: Optional[Dict[str, Any]] = None


class ImportResult(BaseModel):
    success: Count = 0
    errors: List[ImportRowError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0
