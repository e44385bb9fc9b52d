"""
Equipment screens: list, detail with the sell / write-off / transfer modals,
the internal and external equipment forms and the Excel import dialog.
"""
import asyncio
import logging
import mimetypes
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

from rentdesk.config import settings
from rentdesk.schemas import EQUIPMENT_STATUSES, WRITE_OFF_REASONS, Equipment, ImportResult, Warehouse
from rentdesk.services.errors import ClientValidationError
from rentdesk.services.importer import EquipmentImporter
from rentdesk.views.base import DetailView, FormView, ListView, View, is_blank

logger = logging.getLogger(__name__)


def parse_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def material_value_for(purchase_price: Any, ratio: Optional[float] = None) -> str:
    """Material value of new equipment, formatted to two decimals"""
    ratio = settings.material_value_ratio if ratio is None else ratio
    return f"{round(parse_float(purchase_price) * ratio, 2):.2f}"


def total_area_for(per_piece: Any, stock: Any) -> str:
    return f"{parse_float(per_piece) * parse_int(stock):.2f}"


class EquipmentListView(ListView):
    """Equipment joined with the warehouse lookup used by the warehouse filter"""

    resource = "equipment"
    collection_key = "equipment"
    model = Equipment
    search_fields = ("name", "inventory_number", "category_name")
    empty_message = "No equipment has been added yet."
    no_match_message = "No equipment matches your search."
    load_error_message = "Failed to load equipment. Please try again later."
    deleted_message = "Equipment deleted."

    def __init__(self, client):
        super().__init__(client)
        self.warehouses: List[Warehouse] = []

    async def fetch(self):
        equipment_data, warehouse_data = await asyncio.gather(
            self.client.get("/equipment"),
            self.client.get("/warehouses")
        )
        self.warehouses = [Warehouse(**w) for w in warehouse_data.get("warehouses") or []]
        return [Equipment(**row) for row in equipment_data.get("equipment") or []]

    def filter_record(self, record: Equipment) -> bool:
        warehouse_id = self.filters.get("warehouse_id")
        if warehouse_id is not None and str(record.warehouse_id) != str(warehouse_id):
            return False
        status = self.filters.get("status")
        return status is None or record.status == status


class EquipmentModal(View):
    """
    A single-step action on one equipment record.

    Each modal has its own fields, error and submit cycle independent of the
    detail view that opened it; on_done lets the detail refresh afterwards.
    """

    title = ""
    success_message = ""
    failure_message = "The action failed. Please try again later."

    def __init__(self, client, equipment: Equipment, on_done: Optional[Callable] = None):
        super().__init__(client)
        self.equipment = equipment
        self.on_done = on_done
        self.is_open = False
        self.fields: Dict[str, Any] = {}

    def initial_fields(self) -> Dict[str, Any]:
        return {}

    def open(self):
        self.fields = self.initial_fields()
        self.error = None
        self.success = None
        self.is_open = True

    def dismiss(self):
        self.is_open = False

    def set_field(self, name: str, value: Any):
        self.fields[name] = value

    def validate_quantity(self) -> int:
        quantity = parse_int(self.fields.get("quantity"))
        available = self.equipment.available_stock
        if quantity < 1:
            raise ClientValidationError("Quantity must be at least 1.", field="quantity")
        if available is not None and quantity > available:
            raise ClientValidationError(
                f"Cannot use more than {available} pieces of \"{self.equipment.name}\".",
                field="quantity"
            )
        return quantity

    def validate(self):
        pass

    async def request(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def submit(self) -> bool:
        if self.loading or not self.check_admin():
            return False
        try:
            self.validate()
        except ClientValidationError as e:
            self.fail(e)
            return False
        result = await self.run(self.request(), self.failure_message)
        if result is None:
            return False
        self.success = self.success_message
        self.is_open = False
        if self.on_done is not None:
            await self.on_done()
        return True


class SellModal(EquipmentModal):
    title = "Sell equipment"
    success_message = "Sale recorded."
    failure_message = "Failed to record the sale."

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "quantity": 1,
            "unit_price": self.equipment.purchase_price or self.equipment.daily_rate or 0,
            "customer_id": "",
            "invoice_number": "",
            "notes": "",
        }

    def validate(self):
        self.validate_quantity()
        if parse_float(self.fields.get("unit_price")) <= 0:
            raise ClientValidationError("Unit price must be greater than zero.", field="unit_price")

    async def request(self):
        return await self.client.post("/sales", json={
            "equipment_id": self.equipment.id,
            "quantity": parse_int(self.fields.get("quantity")),
            "unit_price": parse_float(self.fields.get("unit_price")),
            "customer_id": self.fields.get("customer_id") or None,
            "invoice_number": self.fields.get("invoice_number") or None,
            "notes": self.fields.get("notes") or None,
        })


class WriteOffModal(EquipmentModal):
    title = "Write off equipment"
    success_message = "Write-off recorded."
    failure_message = "Failed to record the write-off."

    def initial_fields(self) -> Dict[str, Any]:
        return {"quantity": 1, "reason": "damaged", "notes": ""}

    def validate(self):
        self.validate_quantity()
        if self.fields.get("reason") not in WRITE_OFF_REASONS:
            raise ClientValidationError("Select a write-off reason.", field="reason")

    async def request(self):
        return await self.client.post("/write-offs", json={
            "equipment_id": self.equipment.id,
            "quantity": parse_int(self.fields.get("quantity")),
            "reason": self.fields["reason"],
            "notes": self.fields.get("notes") or None,
        })


class TransferModal(EquipmentModal):
    title = "Transfer to another warehouse"
    success_message = "Equipment transferred."
    failure_message = "Failed to transfer the equipment."

    def initial_fields(self) -> Dict[str, Any]:
        return {"warehouse_id": ""}

    def validate(self):
        target = self.fields.get("warehouse_id")
        if is_blank(target):
            raise ClientValidationError("Select the target warehouse.", field="warehouse_id")
        if str(target) == str(self.equipment.warehouse_id):
            raise ClientValidationError("The equipment is already in this warehouse.", field="warehouse_id")

    async def request(self):
        return await self.client.put(
            f"/equipment/{self.equipment.id}",
            json={"warehouse_id": parse_int(self.fields["warehouse_id"])}
        )


class EquipmentDetailView(DetailView):
    resource = "equipment"
    record_key = "equipment"
    model = Equipment
    list_route = "/equipment"
    not_found_message = "Equipment not found."
    load_error_message = "Failed to load data. Please try again later."

    def __init__(self, client, record_id: Any):
        super().__init__(client, record_id)
        self.sell_modal: Optional[SellModal] = None
        self.write_off_modal: Optional[WriteOffModal] = None
        self.transfer_modal: Optional[TransferModal] = None

    def apply(self, data):
        super().apply(data)
        if self.record is None:
            return
        self.sell_modal = SellModal(self.client, self.record, on_done=self.reload)
        self.write_off_modal = WriteOffModal(self.client, self.record, on_done=self.reload)
        self.transfer_modal = TransferModal(self.client, self.record, on_done=self.reload)

    async def reload(self):
        data = await self.run(self.fetch(), self.load_error_message)
        if data is None or not data.get(self.record_key):
            return
        with self.reading(self.load_error_message):
            self.record = self.model(**data[self.record_key])
        for modal in (self.sell_modal, self.write_off_modal, self.transfer_modal):
            if modal is not None:
                modal.equipment = self.record

    @property
    def rented_quantity(self) -> int:
        if self.record is None or self.record.total_stock is None or self.record.available_stock is None:
            return 0
        return max(self.record.total_stock - self.record.available_stock, 0)

    def close(self):
        for modal in (self.sell_modal, self.write_off_modal, self.transfer_modal):
            if modal is not None:
                modal.close()
        super().close()


class EquipmentFormView(FormView):
    """
    Internal equipment form, submitted as multipart so a photo can ride along.

    material_value follows purchase_price and total_square_meters follows
    square_meters_per_piece x total_stock as soon as either input changes.
    """

    resource = "equipment"
    record_key = "equipment"
    list_route = "/equipment"
    detail_after_create = True
    required_fields = {
        "name": "Equipment name is required.",
        "category_id": "Select a category.",
        "inventory_number": "Inventory number is required.",
    }
    created_message = "Equipment saved."
    updated_message = "Equipment saved."
    save_error_message = "Error saving the equipment. Please try again later."
    load_error_message = "Failed to load the equipment. Please try again later."

    def __init__(self, client, record_id: Any = None):
        super().__init__(client, record_id)
        self.photo_path: Optional[str] = None
        self.photo_url: Optional[str] = None

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "name": "",
            "category_id": "",
            "inventory_number": "",
            "article_number": "",
            "product_designation": "",
            "purchase_price": "",
            "material_value": "",
            "daily_rate": "",
            "monthly_rate": "",
            "weight_per_piece": "",
            "square_meters_per_piece": "",
            "total_stock": "",
            "total_square_meters": "",
            "status": "available",
            "location": "",
            "description": "",
        }

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        self.photo_url = record.get("photo_url")
        fields = {key: record.get(key) or "" for key in self.fields}
        fields["status"] = record.get("status") or "available"
        return fields

    def on_field_change(self, name: str, value: Any):
        if name == "purchase_price":
            self.fields["material_value"] = material_value_for(value)
        if name in ("square_meters_per_piece", "total_stock"):
            self.fields["total_square_meters"] = total_area_for(
                self.fields.get("square_meters_per_piece"),
                self.fields.get("total_stock")
            )

    def set_photo(self, path: Optional[str]):
        self.photo_path = path

    def validate(self):
        super().validate()
        if self.fields.get("status") not in EQUIPMENT_STATUSES:
            raise ClientValidationError("Unknown equipment status.", field="status")

    def multipart(self, payload: Dict[str, Any]) -> List[Tuple[str, Tuple[Any, ...]]]:
        """Every field as a form part; empty values are sent as empty strings"""
        parts = [
            (key, (None, "" if value is None else str(value)))
            for key, value in payload.items()
        ]
        if self.photo_path:
            content_type = mimetypes.guess_type(self.photo_path)[0] or "application/octet-stream"
            with open(self.photo_path, "rb") as f:
                parts.append(("photo", (os.path.basename(self.photo_path), f.read(), content_type)))
        return parts

    async def save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            parts = self.multipart(payload)
        except OSError as e:
            raise ClientValidationError(f"Could not read the photo: {e}", field="photo") from e
        if self.is_edit:
            return await self.client.upload("PUT", f"/equipment/{self.record_id}", files=parts)
        return await self.client.upload("POST", "/equipment", files=parts)

    def redirect_route(self, saved: Dict[str, Any]) -> str:
        # the saved record's page, in edit mode too
        if saved.get("id"):
            return f"{self.list_route}/{saved['id']}"
        return self.list_route


class ExternalEquipmentFormView(EquipmentFormView):
    """Equipment rented in from a supplier"""

    required_fields = {
        "name": "Equipment name is required.",
        "inventory_number": "Inventory number is required.",
        "daily_rate": "Daily rate is required.",
        "supplier_id": "Select the supplier of the external equipment.",
        "external_rental_cost": "Enter the rental cost.",
    }

    def __init__(self, client, record_id: Any = None, supplier_id: Any = None):
        super().__init__(client, record_id)
        if supplier_id is not None:
            self.fields["supplier_id"] = supplier_id

    def initial_fields(self) -> Dict[str, Any]:
        fields = super().initial_fields()
        fields.update({
            "is_external": True,
            "supplier_id": "",
            "external_rental_cost": "",
            "rental_start_date": "",
            "rental_end_date": "",
            "external_reference": "",
        })
        return fields

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        fields = super().fields_from_record(record)
        fields["is_external"] = True
        for key in ("rental_start_date", "rental_end_date"):
            if fields.get(key):
                fields[key] = str(fields[key])[:10]
        return fields

    def on_field_change(self, name: str, value: Any):
        if name == "purchase_price":
            self.fields["material_value"] = material_value_for(value)
        if name in ("square_meters_per_piece", "total_stock"):
            per_piece = parse_float(self.fields.get("square_meters_per_piece"))
            stock = parse_float(self.fields.get("total_stock"))
            # left untouched until both inputs are filled in
            if per_piece and stock:
                self.fields["total_square_meters"] = f"{per_piece * stock:.2f}"

    def payload(self) -> Dict[str, Any]:
        return {key: value for key, value in self.fields.items() if value is not None}


class ImportEquipmentView(View):
    """Excel import dialog: template download, upload and per-row report"""

    def __init__(self, client):
        super().__init__(client)
        self.importer = EquipmentImporter(client)
        self.file_path: Optional[str] = None
        self.result: Optional[ImportResult] = None
        self.template_path: Optional[str] = None

    def select_file(self, path: Optional[str]):
        self.file_path = path
        self.result = None
        self.error = None

    async def download_template(self, target_dir: Optional[str] = None) -> Optional[str]:
        path = await self.run(self.importer.download_template(target_dir), "Failed to download the template.")
        if path is not None:
            self.template_path = path
        return path

    async def upload(self) -> Optional[ImportResult]:
        if self.loading or not self.check_admin():
            return None
        if not self.file_path:
            self.error = "Select an Excel file to import."
            return None
        result = await self.run(self.importer.import_file(self.file_path), "Import failed.")
        if result is None:
            return None
        self.result = result
        self.success = f"Imported {result.success} item(s)."
        if result.has_errors:
            logger.warning(f"Equipment import finished with {len(result.errors)} row error(s)")
        return result
