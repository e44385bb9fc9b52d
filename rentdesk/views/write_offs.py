from typing import Any, Dict

from rentdesk.schemas import WRITE_OFF_REASONS, WriteOff
from rentdesk.services.errors import ClientValidationError
from rentdesk.views.base import DetailView, ListView, in_date_range
from rentdesk.views.cart import CartFormView


class WriteOffListView(ListView):
    resource = "write-offs"
    collection_key = "write_offs"
    model = WriteOff
    search_fields = ("id", "created_by_name", "notes")
    empty_message = "No write-offs have been recorded yet."
    no_match_message = "No write-offs match the selected filters."
    load_error_message = "Failed to load write-offs. Please try again later."
    deleted_message = "Write-off deleted and the quantity returned to stock."

    def filter_record(self, record: WriteOff) -> bool:
        if not in_date_range(record.write_off_date, self.filters.get("date_from"), self.filters.get("date_to")):
            return False
        reason = self.filters.get("reason")
        return reason is None or record.reason == reason


class WriteOffDetailView(DetailView):
    resource = "write-offs"
    record_key = "write_off"
    model = WriteOff
    list_route = "/write-offs"
    not_found_message = "Write-off not found."
    load_error_message = "Failed to load the write-off. Please try again later."

    @property
    def total(self) -> float:
        if self.record is None:
            return 0.0
        if self.record.total_value is not None:
            return self.record.total_value
        return sum(item.total_value for item in self.record.items)


class WriteOffFormView(CartFormView):
    resource = "write-offs"
    record_key = "write_off"
    list_route = "/write-offs"
    date_field = "write_off_date"
    price_field = "unit_value"
    total_field = "total_value"
    created_message = "Write-off saved."
    updated_message = "Write-off updated."
    save_error_message = "Error saving the write-off. Please try again later."
    load_error_message = "Failed to load the write-off. Please try again later."

    def initial_fields(self) -> Dict[str, Any]:
        return {
            "write_off_date": self.initial_date(),
            "reason": "damaged",
            "notes": "",
        }

    def fields_from_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        fields = super().fields_from_record(record)
        fields["reason"] = record.get("reason") or "damaged"
        return fields

    def validate(self):
        super().validate()
        if self.fields.get("reason") not in WRITE_OFF_REASONS:
            raise ClientValidationError("Select a write-off reason.", field="reason")

    def line_payload(self, line: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().line_payload(line)
        payload["warehouse_id"] = line.get("warehouse_id")
        return payload
