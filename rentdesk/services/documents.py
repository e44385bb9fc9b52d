"""
Fetches note payloads from the backend and turns them into PDFs.

Kinds and their sources:
    delivery-note         /orders/:id/delivery-note
    batch-delivery-note   /orders/batch-rentals/:batch/delivery-note
    return-note           /orders/batch-returns/:batch/delivery-note
    billing               /orders/:order/billing-data/:billing  (ref "<order>-<billing>")
    write-off             /write-offs/:id
    inventory-check       /inventory-checks/:id
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from rentdesk.documents import builders
from rentdesk.documents.canvas_renderer import render_pdf
from rentdesk.documents.flow_renderer import save_pdf
from rentdesk.documents.model import Document
from rentdesk.schemas import (
    BillingData, DeliveryNote, InventoryCheck, ReturnNote, WriteOff
)
from rentdesk.services.errors import ClientValidationError, parse_record_id

logger = logging.getLogger(__name__)

DOCUMENT_KINDS = (
    "delivery-note",
    "batch-delivery-note",
    "return-note",
    "billing",
    "write-off",
    "inventory-check",
)


class DocumentService:
    def __init__(self, client):
        self.client = client
        self._loaders: Dict[str, Callable[[str], Awaitable[Document]]] = {
            "delivery-note": self.delivery_note,
            "batch-delivery-note": self.batch_delivery_note,
            "return-note": self.return_note,
            "billing": self.billing_statement,
            "write-off": self.write_off_record,
            "inventory-check": self.inventory_report,
        }

    async def delivery_note(self, order_id: Any) -> Document:
        order_id = parse_record_id(order_id)
        data = await self.client.get(f"/orders/{order_id}/delivery-note")
        return builders.delivery_note(DeliveryNote(**(data.get("deliveryNote") or {})))

    async def batch_delivery_note(self, batch_id: str) -> Document:
        data = await self.client.get(f"/orders/batch-rentals/{_batch(batch_id)}/delivery-note")
        return builders.batch_delivery_note(DeliveryNote(**(data.get("deliveryNote") or {})))

    async def return_note(self, batch_id: str) -> Document:
        data = await self.client.get(f"/orders/batch-returns/{_batch(batch_id)}/delivery-note")
        return builders.return_note(ReturnNote(**(data.get("returnNote") or {})))

    async def billing_statement(self, ref: str) -> Document:
        order_part, _, billing_part = str(ref).partition("-")
        order_id = parse_record_id(order_part)
        billing_id = parse_record_id(billing_part)
        data = await self.client.get(f"/orders/{order_id}/billing-data/{billing_id}")
        return builders.billing_statement(BillingData(**(data.get("billingData") or {})))

    async def write_off_record(self, write_off_id: Any) -> Document:
        write_off_id = parse_record_id(write_off_id)
        data = await self.client.get(f"/write-offs/{write_off_id}")
        return builders.write_off_record(WriteOff(**(data.get("write_off") or {})))

    async def inventory_report(self, check_id: Any) -> Document:
        check_id = parse_record_id(check_id)
        data = await self.client.get(f"/inventory-checks/{check_id}")
        return builders.inventory_report(InventoryCheck(**(data.get("inventory_check") or {})))

    async def build(self, kind: str, ref: str) -> Document:
        loader = self._loaders.get(kind)
        if loader is None:
            raise ClientValidationError(f"Unknown document type: {kind}")
        document = await loader(ref)
        logger.info(f"Built {kind} document {document.filename}")
        return document

    async def preview(self, kind: str, ref: str) -> bytes:
        """PDF bytes for opening in a new tab or printing"""
        return render_pdf(await self.build(kind, ref))

    async def download(self, kind: str, ref: str, output_dir: Optional[str] = None) -> str:
        """Save the PDF under its business file name; returns the path"""
        return save_pdf(await self.build(kind, ref), output_dir)


def _batch(batch_id: str) -> str:
    batch_id = (batch_id or "").strip()
    if not batch_id:
        raise ClientValidationError("Missing batch id.")
    return batch_id
