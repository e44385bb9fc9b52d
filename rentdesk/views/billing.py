"""
Billing data screen of one order.

Two phases: configure (billing date, automatic or manual period, returned-only
and final-billing flags) and generated (read-only result that can be printed,
exported or discarded). Regenerating is always a fresh request.
"""
import logging
from datetime import date
from typing import Any, Optional

from pydantic import ValidationError

from rentdesk.documents.builders import billing_statement
from rentdesk.documents.formatting import format_date
from rentdesk.documents.model import Document
from rentdesk.schemas import BillingData, Order
from rentdesk.services.billing import BillingOptions, BillingService, due_date, last_day_of_month
from rentdesk.services.errors import (
    ApiError, BillingEmptyPeriodError, BillingOverlapError, ClientValidationError, user_message
)
from rentdesk.views.base import View, parse_record_id

logger = logging.getLogger(__name__)

CONFIGURE = "configure"
GENERATED = "generated"

GENERATION_FAILED = "Failed to generate billing data."


def overlap_detail(error: BillingOverlapError) -> str:
    existing = error.existing_billing
    requested = error.requested_period
    return "\n".join([
        "Billing data cannot be created because it overlaps an existing record:",
        f"  Existing invoice: {existing.get('invoice_number') or '-'}",
        f"  Issued on: {format_date(existing.get('billing_date'))}",
        f"  Period: {format_date(existing.get('billing_period_from'))} - {format_date(existing.get('billing_period_to'))}",
        f"The requested period ({format_date(requested.get('from'))} - {format_date(requested.get('to'))}) "
        "overlaps the period above.",
        "Choose a different billing date or period.",
    ])


def empty_period_detail(error: BillingEmptyPeriodError) -> str:
    requested = error.requested_period
    lines = [error.backend_message or "There are no billable items for the requested period."]
    lines.append(f"Requested period: {format_date(requested.get('from'))} - {format_date(requested.get('to'))}")
    return "\n".join(lines)


class BillingView(View):
    def __init__(self, client, order_id: Any, billing_id: Any = None):
        super().__init__(client)
        self.service = BillingService(client)
        self.raw_order_id = order_id
        self.raw_billing_id = billing_id
        self.order_id: Optional[int] = None
        self.order: Optional[Order] = None
        self.options = BillingOptions()
        self.phase = CONFIGURE
        self.billing: Optional[BillingData] = None
        self.rejection: Optional[ApiError] = None

    async def mount(self):
        try:
            self.order_id = parse_record_id(self.raw_order_id)
            billing_id = parse_record_id(self.raw_billing_id) if self.raw_billing_id is not None else None
        except ClientValidationError as e:
            self.fail(e)
            return
        data = await self.run(self.client.get(f"/orders/{self.order_id}"), "Failed to load the order. Please try again later.")
        if data is None:
            return
        with self.reading("Failed to load the order. Please try again later."):
            self.order = Order(**(data.get("order") or {}))
        if self.order is None:
            return
        if billing_id is not None:
            billing = await self.run(self.service.get(self.order_id, billing_id), "Failed to load the billing data.")
            if billing is not None:
                self.billing = billing
                self.phase = GENERATED

    def fail(self, exc: Exception, fallback: Optional[str] = None):
        if isinstance(exc, (BillingOverlapError, BillingEmptyPeriodError)):
            logger.error(f"BillingView: {exc}")
            self.rejection = exc
            self.error = self.error_detail
            return
        if isinstance(exc, ApiError) and fallback == GENERATION_FAILED:
            logger.error(f"BillingView: {exc}")
            self.rejection = exc
            self.error = self.error_detail
            return
        super().fail(exc, fallback)

    @property
    def error_detail(self) -> Optional[str]:
        """Explanation of the last generation failure"""
        error = self.rejection
        if error is None:
            return None
        if isinstance(error, BillingOverlapError):
            return overlap_detail(error)
        if isinstance(error, BillingEmptyPeriodError):
            return empty_period_detail(error)
        return f"{GENERATION_FAILED} {error.backend_message or user_message(error)}"

    def set_option(self, name: str, value: Any) -> bool:
        try:
            self.options = BillingOptions(**{**self.options.model_dump(), name: value})
        except ValidationError as e:
            logger.error(f"BillingView: invalid {name}: {e}")
            self.error = f"Invalid value for {name.replace('_', ' ')}."
            return False
        return True

    def use_last_day_of_month(self, today: Optional[date] = None):
        self.options = self.options.model_copy(update={"billing_date": last_day_of_month(today)})

    @property
    def final_billing_disabled(self) -> bool:
        return self.order is not None and self.order.status == "completed"

    @property
    def due_date(self) -> Optional[date]:
        if self.billing is None or self.billing.billing_date is None:
            return None
        return due_date(self.billing.billing_date)

    async def generate(self) -> Optional[BillingData]:
        if self.loading or self.phase != CONFIGURE:
            return None
        if self.order_id is None or not self.check_admin():
            return None
        self.rejection = None
        options = self.options
        if options.is_final_billing and self.final_billing_disabled:
            options = options.model_copy(update={"is_final_billing": False})
        try:
            options.validate_period()
        except ClientValidationError as e:
            self.fail(e)
            return None

        billing = await self.run(self.service.generate(self.order_id, options), GENERATION_FAILED)
        if billing is None:
            return None
        self.billing = billing
        self.phase = GENERATED

        if options.is_final_billing and self.order is not None and self.order.status != "completed":
            order = await self.run(self.service.complete_order(self.order), "Failed to complete the order.")
            if order is not None:
                self.order = order
        return billing

    def discard(self):
        self.billing = None
        self.rejection = None
        self.error = None
        self.phase = CONFIGURE

    def back(self):
        self.navigator.navigate(f"/orders/{self.order_id}")

    def document(self) -> Optional[Document]:
        if self.billing is None:
            return None
        return billing_statement(self.billing, self.order)
