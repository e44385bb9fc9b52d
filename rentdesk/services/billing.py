"""
Billing data (invoice basis) generation for an order.

The backend computes the billable items and rejects a request whose period
overlaps an existing billing record or yields no items; this module builds the
request, validates manual periods before anything is sent and maps the two
structured rejections onto their own exception types.
"""
import calendar
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from rentdesk.config import settings
from rentdesk.schemas import BillingData, Order
from rentdesk.services.errors import (
    BadRequestError, BillingEmptyPeriodError, BillingOverlapError, ClientValidationError
)

logger = logging.getLogger(__name__)


def last_day_of_month(day: Optional[date] = None) -> date:
    day = day or date.today()
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def periods_overlap(a_from: date, a_to: date, b_from: date, b_to: date) -> bool:
    """Both ranges inclusive: [a_from, a_to] and [b_from, b_to] share a day"""
    return b_from <= a_to and b_to >= a_from


def due_date(billing_date: date, days: Optional[int] = None) -> date:
    return billing_date + timedelta(days=settings.billing_due_days if days is None else days)


def invoice_number_for(order_number: str, billing_date: date) -> str:
    """Invoice number the backend assigns to generated billing data"""
    return f"INV-{order_number}-{billing_date.strftime('%Y%m%d')}"


class BillingOptions(BaseModel):
    billing_date: date = Field(default_factory=date.today)
    use_custom_period: bool = False
    period_from: Optional[date] = None
    period_to: Optional[date] = None
    include_returned_only: bool = False
    is_final_billing: bool = False

    @field_validator('period_from', 'period_to', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v == '':
            return None
        return v

    def validate_period(self):
        """Manual periods need both bounds in order; checked before any request"""
        if not self.use_custom_period:
            return
        if self.period_from is None or self.period_to is None:
            raise ClientValidationError("Enter both the start and the end of the billing period.", field="period_from")
        if self.period_from > self.period_to:
            raise ClientValidationError("The billing period cannot start after it ends.", field="period_to")

    def payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "billing_date": self.billing_date.isoformat(),
            "include_returned_only": self.include_returned_only,
            "is_final_billing": self.is_final_billing,
        }
        if self.use_custom_period:
            payload["period_from"] = self.period_from.isoformat()
            payload["period_to"] = self.period_to.isoformat()
        return payload


def classify_rejection(error: BadRequestError) -> BadRequestError:
    """Turn a 400 from billing generation into its structured variant when it has one"""
    payload = error.payload
    if payload.get("existingBilling"):
        return BillingOverlapError(error.backend_message, payload)
    if payload.get("requestedPeriod"):
        return BillingEmptyPeriodError(error.backend_message, payload)
    return error


class BillingService:
    def __init__(self, client):
        self.client = client

    async def generate(self, order_id: int, options: BillingOptions) -> BillingData:
        options.validate_period()
        try:
            data = await self.client.post(f"/orders/{order_id}/billing-data", json=options.payload())
        except BadRequestError as e:
            rejection = classify_rejection(e)
            logger.warning(f"Billing data for order {order_id} rejected: {rejection.message}")
            raise rejection from e
        billing = BillingData(**(data.get("billingData") or {}))
        logger.info(f"Generated billing data {billing.invoice_number} for order {order_id}")
        return billing

    async def list_for_order(self, order_id: int) -> List[BillingData]:
        data = await self.client.get(f"/orders/{order_id}/billing-data")
        return [BillingData(**b) for b in data.get("billingData") or []]

    async def get(self, order_id: int, billing_id: int) -> BillingData:
        data = await self.client.get(f"/orders/{order_id}/billing-data/{billing_id}")
        return BillingData(**(data.get("billingData") or {}))

    async def complete_order(self, order: Order) -> Order:
        """Close the order after final billing; the update carries the whole order"""
        body = order.model_dump(mode="json", exclude_none=True)
        body["status"] = "completed"
        await self.client.put(f"/orders/{order.id}", json=body)
        return order.model_copy(update={"status": "completed"})
