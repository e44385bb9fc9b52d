"""
Landing page statistics.

Every user sees customer and order counts. Administrators also see stock
figures by equipment status, the category list and the most recently added
equipment; when those fail to load the rest of the dashboard still shows.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from rentdesk.schemas import Category, Customer, Equipment, Order
from rentdesk.services.errors import ApiError
from rentdesk.views.base import View

logger = logging.getLogger(__name__)

STOCK_STATUSES = ("available", "borrowed", "maintenance")


def _added_at(item: Equipment) -> float:
    return item.created_at.timestamp() if item.created_at else float("-inf")


class DashboardView(View):
    load_error_message = "Failed to load the dashboard data. Please try again later."
    recent_limit = 5

    def __init__(self, client):
        super().__init__(client)
        self.customers: List[Customer] = []
        self.orders: List[Order] = []
        self.equipment: List[Equipment] = []
        self.categories: List[Category] = []

    async def fetch_stock(self) -> Optional[Tuple[List[Equipment], List[Category]]]:
        try:
            equipment_data, category_data = await asyncio.gather(
                self.client.get("/equipment"),
                self.client.get("/categories")
            )
            return (
                [Equipment(**e) for e in equipment_data.get("equipment") or []],
                [Category(**c) for c in category_data.get("categories") or []],
            )
        except (ApiError, ValidationError) as e:
            logger.error(f"Dashboard stock figures unavailable: {e}")
            return None

    async def fetch(self):
        basic = asyncio.gather(self.client.get("/customers"), self.client.get("/orders"))
        stock = None
        if self.is_admin:
            (customer_data, order_data), stock = await asyncio.gather(basic, self.fetch_stock())
        else:
            customer_data, order_data = await basic
        customers = [Customer(**c) for c in customer_data.get("customers") or []]
        orders = [Order(**o) for o in order_data.get("orders") or []]
        return customers, orders, stock

    async def mount(self):
        if not self.session.is_authenticated:
            return
        data = await self.run(self.fetch(), self.load_error_message)
        if data is None:
            return
        self.customers, self.orders, stock = data
        if stock is not None:
            self.equipment, self.categories = stock

    @property
    def customer_count(self) -> int:
        return len(self.customers)

    @property
    def order_count(self) -> int:
        return len(self.orders)

    @property
    def active_orders(self) -> int:
        return sum(1 for o in self.orders if o.status == "active")

    @property
    def equipment_counts(self) -> Dict[str, int]:
        counts = {"total": len(self.equipment)}
        for status in STOCK_STATUSES:
            counts[status] = sum(1 for e in self.equipment if e.status == status)
        return counts

    @property
    def recently_added(self) -> List[Equipment]:
        return sorted(self.equipment, key=_added_at, reverse=True)[:self.recent_limit]
