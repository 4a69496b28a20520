"""Order fulfillment: order list, detail view and audited status changes."""
import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..backend import BackendError, Query
from .base import AdminPanel
from .models import OPEN_ORDER_STATUSES, ORDER_STATUSES, AdminOrderDetail, AdminOrderSummary, OrderLine

logger = logging.getLogger(__name__)

ORDER_DETAIL_COLUMNS = "*, order_items(*, products:product_id(id, name, slug))"


def _detail_from_row(row: dict[str, Any]) -> AdminOrderDetail:
    lines = []
    for item in row.get("order_items") or []:
        product = item.get("products") or {}
        lines.append(OrderLine(
            id=item["id"],
            quantity=item["quantity"],
            unit_price_cents=item["unit_price_cents"],
            subtotal_cents=item["subtotal_cents"],
            product_id=item["product_id"],
            product_name=product.get("name"),
            product_slug=product.get("slug"),
        ))
    fields = {k: v for k, v in row.items() if k != "order_items"}
    return AdminOrderDetail(**fields, order_items=lines)


class OrderAdmin(AdminPanel):
    def __init__(self, backend):
        super().__init__(backend)
        self.orders: list[AdminOrderSummary] = []
        self.selected: Optional[AdminOrderDetail] = None

    @property
    def revenue_total(self) -> int:
        return sum(order.total_cents for order in self.orders)

    @property
    def open_orders(self) -> int:
        return sum(1 for order in self.orders if order.status in OPEN_ORDER_STATUSES)

    async def load(self) -> bool:
        backend = self._require_backend()
        if backend is None:
            return False
        try:
            rows = await backend.select(Query("admin_order_summary").order("placed_at", ascending=False))
            self.orders = [AdminOrderSummary(**row) for row in rows]
        except BackendError as e:
            self._failed_request("Order list", e)
            return False
        except ValidationError as e:
            logger.warning("Order summary rows did not match the admin schema: %s", e)
            self._fail("Unable to load orders")
            return False
        self.error = None
        return True

    async def load_detail(self, order_id: str) -> Optional[AdminOrderDetail]:
        """Fetch one order with its lines. A missing order is None without an error."""
        backend = self._require_backend()
        if backend is None:
            return None
        self.selected = None
        self.message = None
        try:
            row = await backend.select_one(Query("orders", ORDER_DETAIL_COLUMNS).eq("id", order_id))
        except BackendError as e:
            self._failed_request("Order detail", e)
            return None
        if row is None:
            return None
        try:
            self.selected = _detail_from_row(row)
        except (KeyError, ValidationError) as e:
            logger.warning("Order %s detail is malformed: %s", order_id, e)
            self._fail("Unable to read order detail")
            return None
        self.error = None
        return self.selected

    async def update_status(self, order_id: str, status: str, notes: str = "") -> bool:
        """Move an order to `status` through the audited procedure, then reload the list."""
        backend = self._require_backend()
        if backend is None:
            return False
        if status not in ORDER_STATUSES:
            self._fail(f"Unknown order status: {status}")
            return False

        try:
            data = await backend.rpc("admin_update_order_status", {
                "p_order_id": order_id,
                "p_status": status,
                "p_notes": (notes or "").strip() or None,
            })
        except BackendError as e:
            self._failed_request("Order status change", e)
            return False

        self.orders = [o.model_copy(update={"status": status}) if o.id == order_id else o for o in self.orders]
        if isinstance(data, list):
            data = data[0] if data else None
        if self.selected is not None and self.selected.id == order_id and isinstance(data, dict):
            self.selected = AdminOrderDetail.model_validate({
                **self.selected.model_dump(),
                "status": data.get("status", status),
                "fulfilled_at": data.get("fulfilled_at"),
                "cancelled_at": data.get("cancelled_at"),
                "notes": data.get("notes") or self.selected.notes,
            })
        self._succeed(f"Order status updated to {status}")
        await self.load()
        return True
