"""Pydantic models for admin console records. Amounts are integer cents."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

ORDER_STATUSES = ("pending", "processing", "fulfilled", "cancelled", "refunded")
OPEN_ORDER_STATUSES = ("pending", "processing")


class AdminCategory(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None


class AdminProduct(BaseModel):
    id: str
    name: str
    slug: str
    status: str
    price_cents: int = 0
    currency: str = "USD"
    inventory_count: int = 0
    category_id: Optional[str] = None
    category: Optional[AdminCategory] = None


class AdminOrderSummary(BaseModel):
    id: str
    status: str
    total_cents: int = 0
    currency: str = "USD"
    placed_at: datetime
    fulfilled_at: Optional[datetime] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    item_count: int = 0


class OrderLine(BaseModel):
    id: int
    quantity: int
    unit_price_cents: int
    subtotal_cents: int
    product_id: str
    product_name: Optional[str] = None
    product_slug: Optional[str] = None


class AdminOrderDetail(BaseModel):
    id: str
    status: str
    total_cents: int = 0
    currency: str = "USD"
    customer_id: Optional[str] = None
    shipping_address: Optional[dict[str, Any]] = None
    billing_address: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    placed_at: datetime
    fulfilled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    order_items: list[OrderLine] = Field(default_factory=list)


class SettingRecord(BaseModel):
    key: str
    value: Any = None
    description: Optional[str] = None


class MediaRecord(BaseModel):
    id: str
    product_id: Optional[str] = None
    path: str
    media_type: str
    alt_text: Optional[str] = None
    created_at: datetime


class InventoryEvent(BaseModel):
    id: str
    product_id: str
    quantity_delta: int
    reason: Optional[str] = None
    resulting_quantity: int
    created_at: datetime


class AuditLogEntry(BaseModel):
    id: int
    action: str
    target_table: Optional[str] = None
    target_id: Optional[str] = None
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class DailySales(BaseModel):
    date: str  # YYYY-MM-DD
    total_cents: int


class AnalyticsReport(BaseModel):
    revenue_by_status: dict[str, int] = Field(default_factory=dict)
    daily_sales: list[DailySales] = Field(default_factory=list)
    inventory_events: list[InventoryEvent] = Field(default_factory=list)
    audit_log: list[AuditLogEntry] = Field(default_factory=list)

    @property
    def revenue_total(self) -> int:
        return sum(self.revenue_by_status.values())


def format_cents(amount_cents: int, currency: str = "USD") -> str:
    """Render an integer cent amount, e.g. 123456 -> 'USD 1,234.56'."""
    return f"{currency} {amount_cents / 100:,.2f}"
