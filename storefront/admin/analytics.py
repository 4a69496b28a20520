"""Commerce analytics: 30-day revenue, daily sales, inventory and audit activity."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from ..backend import BackendError, Query
from .base import AdminPanel
from .models import AnalyticsReport, AuditLogEntry, DailySales, InventoryEvent

logger = logging.getLogger(__name__)

WINDOW_DAYS = 30
RECENT_LIMIT = 5

_datetime = TypeAdapter(datetime)


def _utc_day(value) -> str:
    moment = _datetime.validate_python(value)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date().isoformat()


def summarize_orders(rows: list[dict]) -> tuple[dict[str, int], list[DailySales]]:
    """Revenue per status and per UTC day, in cents."""
    by_status: dict[str, int] = {}
    by_day: dict[str, int] = {}
    for row in rows:
        amount = int(row.get("total_cents") or 0)
        status = row.get("status") or "unknown"
        by_status[status] = by_status.get(status, 0) + amount
        day = _utc_day(row["placed_at"])
        by_day[day] = by_day.get(day, 0) + amount
    daily = [DailySales(date=day, total_cents=total) for day, total in sorted(by_day.items())]
    return by_status, daily


class AnalyticsAdmin(AdminPanel):
    def __init__(self, backend):
        super().__init__(backend)
        self.report: Optional[AnalyticsReport] = None

    async def load(self, now: datetime | None = None) -> Optional[AnalyticsReport]:
        backend = self._require_backend()
        if backend is None:
            return None

        since = (now or datetime.now(timezone.utc)) - timedelta(days=WINDOW_DAYS)
        try:
            order_rows, event_rows, audit_rows = await asyncio.gather(
                backend.select(Query("orders", "status, total_cents, placed_at").gte("placed_at", since)),
                backend.select(
                    Query("inventory_events", "id, product_id, quantity_delta, reason, resulting_quantity, created_at")
                    .order("created_at", ascending=False)
                    .limit(RECENT_LIMIT)
                ),
                backend.select(
                    Query("admin_audit_logs", "id, action, target_table, target_id, created_at, metadata")
                    .order("created_at", ascending=False)
                    .limit(RECENT_LIMIT)
                ),
            )
            revenue, daily = summarize_orders(order_rows)
            self.report = AnalyticsReport(
                revenue_by_status=revenue,
                daily_sales=daily,
                inventory_events=[InventoryEvent(**row) for row in event_rows],
                audit_log=[AuditLogEntry(**{**row, "metadata": row.get("metadata") or {}}) for row in audit_rows],
            )
        except BackendError as e:
            self._failed_request("Analytics load", e)
            return None
        except (KeyError, ValidationError) as e:
            logger.warning("Analytics rows did not match the admin schema: %s", e)
            self._fail("Unable to load analytics")
            return None

        self.error = None
        return self.report
