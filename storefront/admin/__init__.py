"""Administrative console: catalog, orders, content and analytics panels."""
from ..backend import Backend
from .analytics import AnalyticsAdmin
from .catalog import CatalogAdmin, slugify
from .content import ContentAdmin
from .models import ORDER_STATUSES, AnalyticsReport, format_cents
from .orders import OrderAdmin
from .session import AdminSession


class AdminConsole:
    """Bundles the admin panels over one backend."""

    def __init__(self, backend: Backend | None):
        self.session = AdminSession(backend)
        self.catalog = CatalogAdmin(backend)
        self.orders = OrderAdmin(backend)
        self.content = ContentAdmin(backend)
        self.analytics = AnalyticsAdmin(backend)


__all__ = [
    "AdminConsole",
    "AdminSession",
    "AnalyticsAdmin",
    "AnalyticsReport",
    "CatalogAdmin",
    "ContentAdmin",
    "OrderAdmin",
    "ORDER_STATUSES",
    "format_cents",
    "slugify",
]
