"""Catalog management: stock adjustments, publish status and categories."""
import asyncio
import logging
import re
from typing import Any, Optional

from pydantic import ValidationError

from ..backend import BackendError, Query
from .base import AdminPanel
from .models import AdminCategory, AdminProduct

logger = logging.getLogger(__name__)

ADMIN_PRODUCT_COLUMNS = (
    "id, name, slug, status, price_cents, currency, inventory_count, category_id, "
    "categories:category_id(id, name, slug, description)"
)
DEFAULT_ADJUST_REASON = "Manual admin adjustment"


def slugify(text: str) -> str:
    """'Summer Hats & Caps' -> 'summer-hats-caps'."""
    return re.sub(r"[^a-z0-9]+", "-", text.strip().lower()).strip("-")


def _product_from_row(row: dict[str, Any]) -> AdminProduct:
    category = row.get("categories")
    return AdminProduct(
        **{k: v for k, v in row.items() if k != "categories" and v is not None},
        category=AdminCategory(**category) if category else None,
    )


class CatalogAdmin(AdminPanel):
    """Admin view of products and categories."""

    def __init__(self, backend):
        super().__init__(backend)
        self.products: list[AdminProduct] = []
        self.categories: list[AdminCategory] = []

    def get(self, product_id: str) -> Optional[AdminProduct]:
        return next((p for p in self.products if p.id == product_id), None)

    async def load(self) -> bool:
        backend = self._require_backend()
        if backend is None:
            return False

        try:
            product_rows, category_rows = await asyncio.gather(
                backend.select(Query("products", ADMIN_PRODUCT_COLUMNS).order("created_at", ascending=False)),
                backend.select(Query("categories", "id, name, slug, description").order("position")),
            )
            self.products = [_product_from_row(row) for row in product_rows]
            self.categories = [AdminCategory(**row) for row in category_rows]
        except BackendError as e:
            self._failed_request("Catalog load", e)
            return False
        except ValidationError as e:
            logger.warning("Catalog rows did not match the admin schema: %s", e)
            self._fail("Unable to load catalog data")
            return False

        self.error = None
        return True

    async def adjust_inventory(
        self,
        product_id: str,
        delta: Any,
        reason: str = DEFAULT_ADJUST_REASON,
        context: dict[str, Any] | None = None,
    ) -> Optional[AdminProduct]:
        """Apply a signed stock delta through the audited inventory procedure."""
        backend = self._require_backend()
        if backend is None:
            return None
        try:
            delta = int(delta)
        except (TypeError, ValueError):
            self._fail("Please provide a valid number")
            return None

        try:
            data = await backend.rpc("admin_adjust_inventory", {
                "p_product_id": product_id,
                "p_quantity_delta": delta,
                "p_reason": reason,
                "p_context": context or {"source": "admin-console"},
            })
        except BackendError as e:
            self._failed_request("Inventory adjustment", e)
            return None

        if isinstance(data, list):
            data = data[0] if data else None
        if not data or "inventory_count" not in data:
            self._fail("Inventory update did not return a product record")
            return None

        count = int(data["inventory_count"])
        updated = None
        for index, product in enumerate(self.products):
            if product.id == product_id:
                updated = product.model_copy(update={"inventory_count": count})
                self.products[index] = updated
        self._succeed(f"Inventory adjusted. New quantity: {count}")
        return updated

    async def toggle_status(self, product_id: str) -> Optional[str]:
        """Flip a product between active and draft. Returns the new status."""
        backend = self._require_backend()
        if backend is None:
            return None
        product = self.get(product_id)
        if product is None:
            self._fail(f"Unknown product: {product_id}")
            return None

        next_status = "draft" if product.status == "active" else "active"
        try:
            await backend.update("products", {"status": next_status}, {"id": product_id})
        except BackendError as e:
            self._failed_request("Status change", e)
            return None

        self.products = [
            p.model_copy(update={"status": next_status}) if p.id == product_id else p for p in self.products
        ]
        self._succeed(f"{product.name} is now {next_status}")
        return next_status

    async def create_category(self, name: str, description: str = "") -> bool:
        backend = self._require_backend()
        if backend is None:
            return False
        name = (name or "").strip()
        if not name:
            self._fail("Category name is required")
            return False

        try:
            await backend.insert("categories", {
                "name": name,
                "slug": slugify(name),
                "description": (description or "").strip() or None,
            })
        except BackendError as e:
            self._failed_request("Category creation", e)
            return False

        self._succeed("Category created successfully")
        await self.load()
        return True

    def grouped_products(self) -> list[tuple[str, list[AdminProduct]]]:
        """Products grouped by category name, in first-seen order."""
        grouped: dict[str, list[AdminProduct]] = {}
        for product in self.products:
            key = product.category.name if product.category else "Uncategorized"
            grouped.setdefault(key, []).append(product)
        return list(grouped.items())
