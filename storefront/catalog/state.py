"""Catalog slice: product list, id/slug cache, filters and backend fetches."""
import logging
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from ..backend import Backend, BackendError, Query
from ..models import CatalogFilters, Product
from .filters import price_bounds

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = (
    "id, name, slug, description, price, currency, image_url, gallery, category, tags, "
    "featured, rating, created_at, inventory_status, metadata, "
    "variants:product_variants(id, name, price, sku, stock, option_values)"
)


def _index(products: Iterable[Product]) -> dict[str, Product]:
    cache: dict[str, Product] = {}
    for product in products:
        cache[product.id] = product
        cache[product.slug] = product
    return cache


class CatalogState:
    """Holds the catalog and its filters. Mutated only through its methods."""

    def __init__(
        self,
        backend: Backend | None,
        notify: Callable[[], None],
        products: Iterable[Product] = (),
    ):
        self._backend = backend
        self._notify = notify
        self.products: tuple[Product, ...] = tuple(products)
        self.product_cache: dict[str, Product] = _index(self.products)
        self.filters = CatalogFilters()
        self.loading = False
        self.error: str | None = None
        self._generation = 0

    def get_cached(self, key: str) -> Optional[Product]:
        """Look up a product by id or slug without touching the backend."""
        return self.product_cache.get(key)

    def set_filters(self, **changes: Any) -> None:
        """Shallow-merge filter fields, like a partial form update."""
        unknown = set(changes) - set(CatalogFilters.model_fields)
        if unknown:
            raise ValueError(f"Unknown filter field(s): {', '.join(sorted(unknown))}")
        self.filters = self.filters.model_copy(update=changes)
        self._notify()

    def _replace_products(self, products: tuple[Product, ...]) -> None:
        self.products = products
        self.product_cache = _index(products)

    async def refresh(self) -> None:
        """Reload the full catalog, newest first. Failures land in `error`."""
        if self._backend is None:
            return

        self._generation += 1
        generation = self._generation
        self.loading = True
        self.error = None
        self._notify()

        query = Query("products", PRODUCT_COLUMNS).order("created_at", ascending=False)
        try:
            rows = await self._backend.select(query)
        except BackendError as e:
            if generation == self._generation:
                self.loading = False
                self.error = e.message
                self._notify()
            logger.warning("Catalog refresh failed: %s", e.message)
            return

        if generation != self._generation:
            logger.debug("Discarding stale catalog response (generation %d)", generation)
            return

        products = []
        for row in rows:
            try:
                products.append(Product.from_row(row))
            except (KeyError, ValidationError) as e:
                logger.warning("Skipping malformed product row %r: %s", row.get("id"), e)

        self._replace_products(tuple(products))
        bounds = price_bounds(self.products)
        if bounds:
            self.filters = self.filters.model_copy(update={"price_range": bounds})
        self.loading = False
        logger.info("Catalog loaded: %d products", len(self.products))
        self._notify()

    async def fetch_product_by_slug(self, slug: str) -> Optional[Product]:
        """
        Resolve a product by slug, from cache first.

        Returns None both when the product does not exist and when the
        request fails; only the latter sets `error`.
        """
        cached = self.product_cache.get(slug)
        if cached:
            return cached
        if self._backend is None:
            return None

        self.loading = True
        self.error = None
        self._notify()

        try:
            row = await self._backend.select_one(Query("products", PRODUCT_COLUMNS).eq("slug", slug))
            product = Product.from_row(row) if row else None
        except BackendError as e:
            self.loading = False
            self.error = e.message
            self._notify()
            return None
        except (KeyError, ValidationError) as e:
            logger.warning("Product %s has a malformed row: %s", slug, e)
            product = None

        self.loading = False
        if product is None:
            self._notify()
            return None

        if any(existing.id == product.id for existing in self.products):
            updated = tuple(product if existing.id == product.id else existing for existing in self.products)
        else:
            updated = (*self.products, product)
        self._replace_products(updated)
        self._notify()
        return product
