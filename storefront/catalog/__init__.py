"""Catalog: filter/sort engine and the catalog state slice."""
from .filters import (
    apply_catalog_filters,
    catalog_categories,
    featured_products,
    matches_filters,
    price_bounds,
    sort_products,
)
from .state import PRODUCT_COLUMNS, CatalogState

__all__ = [
    "apply_catalog_filters",
    "catalog_categories",
    "featured_products",
    "matches_filters",
    "price_bounds",
    "sort_products",
    "PRODUCT_COLUMNS",
    "CatalogState",
]
