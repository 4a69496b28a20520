"""Catalog filter/sort engine. Pure functions over product lists."""
import logging
from decimal import Decimal
from typing import Iterable, Sequence

from ..models import CatalogFilters, Product

logger = logging.getLogger(__name__)

# Malformed filter values surface as one of these while matching
_MALFORMED = (AttributeError, TypeError, ValueError, ArithmeticError)


def _matches_search(product: Product, term: str) -> bool:
    if not term:
        return True
    needle = term.lower()
    return needle in product.name.lower() or needle in (product.description or "").lower()


def _matches_tags(product: Product, tags: Iterable[str]) -> bool:
    wanted = set(tags)
    if not wanted:
        return True
    return any(tag in wanted for tag in product.tags)


def matches_filters(product: Product, filters: CatalogFilters) -> bool:
    """True when the product passes every criterion. Never raises."""
    try:
        low, high = filters.price_range
        price = product.price if product.price is not None else Decimal("0")
        return (
            (filters.category == "all" or product.category == filters.category)
            and _matches_search(product, filters.search_term)
            and _matches_tags(product, filters.tags)
            and low <= price <= high
        )
    except _MALFORMED as e:
        logger.debug("Treating %s as non-matching: %s", product.id, e)
        return False


def _timestamp(product: Product) -> float:
    return product.created_at.timestamp() if product.created_at else 0.0


def sort_products(products: Sequence[Product], sort: str) -> list[Product]:
    """Return a new list ordered by `sort`; unknown modes fall back to featured."""
    if sort == "price-asc":
        return sorted(products, key=lambda p: p.price or Decimal("0"))
    if sort == "price-desc":
        return sorted(products, key=lambda p: p.price or Decimal("0"), reverse=True)
    if sort == "newest":
        return sorted(products, key=_timestamp, reverse=True)
    return sorted(products, key=lambda p: (not p.is_featured, -(p.rating or 0)))


def apply_catalog_filters(products: Sequence[Product], filters: CatalogFilters) -> list[Product]:
    """Filter then sort. The input sequence is never modified."""
    return sort_products([p for p in products if matches_filters(p, filters)], filters.sort)


def featured_products(products: Iterable[Product]) -> list[Product]:
    return [p for p in products if p.is_featured]


def catalog_categories(products: Iterable[Product]) -> list[str]:
    """'all' followed by the sorted unique product categories."""
    return ["all", *sorted({p.category for p in products if p.category})]


def price_bounds(products: Sequence[Product]) -> tuple[Decimal, Decimal] | None:
    if not products:
        return None
    prices = [p.price or Decimal("0") for p in products]
    return min(prices), max(prices)
