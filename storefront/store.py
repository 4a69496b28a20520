"""Store facade: composes catalog, cart, checkout and account into one read model."""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .account import AccountState
from .backend import Backend, RestBackend
from .cart import CartState
from .catalog import CatalogState, apply_catalog_filters, catalog_categories, featured_products
from .checkout import CheckoutState
from .config import DISABLED_MESSAGE, BackendConfig
from .memo import Memo
from .models import CartItem, OrderSummary, Product, Profile

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


@dataclass
class InitialState:
    """Seed values, e.g. for tests or server-side prefetch."""
    products: list[Product] = field(default_factory=list)
    cart_items: list[CartItem] = field(default_factory=list)
    profile: Profile | None = None
    orders: list[OrderSummary] = field(default_factory=list)


class Store:
    """
    The single owner of storefront state.

    Construct one per application root and drive its lifecycle with
    `start()`/`aclose()` or `async with`. All mutation goes through the
    slice methods (`store.cart.add_item(...)` and so on).
    """

    def __init__(
        self,
        backend: Backend | None = None,
        initial_state: InitialState | None = None,
        disable_initial_fetch: bool = False,
    ):
        initial = initial_state or InitialState()
        self.backend = backend
        self._owns_backend = False
        self._disable_initial_fetch = disable_initial_fetch
        self._listeners: list[Listener] = []
        self._started = False

        self.catalog = CatalogState(backend, self._notify, products=initial.products)
        self.cart = CartState(self._notify, items=initial.cart_items)
        self.account = AccountState(backend, self._notify, profile=initial.profile, orders=initial.orders)
        self.checkout = CheckoutState(backend, self.cart, self.account, self._notify)

        self._filtered = Memo(apply_catalog_filters)
        self._featured = Memo(featured_products)
        self._categories = Memo(catalog_categories)

    @classmethod
    def from_config(cls, config: BackendConfig | None, **kwargs: Any) -> "Store":
        """Build a store over the REST backend, or a disabled store when config is None."""
        if config is None:
            return cls(None, **kwargs)
        store = cls(RestBackend(config), **kwargs)
        store._owns_backend = True
        return store

    # --- lifecycle --------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        if self.backend is None:
            logger.warning(DISABLED_MESSAGE)
            return
        await self.account.mount()
        if not self._disable_initial_fetch:
            await self.catalog.refresh()

    async def aclose(self) -> None:
        self.account.close()
        self._listeners.clear()
        if self._owns_backend and self.backend is not None:
            await self.backend.aclose()
        self._started = False

    async def __aenter__(self) -> "Store":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # --- change notification ----------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` after every state change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Store listener failed")

    # --- derived read model -----------------------------------------------

    @property
    def configured(self) -> bool:
        return self.backend is not None

    @property
    def status_message(self) -> str | None:
        return None if self.configured else DISABLED_MESSAGE

    @property
    def filtered_products(self) -> list[Product]:
        return self._filtered.get(self.catalog.products, self.catalog.filters)

    @property
    def featured_products(self) -> list[Product]:
        return self._featured.get(self.catalog.products)

    @property
    def categories(self) -> list[str]:
        return self._categories.get(self.catalog.products)

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view of every slice. Card fields are not included."""
        checkout = self.checkout
        return {
            "status_message": self.status_message,
            "catalog": {
                "products": len(self.catalog.products),
                "filtered": [p.slug for p in self.filtered_products],
                "featured": [p.slug for p in self.featured_products],
                "categories": self.categories,
                "filters": self.catalog.filters.model_dump(mode="json"),
                "loading": self.catalog.loading,
                "error": self.catalog.error,
            },
            "cart": {
                "items": [cart_item_view(item) for item in self.cart.items],
                "count": self.cart.count,
                "subtotal": str(self.cart.subtotal),
                "is_open": self.cart.is_open,
            },
            "checkout": {
                "step": checkout.step,
                "status": checkout.status,
                "error": checkout.error,
                "shipping": checkout.shipping.model_dump(),
                "payment_method": checkout.payment.method,
                "last_order": order_view(checkout.last_order) if checkout.last_order else None,
            },
            "account": {
                "profile": self.account.profile.model_dump() if self.account.profile else None,
                "loading": self.account.loading,
                "error": self.account.error,
                "orders": [order_view(order) for order in self.account.orders],
            },
        }


def product_view(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "slug": product.slug,
        "name": product.name,
        "price": str(product.price),
        "currency": product.currency,
        "category": product.category,
        "tags": product.tags,
        "rating": product.rating,
        "featured": product.is_featured,
        "inventory_status": product.inventory_status,
        "variants": [
            {"id": v.id, "name": v.name, "price": str(v.price) if v.price is not None else None, "stock": v.stock}
            for v in product.variants
        ],
    }


def cart_item_view(item: CartItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "name": item.product.name,
        "variant_id": item.variant_id,
        "quantity": item.quantity,
        "unit_price": str(item.unit_price),
        "line_total": str(item.line_total),
    }


def order_view(order: OrderSummary) -> dict[str, Any]:
    return {
        "id": order.id,
        "pending": order.is_pending,
        "status": order.status,
        "total": str(order.total),
        "currency": order.currency,
        "created_at": order.created_at.isoformat(),
        "items": len(order.items),
    }
