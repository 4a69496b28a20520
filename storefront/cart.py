"""Cart aggregator: line items plus derived count and subtotal."""
import logging
from decimal import Decimal
from typing import Callable, Iterable, Optional

from .memo import Memo
from .models import CartItem, Product, cart_item_key

logger = logging.getLogger(__name__)


def _count(items: tuple[CartItem, ...]) -> int:
    return sum(item.quantity for item in items)


def _subtotal(items: tuple[CartItem, ...]) -> Decimal:
    return sum((item.unit_price * item.quantity for item in items), Decimal("0"))


class CartState:
    """
    Client-held cart.

    Every mutation builds a new `items` tuple from the current one, and
    `count`/`subtotal` are always derived from that tuple.
    """

    def __init__(self, notify: Callable[[], None], items: Iterable[CartItem] = ()):
        self._notify = notify
        self.items: tuple[CartItem, ...] = tuple(items)
        self.is_open = False
        self._count = Memo(_count)
        self._subtotal = Memo(_subtotal)

    @property
    def count(self) -> int:
        return self._count.get(self.items)

    @property
    def subtotal(self) -> Decimal:
        return self._subtotal.get(self.items)

    def get(self, item_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def add_item(self, product: Product, quantity: int = 1, variant_id: str | None = None) -> CartItem:
        """Add `quantity` of a product (or one of its variants) and open the cart."""
        if quantity <= 0:
            raise ValueError("quantity must be a positive integer")

        unit_price = product.price
        if variant_id:
            variant = product.find_variant(variant_id)
            if variant is not None and variant.price is not None:
                unit_price = variant.price
        key = cart_item_key(product.id, variant_id)

        existing = self.get(key)
        if existing:
            added = existing.model_copy(update={"quantity": existing.quantity + quantity})
            self.items = tuple(added if item.id == key else item for item in self.items)
        else:
            added = CartItem(
                id=key,
                product_id=product.id,
                variant_id=variant_id,
                quantity=quantity,
                unit_price=unit_price,
                product=product,
            )
            self.items = (*self.items, added)

        self.is_open = True
        logger.debug("Cart add %s x%d -> %d", key, quantity, added.quantity)
        self._notify()
        return added

    def update_item_quantity(self, item_id: str, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        self.items = tuple(
            item.model_copy(update={"quantity": quantity}) if item.id == item_id else item
            for item in self.items
            if item.id != item_id or quantity > 0
        )
        self._notify()

    def remove_item(self, item_id: str) -> None:
        self.items = tuple(item for item in self.items if item.id != item_id)
        self._notify()

    def clear(self) -> None:
        self.items = ()
        self._notify()

    def open(self) -> None:
        self.is_open = True
        self._notify()

    def close(self) -> None:
        self.is_open = False
        self._notify()

    def toggle(self) -> None:
        self.is_open = not self.is_open
        self._notify()
