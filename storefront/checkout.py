"""Checkout state machine: shipping -> payment -> review -> confirmation."""
import logging
from typing import Any, Callable

from pydantic import ValidationError

from .account import ORDER_COLUMNS, AccountState
from .backend import Backend, BackendError
from .cart import CartState
from .models import (
    CHECKOUT_STEPS,
    DEFAULT_CURRENCY,
    DEFAULT_ORDER_STATUS,
    CartItem,
    OrderSummary,
    PaymentDetails,
    PendingRef,
    ShippingDetails,
)

logger = logging.getLogger(__name__)

INITIAL_STEP = "shipping"


def build_order_payload(
    items: tuple[CartItem, ...],
    total: Any,
    user_id: str | None,
    shipping: ShippingDetails,
    payment: PaymentDetails,
) -> dict[str, Any]:
    """The orders insert body. Only the payment method is sent, never card fields."""
    return {
        "user_id": user_id,
        "total": total,
        "currency": DEFAULT_CURRENCY,
        "status": DEFAULT_ORDER_STATUS,
        "items": [
            {
                "product_id": item.product_id,
                "variant_id": item.variant_id,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in items
        ],
        "shipping_details": shipping.model_dump(),
        "payment_method": payment.method,
    }


class CheckoutState:
    """
    Drives the checkout steps and order submission.

    Step changes are not gated: the caller validates a step's form before
    moving forward, and backward navigation is always allowed.
    """

    def __init__(
        self,
        backend: Backend | None,
        cart: CartState,
        account: AccountState,
        notify: Callable[[], None],
    ):
        self._backend = backend
        self._cart = cart
        self._account = account
        self._notify = notify
        self.step = INITIAL_STEP
        self.shipping = ShippingDetails()
        self.payment = PaymentDetails()
        self.status = "idle"
        self.error: str | None = None
        self.last_order: OrderSummary | None = None

    def go_to_step(self, step: str) -> None:
        if step not in CHECKOUT_STEPS:
            raise ValueError(f"Unknown checkout step: {step}")
        self.step = step
        self._notify()

    def update_shipping(self, **fields: Any) -> None:
        self.shipping = _merge(self.shipping, fields)
        self._notify()

    def update_payment(self, **fields: Any) -> None:
        self.payment = _merge(self.payment, fields)
        self._notify()

    def reset(self) -> None:
        self.step = INITIAL_STEP
        self.shipping = ShippingDetails()
        self.payment = PaymentDetails()
        self.status = "idle"
        self.error = None
        self._notify()

    async def place_order(self) -> OrderSummary | None:
        """
        Submit the cart as an order with optimistic insert and rollback.

        Returns the persisted order, or None when nothing was submitted or
        the submission failed (see `status`/`error`).
        """
        if self._backend is None or not self._cart.items:
            logger.debug("place_order skipped: backend or cart missing")
            return None
        if self.status == "submitting":
            logger.debug("place_order skipped: submission already in flight")
            return None

        items = self._cart.items
        total = self._cart.subtotal
        owner_id = self._account.user_id
        ref = PendingRef()
        optimistic = OrderSummary(
            pending_ref=ref,
            status=DEFAULT_ORDER_STATUS,
            total=total,
            currency=DEFAULT_CURRENCY,
            items=items,
        )

        self.status = "submitting"
        self.error = None
        self.last_order = optimistic
        self._notify()
        self._account.insert_pending_order(optimistic)

        payload = build_order_payload(items, total, owner_id, self.shipping, self.payment)
        try:
            row = await self._backend.insert("orders", payload, returning=ORDER_COLUMNS)
            persisted = OrderSummary.from_row(row, items=items, default_total=total)
        except (BackendError, KeyError, ValidationError) as e:
            if isinstance(e, BackendError):
                message = e.message
            elif isinstance(e, KeyError):
                message = "Order response is missing an id"
            else:
                message = "Order response was malformed"
            self.status = "error"
            self.error = message
            self._account.discard_pending_order(ref)
            logger.warning("Order submission failed: %s", message)
            return None

        self.status = "success"
        self.last_order = persisted
        self.step = "confirmation"
        self._account.reconcile_pending_order(ref, persisted, owner_id)
        self._cart.clear()
        logger.info("Order %s placed (%s %s)", persisted.id, persisted.total, persisted.currency)
        return persisted


def _merge(model, fields: dict[str, Any]):
    unknown = set(fields) - set(type(model).model_fields)
    if unknown:
        raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    return model.model_copy(update=fields)
