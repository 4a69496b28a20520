"""Session/account sync: profile, order history and realtime order updates."""
import logging
from decimal import Decimal
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from .backend import Backend, BackendError, ChangeEvent, Query, Subscription
from .models import OrderSummary, PendingRef, Profile
from .session import AuthSession

logger = logging.getLogger(__name__)

ORDER_COLUMNS = "id, status, total, currency, created_at"


def profile_from_session(session: AuthSession) -> Profile:
    metadata = session.user.user_metadata or {}
    return Profile(
        id=session.user.id,
        email=session.user.email,
        full_name=metadata.get("full_name"),
        avatar_url=metadata.get("avatar_url"),
    )


class AccountState:
    """
    Mirrors the external auth session and the signed-in user's orders.

    While a user is signed in, an `orders` change subscription is held and
    released when the session ends or `close()` is called.
    """

    def __init__(
        self,
        backend: Backend | None,
        notify: Callable[[], None],
        profile: Profile | None = None,
        orders: Iterable[OrderSummary] = (),
    ):
        self._backend = backend
        self._notify = notify
        self.profile = profile
        self.orders: tuple[OrderSummary, ...] = tuple(orders)
        self.loading = False
        self.error: str | None = None
        self._user_id: str | None = profile.id if profile else None
        self._auth_subscription: Subscription | None = None
        self._orders_subscription: Subscription | None = None
        self._orders_generation = 0

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def subscribed(self) -> bool:
        return self._orders_subscription is not None and self._orders_subscription.active

    # --- session lifecycle ------------------------------------------------

    async def mount(self) -> None:
        """Resolve the current session and follow auth state changes."""
        if self._backend is None:
            return

        self.loading = True
        self._notify()
        try:
            session = await self._backend.get_session()
        except BackendError as e:
            self.loading = False
            self.error = e.message
            logger.warning("Session lookup failed: %s", e.message)
            self._notify()
        else:
            self.loading = False
            self.error = None
            self._apply_session(session)

        if self._auth_subscription is None:
            self._auth_subscription = self._backend.on_auth_state_change(self._handle_auth_change)

    def _handle_auth_change(self, event: str, session: Optional[AuthSession]) -> None:
        self._apply_session(session)

    def _apply_session(self, session: Optional[AuthSession]) -> None:
        if session is not None and session.user is not None:
            user_id = session.user.id
            if user_id != self._user_id:
                self._release_orders_feed()
                self.orders = ()
            self._user_id = user_id
            self.profile = profile_from_session(session)
            self._acquire_orders_feed()
        else:
            self._clear_identity()
        self._notify()

    def _clear_identity(self) -> None:
        self._release_orders_feed()
        self._user_id = None
        self.profile = None
        self.orders = ()
        self._orders_generation += 1

    def _acquire_orders_feed(self) -> None:
        if self._backend is None or self.subscribed:
            return
        self._orders_subscription = self._backend.subscribe("orders", self._handle_order_change)
        logger.info("Subscribed to order updates for %s", self._user_id)

    def _release_orders_feed(self) -> None:
        if self._orders_subscription is not None:
            self._orders_subscription.unsubscribe()
            self._orders_subscription = None
            logger.info("Unsubscribed from order updates")

    def close(self) -> None:
        """Release the auth listener and the orders subscription."""
        self._release_orders_feed()
        if self._auth_subscription is not None:
            self._auth_subscription.unsubscribe()
            self._auth_subscription = None

    # --- orders -----------------------------------------------------------

    async def refresh_orders(self) -> None:
        """Load the signed-in user's orders, newest first."""
        if self._backend is None or not self._user_id:
            return

        user_id = self._user_id
        self._orders_generation += 1
        generation = self._orders_generation
        self.loading = True
        self.error = None
        self._notify()

        query = Query("orders", ORDER_COLUMNS).eq("user_id", user_id).order("created_at", ascending=False)
        try:
            rows = await self._backend.select(query)
        except BackendError as e:
            if generation == self._orders_generation:
                self.loading = False
                self.error = e.message
                self._notify()
            logger.warning("Order refresh failed: %s", e.message)
            return

        if generation != self._orders_generation or user_id != self._user_id:
            logger.debug("Discarding stale order list for %s", user_id)
            return

        orders = []
        for row in rows:
            try:
                orders.append(OrderSummary.from_row(row))
            except (KeyError, ValidationError) as e:
                logger.warning("Skipping malformed order row %r: %s", row.get("id"), e)
        self.orders = tuple(orders)
        self.loading = False
        self._notify()

    def _handle_order_change(self, event: ChangeEvent) -> None:
        """Patch status/total of a known order; unknown ids are ignored."""
        order_id = event.new.get("id")
        if order_id is None:
            return
        order_id = str(order_id)
        if not any(order.id == order_id for order in self.orders):
            logger.debug("Ignoring change for unknown order %s", order_id)
            return

        def patch(order: OrderSummary) -> OrderSummary:
            if order.id != order_id:
                return order
            status = event.new.get("status")
            total = event.new.get("total")
            return order.model_copy(update={
                "status": status if status is not None else order.status,
                "total": Decimal(str(total)) if total is not None else order.total,
            })

        self.orders = tuple(patch(order) for order in self.orders)
        self._notify()

    def insert_pending_order(self, order: OrderSummary) -> None:
        self.orders = (order, *self.orders)
        self._notify()

    def discard_pending_order(self, ref: PendingRef) -> None:
        self.orders = tuple(order for order in self.orders if order.pending_ref != ref)
        self._notify()

    def reconcile_pending_order(self, ref: PendingRef, persisted: OrderSummary, owner_id: str | None) -> None:
        """Swap an optimistic order for the persisted one, if its owner is still signed in."""
        remaining = tuple(order for order in self.orders if order.pending_ref != ref)
        if owner_id == self._user_id:
            self.orders = (persisted, *remaining)
        else:
            logger.debug("Order %s belongs to a previous session, not listing it", persisted.id)
            self.orders = remaining
        self._notify()

    # --- auth calls -------------------------------------------------------

    async def sign_in_with_otp(self, email: str, redirect_to: str | None = None) -> None:
        """Request a passwordless sign-in email."""
        if self._backend is None:
            return
        if not email or not email.strip():
            self.error = "Email is required"
            self._notify()
            return

        self.loading = True
        self.error = None
        self._notify()
        try:
            await self._backend.sign_in_with_otp(email.strip(), redirect_to=redirect_to)
        except BackendError as e:
            self.error = e.message
        self.loading = False
        self._notify()

    async def verify_otp(self, email: str, token: str) -> bool:
        """Exchange the emailed code for a session. The auth listener applies the profile."""
        if self._backend is None:
            return False
        if not email.strip() or not token.strip():
            self.error = "Email and code are required"
            self._notify()
            return False

        self.loading = True
        self.error = None
        self._notify()
        try:
            session = await self._backend.verify_otp(email.strip(), token.strip())
        except BackendError as e:
            self.loading = False
            self.error = e.message
            self._notify()
            return False
        self.loading = False
        self._apply_session(session)
        return True

    async def sign_out(self) -> None:
        if self._backend is None:
            return
        self.loading = True
        self.error = None
        self._notify()
        try:
            await self._backend.sign_out()
        except BackendError as e:
            self.loading = False
            self.error = e.message
            self._notify()
            return
        self.loading = False
        self.error = None
        self._clear_identity()
        self._notify()
