"""Tests for the checkout state machine and optimistic order placement."""
import asyncio
from decimal import Decimal

import pytest

from storefront.backend import BackendError
from storefront.checkout import build_order_payload
from storefront.models import CartItem, PaymentDetails, Product, ShippingDetails
from storefront.store import InitialState, Store

ORDER_ROW = {
    "id": "ord_1",
    "status": "processing",
    "total": "60.00",
    "currency": "USD",
    "created_at": "2026-10-19T12:00:00+00:00",
}


@pytest.fixture
def widget():
    return Product(id="w1", name="Widget", slug="widget", price=Decimal("20"))


@pytest.fixture
def cart_item(widget):
    return CartItem(id="w1", product_id="w1", quantity=3, unit_price=Decimal("20"), product=widget)


@pytest.fixture
def store(backend, cart_item):
    return Store(backend, initial_state=InitialState(cart_items=[cart_item]), disable_initial_fetch=True)


class TestSteps:
    def test_starts_at_shipping(self, store):
        assert store.checkout.step == "shipping"
        assert store.checkout.status == "idle"

    def test_go_to_step_moves_freely(self, store):
        store.checkout.go_to_step("review")
        store.checkout.go_to_step("cart")
        assert store.checkout.step == "cart"

    def test_unknown_step_rejected(self, store):
        with pytest.raises(ValueError):
            store.checkout.go_to_step("teleport")
        assert store.checkout.step == "shipping"

    def test_update_shipping_merges(self, store):
        store.checkout.update_shipping(name="Jane Doe", city="Austin")
        store.checkout.update_shipping(city="Portland")
        assert store.checkout.shipping.name == "Jane Doe"
        assert store.checkout.shipping.city == "Portland"

    def test_update_unknown_field_rejected(self, store):
        with pytest.raises(ValueError):
            store.checkout.update_shipping(planet="Mars")

    def test_update_payment_merges(self, store):
        store.checkout.update_payment(method="paypal")
        store.checkout.update_payment(cardholder="Jane Doe")
        assert store.checkout.payment.method == "paypal"
        assert store.checkout.payment.cardholder == "Jane Doe"

    def test_reset(self, store):
        store.checkout.update_shipping(name="Jane Doe")
        store.checkout.go_to_step("review")
        store.checkout.reset()
        assert store.checkout.step == "shipping"
        assert store.checkout.shipping == ShippingDetails()


class TestPayload:
    def test_card_fields_are_never_sent(self, cart_item):
        payment = PaymentDetails(cardholder="Jane", card_number="4111111111111234", expiry="12/29", cvc="123")
        payload = build_order_payload((cart_item,), Decimal("60"), "user_1", ShippingDetails(city="Austin"), payment)
        assert payload["payment_method"] == "card"
        assert "4111111111111234" not in str(payload)
        assert "cvc" not in str(payload)
        assert payload["items"] == [
            {"product_id": "w1", "variant_id": None, "quantity": 3, "unit_price": Decimal("20")},
        ]
        assert payload["shipping_details"]["city"] == "Austin"
        assert payload["status"] == "processing"


class TestPlaceOrder:
    @pytest.mark.asyncio
    async def test_success_reconciles_order(self, store, backend):
        backend.insert_results["orders"] = ORDER_ROW

        order = await store.checkout.place_order()

        assert order.id == "ord_1"
        assert store.checkout.step == "confirmation"
        assert store.checkout.status == "success"
        assert store.cart.items == ()
        assert [o.id for o in store.account.orders] == ["ord_1"]
        assert not any(o.is_pending for o in store.account.orders)
        assert store.checkout.last_order.id == "ord_1"

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, store, backend, cart_item):
        backend.errors["insert"] = BackendError("insufficient stock")

        order = await store.checkout.place_order()

        assert order is None
        assert store.checkout.status == "error"
        assert store.checkout.error == "insufficient stock"
        assert store.cart.items == (cart_item,)
        assert store.account.orders == ()
        assert store.checkout.step == "shipping"

    @pytest.mark.asyncio
    async def test_sends_cart_subtotal(self, store, backend):
        backend.insert_results["orders"] = ORDER_ROW
        await store.checkout.place_order()
        _, table, payload = backend.calls_for("insert")[0]
        assert table == "orders"
        assert payload["total"] == Decimal("60")
        assert payload["user_id"] is None

    @pytest.mark.asyncio
    async def test_empty_cart_issues_no_request(self, backend):
        store = Store(backend, disable_initial_fetch=True)
        assert await store.checkout.place_order() is None
        assert backend.calls_for("insert") == []
        assert store.checkout.status == "idle"

    @pytest.mark.asyncio
    async def test_disabled_store_is_a_no_op(self, cart_item):
        store = Store(None, initial_state=InitialState(cart_items=[cart_item]))
        assert await store.checkout.place_order() is None
        assert store.checkout.status == "idle"

    @pytest.mark.asyncio
    async def test_pending_order_visible_while_in_flight(self, store, backend):
        backend.insert_results["orders"] = ORDER_ROW
        backend.gate = asyncio.Event()

        task = asyncio.create_task(store.checkout.place_order())
        await asyncio.sleep(0)

        assert store.checkout.status == "submitting"
        pending = store.account.orders[0]
        assert pending.is_pending
        assert pending.id is None
        assert pending.total == Decimal("60")

        # a second submission while one is in flight does nothing
        assert await store.checkout.place_order() is None
        assert len(backend.calls_for("insert")) == 1

        backend.gate.set()
        await task
        assert [o.id for o in store.account.orders] == ["ord_1"]

    @pytest.mark.asyncio
    async def test_order_not_listed_after_user_switch(self, backend, cart_item, make_session):
        backend.session = make_session("user_1")
        store = Store(backend, initial_state=InitialState(cart_items=[cart_item]), disable_initial_fetch=True)
        await store.start()
        backend.insert_results["orders"] = ORDER_ROW
        backend.gate = asyncio.Event()

        task = asyncio.create_task(store.checkout.place_order())
        await asyncio.sleep(0)
        backend._emit_auth_change("SIGNED_IN", make_session("user_2", email="other@example.com"))
        backend.gate.set()
        order = await task

        assert order.id == "ord_1"
        assert store.account.user_id == "user_2"
        assert store.account.orders == ()
        await store.aclose()

    @pytest.mark.asyncio
    async def test_missing_id_in_response_is_an_error(self, store, backend):
        backend.insert_results["orders"] = {"status": "processing"}
        assert await store.checkout.place_order() is None
        assert store.checkout.status == "error"
        assert store.account.orders == ()

    @pytest.mark.asyncio
    async def test_malformed_row_rolls_back_and_allows_retry(self, store, backend):
        backend.insert_results["orders"] = {"id": "ord_1", "created_at": "not-a-date"}
        assert await store.checkout.place_order() is None
        assert store.checkout.status == "error"
        assert store.checkout.error == "Order response was malformed"
        assert store.account.orders == ()

        backend.insert_results["orders"] = ORDER_ROW
        order = await store.checkout.place_order()
        assert order.id == "ord_1"
        assert len(backend.calls_for("insert")) == 2
