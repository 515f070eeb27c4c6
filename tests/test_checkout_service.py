"""Checkout Coordinator: cart -> frozen order, all or nothing."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from shopcart.data.models.cart import CartModel
from shopcart.domain.errors import (
    ConflictingCheckout,
    EmptyCart,
    ItemUnavailable,
    NoActiveCart,
    OutOfStock,
    StorageFailure,
    Unauthenticated,
)
from shopcart.domain.schemas import CartStatus, CheckoutIn, OrderStatus, PaymentMethod, ShippingAddress
from shopcart.services.cart_service import CartService
from shopcart.services.checkout_service import CheckoutService
from shopcart.services.order_service import OrderService

from tests.conftest import BusyLockService, RecordingEvents

D = Decimal
USER = 1


class TestValidation:
    def test_without_cart(self, checkout, orders_of):
        with pytest.raises(NoActiveCart):
            checkout.checkout(USER)
        assert orders_of(USER) == 0

    def test_empty_cart(self, carts, checkout, orders_of, events):
        carts.get_open_cart(USER)

        with pytest.raises(EmptyCart):
            checkout.checkout(USER)

        assert orders_of(USER) == 0
        assert events.placed == []
        assert carts.get_open_cart(USER).status == CartStatus.OPEN

    def test_requires_identity(self, checkout):
        with pytest.raises(Unauthenticated):
            checkout.checkout(None)

    def test_removed_item_fails_whole_checkout(self, carts, checkout, catalog, orders_of):
        carts.add_item(USER, 42, 1)
        carts.add_item(USER, 7, 1)
        catalog.remove(7)

        with pytest.raises(ItemUnavailable) as exc:
            checkout.checkout(USER)

        assert exc.value.item_id == 7
        assert orders_of(USER) == 0
        cart = carts.get_open_cart(USER)
        assert cart.status == CartStatus.OPEN
        assert len(cart.items) == 2

    def test_stock_revalidated_at_checkout(self, carts, checkout, catalog, orders_of):
        carts.add_item(USER, 7, 3)
        catalog.set_available(7, 1)

        with pytest.raises(OutOfStock):
            checkout.checkout(USER)

        assert orders_of(USER) == 0


class TestCheckout:
    def test_converts_cart_into_order(self, db, carts, checkout, events):
        cart = carts.add_item(USER, 42, 2)
        carts.add_item(USER, 7, 1)

        order = checkout.checkout(USER)

        assert order.id is not None
        assert order.user_id == USER
        assert order.cart_id == cart.cart_id
        assert order.status == OrderStatus.PENDING
        assert [(i.item_id, i.name, i.unit_price, i.quantity) for i in order.items] == [
            (42, "Towel", D("10.00"), 2),
            (7, "Mug", D("25.50"), 1),
        ]
        assert order.subtotal == D("45.50")
        assert order.tax == D("4.55")
        assert order.shipping == D("10.00")
        assert order.total == D("60.05")
        assert events.placed == [order]

        closed = db.get(CartModel, cart.cart_id)
        db.refresh(closed)
        assert closed.status == CartStatus.CHECKED_OUT.value
        assert closed.closed_at is not None

    def test_records_shipping_address_and_payment_method(self, db, carts, checkout):
        carts.add_item(USER, 42, 1)
        address = ShippingAddress(address="Dluga 5", city="Gdansk", postal_code="80-831", country="PL")

        order = checkout.checkout(
            USER, CheckoutIn(shipping_address=address, payment_method=PaymentMethod.STRIPE)
        )

        assert order.shipping_address == address
        assert order.payment_method == PaymentMethod.STRIPE
        assert OrderService(db).get_order(USER, order.id) == order

    def test_checkout_details_are_optional(self, carts, checkout):
        carts.add_item(USER, 42, 1)
        order = checkout.checkout(USER)
        assert order.shipping_address is None
        assert order.payment_method is None

    def test_next_add_starts_a_new_cart(self, db, carts, checkout, open_carts):
        first = carts.add_item(USER, 42, 2)
        checkout.checkout(USER)
        assert open_carts(USER) == 0

        second = carts.add_item(USER, 42, 1)

        assert second.cart_id != first.cart_id
        assert second.items[0].quantity == 1
        assert open_carts(USER) == 1
        old = db.get(CartModel, first.cart_id)
        db.refresh(old)
        assert [i.quantity for i in old.items] == [2]

    def test_second_checkout_sees_no_active_cart(self, carts, checkout, orders_of):
        carts.add_item(USER, 42, 1)
        checkout.checkout(USER)

        with pytest.raises(NoActiveCart):
            checkout.checkout(USER)
        assert orders_of(USER) == 1

    def test_uses_current_catalog_price_not_snapshot(self, carts, checkout, catalog):
        carts.add_item(USER, 42, 2)
        catalog.set_price(42, "12.00")

        order = checkout.checkout(USER)

        assert order.items[0].unit_price == D("12.00")
        assert order.subtotal == D("24.00")
        assert order.tax == D("2.40")
        assert order.total == D("36.40")

    def test_order_is_frozen_against_later_price_changes(self, db, carts, checkout, catalog):
        carts.add_item(USER, 42, 2)
        carts.add_item(USER, 99, 1)
        placed = checkout.checkout(USER)

        catalog.set_price(42, "99.00")
        catalog.remove(99)

        assert OrderService(db).get_order(USER, placed.id) == placed

    def test_completed_as_initial_status(self, db, catalog, carts):
        svc = CheckoutService(
            db, catalog, cart_service=carts, events=RecordingEvents(), initial_status="completed"
        )
        carts.add_item(USER, 42, 1)
        assert svc.checkout(USER).status == OrderStatus.COMPLETED


class TestFailures:
    def test_lost_race_is_reported_and_creates_nothing(
        self, session_factory, catalog, carts, checkout, orders_of, monkeypatch
    ):
        carts.add_item(USER, 42, 1)
        original = checkout.carts.find_open_cart

        def racing_find(user_id):
            snapshot = original(user_id)
            # inne zapytanie konczy checkout miedzy odczytem a zapisem
            with session_factory() as other:
                CheckoutService(other, catalog, events=RecordingEvents()).checkout(user_id)
            return snapshot

        monkeypatch.setattr(checkout.carts, "find_open_cart", racing_find)

        with pytest.raises(ConflictingCheckout):
            checkout.checkout(USER)
        assert orders_of(USER) == 1

    def test_cart_changed_during_checkout(self, session_factory, catalog, carts, checkout, orders_of, monkeypatch):
        carts.add_item(USER, 42, 1)
        original = checkout.carts.find_open_cart

        def find_then_add(user_id):
            snapshot = original(user_id)
            with session_factory() as other:
                CartService(other, catalog).add_item(user_id, 7, 1)
            return snapshot

        monkeypatch.setattr(checkout.carts, "find_open_cart", find_then_add)

        with pytest.raises(ConflictingCheckout):
            checkout.checkout(USER)
        assert orders_of(USER) == 0

    def test_busy_lock_is_a_conflicting_checkout(self, db, catalog, carts, orders_of):
        carts.add_item(USER, 42, 1)
        locks = BusyLockService()
        svc = CheckoutService(db, catalog, events=RecordingEvents(), lock_service=locks)

        with pytest.raises(ConflictingCheckout) as exc:
            svc.checkout(USER)

        assert exc.value.kind == "ConflictingCheckout"
        assert locks.attempts == 1
        assert orders_of(USER) == 0

    def test_commit_failure_leaves_cart_open(self, db, carts, checkout, orders_of, events, monkeypatch):
        carts.add_item(USER, 42, 1)

        def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db, "commit", broken_commit)
        with pytest.raises(StorageFailure):
            checkout.checkout(USER)
        monkeypatch.undo()

        assert orders_of(USER) == 0
        assert events.placed == []
        cart = carts.get_open_cart(USER)
        assert cart.status == CartStatus.OPEN
        assert cart.items[0].quantity == 1

    def test_event_failure_does_not_undo_checkout(self, db, catalog, carts, orders_of):
        class BrokenEvents:
            def order_placed(self, order):
                raise ConnectionError("broker down")

        svc = CheckoutService(db, catalog, cart_service=carts, events=BrokenEvents())
        carts.add_item(USER, 42, 1)

        order = svc.checkout(USER)

        assert order.id is not None
        assert orders_of(USER) == 1
