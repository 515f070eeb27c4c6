# shopcart/services/checkout_service.py
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from shopcart.data.models.cart_item import CartItemModel
from shopcart.data.models.order import OrderModel
from shopcart.data.models.order_item import OrderItemModel
from shopcart.domain.errors import (
    CartConflict,
    CatalogItemNotFound,
    ConflictingCheckout,
    EmptyCart,
    ItemUnavailable,
    OutOfStock,
)
from shopcart.domain.pricing import DEFAULT_POLICY, PricingPolicy
from shopcart.domain.schemas import CheckoutIn, OrderOut, OrderStatus
from shopcart.repos.order_repo import OrderRepo
from shopcart.services.cart_service import CartService, require_user
from shopcart.services.catalog_client import CatalogReader
from shopcart.services.lock_service import LockService
from shopcart.services.order_events import OrderEvents
from shopcart.services.order_service import order_view
from shopcart.utils.logging import get_logger
from shopcart.utils.settings import ENFORCE_STOCK, ORDER_INITIAL_STATUS

logger = get_logger(__name__)


class CheckoutService:
    """
    Zamiana otwartego koszyka na niezmienne zamowienie.

    1. Pobiera otwarty koszyk z pozycjami (NoActiveCart)
    2. Odrzuca pusty koszyk (EmptyCart)
    3. Ceny i dostepnosc bierze z katalogu, nie ze snapshotu (ItemUnavailable, OutOfStock)
    4. Liczy sumy z aktualnych cen
    5. W jednej transakcji zamyka koszyk (CAS na wersji) i zapisuje zamowienie
    6. Po commicie publikuje OrderPlaced

    Kroki 1-4 tylko czytaja. Krok 5 nie jest ponawiany automatycznie.
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogReader,
        cart_service: CartService | None = None,
        events: OrderEvents | None = None,
        lock_service: LockService | None = None,
        enforce_stock: bool = ENFORCE_STOCK,
        pricing: PricingPolicy = DEFAULT_POLICY,
        initial_status: str = ORDER_INITIAL_STATUS,
    ):
        self.db = db
        self.catalog = catalog
        self.carts = cart_service or CartService(
            db,
            catalog,
            lock_service=lock_service,
            enforce_stock=enforce_stock,
            pricing=pricing,
        )
        self.repo = OrderRepo(db)
        self.events = events or OrderEvents()
        self.enforce_stock = enforce_stock
        self.pricing = pricing
        self.initial_status = OrderStatus(initial_status)

    def checkout(self, user_id: int, details: CheckoutIn | None = None) -> OrderOut:
        require_user(user_id)
        details = details or CheckoutIn()

        try:
            with self.carts.locked(user_id), self.carts.unit_of_work():
                order = self._checkout(user_id, details)
        except CartConflict as e:
            # zajety lock lub drugi insert zamowienia dla koszyka
            raise ConflictingCheckout(e.message) from e

        self._publish(order)
        return order

    def _checkout(self, user_id: int, details: CheckoutIn) -> OrderOut:
        cart, lines = self.carts.find_open_cart(user_id)
        if not lines:
            raise EmptyCart()

        logger.info(f"Checkout of cart {cart.id} for user {user_id} ({len(lines)} lines)")

        frozen = [self._freeze_line(line) for line in lines]
        totals = self.pricing.totals((i.unit_price, i.quantity) for i in frozen)

        closed_at = datetime.now(timezone.utc)
        if not self.carts.mark_checked_out(cart, closed_at):
            self.db.rollback()
            logger.warning(f"Lost checkout race for cart {cart.id} of user {user_id}")
            raise ConflictingCheckout()

        order = self.repo.create_order(
            OrderModel(
                cart_id=cart.id,
                user_id=user_id,
                status=self.initial_status.value,
                subtotal=totals.subtotal,
                tax=totals.tax,
                shipping=totals.shipping,
                total=totals.total,
                shipping_address=(
                    details.shipping_address.model_dump() if details.shipping_address else None
                ),
                payment_method=details.payment_method.value if details.payment_method else None,
                created_at=closed_at,
                items=frozen,
            )
        )
        self.db.commit()

        logger.info(f"Order {order.id} created from cart {cart.id}, total {totals.total}")
        return order_view(order)

    def _freeze_line(self, line: CartItemModel) -> OrderItemModel:
        try:
            item = self.catalog.get_item(line.item_id)
        except CatalogItemNotFound as e:
            logger.warning(f"Item {line.item_id} vanished from catalog before checkout")
            raise ItemUnavailable(line.item_id) from e

        if self.enforce_stock and item.available < line.quantity:
            raise OutOfStock(item.id, line.quantity, item.available)

        if item.price != line.price:
            logger.info(f"Price of item {item.id} changed {line.price} -> {item.price} since it was added")

        return OrderItemModel(
            item_id=item.id,
            name=item.name or line.name,
            unit_price=item.price,
            quantity=line.quantity,
            line_total=self.pricing.line_total(item.price, line.quantity),
        )

    def _publish(self, order: OrderOut) -> None:
        # zamowienie juz zapisane; blad kolejki nie cofa checkoutu
        try:
            self.events.order_placed(order)
        except Exception as e:
            logger.error(f"Failed to publish OrderPlaced for order {order.id}: {e}")
