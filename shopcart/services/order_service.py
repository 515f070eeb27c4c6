# shopcart/services/order_service.py
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopcart.data.models.order import OrderModel
from shopcart.domain.errors import OrderNotFound, StorageFailure
from shopcart.domain.pricing import money
from shopcart.domain.schemas import OrderItemOut, OrderOut, OrderSummaryOut
from shopcart.repos.order_repo import OrderRepo
from shopcart.services.cart_service import require_user
from shopcart.utils.logging import get_logger

logger = get_logger(__name__)


def _items(order: OrderModel) -> List[OrderItemOut]:
    return [
        OrderItemOut(
            item_id=i.item_id,
            name=i.name,
            unit_price=money(i.unit_price),
            quantity=i.quantity,
            line_total=money(i.line_total),
        )
        for i in order.items
    ]


def order_view(order: OrderModel) -> OrderOut:
    return OrderOut(
        id=order.id,
        user_id=order.user_id,
        cart_id=order.cart_id,
        status=order.status,
        items=_items(order),
        subtotal=money(order.subtotal),
        tax=money(order.tax),
        shipping=money(order.shipping),
        total=money(order.total),
        shipping_address=order.shipping_address,
        payment_method=order.payment_method,
        created_at=order.created_at,
    )


def order_summary(order: OrderModel) -> OrderSummaryOut:
    items = _items(order)
    return OrderSummaryOut(
        id=order.id,
        status=order.status,
        item_count=sum(i.quantity for i in items),
        total=money(order.total),
        created_at=order.created_at,
        items=items,
    )


class OrderService:
    """
    Zapytania o zamowienia (view order, order history).

    Zamowienia czyta sie tylko z zamrozonych pozycji, nigdy z katalogu.
    Zmiany statusu naleza do realizacji zamowien, nie do tego serwisu.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)

    def get_order(self, user_id: int, order_id: int) -> OrderOut:
        require_user(user_id)
        try:
            order = self.repo.get_order(order_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailure() from e

        # cudze zamowienie wyglada jak nieistniejace
        if not order or order.user_id != user_id:
            raise OrderNotFound(order_id)

        return order_view(order)

    def list_orders(self, user_id: int) -> List[OrderSummaryOut]:
        require_user(user_id)
        try:
            orders = self.repo.list_orders_for_user(user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageFailure() from e

        logger.info(f"Listing {len(orders)} orders for user {user_id}")
        return [order_summary(o) for o in orders]
