"""OrderPlaced is handed to Celery for the catalog to consume."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest import mock

from shopcart.domain.schemas import OrderItemOut, OrderOut
from shopcart.services.order_events import OrderEvents


def _order():
    return OrderOut(
        id=10,
        user_id=1,
        cart_id=3,
        status="pending",
        items=[
            OrderItemOut(item_id=42, name="Towel", unit_price=Decimal("10.00"), quantity=2, line_total=Decimal("20.00")),
            OrderItemOut(item_id=7, name="Mug", unit_price=Decimal("25.50"), quantity=1, line_total=Decimal("25.50")),
        ],
        subtotal=Decimal("45.50"),
        tax=Decimal("4.55"),
        shipping=Decimal("10.00"),
        total=Decimal("60.05"),
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


def test_sends_order_placed_task():
    events = OrderEvents(task_name="catalog.order_placed")

    with mock.patch("shopcart.services.order_events.celery_app.send_task") as send:
        events.order_placed(_order())

    send.assert_called_once_with(
        "catalog.order_placed",
        kwargs={
            "order_id": 10,
            "user_id": 1,
            "cart_id": 3,
            "items": [{"item_id": 42, "quantity": 2}, {"item_id": 7, "quantity": 1}],
        },
    )
