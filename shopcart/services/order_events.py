# shopcart/services/order_events.py
from shopcart.celery_worker import celery_app
from shopcart.domain.schemas import OrderOut
from shopcart.utils.logging import get_logger
from shopcart.utils.settings import ORDER_PLACED_TASK

logger = get_logger(__name__)


class OrderEvents:
    """
    Publikacja zdarzen o zamowieniach.

    Core nie zmniejsza stanow magazynowych; robi to katalog po odebraniu
    OrderPlaced z kolejki Celery.
    """

    def __init__(self, task_name: str = ORDER_PLACED_TASK):
        self.task_name = task_name

    @staticmethod
    def order_placed_payload(order: OrderOut) -> dict:
        return {
            "order_id": order.id,
            "user_id": order.user_id,
            "cart_id": order.cart_id,
            "items": [
                {"item_id": i.item_id, "quantity": i.quantity}
                for i in order.items
            ],
        }

    def order_placed(self, order: OrderOut) -> None:
        payload = self.order_placed_payload(order)
        celery_app.send_task(self.task_name, kwargs=payload)
        logger.info(f"[EVENT] OrderPlaced {order.id} sent to {self.task_name}")
