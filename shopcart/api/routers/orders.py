# shopcart/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shopcart.api.deps import (
    get_catalog_reader,
    get_current_user_id,
    get_lock_service,
    get_order_events,
)
from shopcart.data.database import get_db
from shopcart.domain.schemas import CheckoutIn, ErrorOut, OrderOut, OrderSummaryOut
from shopcart.services.catalog_client import CatalogReader
from shopcart.services.checkout_service import CheckoutService
from shopcart.services.lock_service import LockService
from shopcart.services.order_events import OrderEvents
from shopcart.services.order_service import OrderService

router = APIRouter(
    prefix="/orders",
    tags=["orders"],
    responses={401: {"model": ErrorOut}, 503: {"model": ErrorOut}},
)


def get_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_checkout_service(
    db: Session = Depends(get_db),
    catalog: CatalogReader = Depends(get_catalog_reader),
    lock_service: LockService | None = Depends(get_lock_service),
    events: OrderEvents = Depends(get_order_events),
) -> CheckoutService:
    return CheckoutService(db=db, catalog=catalog, lock_service=lock_service, events=events)


@router.post(
    "",
    response_model=OrderOut,
    status_code=201,
    responses={400: {"model": ErrorOut}, 404: {"model": ErrorOut}, 409: {"model": ErrorOut}},
)
def checkout(
    details: CheckoutIn | None = None,
    user_id: int = Depends(get_current_user_id),
    svc: CheckoutService = Depends(get_checkout_service),
):
    """
    Tworzy zamowienie z otwartego koszyka i zamyka koszyk.
    Adres dostawy i metoda platnosci (opcjonalne) sa zapisywane na zamowieniu.
    OrderPlaced wysylane asynchronicznie po zapisie.
    """
    return svc.checkout(user_id, details)


@router.get("", response_model=List[OrderSummaryOut])
@router.get("/mine", response_model=List[OrderSummaryOut])
def list_my_orders(
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_service),
):
    return svc.list_orders(user_id)


@router.get("/{order_id}", response_model=OrderOut, responses={404: {"model": ErrorOut}})
def get_order(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    svc: OrderService = Depends(get_service),
):
    return svc.get_order(user_id, order_id)
