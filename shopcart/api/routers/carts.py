#shopcart/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shopcart.api.deps import get_catalog_reader, get_current_user_id, get_lock_service
from shopcart.data.database import get_db
from shopcart.domain.schemas import CartOut, ErrorOut, ItemIn, QuantityIn
from shopcart.services.cart_service import CartService
from shopcart.services.catalog_client import CatalogReader
from shopcart.services.lock_service import LockService

router = APIRouter(
    prefix="/cart",
    tags=["cart"],
    responses={401: {"model": ErrorOut}, 503: {"model": ErrorOut}},
)


def get_service(
    db: Session = Depends(get_db),
    catalog: CatalogReader = Depends(get_catalog_reader),
    lock_service: LockService | None = Depends(get_lock_service),
) -> CartService:
    return CartService(db=db, catalog=catalog, lock_service=lock_service)


@router.get("", response_model=CartOut)
def get_cart(
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    return svc.get_open_cart(user_id)


@router.post(
    "/items",
    response_model=CartOut,
    status_code=201,
    responses={400: {"model": ErrorOut}, 404: {"model": ErrorOut}, 409: {"model": ErrorOut}},
)
def add_item(
    payload: ItemIn,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    return svc.add_item(user_id=user_id, item_id=payload.item_id, quantity=payload.quantity)


@router.put(
    "/items/{item_id}",
    response_model=CartOut,
    responses={404: {"model": ErrorOut}, 409: {"model": ErrorOut}},
)
def update_item(
    item_id: int,
    payload: QuantityIn,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    """Ustawia ilosc pozycji; 0 lub mniej usuwa ja z koszyka."""
    return svc.update_item_quantity(user_id=user_id, item_id=item_id, quantity=payload.quantity)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    return svc.remove_item(user_id=user_id, item_id=item_id)


@router.delete("", response_model=CartOut)
def clear_cart(
    user_id: int = Depends(get_current_user_id),
    svc: CartService = Depends(get_service),
):
    return svc.clear(user_id)
