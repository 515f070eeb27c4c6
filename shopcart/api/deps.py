# shopcart/api/deps.py
from functools import lru_cache

from fastapi import Header

from shopcart.domain.errors import Unauthenticated
from shopcart.services.catalog_client import CatalogReader, HttpCatalogReader
from shopcart.services.lock_service import LockService
from shopcart.services.order_events import OrderEvents
from shopcart.utils.settings import CART_LOCKS_ENABLED


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> int:
    """
    Tozsamosc wywolujacego ustawiona przez warstwe uwierzytelniania (gateway).

    Core jej nie weryfikuje, tylko wymaga, zeby byla.
    """
    if x_user_id is None or not x_user_id.strip():
        raise Unauthenticated()
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise Unauthenticated("Malformed caller identity")
    if user_id <= 0:
        raise Unauthenticated("Malformed caller identity")
    return user_id


@lru_cache
def get_catalog_reader() -> CatalogReader:
    return HttpCatalogReader()


@lru_cache
def get_lock_service() -> LockService | None:
    if not CART_LOCKS_ENABLED:
        return None
    return LockService()


@lru_cache
def get_order_events() -> OrderEvents:
    return OrderEvents()
