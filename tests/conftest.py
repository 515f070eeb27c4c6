import os

# przed importem shopcart: sqlite zamiast postgresa, bez redisa
os.environ.setdefault("DATABASE_URL", "sqlite:///./.shopcart-test.db")
os.environ.setdefault("CART_LOCKS_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import threading
from collections import defaultdict
from contextlib import contextmanager
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

import shopcart.data.models  # noqa: F401
from shopcart.data.database import Base, make_engine
from shopcart.data.models.cart import CartModel
from shopcart.data.models.order import OrderModel
from shopcart.domain.errors import CartConflict, CatalogItemNotFound
from shopcart.services.cart_service import CartService
from shopcart.services.catalog_client import CatalogItem
from shopcart.services.checkout_service import CheckoutService


class FakeCatalog:
    """In-memory catalog reader; prices and stock can be changed between calls."""

    def __init__(self):
        self.items = {}
        self.calls = []

    def put(self, item_id, price, available=100, name=None):
        self.items[item_id] = CatalogItem(
            id=item_id,
            name=name or f"Item {item_id}",
            price=Decimal(price),
            available=available,
        )

    def set_price(self, item_id, price):
        self.put(item_id, price, self.items[item_id].available, self.items[item_id].name)

    def set_available(self, item_id, available):
        item = self.items[item_id]
        self.put(item_id, item.price, available, item.name)

    def remove(self, item_id):
        del self.items[item_id]

    def get_item(self, item_id):
        self.calls.append(item_id)
        try:
            return self.items[item_id]
        except KeyError:
            raise CatalogItemNotFound(item_id)


class RecordingEvents:
    def __init__(self):
        self.placed = []

    def order_placed(self, order):
        self.placed.append(order)


class ThreadLockService:
    """Per-user mutex with the LockService interface, for in-process tests."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.Lock)

    @contextmanager
    def cart_lock(self, user_id):
        with self._guard:
            lock = self._locks[user_id]
        with lock:
            yield


class BusyLockService:
    """Lock held by someone else for longer than we are willing to wait."""

    def __init__(self):
        self.attempts = 0

    @contextmanager
    def cart_lock(self, user_id):
        self.attempts += 1
        raise CartConflict(f"Cart of user {user_id} is busy, retry")
        yield


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'shop.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog():
    c = FakeCatalog()
    c.put(42, "10.00", available=50, name="Towel")
    c.put(7, "25.50", available=3, name="Mug")
    c.put(99, "60.00", available=10, name="Lamp")
    return c


@pytest.fixture
def events():
    return RecordingEvents()


@pytest.fixture
def carts(db, catalog):
    return CartService(db, catalog)


@pytest.fixture
def checkout(db, catalog, carts, events):
    return CheckoutService(db, catalog, cart_service=carts, events=events)


@pytest.fixture
def count_rows(session_factory):
    def _count(model, **filters):
        with session_factory() as s:
            stmt = select(func.count()).select_from(model)
            for name, value in filters.items():
                stmt = stmt.where(getattr(model, name) == value)
            return s.execute(stmt).scalar_one()

    return _count


@pytest.fixture
def open_carts(count_rows):
    return lambda user_id: count_rows(CartModel, user_id=user_id, status="open")


@pytest.fixture
def orders_of(count_rows):
    return lambda user_id: count_rows(OrderModel, user_id=user_id)
