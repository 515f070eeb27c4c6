# shopcart/services/cart_service.py
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from typing import Iterator, List, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from shopcart.data.models.cart import CartModel
from shopcart.data.models.cart_item import CartItemModel
from shopcart.domain.errors import (
    CartConflict,
    CartLineNotFound,
    InvalidArgument,
    NoActiveCart,
    OutOfStock,
    StorageFailure,
    Unauthenticated,
)
from shopcart.domain.pricing import DEFAULT_POLICY, PricingPolicy, money
from shopcart.domain.schemas import CartItemOut, CartOut, CartStatus
from shopcart.repos.cart_repo import CartRepo
from shopcart.services.catalog_client import CatalogItem, CatalogReader
from shopcart.services.lock_service import LockService
from shopcart.utils.logging import get_logger
from shopcart.utils.retry import conflict_retry
from shopcart.utils.settings import ENFORCE_STOCK

logger = get_logger(__name__)


def require_user(user_id: int | None) -> int:
    if user_id is None:
        raise Unauthenticated()
    return user_id


class CartService:
    """
    Use case'y koszyka: jeden otwarty koszyk na uzytkownika.

    commands (add, update, remove, clear) zmieniaja stan w jednej transakcji
    zakonczonej compare-and-swap na wersji koszyka; query (get_open_cart)
    najwyzej tworzy pusty koszyk.
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogReader,
        lock_service: LockService | None = None,
        enforce_stock: bool = ENFORCE_STOCK,
        pricing: PricingPolicy = DEFAULT_POLICY,
    ):
        self.db = db
        self.repo = CartRepo(db)
        self.catalog = catalog
        self.lock_service = lock_service
        self.enforce_stock = enforce_stock
        self.pricing = pricing

    # ------------------------------------------------------------------
    # infrastruktura transakcji
    # ------------------------------------------------------------------
    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        """Roll back on any failure; storage errors surface as domain errors."""
        try:
            yield
        except IntegrityError as e:
            self.repo.rollback()
            logger.warning(f"Integrity conflict on cart write: {e.orig}")
            raise CartConflict() from e
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Storage failure: {e}")
            raise StorageFailure() from e
        except Exception:
            self.repo.rollback()
            raise

    def locked(self, user_id: int):
        if self.lock_service is None:
            return nullcontext()
        return self.lock_service.cart_lock(user_id)

    def _ensure_open_cart(self, user_id: int, for_update: bool = False) -> CartModel:
        cart = self.repo.get_open_cart(user_id, for_update=for_update)
        if cart:
            return cart

        try:
            created = self.repo.create_cart(
                CartModel(user_id=user_id, status=CartStatus.OPEN.value, version=1)
            )
            logger.info(f"Created cart {created.id} for user {user_id}")
        except IntegrityError:
            # rownolegle zapytanie utworzylo koszyk pierwsze
            self.repo.rollback()
            logger.info(f"Open cart for user {user_id} created concurrently, re-reading")

        cart = self.repo.get_open_cart(user_id, for_update=for_update)
        if cart is None:
            raise StorageFailure(f"Could not create an open cart for user {user_id}")
        return cart

    def _check_stock(self, item: CatalogItem, quantity: int) -> None:
        if self.enforce_stock and quantity > item.available:
            raise OutOfStock(item.id, quantity, item.available)

    def _commit_cart(self, cart: CartModel) -> None:
        """Recompute totals from the current lines and CAS them onto the cart row."""
        self.db.flush()
        items = self.repo.get_cart_items(cart.id)
        totals = self.pricing.totals((i.price, i.quantity) for i in items)

        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "subtotal": totals.subtotal,
                "tax": totals.tax,
                "shipping": totals.shipping,
                "total": totals.total,
                "updated_at": datetime.now(timezone.utc),
            },
        )

        # Optimistic locking: 0 rows znaczy, ze ktos zmienil koszyk w miedzyczasie
        if rowcount == 0:
            self.repo.rollback()
            logger.warning(f"Version conflict on cart {cart.id} (version {cart.version})")
            raise CartConflict()

        self.repo.commit()

    def view(self, cart: CartModel) -> CartOut:
        items = self.repo.get_cart_items(cart.id)
        return CartOut(
            cart_id=cart.id,
            user_id=cart.user_id,
            status=cart.status,
            items=[
                CartItemOut(
                    item_id=i.item_id,
                    name=i.name,
                    price=money(i.price),
                    quantity=i.quantity,
                    line_total=self.pricing.line_total(i.price, i.quantity),
                )
                for i in items
            ],
            item_count=sum(i.quantity for i in items),
            subtotal=money(cart.subtotal),
            tax=money(cart.tax),
            shipping=money(cart.shipping),
            total=money(cart.total),
            version=cart.version,
            closed_at=cart.closed_at,
        )

    # ------------------------------------------------------------------
    # query
    # ------------------------------------------------------------------
    def get_open_cart(self, user_id: int) -> CartOut:
        require_user(user_id)
        with self.unit_of_work():
            cart = self._ensure_open_cart(user_id)
            return self.view(cart)

    def find_open_cart(self, user_id: int) -> Tuple[CartModel, List[CartItemModel]]:
        """Open cart with its lines, without creating one. Used by checkout."""
        require_user(user_id)
        cart = self.repo.get_open_cart(user_id)
        if cart is None:
            raise NoActiveCart()
        return cart, self.repo.get_cart_items(cart.id)

    # ------------------------------------------------------------------
    # commands
    # ------------------------------------------------------------------
    @conflict_retry()
    def add_item(self, user_id: int, item_id: int, quantity: int) -> CartOut:
        require_user(user_id)
        if quantity < 1:
            raise InvalidArgument("Quantity must be at least 1")

        # katalog przed transakcja, zeby nie trzymac blokady podczas HTTP
        item = self.catalog.get_item(item_id)

        with self.locked(user_id), self.unit_of_work():
            cart = self._ensure_open_cart(user_id, for_update=True)
            line = self.repo.get_cart_item(cart.id, item_id)
            new_quantity = (line.quantity if line else 0) + quantity
            self._check_stock(item, new_quantity)

            if line:
                logger.info(
                    f"Item {item_id} already in cart {cart.id}, quantity "
                    f"{line.quantity} -> {new_quantity}"
                )
                line.quantity = new_quantity
                line.price = item.price
                line.name = item.name
            else:
                logger.info(f"Adding item {item_id} x{quantity} to cart {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        item_id=item_id,
                        name=item.name,
                        quantity=quantity,
                        price=item.price,
                    )
                )

            self._commit_cart(cart)
            return self.view(cart)

    @conflict_retry()
    def update_item_quantity(self, user_id: int, item_id: int, quantity: int) -> CartOut:
        require_user(user_id)

        # update nigdy nie zaklada koszyka
        with self.unit_of_work():
            if self.repo.get_open_cart(user_id) is None:
                raise NoActiveCart()

        if quantity <= 0:
            return self._remove_item(user_id, item_id, create_cart=False)

        item = self.catalog.get_item(item_id) if self.enforce_stock else None

        with self.locked(user_id), self.unit_of_work():
            cart = self.repo.get_open_cart(user_id, for_update=True)
            if cart is None:
                raise NoActiveCart()

            line = self.repo.get_cart_item(cart.id, item_id)
            if line is None:
                raise CartLineNotFound(item_id)

            if item is not None:
                self._check_stock(item, quantity)

            logger.info(f"Setting item {item_id} in cart {cart.id} to quantity {quantity}")
            line.quantity = quantity
            self._commit_cart(cart)
            return self.view(cart)

    @conflict_retry()
    def remove_item(self, user_id: int, item_id: int) -> CartOut:
        require_user(user_id)
        return self._remove_item(user_id, item_id)

    def _remove_item(self, user_id: int, item_id: int, create_cart: bool = True) -> CartOut:
        with self.locked(user_id), self.unit_of_work():
            if create_cart:
                cart = self._ensure_open_cart(user_id, for_update=True)
            else:
                cart = self.repo.get_open_cart(user_id, for_update=True)
                if cart is None:
                    raise NoActiveCart()
            deleted = self.repo.delete_cart_item(cart.id, item_id)

            if deleted == 0:
                # brak pozycji to nie blad, nic do zapisania
                self.repo.rollback()
                return self.view(cart)

            logger.info(f"Removed item {item_id} from cart {cart.id}")
            self._commit_cart(cart)
            return self.view(cart)

    @conflict_retry()
    def clear(self, user_id: int) -> CartOut:
        require_user(user_id)
        with self.locked(user_id), self.unit_of_work():
            cart = self._ensure_open_cart(user_id, for_update=True)
            deleted = self.repo.delete_cart_items(cart.id)
            logger.info(f"Cleared cart {cart.id} ({deleted} lines)")
            self._commit_cart(cart)
            return self.view(cart)

    def mark_checked_out(self, cart: CartModel, closed_at: datetime) -> bool:
        """
        CAS open -> checked_out inside the caller's transaction (no commit).

        False means another request changed or closed the cart since it was read.
        """
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "status": CartStatus.CHECKED_OUT.value,
                "closed_at": closed_at,
                "updated_at": closed_at,
            },
        )
        return rowcount == 1
