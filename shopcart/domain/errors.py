# shopcart/domain/errors.py
"""
Bledy domenowe koszyka i zamowien.

Kazdy blad niesie stabilny ``kind`` (kontrakt dla klientow), kod HTTP oraz
informacje, czy operacje mozna bezpiecznie ponowic.
"""


class ShopError(Exception):
    kind = "ShopError"
    status_code = 500
    retryable = False
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ShopError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "No verified caller identity"


class InvalidArgument(ShopError):
    kind = "InvalidArgument"
    status_code = 400
    default_message = "Invalid argument"


class NotFound(ShopError):
    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


class CatalogItemNotFound(NotFound):
    def __init__(self, item_id: int):
        super().__init__(f"Catalog item {item_id} does not exist")
        self.item_id = item_id


class CartLineNotFound(NotFound):
    def __init__(self, item_id: int):
        super().__init__(f"Item {item_id} is not in the cart")
        self.item_id = item_id


class OrderNotFound(NotFound):
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} does not exist")
        self.order_id = order_id


class NoActiveCart(NotFound):
    kind = "NoActiveCart"
    default_message = "User has no open cart"


class EmptyCart(ShopError):
    kind = "EmptyCart"
    status_code = 400
    default_message = "Cannot check out an empty cart"


class OutOfStock(ShopError):
    kind = "OutOfStock"
    status_code = 409

    def __init__(self, item_id: int, requested: int, available: int):
        super().__init__(
            f"Only {available} units of item {item_id} available, {requested} requested"
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


class ItemUnavailable(ShopError):
    kind = "ItemUnavailable"
    status_code = 409

    def __init__(self, item_id: int):
        super().__init__(f"Item {item_id} is no longer available")
        self.item_id = item_id


class ConflictingCheckout(ShopError):
    kind = "ConflictingCheckout"
    status_code = 409
    retryable = True
    default_message = "Cart was modified by a concurrent request"


class CartConflict(ShopError):
    """Lost compare-and-swap (or the cart lock) during a cart command."""

    kind = "CartConflict"
    status_code = 409
    retryable = True
    default_message = "Cart was modified by a concurrent request"


class StorageFailure(ShopError):
    kind = "StorageFailure"
    status_code = 503
    retryable = True
    default_message = "Storage failure, retry later"


class CatalogUnavailable(StorageFailure):
    kind = "CatalogUnavailable"
    default_message = "Catalog service unavailable, retry later"
