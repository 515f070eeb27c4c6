# shopcart/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class CartStatus(str, Enum):
    OPEN = "open"
    CHECKED_OUT = "checked_out"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentMethod(str, Enum):
    PAYPAL = "paypal"
    STRIPE = "stripe"
    CASH_ON_DELIVERY = "cash_on_delivery"


class ShippingAddress(BaseModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class CheckoutIn(BaseModel):
    """Dane zamowienia podane przy checkoucie, zapisywane na zamowieniu."""

    shipping_address: ShippingAddress | None = None
    payment_method: PaymentMethod | None = None


class ItemIn(BaseModel):
    """Dodanie produktu do koszyka."""

    item_id: int = Field(..., gt=0, description="Catalog item id")
    quantity: int = Field(1, description="Units to add, must be at least 1")


class QuantityIn(BaseModel):
    """Ustawienie ilosci; 0 lub mniej usuwa pozycje."""

    quantity: int


class CartItemOut(BaseModel):
    item_id: int
    name: str
    price: Decimal
    quantity: int
    line_total: Decimal


class CartOut(BaseModel):
    """Widok otwartego (lub zamknietego) koszyka."""

    cart_id: int
    user_id: int
    status: CartStatus
    items: List[CartItemOut]
    item_count: int
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    version: int
    closed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderItemOut(BaseModel):
    item_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Zamowienie z zamrozonymi pozycjami."""

    id: int
    user_id: int
    cart_id: int
    status: OrderStatus
    items: List[OrderItemOut]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    shipping_address: ShippingAddress | None = None
    payment_method: PaymentMethod | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderSummaryOut(BaseModel):
    """Pozycja historii zamowien."""

    id: int
    status: OrderStatus
    item_count: int
    total: Decimal
    created_at: datetime
    items: List[OrderItemOut]

    model_config = ConfigDict(from_attributes=True)


class ErrorOut(BaseModel):
    error: str
    detail: str
    retryable: bool = False
