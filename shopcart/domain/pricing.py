# shopcart/domain/pricing.py
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

from shopcart.utils import settings

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    """Fixed-point currency, two decimal places, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: Decimal = settings.TAX_RATE
    free_shipping_threshold: Decimal = settings.FREE_SHIPPING_THRESHOLD
    flat_shipping_fee: Decimal = settings.FLAT_SHIPPING_FEE

    def line_total(self, price: Decimal, quantity: int) -> Decimal:
        return money(Decimal(price) * quantity)

    def totals(self, lines: Iterable[Tuple[Decimal, int]]) -> Totals:
        """
        ``lines`` is an iterable of ``(unit_price, quantity)`` pairs.

        Tax and total are each rounded on their own, so the total is the sum of
        already rounded parts. An empty cart costs nothing, shipping included.
        """
        lines = list(lines)
        if not lines:
            return Totals(ZERO, ZERO, ZERO, ZERO)

        subtotal = money(sum((self.line_total(p, q) for p, q in lines), ZERO))
        tax = money(subtotal * self.tax_rate)
        shipping = ZERO if subtotal > self.free_shipping_threshold else money(self.flat_shipping_fee)
        total = money(subtotal + tax + shipping)
        return Totals(subtotal=subtotal, tax=tax, shipping=shipping, total=total)


DEFAULT_POLICY = PricingPolicy()
