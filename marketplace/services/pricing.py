from typing import Iterable, Tuple

from marketplace.core.config import settings
from marketplace.models.cart import CartSummary


def round_money(value: float) -> float:
    return round(value, 2)


def calculate_totals(lines: Iterable[Tuple[float, int]]) -> CartSummary:
    """
    Computes the checkout summary from (unit_price, quantity) pairs.
    Shared by the cart view and order creation so both always agree.

    tax = subtotal * tax_rate
    shipping = 0 when subtotal > free_shipping_threshold, else flat_shipping
    """
    subtotal = 0.0
    item_count = 0
    for unit_price, quantity in lines:
        subtotal += unit_price * quantity
        item_count += 1

    tax = subtotal * settings.tax_rate
    if subtotal > settings.free_shipping_threshold:
        shipping = 0.0
    else:
        shipping = settings.flat_shipping

    return CartSummary(
        subtotal=round_money(subtotal),
        tax=round_money(tax),
        shipping=round_money(shipping),
        total=round_money(subtotal + tax + shipping),
        item_count=item_count
    )
