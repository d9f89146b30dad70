from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

CENTS = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def line_subtotal(quantity: int, unit_price, discount=Decimal("0")) -> Decimal:
    return money(Decimal(quantity) * money(unit_price) - money(discount))


def item_subtotal(item) -> Decimal:
    """quantity x unit_price - discount for an order item (or a cart item, no discount)."""
    return line_subtotal(item.quantity, item.unit_price, getattr(item, "discount_amount", None) or 0)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    total = Decimal("0.00")
    for v in values:
        total += money(v)
    return money(total)


def order_total(subtotal, shipping, discount) -> Decimal:
    return money(money(subtotal) + money(shipping) - money(discount))
