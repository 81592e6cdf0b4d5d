"""
Pricing & order assembly.

Turns a cart into priced order lines, works out the order total and stores
the order. All money math is done in Decimal, rounded half-up to cents, and
converted back to plain numbers only when the Order is built.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence, Union

import errors
from catalog import Catalog, DEAL_TAG
from database import Database
from schemas import Address, CartItem, Discount, Order, OrderLine, Product

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
DEAL_MULTIPLIER = Decimal("0.75")
ZERO = Decimal("0")

Number = Union[int, float, str, Decimal]


def to_money(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def unit_price(product: Product) -> Decimal:
    """Catalog price, or 25% off (rounded to cents) for deal products."""
    price = Decimal(str(product.price))
    if product.tag == DEAL_TAG:
        return to_money(price * DEAL_MULTIPLIER)
    return to_money(price)


def _quantity(raw: Optional[int]) -> int:
    if not raw:
        return 1
    if raw < 0:
        raise errors.ValidationError("Invalid quantity")
    return int(raw)


def build_lines(catalog: Catalog, items: Sequence[CartItem]) -> List[OrderLine]:
    if not items:
        raise errors.EmptyCart()

    lines = []
    for item in items:
        product = catalog.get(item.product_id)
        if product is None:
            raise errors.InvalidProduct()
        unit = unit_price(product)
        qty = _quantity(item.quantity)
        lines.append(OrderLine(
            product_id=product.id,
            name=product.name,
            brand=product.brand,
            image=product.image,
            tag=product.tag,
            quantity=qty,
            unit_price=float(unit),
            line_total=float(to_money(unit * qty)),
        ))
    return lines


def subtotal(lines: Sequence[OrderLine]) -> Decimal:
    return to_money(sum((Decimal(str(line.line_total)) for line in lines), ZERO))


def discount_amount(discount: Optional[Discount]) -> Decimal:
    """Only a positive amount counts; anything else is no discount."""
    if discount is None or not discount.amount or discount.amount <= 0:
        return ZERO
    return to_money(discount.amount)


def order_total(lines: Sequence[OrderLine], discount: Optional[Discount] = None, shipping: Number = 0) -> Decimal:
    total = subtotal(lines) - discount_amount(discount) + Decimal(str(shipping or 0))
    if total < ZERO:
        total = ZERO
    return to_money(total)


def assemble_order(
    catalog: Catalog,
    user_id: str,
    items: Sequence[CartItem],
    address: Optional[Address] = None,
    discount: Optional[Discount] = None,
    shipping: Optional[float] = None,
) -> Order:
    lines = build_lines(catalog, items)
    shipping = float(shipping or 0)
    return Order(
        user_id=user_id,
        items=lines,
        total=float(order_total(lines, discount, shipping)),
        address=address,
        discount=discount,
        shipping=shipping,
        status="created",
    )


def place_order(
    db: Database,
    catalog: Catalog,
    user_id: str,
    items: Sequence[CartItem],
    address: Optional[Address] = None,
    discount: Optional[Discount] = None,
    shipping: Optional[float] = None,
) -> dict:
    """Price the cart and store the order. Nothing is stored if any line fails."""
    order = assemble_order(catalog, user_id, items, address, discount, shipping)
    order_id = db.create_document("order", order)
    logger.info("Order %s created for user %s (%d lines, total %.2f)", order_id, user_id, len(order.items), order.total)
    return db.get_document_by_id("order", order_id)
