from decimal import Decimal

import pytest

import errors
from pricing import assemble_order, build_lines, order_total, place_order, unit_price
from schemas import Address, CartItem, Discount


def cart(*entries):
    return [CartItem(productId=product_id, qty=qty) for product_id, qty in entries]


def test_deal_products_cost_three_quarters_of_catalog_price(catalog):
    assert unit_price(catalog.get("P1")) == Decimal("30.00")
    # 24.49 * 0.75 = 18.3675
    assert unit_price(catalog.get("P3")) == Decimal("18.37")


def test_other_tags_keep_catalog_price(catalog):
    assert unit_price(catalog.get("P2")) == Decimal("1499.99")
    assert unit_price(catalog.get("P4")) == Decimal("0.10")


def test_lines_snapshot_product_details(catalog):
    [line] = build_lines(catalog, cart(("P1", 2)))
    assert line.product_id == "P1"
    assert line.name == "Trail Helmet"
    assert line.brand == "Bell"
    assert line.tag == "deal"
    assert line.quantity == 2
    assert line.unit_price == 30.00
    assert line.line_total == 60.00


def test_line_totals_are_rounded_to_cents(catalog):
    [line] = build_lines(catalog, cart(("P4", 3)))
    assert line.line_total == 0.30


@pytest.mark.parametrize("qty", [None, 0])
def test_missing_or_zero_quantity_counts_as_one(catalog, qty):
    [line] = build_lines(catalog, cart(("P2", qty)))
    assert line.quantity == 1
    assert line.line_total == 1499.99


def test_negative_quantity_is_rejected(catalog):
    with pytest.raises(errors.ValidationError, match="Invalid quantity"):
        build_lines(catalog, cart(("P2", -1)))


def test_empty_cart_is_rejected(catalog):
    with pytest.raises(errors.EmptyCart) as excinfo:
        build_lines(catalog, [])
    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Cart items required"


def test_unknown_product_is_rejected(catalog):
    with pytest.raises(errors.InvalidProduct):
        build_lines(catalog, cart(("P1", 1), ("NOPE", 1)))


@pytest.mark.parametrize("entries, discount, shipping, expected", [
    ([("P1", 2)], None, 5.00, Decimal("65.00")),
    ([("P1", 1), ("P2", 1)], Discount(code="SPRING", amount=10), 0, Decimal("1519.99")),
    ([("P3", 3), ("P4", 7)], Discount(code="X", amount=5.5), 12.25, Decimal("62.56")),
    ([("P4", 1)], Discount(code="BIG", amount=50), 0, Decimal("0.00")),
])
def test_total_is_lines_minus_discount_plus_shipping(catalog, entries, discount, shipping, expected):
    lines = build_lines(catalog, cart(*entries))
    assert order_total(lines, discount, shipping) == expected


def test_non_positive_discount_is_ignored(catalog):
    lines = build_lines(catalog, cart(("P2", 1)))
    assert order_total(lines, Discount(code="ODD", amount=-20), 0) == Decimal("1499.99")
    assert order_total(lines, Discount(code="NONE"), 0) == Decimal("1499.99")


def test_assembled_order_starts_as_created(catalog):
    order = assemble_order(catalog, "user-1", cart(("P1", 2)), Address(name="Ana", email="ana@example.com"),
                           shipping=5)
    assert order.user_id == "user-1"
    assert order.status == "created"
    assert order.total == 65.00
    assert order.shipping == 5.0
    assert order.discount is None
    assert order.address.email == "ana@example.com"


def test_place_order_stores_the_order(db, catalog):
    stored = place_order(db, catalog, "user-1", cart(("P1", 2)), shipping=5.00)
    assert stored["id"]
    assert stored["created_at"]
    assert stored["total"] == 65.00
    assert stored["status"] == "created"
    assert db.get_documents("order") == [stored]


def test_place_order_stores_nothing_when_a_line_fails(db, catalog):
    with pytest.raises(errors.InvalidProduct):
        place_order(db, catalog, "user-1", cart(("P1", 1), ("MISSING", 1)))
    with pytest.raises(errors.EmptyCart):
        place_order(db, catalog, "user-1", [])
    assert db.get_documents("order") == []
