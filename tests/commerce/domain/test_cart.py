"""Tests for the Cart Aggregator."""

from decimal import Decimal

import pytest
from protean.exceptions import ValidationError

from commerce.cart.cart import Cart, compute_totals
from commerce.catalog.inventory import PricedProduct
from commerce.discount.discount import DiscountEffect


def _priced(product_id, price, store_id="store-1", is_active=True):
    return PricedProduct(
        product_id=product_id,
        store_id=store_id,
        name=f"Product {product_id}",
        sku=None,
        price=price,
        is_active=is_active,
        track_quantity=True,
        stock_quantity=10,
    )


class TestCartItems:
    def test_add_item_increments(self):
        cart = Cart()
        cart.add_item("p-1", 2)
        cart.add_item("p-1", 1)
        assert cart.items == {"p-1": 3}

    def test_add_item_rejects_zero(self):
        with pytest.raises(ValidationError):
            Cart().add_item("p-1", 0)

    def test_set_quantity_zero_removes_line(self):
        cart = Cart()
        cart.add_item("p-1", 2)
        cart.set_quantity("p-1", 0)
        assert cart.is_empty

    def test_item_count(self):
        cart = Cart()
        cart.add_item("p-1", 2)
        cart.add_item("p-2", 3)
        assert cart.item_count == 5

    def test_from_lines_merges_duplicates(self):
        cart = Cart.from_lines([("p-1", 1), ("p-1", 2)])
        assert cart.lines()[0].quantity == 3


class TestComputeTotals:
    def test_subtotal_sums_lines(self):
        cart = Cart.from_lines([("p-1", 2), ("p-2", 1)])
        snapshot = {"p-1": _priced("p-1", 4.25), "p-2": _priced("p-2", 10)}

        totals = compute_totals(cart, snapshot)

        assert totals.subtotal == Decimal("18.50")
        assert totals.discount == Decimal("0.00")
        assert totals.total == Decimal("18.50")
        assert totals.is_complete

    def test_unresolved_products_are_flagged_not_free(self):
        cart = Cart.from_lines([("p-1", 1), ("gone", 5), ("off", 1)])
        snapshot = {"p-1": _priced("p-1", 10), "off": _priced("off", 3, is_active=False)}

        totals = compute_totals(cart, snapshot)

        assert totals.subtotal == Decimal("10.00")
        assert set(totals.unresolved) == {"gone", "off"}

    def test_products_of_another_store_are_unresolved(self):
        cart = Cart.from_lines([("p-1", 1)], store_id="store-1")
        snapshot = {"p-1": _priced("p-1", 10, store_id="store-2")}

        assert compute_totals(cart, snapshot).unresolved == ("p-1",)

    def test_discount_applied(self):
        cart = Cart.from_lines([("p-1", 2)])
        snapshot = {"p-1": _priced("p-1", 25)}
        effect = DiscountEffect("d-1", "SAVE10", "percentage", 10.0)

        totals = compute_totals(cart, snapshot, effect)

        assert totals.discount == Decimal("5.00")
        assert totals.total == Decimal("45.00")

    def test_fixed_discount_never_negative(self):
        cart = Cart.from_lines([("p-1", 1)])
        snapshot = {"p-1": _priced("p-1", 3)}
        effect = DiscountEffect("d-1", "TEN", "fixed_amount", 10.0)

        totals = compute_totals(cart, snapshot, effect)

        assert totals.total == Decimal("0.00")
