"""Shared BDD fixtures and step definitions for the Commerce domain."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from commerce.catalog.product import Product
from commerce.checkout.orchestrator import CheckoutOrchestrator
from commerce.discount.ledger import DiscountLedger
from commerce.errors import CommerceRuleError
from commerce.order.order import Order


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def products():
    """Products created by Given steps, keyed by name."""
    return {}


class Outcome:
    """Result of the last When step: the returned order or the rule error raised."""

    def __init__(self):
        self.order = None
        self.exc = None

    def run(self, action):
        try:
            self.order = action()
        except CommerceRuleError as exc:
            self.exc = exc


@pytest.fixture()
def outcome():
    return Outcome()


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the store "{name}" is open'), target_fixture="shop")
def _(store, name):
    assert store.name == name
    return store


@given(parsers.cfparse('a product "{name}" priced {price:f} with {stock:d} in stock'))
def _(make_product, products, name, price, stock):
    products[name] = make_product(name=name, price=price, stock=stock)


@given(parsers.cfparse('a discount code "{code}" for {percent:d} percent limited to {limit:d} uses'))
def _(make_discount, code, percent, limit):
    make_discount(code=code, value=float(percent), usage_limit=limit)


@given(parsers.cfparse('an expired discount code "{code}" for {percent:d} percent'))
def _(make_discount, code, percent):
    now = datetime.now(UTC)
    make_discount(
        code=code,
        value=float(percent),
        starts_at=now - timedelta(days=30),
        ends_at=now - timedelta(days=1),
    )


@given(parsers.cfparse('the code "{code}" was already redeemed'))
def _(shop, code):
    DiscountLedger().redeem(shop.id, code, "earlier-order")


@given(
    parsers.cfparse('the shopper placed an order for {quantity:d} "{name}"'),
    target_fixture="placed_order",
)
def _(shop, products, quantity, name):
    return CheckoutOrchestrator().checkout(shop.id, [(products[name].id, quantity)])


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the stock of "{name}" is {stock:d}'))
def _(products, name, stock):
    assert current_domain.repository_for(Product).get(products[name].id).stock_quantity == stock


@then(parsers.cfparse('the code "{code}" has been used {count:d} times'))
def _(shop, code, count):
    assert DiscountLedger().lookup(shop.id, code).used_count == count


@then(parsers.cfparse('the request fails with "{error_code}"'))
def _(outcome, error_code):
    assert outcome.exc is not None, "Expected a rule error but none was raised"
    assert outcome.exc.code == error_code


@then("no order is placed")
def _(shop):
    assert current_domain.repository_for(Order)._dao.query.filter(store_id=str(shop.id)).all().items == []
