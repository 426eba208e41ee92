"""Tests for Order placement and its pricing invariant."""

import pytest
from protean.exceptions import ValidationError

from commerce.order.events import OrderPlaced
from commerce.order.order import FinancialStatus, FulfillmentStatus, Order


def _line(product_id="prod-1", price=10.0, quantity=2, reservation_id="res-1"):
    return {
        "product_id": product_id,
        "sku": f"SKU-{product_id}",
        "title": f"Product {product_id}",
        "unit_price": price,
        "quantity": quantity,
        "line_total": round(price * quantity, 2),
        "reservation_id": reservation_id,
    }


def _place(**overrides):
    defaults = {
        "order_id": "order-ref-1",
        "store_id": "store-1",
        "order_number": "#1001",
        "line_items": [_line()],
        "pricing": {"subtotal": 20.0, "discount": 2.0, "shipping": 5.0, "tax": 1.5, "total": 24.5},
    }
    defaults.update(overrides)
    return Order.place(**defaults)


class TestPlaceOrder:
    def test_order_id_is_order_ref(self):
        order = _place()
        assert str(order.id) == "order-ref-1"

    def test_initial_statuses(self):
        order = _place()
        assert order.financial_status == FinancialStatus.PENDING.value
        assert order.fulfillment_status == FulfillmentStatus.UNFULFILLED.value

    def test_line_items_snapshot(self):
        order = _place()
        item = order.line_items[0]
        assert item.title == "Product prod-1"
        assert item.unit_price == 10.0
        assert item.is_fulfilled is False

    def test_placed_event(self):
        order = _place()
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.order_number == "#1001"
        assert event.item_count == 2
        assert event.total == 24.5

    def test_addresses_become_value_objects(self):
        order = _place(shipping_address={"line1": "1 Main St", "city": "Springfield", "country": "US"})
        assert order.shipping_address.city == "Springfield"
        assert order.billing_address is None


class TestPricingInvariant:
    def test_total_must_match_formula(self):
        with pytest.raises(ValidationError) as exc_info:
            _place(pricing={"subtotal": 20.0, "discount": 0.0, "shipping": 0.0, "tax": 0.0, "total": 19.0})
        assert "pricing" in exc_info.value.messages

    def test_discount_cannot_exceed_subtotal(self):
        with pytest.raises(ValidationError):
            _place(pricing={"subtotal": 20.0, "discount": 25.0, "shipping": 5.0, "tax": 0.0, "total": 0.0})

    def test_float_noise_tolerated(self):
        order = _place(pricing={"subtotal": 0.3, "discount": 0.1, "shipping": 0.0, "tax": 0.0, "total": 0.2})
        assert order.pricing.total == 0.2
