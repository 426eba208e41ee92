"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from commerce.domain import commerce


@commerce.event(part_of="Order")
class OrderPlaced:
    """A checkout completed and the order was persisted."""

    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    email = String()
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    discount = Float(required=True)
    total = Float(required=True)
    discount_code = String()
    placed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPaid:
    __version__ = 1

    order_id = Identifier(required=True)
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPaymentRetried:
    __version__ = 1

    order_id = Identifier(required=True)
    retried_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    amount = Float(required=True)
    refunded_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPartiallyFulfilled:
    __version__ = 1

    order_id = Identifier(required=True)
    line_item_ids = Text(required=True)  # JSON-encoded list
    fulfilled_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderFulfilled:
    __version__ = 1

    order_id = Identifier(required=True)
    fulfilled_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderStockReleased:
    """Stock held by a cancelled order went back to the catalog."""

    __version__ = 1

    order_id = Identifier(required=True)
    released_count = Integer(required=True)
    released_at = DateTime(required=True)
