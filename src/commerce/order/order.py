"""Order aggregate — the persisted result of a successful checkout.

An order is created once, by the checkout orchestrator, and afterwards only
moves along two independent state machines:

Financial:
    pending → paid → refunded
    pending → failed → pending (payment retry)

Fulfillment:
    unfulfilled → partially_fulfilled → fulfilled
    unfulfilled → fulfilled
    unfulfilled / partially_fulfilled → cancelled

Line items are a snapshot of the catalog at purchase time and are never
repriced.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from commerce.domain import commerce
from commerce.errors import InvalidStateTransition
from commerce.order.events import (
    OrderCancelled,
    OrderFulfilled,
    OrderPaid,
    OrderPartiallyFulfilled,
    OrderPaymentFailed,
    OrderPaymentRetried,
    OrderPlaced,
    OrderRefunded,
    OrderStockReleased,
)
from commerce.shared.money import grand_total, to_decimal


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class FinancialStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class FulfillmentStatus(Enum):
    UNFULFILLED = "unfulfilled"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


_FINANCIAL_TRANSITIONS = {
    FinancialStatus.PENDING: {FinancialStatus.PAID, FinancialStatus.FAILED},
    FinancialStatus.FAILED: {FinancialStatus.PENDING},
    FinancialStatus.PAID: {FinancialStatus.REFUNDED},
    FinancialStatus.REFUNDED: set(),  # Terminal
}

_FULFILLMENT_TRANSITIONS = {
    FulfillmentStatus.UNFULFILLED: {
        FulfillmentStatus.PARTIALLY_FULFILLED,
        FulfillmentStatus.FULFILLED,
        FulfillmentStatus.CANCELLED,
    },
    FulfillmentStatus.PARTIALLY_FULFILLED: {
        FulfillmentStatus.PARTIALLY_FULFILLED,
        FulfillmentStatus.FULFILLED,
        FulfillmentStatus.CANCELLED,
    },
    FulfillmentStatus.FULFILLED: set(),  # Terminal
    FulfillmentStatus.CANCELLED: set(),  # Terminal
}

# Orders in these states still hold stock and block store deactivation
OPEN_FULFILLMENT_STATUSES = (
    FulfillmentStatus.UNFULFILLED.value,
    FulfillmentStatus.PARTIALLY_FULFILLED.value,
)

# Totals may differ from the recomputed formula by at most half a cent
_TOTAL_TOLERANCE = 0.005


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@commerce.value_object(part_of="Order")
class Address:
    """Shipping or billing address as entered at checkout."""

    name = String(max_length=255)
    line1 = String(required=True, max_length=255)
    line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    province = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(required=True, max_length=100)


@commerce.value_object(part_of="Order")
class OrderPricing:
    """Amounts locked at checkout. ``shipping`` and ``tax`` are supplied by the caller."""

    subtotal = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderLineItem:
    """Snapshot of one purchased product.

    ``reservation_id`` is set when the product tracked stock at checkout; it
    is what cancellation hands back to the catalog.
    """

    product_id = Identifier(required=True)
    sku = String(max_length=100)
    title = String(required=True, max_length=255)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    line_total = Float(required=True, min_value=0.0)
    reservation_id = Identifier()
    is_fulfilled = Boolean(default=False)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@commerce.aggregate
class Order:
    store_id = Identifier(required=True)
    order_number = String(required=True, max_length=50)
    customer_id = Identifier()
    email = String(max_length=255)
    phone = String(max_length=50)
    note = Text()
    currency = String(max_length=3, default="USD")
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    discount_code = String(max_length=50)
    discount_id = Identifier()
    line_items = HasMany(OrderLineItem)
    pricing = ValueObject(OrderPricing)
    financial_status = String(choices=FinancialStatus, default=FinancialStatus.PENDING.value)
    fulfillment_status = String(choices=FulfillmentStatus, default=FulfillmentStatus.UNFULFILLED.value)
    cancellation_reason = String(max_length=500)
    paid_at = DateTime()
    fulfilled_at = DateTime()
    cancelled_at = DateTime()
    stock_released_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_match_components(self):
        if self.pricing is None:
            return

        pricing = self.pricing
        if pricing.discount > pricing.subtotal:
            raise ValidationError({"pricing": ["Discount cannot exceed the subtotal"]})

        expected = grand_total(pricing.subtotal, pricing.discount, pricing.shipping, pricing.tax)
        if abs(to_decimal(pricing.total) - expected) > to_decimal(_TOTAL_TOLERANCE):
            raise ValidationError({"pricing": ["Total must equal subtotal - discount + shipping + tax"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_id,
        store_id,
        order_number,
        line_items,
        pricing,
        customer_id=None,
        email=None,
        phone=None,
        note=None,
        currency="USD",
        shipping_address=None,
        billing_address=None,
        discount_code=None,
        discount_id=None,
    ):
        """Build a new pending, unfulfilled order.

        Args:
            order_id: The checkout attempt reference, reused as the order id.
            line_items: List of dicts with product_id, sku, title, unit_price,
                quantity, line_total and reservation_id.
            pricing: Dict with subtotal, discount, shipping, tax and total.
            shipping_address / billing_address: Dicts matching ``Address``.
        """
        now = datetime.now(UTC)
        order = cls(
            id=str(order_id),
            store_id=store_id,
            order_number=order_number,
            customer_id=customer_id,
            email=email,
            phone=phone,
            note=note,
            currency=currency,
            shipping_address=Address(**shipping_address) if shipping_address else None,
            billing_address=Address(**billing_address) if billing_address else None,
            discount_code=discount_code,
            discount_id=discount_id,
            line_items=[OrderLineItem(**item) for item in line_items],
            pricing=OrderPricing(**pricing),
            financial_status=FinancialStatus.PENDING.value,
            fulfillment_status=FulfillmentStatus.UNFULFILLED.value,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                store_id=str(store_id),
                order_number=order_number,
                customer_id=str(customer_id) if customer_id else None,
                email=email,
                item_count=sum(item["quantity"] for item in line_items),
                subtotal=order.pricing.subtotal,
                discount=order.pricing.discount,
                total=order.pricing.total,
                discount_code=discount_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Transition helpers
    # -------------------------------------------------------------------
    def _assert_financial(self, target):
        current = FinancialStatus(self.financial_status)
        if target not in _FINANCIAL_TRANSITIONS[current]:
            raise InvalidStateTransition("financial_status", current.value, target.value)

    def _assert_fulfillment(self, target):
        current = FulfillmentStatus(self.fulfillment_status)
        if target not in _FULFILLMENT_TRANSITIONS[current]:
            raise InvalidStateTransition("fulfillment_status", current.value, target.value)

    @property
    def is_cancelled(self) -> bool:
        return self.fulfillment_status == FulfillmentStatus.CANCELLED.value

    @property
    def is_open(self) -> bool:
        return self.fulfillment_status in OPEN_FULFILLMENT_STATUSES

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in (self.line_items or []))

    # -------------------------------------------------------------------
    # Financial status
    # -------------------------------------------------------------------
    def mark_paid(self):
        if self.is_cancelled:
            raise InvalidStateTransition("financial_status", self.financial_status, FinancialStatus.PAID.value)
        self._assert_financial(FinancialStatus.PAID)

        now = datetime.now(UTC)
        self.financial_status = FinancialStatus.PAID.value
        self.paid_at = now
        self.updated_at = now

        self.raise_(OrderPaid(order_id=str(self.id), amount=self.pricing.total, paid_at=now))

    def mark_payment_failed(self, reason=None):
        self._assert_financial(FinancialStatus.FAILED)

        now = datetime.now(UTC)
        self.financial_status = FinancialStatus.FAILED.value
        self.updated_at = now

        self.raise_(OrderPaymentFailed(order_id=str(self.id), reason=reason, failed_at=now))

    def retry_payment(self):
        if self.is_cancelled:
            raise InvalidStateTransition("financial_status", self.financial_status, FinancialStatus.PENDING.value)
        self._assert_financial(FinancialStatus.PENDING)

        now = datetime.now(UTC)
        self.financial_status = FinancialStatus.PENDING.value
        self.updated_at = now

        self.raise_(OrderPaymentRetried(order_id=str(self.id), retried_at=now))

    def refund(self):
        self._assert_financial(FinancialStatus.REFUNDED)

        now = datetime.now(UTC)
        self.financial_status = FinancialStatus.REFUNDED.value
        self.updated_at = now

        self.raise_(OrderRefunded(order_id=str(self.id), amount=self.pricing.total, refunded_at=now))

    # -------------------------------------------------------------------
    # Fulfillment status
    # -------------------------------------------------------------------
    def fulfill_items(self, line_item_ids):
        """Mark some line items as shipped.

        The order becomes ``fulfilled`` once every line is shipped, and
        ``partially_fulfilled`` otherwise.
        """
        wanted = {str(item_id) for item_id in line_item_ids}
        if not wanted:
            raise ValidationError({"line_item_ids": ["At least one line item is required"]})

        items_by_id = {str(item.id): item for item in self.line_items}
        unknown = wanted - items_by_id.keys()
        if unknown:
            raise ValidationError({"line_item_ids": [f"Unknown line items: {', '.join(sorted(unknown))}"]})

        remaining = [item for item in self.line_items if not item.is_fulfilled and str(item.id) not in wanted]
        target = FulfillmentStatus.PARTIALLY_FULFILLED if remaining else FulfillmentStatus.FULFILLED
        self._assert_fulfillment(target)

        for item_id in wanted:
            items_by_id[item_id].is_fulfilled = True

        if target == FulfillmentStatus.FULFILLED:
            self._complete_fulfillment()
            return

        now = datetime.now(UTC)
        self.fulfillment_status = target.value
        self.updated_at = now
        self.raise_(
            OrderPartiallyFulfilled(
                order_id=str(self.id),
                line_item_ids=json.dumps(sorted(wanted)),
                fulfilled_at=now,
            )
        )

    def fulfill(self):
        """Ship every remaining line item."""
        self._assert_fulfillment(FulfillmentStatus.FULFILLED)
        for item in self.line_items:
            item.is_fulfilled = True
        self._complete_fulfillment()

    def _complete_fulfillment(self):
        now = datetime.now(UTC)
        self.fulfillment_status = FulfillmentStatus.FULFILLED.value
        self.fulfilled_at = now
        self.updated_at = now
        self.raise_(OrderFulfilled(order_id=str(self.id), fulfilled_at=now))

    def cancel(self, reason=None):
        self._assert_fulfillment(FulfillmentStatus.CANCELLED)

        now = datetime.now(UTC)
        self.fulfillment_status = FulfillmentStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                store_id=str(self.store_id),
                reason=reason,
                cancelled_at=now,
            )
        )

    def reserved_lines(self):
        """Unshipped line items that still hold a stock reservation."""
        return [item for item in (self.line_items or []) if item.reservation_id and not item.is_fulfilled]

    def shipped_lines(self):
        """Shipped line items whose stock reservation can be settled."""
        return [item for item in (self.line_items or []) if item.reservation_id and item.is_fulfilled]

    def mark_stock_released(self, released_count):
        now = datetime.now(UTC)
        self.stock_released_at = now
        self.updated_at = now
        self.raise_(OrderStockReleased(order_id=str(self.id), released_count=released_count, released_at=now))
