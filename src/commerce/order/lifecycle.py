"""Order Lifecycle Manager — externally triggered status transitions.

Transitions are validated by the Order aggregate and persisted through the
data-access adapter, so a rejected transition leaves the stored order exactly
as it was. Cancellation is recorded first and the stock is handed back
afterwards by ``release_cancelled_stock``, which is safe to call again if a
release step fails part way through.
"""

import structlog
from protean.exceptions import ObjectNotFoundError

from commerce.catalog.inventory import CatalogStore, ReservationToken
from commerce.errors import DataAccessError, OrderNotFound
from commerce.order.order import FulfillmentStatus, Order
from commerce.persistence import get_data_access
from commerce.persistence.port import DataAccess

logger = structlog.get_logger(__name__)


class OrderLifecycleManager:
    def __init__(self, catalog: CatalogStore | None = None, data_access: DataAccess | None = None) -> None:
        self.data_access = data_access or get_data_access()
        self.catalog = catalog or CatalogStore(self.data_access)

    def _apply(self, order_id, action, transition: str) -> Order:
        def change(order):
            action(order)
            return order

        try:
            order = self.data_access.atomic_update(Order, str(order_id), change)
        except ObjectNotFoundError:
            raise OrderNotFound(order_id)

        logger.info(
            "Order transitioned",
            order_id=str(order_id),
            transition=transition,
            financial_status=order.financial_status,
            fulfillment_status=order.fulfillment_status,
        )
        return order

    # -------------------------------------------------------------------
    # Financial status
    # -------------------------------------------------------------------
    def mark_paid(self, order_id) -> Order:
        return self._apply(order_id, lambda order: order.mark_paid(), "mark_paid")

    def mark_payment_failed(self, order_id, reason=None) -> Order:
        return self._apply(order_id, lambda order: order.mark_payment_failed(reason), "mark_payment_failed")

    def retry_payment(self, order_id) -> Order:
        return self._apply(order_id, lambda order: order.retry_payment(), "retry_payment")

    def refund(self, order_id) -> Order:
        return self._apply(order_id, lambda order: order.refund(), "refund")

    # -------------------------------------------------------------------
    # Fulfillment status
    # -------------------------------------------------------------------
    def fulfill(self, order_id) -> Order:
        order = self._apply(order_id, lambda order: order.fulfill(), "fulfill")
        self._settle_after_fulfillment(order)
        return order

    def fulfill_items(self, order_id, line_item_ids) -> Order:
        order = self._apply(order_id, lambda order: order.fulfill_items(line_item_ids), "fulfill_items")
        self._settle_after_fulfillment(order)
        return order

    def _settle_after_fulfillment(self, order) -> None:
        # The shipment is already recorded, so a failed settle is only logged;
        # settle_shipped_stock can be called again later.
        try:
            self.settle_shipped_stock(order.id)
        except DataAccessError as exc:
            logger.warning("Settling shipped stock failed", order_id=str(order.id), error=str(exc))

    def settle_shipped_stock(self, order_id) -> int:
        """Drop the reservations behind shipped line items. Safe to call again."""
        order = self.get_order(order_id)
        settled = 0
        for item in order.shipped_lines():
            token = ReservationToken(
                product_id=str(item.product_id),
                quantity=item.quantity,
                order_ref=str(order.id),
                reservation_id=str(item.reservation_id),
            )
            if self.catalog.settle_stock(token):
                settled += 1
        return settled

    def cancel(self, order_id, reason=None) -> Order:
        """Cancel an unshipped order and return its reserved stock to the catalog."""
        self._apply(order_id, lambda order: order.cancel(reason), "cancel")
        self.release_cancelled_stock(order_id)
        return self.get_order(order_id)

    def release_cancelled_stock(self, order_id) -> int:
        """Release the reservations still held by a cancelled order.

        Returns the number of reservations released by this call. Calling it
        again after a partial failure releases only what is left.
        """
        order = self.get_order(order_id)
        if order.fulfillment_status != FulfillmentStatus.CANCELLED.value:
            return 0

        released = 0
        for item in order.reserved_lines():
            token = ReservationToken(
                product_id=str(item.product_id),
                quantity=item.quantity,
                order_ref=str(order.id),
                reservation_id=str(item.reservation_id),
            )
            if self.catalog.release_stock(token):
                released += 1

        if order.stock_released_at is None:
            self._apply(order_id, lambda o: o.mark_stock_released(released), "stock_released")

        logger.info("Cancelled order stock released", order_id=str(order_id), released=released)
        return released

    def pending_stock_releases(self, store_id=None) -> list[Order]:
        """Cancelled orders whose stock release has not completed yet."""
        filters = {"fulfillment_status": FulfillmentStatus.CANCELLED.value}
        if store_id is not None:
            filters["store_id"] = str(store_id)
        return [order for order in self.data_access.find(Order, **filters) if order.stock_released_at is None]

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id) -> Order:
        try:
            return self.data_access.load(Order, str(order_id))
        except ObjectNotFoundError:
            raise OrderNotFound(order_id)

    def list_orders(self, store_id, search=None) -> list[Order]:
        """Orders of a store, newest first, optionally filtered by order number or email."""
        orders = self.data_access.find(Order, store_id=str(store_id))
        if search:
            needle = search.strip().lower()
            orders = [
                order
                for order in orders
                if needle in order.order_number.lower() or (order.email and needle in order.email.lower())
            ]
        return sorted(orders, key=lambda order: order.created_at, reverse=True)
