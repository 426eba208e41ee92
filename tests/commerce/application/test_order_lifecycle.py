"""Application tests for the OrderLifecycleManager."""

import pytest
from protean import current_domain

from commerce.catalog.inventory import CatalogStore
from commerce.catalog.management import DeleteProduct
from commerce.catalog.product import Product
from commerce.checkout.orchestrator import BuyerInfo, CheckoutOrchestrator
from commerce.discount.discount import DiscountCode
from commerce.errors import DataAccessTimeout, InvalidStateTransition, OrderNotFound
from commerce.order.lifecycle import OrderLifecycleManager
from commerce.order.order import FinancialStatus, FulfillmentStatus, Order
from commerce.persistence.locking_adapter import LockingDataAccess


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).stock_quantity


@pytest.fixture()
def placed_order(store, make_product):
    product = make_product(stock=5)
    order = CheckoutOrchestrator().checkout(store.id, [(product.id, 2)])
    return order, product


class TestFinancialLifecycle:
    def test_mark_paid_persists(self, placed_order):
        order, _ = placed_order
        OrderLifecycleManager().mark_paid(order.id)
        assert current_domain.repository_for(Order).get(order.id).financial_status == FinancialStatus.PAID.value

    def test_refund_unpaid_rejected_without_mutation(self, placed_order):
        order, _ = placed_order
        with pytest.raises(InvalidStateTransition):
            OrderLifecycleManager().refund(order.id)

        persisted = current_domain.repository_for(Order).get(order.id)
        assert persisted.financial_status == FinancialStatus.PENDING.value

    def test_payment_failure_and_retry(self, placed_order):
        order, _ = placed_order
        manager = OrderLifecycleManager()
        manager.mark_payment_failed(order.id, reason="card declined")
        manager.retry_payment(order.id)
        paid = manager.mark_paid(order.id)
        assert paid.financial_status == FinancialStatus.PAID.value

    def test_unknown_order(self):
        with pytest.raises(OrderNotFound):
            OrderLifecycleManager().mark_paid("missing")


class TestCancellation:
    def test_cancel_releases_stock(self, placed_order):
        order, product = placed_order
        assert _stock(product.id) == 3

        cancelled = OrderLifecycleManager().cancel(order.id, reason="changed my mind")

        assert cancelled.fulfillment_status == FulfillmentStatus.CANCELLED.value
        assert cancelled.stock_released_at is not None
        assert _stock(product.id) == 5

    def test_released_stock_can_be_reserved_again(self, store, make_product):
        product = make_product(stock=2)
        order = CheckoutOrchestrator().checkout(store.id, [(product.id, 2)])
        OrderLifecycleManager().cancel(order.id)

        token = CatalogStore().reserve_stock(product.id, 2, "next-shopper")
        assert token.holds_stock
        assert _stock(product.id) == 0

    def test_cancel_paid_unfulfilled_order(self, placed_order):
        order, product = placed_order
        manager = OrderLifecycleManager()
        manager.mark_paid(order.id)
        manager.cancel(order.id)
        assert _stock(product.id) == 5

    def test_cancel_fulfilled_order_rejected(self, placed_order):
        order, product = placed_order
        manager = OrderLifecycleManager()
        manager.fulfill(order.id)

        with pytest.raises(InvalidStateTransition):
            manager.cancel(order.id)
        assert _stock(product.id) == 3

    def test_cancel_partially_fulfilled_releases_only_unshipped_lines(self, store, make_product):
        shipped = make_product(name="Shipped", stock=5)
        pending = make_product(name="Pending", stock=5)
        order = CheckoutOrchestrator().checkout(store.id, [(shipped.id, 1), (pending.id, 2)])
        manager = OrderLifecycleManager()

        shipped_line = next(i for i in order.line_items if str(i.product_id) == str(shipped.id))
        manager.fulfill_items(order.id, [shipped_line.id])
        manager.cancel(order.id)

        assert _stock(shipped.id) == 4
        assert _stock(pending.id) == 5

    def test_cancel_keeps_discount_usage(self, store, make_product, make_discount):
        product = make_product()
        discount = make_discount(usage_limit=5)
        order = CheckoutOrchestrator().checkout(store.id, [(product.id, 1)], discount_code="SAVE10")

        OrderLifecycleManager().cancel(order.id)

        assert current_domain.repository_for(DiscountCode).get(discount.id).used_count == 1

    def test_release_is_idempotent(self, placed_order):
        order, product = placed_order
        manager = OrderLifecycleManager()
        manager.cancel(order.id)

        assert manager.release_cancelled_stock(order.id) == 0
        assert _stock(product.id) == 5

    def test_release_on_open_order_does_nothing(self, placed_order):
        order, product = placed_order
        assert OrderLifecycleManager().release_cancelled_stock(order.id) == 0
        assert _stock(product.id) == 3


class _FailingReleaseCatalog(CatalogStore):
    def __init__(self, data_access):
        super().__init__(data_access)
        self.fail = True

    def release_stock(self, token):
        if self.fail:
            raise DataAccessTimeout("simulated timeout")
        return super().release_stock(token)


class TestInterruptedRelease:
    def test_release_can_be_retried_after_failure(self, placed_order):
        order, product = placed_order
        data_access = LockingDataAccess()
        catalog = _FailingReleaseCatalog(data_access)
        manager = OrderLifecycleManager(catalog=catalog, data_access=data_access)

        with pytest.raises(DataAccessTimeout):
            manager.cancel(order.id)

        assert manager.get_order(order.id).fulfillment_status == FulfillmentStatus.CANCELLED.value
        assert [str(o.id) for o in manager.pending_stock_releases()] == [str(order.id)]
        assert _stock(product.id) == 3

        catalog.fail = False
        assert manager.release_cancelled_stock(order.id) == 1
        assert _stock(product.id) == 5
        assert manager.pending_stock_releases() == []


class TestSettlement:
    def test_fulfillment_drops_the_reservation(self, placed_order):
        order, product = placed_order
        OrderLifecycleManager().fulfill(order.id)

        persisted = current_domain.repository_for(Product).get(product.id)
        assert persisted.stock_quantity == 3
        assert persisted.active_reservations() == []

    def test_partial_fulfillment_settles_only_shipped_lines(self, store, make_product):
        shipped = make_product(name="Shipped", stock=5)
        pending = make_product(name="Pending", stock=5)
        order = CheckoutOrchestrator().checkout(store.id, [(shipped.id, 1), (pending.id, 2)])

        shipped_line = next(i for i in order.line_items if str(i.product_id) == str(shipped.id))
        OrderLifecycleManager().fulfill_items(order.id, [shipped_line.id])

        repo = current_domain.repository_for(Product)
        assert repo.get(shipped.id).active_reservations() == []
        assert len(repo.get(pending.id).active_reservations(str(order.id))) == 1

    def test_settle_is_idempotent(self, placed_order):
        order, product = placed_order
        manager = OrderLifecycleManager()
        manager.fulfill(order.id)

        assert manager.settle_shipped_stock(order.id) == 0
        assert _stock(product.id) == 3


class TestDeletedProducts:
    def test_order_keeps_captured_line_details(self, store, make_product):
        product = make_product(name="Rye Loaf", price=6.25, stock=5, sku="RYE-1")
        order = CheckoutOrchestrator().checkout(store.id, [(product.id, 2)])

        current_domain.process(DeleteProduct(product_id=str(product.id)), asynchronous=False)

        line = OrderLifecycleManager().get_order(order.id).line_items[0]
        assert line.title == "Rye Loaf"
        assert line.sku == "RYE-1"
        assert line.unit_price == 6.25
        assert line.line_total == 12.5

    def test_cancel_after_deletion_restores_remaining_products(self, store, make_product):
        deleted = make_product(name="Deleted", stock=5)
        kept = make_product(name="Kept", stock=5)
        order = CheckoutOrchestrator().checkout(store.id, [(deleted.id, 1), (kept.id, 2)])
        current_domain.process(DeleteProduct(product_id=str(deleted.id)), asynchronous=False)
        manager = OrderLifecycleManager()

        cancelled = manager.cancel(order.id)

        assert cancelled.fulfillment_status == FulfillmentStatus.CANCELLED.value
        assert cancelled.stock_released_at is not None
        assert _stock(kept.id) == 5
        assert manager.pending_stock_releases() == []

    def test_fulfill_after_deletion(self, placed_order):
        order, product = placed_order
        current_domain.process(DeleteProduct(product_id=str(product.id)), asynchronous=False)

        fulfilled = OrderLifecycleManager().fulfill(order.id)

        assert fulfilled.fulfillment_status == FulfillmentStatus.FULFILLED.value


class TestOrderQueries:
    def test_list_orders_newest_first(self, store, make_product):
        product = make_product()
        first = CheckoutOrchestrator().checkout(store.id, [(product.id, 1)])
        second = CheckoutOrchestrator().checkout(store.id, [(product.id, 1)])

        older = current_domain.repository_for(Order).get(first.id)
        older.created_at = older.created_at.replace(year=older.created_at.year - 1)
        current_domain.repository_for(Order).add(older)

        orders = OrderLifecycleManager().list_orders(store.id)
        assert [o.order_number for o in orders] == [second.order_number, first.order_number]

    def test_search_by_number_or_email(self, store, make_product):
        product = make_product()
        orchestrator = CheckoutOrchestrator()
        orchestrator.checkout(store.id, [(product.id, 1)], buyer=BuyerInfo(email="ada@example.com"))
        orchestrator.checkout(store.id, [(product.id, 1)], buyer=BuyerInfo(email="grace@example.com"))

        manager = OrderLifecycleManager()
        assert [o.email for o in manager.list_orders(store.id, search="ADA@")] == ["ada@example.com"]
        assert [o.order_number for o in manager.list_orders(store.id, search="#1002")] == ["#1002"]
