"""Checkout Orchestrator — turns a cart into an order, all or nothing.

There is no transaction spanning products, discount codes and orders, so the
orchestrator undoes its own work: once it starts reserving stock, any failure
(business rule, timeout, lost response) triggers a compensation pass that
releases every reservation and revokes every redemption tagged with the
attempt's ``order_ref``. Keying compensation by ``order_ref`` instead of by
the tokens we got back means a reservation whose response was lost is still
found and released.

Each compensation step is retried with a short backoff. A step that still
fails leaves its hold in place, tagged with an ``order_ref`` that no order
ever took; ``pending_checkout_releases`` finds such holds and
``release_abandoned_checkouts`` gives them back.

The ``order_ref`` becomes the id of the persisted order.
"""

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart, compute_totals
from commerce.catalog.inventory import CatalogStore
from commerce.catalog.product import Product
from commerce.discount.discount import DiscountCode, as_utc
from commerce.discount.ledger import DiscountLedger
from commerce.errors import (
    DataAccessError,
    EmptyCart,
    OrderNumberCollision,
    ProductInactive,
    ProductNotFound,
    StoreInactive,
    StoreNotFound,
    UniqueViolation,
)
from commerce.order.order import Order
from commerce.persistence import get_data_access
from commerce.persistence.port import DataAccess
from commerce.shared.money import grand_total, line_total, to_amount
from commerce.store.store import Store

logger = structlog.get_logger(__name__)

MAX_ORDER_NUMBER_ATTEMPTS = 3
COMPENSATION_ATTEMPTS = 3
COMPENSATION_BACKOFF_SECONDS = 0.05

# Longer than any checkout can take, so a hold this old without an order is
# never one an in-flight attempt still needs.
ABANDONED_CHECKOUT_GRACE = timedelta(minutes=5)


@dataclass(frozen=True)
class BuyerInfo:
    customer_id: str | None = None
    email: str | None = None
    phone: str | None = None
    note: str | None = None
    shipping_address: dict | None = None
    billing_address: dict | None = None


@dataclass
class _Attempt:
    """Everything one checkout attempt has touched, for compensation."""

    order_ref: str
    store_id: str
    product_ids: list[str] = field(default_factory=list)
    discount_id: str | None = None


@dataclass(frozen=True)
class AbandonedHold:
    """Stock or a discount use still held for a checkout that never placed an order."""

    kind: str
    aggregate_id: str
    order_ref: str
    held_since: datetime


class CheckoutOrchestrator:
    def __init__(
        self,
        catalog: CatalogStore | None = None,
        ledger: DiscountLedger | None = None,
        data_access: DataAccess | None = None,
    ) -> None:
        self.data_access = data_access or get_data_access()
        self.catalog = catalog or CatalogStore(self.data_access)
        self.ledger = ledger or DiscountLedger(self.data_access)

    def checkout(
        self,
        store_id,
        cart_lines,
        discount_code: str | None = None,
        buyer: BuyerInfo | None = None,
        shipping: float = 0.0,
        tax: float = 0.0,
        currency: str = "USD",
        now: datetime | None = None,
    ) -> Order:
        """Place an order for ``cart_lines`` in a store.

        ``cart_lines`` is a ``Cart`` or an iterable of ``(product_id,
        quantity)`` pairs. Raises a ``CommerceRuleError`` when a business rule
        rejects the attempt and a ``DataAccessError`` when the data layer
        fails. In both cases everything the attempt reserved or redeemed is
        given back, or, if the data layer keeps failing, left for
        ``release_abandoned_checkouts``.
        """
        buyer = buyer or BuyerInfo()
        now = now or datetime.now(UTC)
        attempt = _Attempt(order_ref=str(uuid4()), store_id=str(store_id))
        log = logger.bind(order_ref=attempt.order_ref, store_id=attempt.store_id)

        # 1. Resolve the store and a priced snapshot of every line
        self._require_active_store(store_id)
        cart = cart_lines if isinstance(cart_lines, Cart) else Cart.from_lines(cart_lines, store_id=store_id)
        if cart.is_empty:
            raise EmptyCart()

        lines = cart.lines()
        snapshot = self.catalog.price_snapshot(line.product_id for line in lines)
        for line in lines:
            product = snapshot.get(line.product_id)
            if product is None or product.store_id != attempt.store_id:
                raise ProductNotFound(line.product_id)
            if not product.is_active:
                raise ProductInactive(line.product_id)

        subtotal = compute_totals(cart, snapshot).subtotal

        # 2. Validate the discount against the subtotal, without redeeming it
        effect = None
        discount_amount = 0
        if discount_code:
            effect = self.ledger.validate(store_id, discount_code, subtotal, now)
            discount_amount = effect.amount_for(subtotal)
            attempt.discount_id = effect.discount_id

        total = grand_total(subtotal, discount_amount, shipping, tax)
        log.info("Checkout started", lines=len(lines), subtotal=float(subtotal), discount_code=discount_code)

        try:
            # 3. Reserve stock for every line
            reservations = {}
            for line in lines:
                attempt.product_ids.append(line.product_id)
                token = self.catalog.reserve_stock(line.product_id, line.quantity, attempt.order_ref)
                reservations[line.product_id] = token.reservation_id

            # 4. Durably redeem the discount
            if discount_code:
                self.ledger.redeem(store_id, discount_code, attempt.order_ref, now)

            # 5 and 6. Number and persist the order
            line_items = [
                {
                    "product_id": line.product_id,
                    "sku": snapshot[line.product_id].sku,
                    "title": snapshot[line.product_id].name,
                    "unit_price": snapshot[line.product_id].price,
                    "quantity": line.quantity,
                    "line_total": to_amount(line_total(snapshot[line.product_id].price, line.quantity)),
                    "reservation_id": reservations[line.product_id],
                }
                for line in lines
            ]
            pricing = {
                "subtotal": to_amount(subtotal),
                "discount": to_amount(discount_amount),
                "shipping": to_amount(shipping),
                "tax": to_amount(tax),
                "total": to_amount(total),
            }
            order = self._persist_order(
                attempt,
                line_items=line_items,
                pricing=pricing,
                buyer=buyer,
                currency=currency,
                discount_code=effect.code if effect else None,
            )
        except Exception as exc:
            log.warning("Checkout failed, compensating", error=type(exc).__name__, reason=str(exc))
            self._compensate(attempt)
            raise

        # 7. Done
        log.info("Order placed", order_number=order.order_number, total=order.pricing.total)
        if attempt.discount_id:
            self._settle_redemption(attempt)
        return order

    def _require_active_store(self, store_id) -> Store:
        try:
            store = self.data_access.load(Store, str(store_id))
        except ObjectNotFoundError:
            raise StoreNotFound(store_id)
        if not store.is_active:
            raise StoreInactive(store_id)
        return store

    def allocate_order_number(self, store_id) -> str:
        """Take the next number from the store's monotonic sequence."""

        def _issue(store):
            if not store.is_active:
                raise StoreInactive(store.id)
            return store.issue_order_number()

        try:
            return self.data_access.atomic_update(Store, str(store_id), _issue)
        except ObjectNotFoundError:
            raise StoreNotFound(store_id)

    def _persist_order(self, attempt, line_items, pricing, buyer, currency, discount_code) -> Order:
        # Runs inside the insert's serialized step, so a deactivation can
        # never land between this check and the order becoming visible.
        def store_still_active():
            if not current_domain.repository_for(Store).get(attempt.store_id).is_active:
                raise StoreInactive(attempt.store_id)

        for tries in range(1, MAX_ORDER_NUMBER_ATTEMPTS + 1):
            order_number = self.allocate_order_number(attempt.store_id)
            order = Order.place(
                order_id=attempt.order_ref,
                store_id=attempt.store_id,
                order_number=order_number,
                line_items=line_items,
                pricing=pricing,
                customer_id=buyer.customer_id,
                email=buyer.email,
                phone=buyer.phone,
                note=buyer.note,
                currency=currency,
                shipping_address=buyer.shipping_address,
                billing_address=buyer.billing_address,
                discount_code=discount_code,
                discount_id=attempt.discount_id,
            )
            try:
                self.data_access.insert_unique(
                    order,
                    unique_on=("store_id", "order_number"),
                    precondition=store_still_active,
                )
                return order
            except UniqueViolation:
                logger.warning(
                    "Order number collision, retrying",
                    order_ref=attempt.order_ref,
                    order_number=order_number,
                    attempt=tries,
                )
            except DataAccessError:
                persisted = self._find_persisted(attempt.order_ref)
                if persisted is None:
                    raise
                logger.warning("Order insert reported failure but was persisted", order_ref=attempt.order_ref)
                return persisted

        raise OrderNumberCollision(attempt.store_id, MAX_ORDER_NUMBER_ATTEMPTS)

    def _find_persisted(self, order_ref) -> Order | None:
        try:
            return self.data_access.load(Order, order_ref)
        except (ObjectNotFoundError, DataAccessError):
            return None

    def _settle_redemption(self, attempt: _Attempt) -> None:
        # The order is already placed; a redemption left behind only costs
        # space, and an existing order keeps recovery away from it.
        try:
            self.ledger.settle_for_order(attempt.discount_id, attempt.order_ref)
        except DataAccessError as exc:
            logger.warning(
                "Settling discount redemption failed",
                order_ref=attempt.order_ref,
                discount_id=attempt.discount_id,
                error=str(exc),
            )

    def _compensate(self, attempt: _Attempt) -> None:
        """Release everything tagged with the attempt's order reference.

        A step that keeps failing is logged and skipped so the remaining
        steps still run. What it held shows up in
        ``pending_checkout_releases``. The original checkout error is what the
        caller sees.
        """
        for product_id in dict.fromkeys(attempt.product_ids):
            self._retrying(
                "release_stock",
                lambda product_id=product_id: self.catalog.release_for_order(product_id, attempt.order_ref),
                order_ref=attempt.order_ref,
                product_id=product_id,
            )

        if attempt.discount_id:
            self._retrying(
                "revoke_discount",
                lambda: self.ledger.revoke_for_order(attempt.discount_id, attempt.order_ref),
                order_ref=attempt.order_ref,
                discount_id=attempt.discount_id,
            )

    def _retrying(self, step, action, **context) -> bool:
        delay = COMPENSATION_BACKOFF_SECONDS
        for tries in range(1, COMPENSATION_ATTEMPTS + 1):
            try:
                action()
                return True
            except DataAccessError as exc:
                if tries == COMPENSATION_ATTEMPTS:
                    logger.error(
                        "Compensation step failed, hold left for recovery",
                        step=step,
                        attempts=tries,
                        error=str(exc),
                        **context,
                    )
                    return False
                logger.warning("Compensation step failed, retrying", step=step, attempt=tries, **context)
                time.sleep(delay)
                delay *= 2
        return False

    # -------------------------------------------------------------------
    # Recovery
    # -------------------------------------------------------------------
    def _order_exists(self, order_ref) -> bool:
        try:
            self.data_access.load(Order, str(order_ref))
        except ObjectNotFoundError:
            return False
        return True

    def pending_checkout_releases(
        self,
        store_id,
        older_than: timedelta = ABANDONED_CHECKOUT_GRACE,
        now: datetime | None = None,
    ) -> list[AbandonedHold]:
        """Holds in a store that belong to checkouts which never placed an order.

        Only holds taken more than ``older_than`` ago are reported, so the
        attempts still in flight are left alone.
        """
        cutoff = (now or datetime.now(UTC)) - older_than
        candidates = []
        for product in self.data_access.find(Product, store_id=str(store_id)):
            for reservation in product.active_reservations():
                candidates.append(
                    AbandonedHold("stock", str(product.id), str(reservation.order_ref), as_utc(reservation.reserved_at))
                )
        for discount in self.data_access.find(DiscountCode, store_id=str(store_id)):
            for redemption in discount.redemptions or []:
                candidates.append(
                    AbandonedHold("discount", str(discount.id), str(redemption.order_ref), as_utc(redemption.redeemed_at))
                )

        return [
            hold for hold in candidates if hold.held_since <= cutoff and not self._order_exists(hold.order_ref)
        ]

    def release_abandoned_checkouts(
        self,
        store_id,
        older_than: timedelta = ABANDONED_CHECKOUT_GRACE,
        now: datetime | None = None,
    ) -> int:
        """Give back every hold ``pending_checkout_releases`` reports. Returns how many were released."""
        released = 0
        for hold in self.pending_checkout_releases(store_id, older_than=older_than, now=now):
            if hold.kind == "stock":
                released += len(self.catalog.release_for_order(hold.aggregate_id, hold.order_ref))
            elif self.ledger.revoke_for_order(hold.aggregate_id, hold.order_ref):
                released += 1

        logger.info("Abandoned checkout holds released", store_id=str(store_id), released=released)
        return released
