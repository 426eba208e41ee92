"""Product aggregate with stock reservations.

A product that tracks quantity holds a finite ``stock_quantity`` which is
only ever changed through ``reserve``, ``release`` and ``restock``. Every
reservation still held is a ``StockReservation`` entity keyed by the
checkout attempt (``order_ref``) that took it. Releasing or settling a
reservation removes it, so a reservation is reversed exactly once no matter
how many times a release is retried, and a product only carries open holds.

Products that do not track quantity have ``Unlimited`` stock: reserving them
never fails and records nothing.
"""

from datetime import UTC, datetime
from uuid import uuid4

from protean import atomic_change, invariant
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
)

from commerce.catalog.events import (
    ProductActivated,
    ProductAdded,
    ProductDeactivated,
    ProductDetailsUpdated,
    ProductPriceChanged,
    ProductRestocked,
    StockReleased,
    StockReserved,
    StockSettled,
)
from commerce.domain import commerce
from commerce.errors import InsufficientStock, ProductInactive
from commerce.shared.money import to_amount
from commerce.shared.quota import Quota, Unlimited, quota_from
from commerce.shared.slug import slugify


@commerce.entity(part_of="Product")
class StockReservation:
    """Stock held for one checkout attempt."""

    order_ref = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    reserved_at = DateTime(required=True)


@commerce.aggregate
class Product:
    store_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    slug = String(max_length=255)
    sku = String(max_length=100)
    description = Text()
    price = Float(required=True, min_value=0.0)
    compare_price = Float(min_value=0.0)
    track_quantity = Boolean(default=True)
    stock_quantity = Integer(min_value=0)
    is_active = Boolean(default=True)
    is_featured = Boolean(default=False)
    reservations = HasMany(StockReservation)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def tracked_products_must_have_stock(self):
        if self.track_quantity and self.stock_quantity is None:
            raise ValidationError({"stock_quantity": ["Stock quantity is required when quantity is tracked"]})

    @classmethod
    def create(
        cls,
        store_id,
        name,
        price,
        stock_quantity=None,
        track_quantity=True,
        sku=None,
        slug=None,
        description=None,
        compare_price=None,
        is_featured=False,
    ):
        now = datetime.now(UTC)
        if track_quantity and stock_quantity is None:
            stock_quantity = 0

        product = cls(
            store_id=store_id,
            name=name,
            slug=slug or slugify(name),
            sku=sku,
            description=description,
            price=to_amount(price),
            compare_price=compare_price,
            track_quantity=track_quantity,
            stock_quantity=stock_quantity if track_quantity else None,
            is_active=True,
            is_featured=is_featured,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductAdded(
                product_id=str(product.id),
                store_id=str(store_id),
                name=name,
                price=product.price,
                track_quantity=track_quantity,
                stock_quantity=product.stock_quantity,
                created_at=now,
            )
        )
        return product

    @property
    def stock(self) -> Quota:
        """Sellable stock as a quota variant."""
        if not self.track_quantity:
            return Unlimited()
        return quota_from(self.stock_quantity)

    def _find_reservation(self, reservation_id):
        return next(
            (r for r in (self.reservations or []) if str(r.id) == str(reservation_id)),
            None,
        )

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def reserve(self, quantity, order_ref):
        """Take ``quantity`` units for ``order_ref``.

        Returns the reservation id, or ``None`` for untracked products since
        there is nothing to give back later.
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.is_active:
            raise ProductInactive(self.id)

        stock = self.stock
        if isinstance(stock, Unlimited):
            return None
        if not stock.allows(quantity):
            raise InsufficientStock(self.id, available=stock.remaining, requested=quantity)

        now = datetime.now(UTC)
        reservation_id = str(uuid4())
        previous = self.stock_quantity

        with atomic_change(self):
            self.stock_quantity = previous - quantity
            self.add_reservations(
                StockReservation(
                    id=reservation_id,
                    order_ref=order_ref,
                    quantity=quantity,
                    reserved_at=now,
                )
            )
            self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                reservation_id=reservation_id,
                order_ref=str(order_ref),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock_quantity,
                reserved_at=now,
            )
        )
        return reservation_id

    def release(self, reservation_id) -> bool:
        """Return a reservation's quantity to stock.

        Releasing an unknown or already released reservation is a no-op and
        returns ``False``.
        """
        reservation = self._find_reservation(reservation_id)
        if reservation is None:
            return False

        now = datetime.now(UTC)
        if self.track_quantity:
            self.stock_quantity = (self.stock_quantity or 0) + reservation.quantity
        self.remove_reservations(reservation)
        self.updated_at = now

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                reservation_id=str(reservation.id),
                order_ref=str(reservation.order_ref),
                quantity=reservation.quantity,
                new_stock=self.stock_quantity,
                released_at=now,
            )
        )
        return True

    def release_for_order(self, order_ref) -> list[str]:
        """Release every reservation still held by ``order_ref``."""
        return [str(r.id) for r in self.active_reservations(order_ref) if self.release(r.id)]

    def settle(self, reservation_id) -> bool:
        """Drop a reservation whose units have shipped. Stock is not returned."""
        reservation = self._find_reservation(reservation_id)
        if reservation is None:
            return False

        now = datetime.now(UTC)
        self.remove_reservations(reservation)
        self.updated_at = now

        self.raise_(
            StockSettled(
                product_id=str(self.id),
                reservation_id=str(reservation.id),
                order_ref=str(reservation.order_ref),
                quantity=reservation.quantity,
                settled_at=now,
            )
        )
        return True

    def active_reservations(self, order_ref=None):
        return [
            r for r in (self.reservations or []) if order_ref is None or str(r.order_ref) == str(order_ref)
        ]

    def restock(self, quantity):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.track_quantity:
            raise ValidationError({"track_quantity": ["Product does not track quantity"]})

        now = datetime.now(UTC)
        previous = self.stock_quantity
        self.stock_quantity = previous + quantity
        self.updated_at = now

        self.raise_(
            ProductRestocked(
                product_id=str(self.id),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock_quantity,
                restocked_at=now,
            )
        )

    def set_tracking(self, track_quantity, stock_quantity=None):
        """Switch quantity tracking on or off."""
        with atomic_change(self):
            self.track_quantity = track_quantity
            if track_quantity:
                self.stock_quantity = stock_quantity if stock_quantity is not None else (self.stock_quantity or 0)
            else:
                self.stock_quantity = None
            self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Merchandising
    # -------------------------------------------------------------------
    def change_price(self, new_price, compare_price=None):
        previous = self.price
        self.price = to_amount(new_price)
        if compare_price is not None:
            self.compare_price = to_amount(compare_price)
        self.updated_at = datetime.now(UTC)

        self.raise_(ProductPriceChanged(product_id=str(self.id), previous_price=previous, new_price=self.price))

    def update_details(self, name=None, description=None, sku=None, is_featured=None):
        if name is not None:
            self.name = name
        if description is not None:
            self.description = description
        if sku is not None:
            self.sku = sku
        if is_featured is not None:
            self.is_featured = is_featured
        self.updated_at = datetime.now(UTC)

        self.raise_(ProductDetailsUpdated(product_id=str(self.id), name=self.name))

    def activate(self):
        if self.is_active:
            raise ValidationError({"is_active": ["Product is already active"]})
        self.is_active = True
        self.updated_at = datetime.now(UTC)
        self.raise_(ProductActivated(product_id=str(self.id)))

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"is_active": ["Product is already inactive"]})
        self.is_active = False
        self.updated_at = datetime.now(UTC)
        self.raise_(ProductDeactivated(product_id=str(self.id)))
