"""Catalog Store — stock reservations against the product catalog.

Every stock mutation is handed to the data-access adapter as a single
``atomic_update`` so the check (``stock >= quantity``) and the decrement can
never be split by another caller.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError

from commerce.catalog.product import Product
from commerce.errors import ProductNotFound
from commerce.persistence import get_data_access
from commerce.persistence.port import DataAccess

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationToken:
    """Proof of a reservation. ``reservation_id`` is None for untracked products."""

    product_id: str
    quantity: int
    order_ref: str
    reservation_id: str | None = None

    @property
    def holds_stock(self) -> bool:
        return self.reservation_id is not None


@dataclass(frozen=True)
class PricedProduct:
    """Point-in-time view of a product used to price carts and snapshot line items."""

    product_id: str
    store_id: str
    name: str
    sku: str | None
    price: float
    is_active: bool
    track_quantity: bool
    stock_quantity: int | None


class CatalogStore:
    def __init__(self, data_access: DataAccess | None = None) -> None:
        self.data_access = data_access or get_data_access()

    def reserve_stock(self, product_id, quantity: int, order_ref) -> ReservationToken:
        """Atomically take ``quantity`` units of a product for ``order_ref``."""
        try:
            reservation_id = self.data_access.atomic_update(
                Product, str(product_id), lambda product: product.reserve(quantity, str(order_ref))
            )
        except ObjectNotFoundError:
            raise ProductNotFound(product_id)

        logger.info(
            "Stock reserved",
            product_id=str(product_id),
            quantity=quantity,
            order_ref=str(order_ref),
            tracked=reservation_id is not None,
        )
        return ReservationToken(
            product_id=str(product_id),
            quantity=quantity,
            order_ref=str(order_ref),
            reservation_id=reservation_id,
        )

    def release_stock(self, token: ReservationToken) -> bool:
        """Reverse a reservation. Releasing twice is a no-op that returns False."""
        if not token.holds_stock:
            return False

        try:
            released = self.data_access.atomic_update(
                Product, token.product_id, lambda product: product.release(token.reservation_id)
            )
        except ObjectNotFoundError:
            logger.warning("Release skipped, product no longer exists", product_id=token.product_id)
            return False

        if released:
            logger.info(
                "Stock released",
                product_id=token.product_id,
                reservation_id=token.reservation_id,
                quantity=token.quantity,
            )
        return released

    def release_for_order(self, product_id, order_ref) -> list[str]:
        """Release every active reservation ``order_ref`` holds on a product."""
        try:
            released = self.data_access.atomic_update(
                Product, str(product_id), lambda product: product.release_for_order(str(order_ref))
            )
        except ObjectNotFoundError:
            return []

        if released:
            logger.info(
                "Stock released for order",
                product_id=str(product_id),
                order_ref=str(order_ref),
                reservations=released,
            )
        return released

    def settle_stock(self, token: ReservationToken) -> bool:
        """Drop the hold behind shipped units. The units stay sold."""
        if not token.holds_stock:
            return False

        try:
            settled = self.data_access.atomic_update(
                Product, token.product_id, lambda product: product.settle(token.reservation_id)
            )
        except ObjectNotFoundError:
            return False

        if settled:
            logger.info("Stock settled", product_id=token.product_id, reservation_id=token.reservation_id)
        return settled

    def restock(self, product_id, quantity: int) -> int:
        """Add units to a tracked product and return the new stock level."""

        def _restock(product):
            product.restock(quantity)
            return product.stock_quantity

        try:
            new_stock = self.data_access.atomic_update(Product, str(product_id), _restock)
        except ObjectNotFoundError:
            raise ProductNotFound(product_id)

        logger.info("Product restocked", product_id=str(product_id), quantity=quantity, new_stock=new_stock)
        return new_stock

    def get_product(self, product_id) -> Product:
        try:
            return self.data_access.load(Product, str(product_id))
        except ObjectNotFoundError:
            raise ProductNotFound(product_id)

    def price_snapshot(self, product_ids) -> dict[str, PricedProduct]:
        """Priced view of the given products. Missing products are simply absent."""
        snapshot = {}
        for product_id in dict.fromkeys(str(pid) for pid in product_ids):
            try:
                product = self.data_access.load(Product, product_id)
            except ObjectNotFoundError:
                continue
            snapshot[product_id] = PricedProduct(
                product_id=product_id,
                store_id=str(product.store_id),
                name=product.name,
                sku=product.sku,
                price=product.price,
                is_active=product.is_active,
                track_quantity=product.track_quantity,
                stock_quantity=product.stock_quantity,
            )
        return snapshot

    def products_for_store(self, store_id) -> list[Product]:
        return self.data_access.find(Product, store_id=str(store_id))
