"""Public storefront read path. Nothing here changes state."""

from datetime import datetime

from commerce.cart.cart import Cart, CartTotals, compute_totals
from commerce.catalog.inventory import CatalogStore
from commerce.catalog.product import Product
from commerce.discount.ledger import DiscountLedger, DiscountPreview
from commerce.errors import StoreInactive, StoreNotFound
from commerce.persistence import get_data_access
from commerce.persistence.port import DataAccess
from commerce.store.store import Store


def store_by_slug(slug, data_access: DataAccess | None = None, require_active: bool = True) -> Store:
    data_access = data_access or get_data_access()
    matches = data_access.find(Store, slug=slug)
    if not matches:
        raise StoreNotFound(slug)

    store = matches[0]
    if require_active and not store.is_active:
        raise StoreInactive(store.id)
    return store


def list_storefront_products(slug, data_access: DataAccess | None = None) -> list[Product]:
    """Active products of an active store: featured first, then newest first."""
    data_access = data_access or get_data_access()
    store = store_by_slug(slug, data_access)

    products = [p for p in data_access.find(Product, store_id=str(store.id)) if p.is_active]
    products.sort(key=lambda p: p.created_at, reverse=True)
    products.sort(key=lambda p: bool(p.is_featured), reverse=True)
    return products


def preview_discount(
    slug, code, subtotal, now: datetime | None = None, data_access: DataAccess | None = None
) -> DiscountPreview:
    data_access = data_access or get_data_access()
    store = store_by_slug(slug, data_access)
    return DiscountLedger(data_access).preview(store.id, code, subtotal, now)


def preview_cart(
    slug, cart_lines, code=None, now: datetime | None = None, data_access: DataAccess | None = None
) -> CartTotals:
    """Totals for a shopper's cart as the storefront would show them."""
    data_access = data_access or get_data_access()
    store = store_by_slug(slug, data_access)

    cart = Cart.from_lines(cart_lines, store_id=str(store.id))
    snapshot = CatalogStore(data_access).price_snapshot(cart.items)
    totals = compute_totals(cart, snapshot)
    if not code:
        return totals

    effect = DiscountLedger(data_access).validate(store.id, code, totals.subtotal, now)
    return compute_totals(cart, snapshot, effect)
