"""Cart Aggregator — an ephemeral, per-session cart and its totals.

The cart is advisory: it never checks stock and is never persisted. Totals
are recomputed from the current catalog snapshot every time, and lines whose
product cannot be priced are reported instead of being counted as free.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from protean.exceptions import ValidationError

from commerce.catalog.inventory import PricedProduct
from commerce.discount.discount import DiscountEffect
from commerce.shared.money import line_total, quantize


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    unresolved: tuple[str, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.unresolved


@dataclass
class Cart:
    store_id: str | None = None
    items: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_lines(cls, lines: Iterable, store_id=None) -> "Cart":
        """Build a cart from ``(product_id, quantity)`` pairs or ``CartLine`` objects."""
        cart = cls(store_id=store_id)
        for line in lines:
            if isinstance(line, CartLine):
                cart.add_item(line.product_id, line.quantity)
            else:
                product_id, quantity = line
                cart.add_item(product_id, quantity)
        return cart

    def add_item(self, product_id, quantity: int = 1) -> int:
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        product_id = str(product_id)
        self.items[product_id] = self.items.get(product_id, 0) + quantity
        return self.items[product_id]

    def set_quantity(self, product_id, quantity: int) -> None:
        """Overwrite a line's quantity. A quantity of zero removes the line."""
        if quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})
        if quantity == 0:
            self.remove_item(product_id)
        else:
            self.items[str(product_id)] = quantity

    def remove_item(self, product_id) -> None:
        self.items.pop(str(product_id), None)

    def clear(self) -> None:
        self.items.clear()

    @property
    def item_count(self) -> int:
        return sum(self.items.values())

    @property
    def is_empty(self) -> bool:
        return not self.items

    def lines(self) -> list[CartLine]:
        return [CartLine(product_id=pid, quantity=qty) for pid, qty in self.items.items()]


def compute_totals(
    cart: Cart,
    catalog_snapshot: Mapping[str, PricedProduct],
    discount_effect: DiscountEffect | None = None,
) -> CartTotals:
    """Price the cart against a catalog snapshot.

    Products missing from the snapshot, inactive, or belonging to another
    store than the cart's are excluded from the subtotal and listed in
    ``unresolved``.
    """
    subtotal = Decimal("0")
    unresolved = []

    for line in cart.lines():
        product = catalog_snapshot.get(line.product_id)
        if (
            product is None
            or not product.is_active
            or (cart.store_id is not None and product.store_id != str(cart.store_id))
        ):
            unresolved.append(line.product_id)
            continue
        subtotal += line_total(product.price, line.quantity)

    subtotal = quantize(subtotal)
    discount = discount_effect.amount_for(subtotal) if discount_effect else Decimal("0.00")
    return CartTotals(
        subtotal=subtotal,
        discount=discount,
        total=quantize(subtotal - discount),
        unresolved=tuple(unresolved),
    )
