"""Domain events for the Product aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from commerce.domain import commerce


@commerce.event(part_of="Product")
class ProductAdded:
    """A store owner added a product to the catalog."""

    __version__ = 1

    product_id = Identifier(required=True)
    store_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    track_quantity = Boolean(required=True)
    stock_quantity = Integer()
    created_at = DateTime(required=True)


@commerce.event(part_of="Product")
class ProductDetailsUpdated:
    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)


@commerce.event(part_of="Product")
class ProductPriceChanged:
    __version__ = 1

    product_id = Identifier(required=True)
    previous_price = Float(required=True)
    new_price = Float(required=True)


@commerce.event(part_of="Product")
class ProductActivated:
    __version__ = 1

    product_id = Identifier(required=True)


@commerce.event(part_of="Product")
class ProductDeactivated:
    __version__ = 1

    product_id = Identifier(required=True)


@commerce.event(part_of="Product")
class StockReserved:
    """Stock was provisionally taken for a checkout attempt."""

    __version__ = 1

    product_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    order_ref = Identifier(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    reserved_at = DateTime(required=True)


@commerce.event(part_of="Product")
class StockReleased:
    """A reservation was reversed and its quantity returned to stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    order_ref = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock = Integer()
    released_at = DateTime(required=True)


@commerce.event(part_of="Product")
class ProductRestocked:
    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    restocked_at = DateTime(required=True)


@commerce.event(part_of="Product")
class StockSettled:
    """The units of a reservation shipped, so the hold is dropped for good."""

    __version__ = 1

    product_id = Identifier(required=True)
    reservation_id = Identifier(required=True)
    order_ref = Identifier(required=True)
    quantity = Integer(required=True)
    settled_at = DateTime(required=True)

