"""Commerce domain API package."""

from commerce.api.errors import register_commerce_error_handlers
from commerce.api.routes import (
    discount_router,
    order_router,
    product_router,
    store_router,
    storefront_router,
)

__all__ = [
    "discount_router",
    "order_router",
    "product_router",
    "register_commerce_error_handlers",
    "store_router",
    "storefront_router",
]
