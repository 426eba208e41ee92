"""Commerce bounded context — storefront catalog, discounts, checkout and orders.

Store owners manage products and discount codes; shoppers build carts and
check out. The checkout engine keeps stock and discount usage consistent
across concurrent shoppers of the same store.
"""

from protean.domain import Domain

from commerce.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
commerce = Domain(name="commerce")
