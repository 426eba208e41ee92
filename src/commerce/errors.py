"""Error taxonomy for the commerce engine.

Business-rule errors are Protean ``ValidationError`` subclasses keyed by the
offending field, so the rest of the stack treats them like any other domain
validation failure. Each carries a stable ``code`` for API clients.

Data-layer errors (timeouts, constraint races) are deliberately *not*
validation errors: callers should retry them rather than change their input.
"""

from protean.exceptions import ValidationError


class CommerceRuleError(ValidationError):
    """A checkout, discount or lifecycle rule rejected the request."""

    code = "rule_violation"
    field = "_entity"
    http_status = 422

    def __init__(self, message: str, **details):
        self.message = message
        self.details = details
        super().__init__({self.field: [message]})

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------
class StoreNotFound(CommerceRuleError):
    code = "store_not_found"
    field = "store"
    http_status = 404

    def __init__(self, reference):
        super().__init__(f"Store {reference} does not exist", store=str(reference))


class StoreInactive(CommerceRuleError):
    code = "store_inactive"
    field = "store"
    http_status = 409

    def __init__(self, store_id):
        super().__init__(f"Store {store_id} is not active", store_id=str(store_id))


class StoreHasOpenOrders(CommerceRuleError):
    code = "store_has_open_orders"
    field = "store"
    http_status = 409

    def __init__(self, store_id, open_orders):
        super().__init__(
            f"Store {store_id} still has {open_orders} open order(s)",
            store_id=str(store_id),
            open_orders=open_orders,
        )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class ProductNotFound(CommerceRuleError):
    code = "product_not_found"
    field = "product_id"
    http_status = 404

    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__(f"Product {product_id} does not exist", product_id=self.product_id)


class ProductInactive(CommerceRuleError):
    code = "product_inactive"
    field = "product_id"
    http_status = 409

    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__(f"Product {product_id} is not available for sale", product_id=self.product_id)


class InsufficientStock(CommerceRuleError):
    code = "insufficient_stock"
    field = "quantity"
    http_status = 409

    def __init__(self, product_id, available, requested):
        self.product_id = str(product_id)
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: {available} available, {requested} requested",
            product_id=self.product_id,
            available=available,
            requested=requested,
        )


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------
class CodeNotFound(CommerceRuleError):
    code = "code_not_found"
    field = "discount_code"
    http_status = 404

    def __init__(self, code):
        super().__init__(f"Discount code {code!r} does not exist", discount_code=code)


class DiscountInactive(CommerceRuleError):
    code = "discount_inactive"
    field = "discount_code"

    def __init__(self, code):
        super().__init__(f"Discount code {code!r} is not active", discount_code=code)


class DiscountOutOfWindow(CommerceRuleError):
    code = "discount_out_of_window"
    field = "discount_code"

    def __init__(self, code, starts_at=None, ends_at=None):
        super().__init__(
            f"Discount code {code!r} is not valid at this time",
            discount_code=code,
            starts_at=starts_at.isoformat() if starts_at else None,
            ends_at=ends_at.isoformat() if ends_at else None,
        )


class DiscountBelowMinimum(CommerceRuleError):
    code = "discount_below_minimum"
    field = "discount_code"

    def __init__(self, code, minimum_amount, subtotal):
        super().__init__(
            f"Discount code {code!r} requires a minimum order of {minimum_amount:.2f}",
            discount_code=code,
            minimum_amount=minimum_amount,
            subtotal=subtotal,
        )


class DiscountUsageExhausted(CommerceRuleError):
    code = "discount_usage_exhausted"
    field = "discount_code"
    http_status = 409

    def __init__(self, code, usage_limit=None):
        super().__init__(
            f"Discount code {code!r} has reached its usage limit",
            discount_code=code,
            usage_limit=usage_limit,
        )


# ---------------------------------------------------------------------------
# Checkout and orders
# ---------------------------------------------------------------------------
class EmptyCart(CommerceRuleError):
    code = "empty_cart"
    field = "cart"

    def __init__(self):
        super().__init__("Cannot check out an empty cart")


class OrderNotFound(CommerceRuleError):
    code = "order_not_found"
    field = "order_id"
    http_status = 404

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} does not exist", order_id=str(order_id))


class InvalidStateTransition(CommerceRuleError):
    code = "invalid_state_transition"
    field = "status"
    http_status = 409

    def __init__(self, dimension, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move {dimension} from {current} to {target}",
            dimension=dimension,
            current=current,
            target=target,
        )


# ---------------------------------------------------------------------------
# Data layer
# ---------------------------------------------------------------------------
class DataAccessError(Exception):
    """The data layer failed to complete an operation. Safe to retry."""

    code = "data_access_error"
    retryable = True


class DataAccessTimeout(DataAccessError):
    code = "data_access_timeout"


class UniqueViolation(DataAccessError):
    code = "unique_violation"

    def __init__(self, aggregate, unique_on):
        self.aggregate = aggregate
        self.unique_on = unique_on
        super().__init__(f"{aggregate} with {unique_on} already exists")


class OrderNumberCollision(DataAccessError):
    code = "order_number_collision"

    def __init__(self, store_id, attempts):
        self.store_id = store_id
        self.attempts = attempts
        super().__init__(f"Could not allocate a unique order number for store {store_id} after {attempts} attempts")
