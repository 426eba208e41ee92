"""Pydantic request/response schemas for the Commerce API.

These are external contracts, kept separate from the Protean commands and
aggregates they are translated into.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str | None = None
    line1: str
    line2: str | None = None
    city: str
    province: str | None = None
    postal_code: str | None = None
    country: str


class CartLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------
class CreateStoreRequest(BaseModel):
    owner_id: str
    name: str = Field(min_length=1, max_length=255)
    slug: str | None = None
    description: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "owner_id": "user-001",
                    "name": "Corner Bakery",
                    "slug": "corner-bakery",
                    "description": "Fresh bread daily",
                }
            ]
        }
    }


class UpdateStoreRequest(BaseModel):
    name: str | None = None
    description: str | None = None


class ChangeSlugRequest(BaseModel):
    slug: str


class StoreIdResponse(BaseModel):
    store_id: str


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
class CreateProductRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0)
    compare_price: float | None = Field(default=None, ge=0)
    track_quantity: bool = True
    stock_quantity: int | None = Field(default=None, ge=0)
    sku: str | None = None
    slug: str | None = None
    description: str | None = None
    is_featured: bool = False


class UpdateProductRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    sku: str | None = None
    is_featured: bool | None = None


class ChangePriceRequest(BaseModel):
    price: float = Field(ge=0)
    compare_price: float | None = Field(default=None, ge=0)


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)


class ProductIdResponse(BaseModel):
    product_id: str


class ProductResponse(BaseModel):
    product_id: str
    name: str
    slug: str | None = None
    sku: str | None = None
    description: str | None = None
    price: float
    compare_price: float | None = None
    track_quantity: bool
    stock_quantity: int | None = None
    is_featured: bool


class StockResponse(BaseModel):
    product_id: str
    stock_quantity: int


class RecoveryResponse(BaseModel):
    released: int


# ---------------------------------------------------------------------------
# Discount codes
# ---------------------------------------------------------------------------
class CreateDiscountRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    discount_type: str = Field(pattern="^(percentage|fixed_amount)$")
    value: float = Field(gt=0)
    minimum_amount: float = Field(default=0.0, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    starts_at: datetime | None = None
    ends_at: datetime | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "code": "SAVE10",
                    "discount_type": "percentage",
                    "value": 10,
                    "minimum_amount": 0,
                    "usage_limit": 100,
                }
            ]
        }
    }


class DiscountIdResponse(BaseModel):
    discount_id: str


class DiscountResponse(BaseModel):
    discount_id: str
    code: str
    discount_type: str
    value: float
    minimum_amount: float
    usage_limit: int | None = None
    used_count: int
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    is_active: bool


class DiscountPreviewResponse(BaseModel):
    code: str
    discount_type: str
    value: float
    subtotal: float
    discount: float
    total: float


# ---------------------------------------------------------------------------
# Storefront and checkout
# ---------------------------------------------------------------------------
class CartPreviewRequest(BaseModel):
    lines: list[CartLineSchema]
    discount_code: str | None = None


class CartPreviewResponse(BaseModel):
    subtotal: float
    discount: float
    total: float
    unresolved: list[str] = []


class CheckoutRequest(BaseModel):
    lines: list[CartLineSchema]
    discount_code: str | None = None
    customer_id: str | None = None
    email: str | None = None
    phone: str | None = None
    note: str | None = None
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    shipping: float = Field(default=0.0, ge=0)
    tax: float = Field(default=0.0, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "lines": [{"product_id": "prod-001", "quantity": 2}],
                    "discount_code": "SAVE10",
                    "email": "shopper@example.com",
                    "shipping": 5.0,
                    "tax": 1.2,
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderLineItemResponse(BaseModel):
    line_item_id: str
    product_id: str
    sku: str | None = None
    title: str
    unit_price: float
    quantity: int
    line_total: float
    is_fulfilled: bool


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    store_id: str
    email: str | None = None
    currency: str
    financial_status: str
    fulfillment_status: str
    discount_code: str | None = None
    subtotal: float
    discount: float
    shipping: float
    tax: float
    total: float
    line_items: list[OrderLineItemResponse]
    created_at: datetime | None = None


class PaymentFailedRequest(BaseModel):
    reason: str | None = None


class FulfillItemsRequest(BaseModel):
    line_item_ids: list[str] = Field(min_length=1)


class CancelOrderRequest(BaseModel):
    reason: str | None = None
