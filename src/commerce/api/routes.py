"""FastAPI routes for the Commerce domain.

Owner-facing writes are Protean commands submitted through the data-access
adapter; shopper-facing writes (checkout) and order transitions go to the
engine services directly.

Handlers are plain functions: the data-access adapter waits on a lock, so
FastAPI runs them in its threadpool instead of on the event loop.
"""

from fastapi import APIRouter, Query

from commerce.api.schemas import (
    CancelOrderRequest,
    CartPreviewRequest,
    CartPreviewResponse,
    ChangePriceRequest,
    ChangeSlugRequest,
    CheckoutRequest,
    CreateDiscountRequest,
    CreateProductRequest,
    CreateStoreRequest,
    DiscountIdResponse,
    DiscountPreviewResponse,
    DiscountResponse,
    FulfillItemsRequest,
    OrderLineItemResponse,
    OrderResponse,
    PaymentFailedRequest,
    ProductIdResponse,
    ProductResponse,
    RecoveryResponse,
    RestockRequest,
    StatusResponse,
    StockResponse,
    StoreIdResponse,
    UpdateProductRequest,
    UpdateStoreRequest,
)
from commerce.catalog.inventory import CatalogStore
from commerce.catalog.management import (
    ActivateProduct,
    ChangeProductPrice,
    CreateProduct,
    DeactivateProduct,
    DeleteProduct,
    UpdateProductDetails,
)
from commerce.checkout.orchestrator import BuyerInfo, CheckoutOrchestrator
from commerce.discount.ledger import DiscountLedger
from commerce.discount.management import (
    ActivateDiscountCode,
    CreateDiscountCode,
    DeactivateDiscountCode,
)
from commerce.order.lifecycle import OrderLifecycleManager
from commerce.persistence import get_data_access
from commerce.store.management import (
    ActivateStore,
    ChangeStoreSlug,
    CreateStore,
    DeactivateStore,
    UpdateStoreDetails,
)
from commerce.storefront.queries import (
    list_storefront_products,
    preview_cart,
    preview_discount,
    store_by_slug,
)


def _order_response(order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        store_id=str(order.store_id),
        email=order.email,
        currency=order.currency,
        financial_status=order.financial_status,
        fulfillment_status=order.fulfillment_status,
        discount_code=order.discount_code,
        subtotal=order.pricing.subtotal,
        discount=order.pricing.discount,
        shipping=order.pricing.shipping,
        tax=order.pricing.tax,
        total=order.pricing.total,
        line_items=[
            OrderLineItemResponse(
                line_item_id=str(item.id),
                product_id=str(item.product_id),
                sku=item.sku,
                title=item.title,
                unit_price=item.unit_price,
                quantity=item.quantity,
                line_total=item.line_total,
                is_fulfilled=item.is_fulfilled,
            )
            for item in order.line_items
        ],
        created_at=order.created_at,
    )


def _discount_response(discount) -> DiscountResponse:
    return DiscountResponse(
        discount_id=str(discount.id),
        code=discount.code,
        discount_type=discount.discount_type,
        value=discount.value,
        minimum_amount=discount.minimum_amount,
        usage_limit=discount.usage_limit,
        used_count=discount.used_count,
        starts_at=discount.starts_at,
        ends_at=discount.ends_at,
        is_active=discount.is_active,
    )


# ---------------------------------------------------------------------------
# Store Router
# ---------------------------------------------------------------------------
store_router = APIRouter(prefix="/stores", tags=["stores"])


@store_router.post("", status_code=201, response_model=StoreIdResponse)
def create_store(body: CreateStoreRequest) -> StoreIdResponse:
    command = CreateStore(
        owner_id=body.owner_id,
        name=body.name,
        slug=body.slug,
        description=body.description,
    )
    result = get_data_access().submit(command)
    return StoreIdResponse(store_id=result)


@store_router.put("/{store_id}", response_model=StatusResponse)
def update_store(store_id: str, body: UpdateStoreRequest) -> StatusResponse:
    command = UpdateStoreDetails(store_id=store_id, name=body.name, description=body.description)
    get_data_access().submit(command)
    return StatusResponse()


@store_router.put("/{store_id}/slug", response_model=StatusResponse)
def change_store_slug(store_id: str, body: ChangeSlugRequest) -> StatusResponse:
    get_data_access().submit(ChangeStoreSlug(store_id=store_id, slug=body.slug))
    return StatusResponse()


@store_router.put("/{store_id}/activate", response_model=StatusResponse)
def activate_store(store_id: str) -> StatusResponse:
    get_data_access().submit(ActivateStore(store_id=store_id))
    return StatusResponse()


@store_router.put("/{store_id}/deactivate", response_model=StatusResponse)
def deactivate_store(store_id: str) -> StatusResponse:
    get_data_access().submit(DeactivateStore(store_id=store_id))
    return StatusResponse()


@store_router.post("/{store_id}/products", status_code=201, response_model=ProductIdResponse)
def create_product(store_id: str, body: CreateProductRequest) -> ProductIdResponse:
    command = CreateProduct(
        store_id=store_id,
        name=body.name,
        price=body.price,
        compare_price=body.compare_price,
        track_quantity=body.track_quantity,
        stock_quantity=body.stock_quantity,
        sku=body.sku,
        slug=body.slug,
        description=body.description,
        is_featured=body.is_featured,
    )
    result = get_data_access().submit(command)
    return ProductIdResponse(product_id=result)


@store_router.post("/{store_id}/discounts", status_code=201, response_model=DiscountIdResponse)
def create_discount(store_id: str, body: CreateDiscountRequest) -> DiscountIdResponse:
    command = CreateDiscountCode(
        store_id=store_id,
        code=body.code,
        discount_type=body.discount_type,
        value=body.value,
        minimum_amount=body.minimum_amount,
        usage_limit=body.usage_limit,
        starts_at=body.starts_at,
        ends_at=body.ends_at,
    )
    result = get_data_access().submit(command)
    return DiscountIdResponse(discount_id=result)


@store_router.get("/{store_id}/discounts", response_model=list[DiscountResponse])
def list_discounts(store_id: str) -> list[DiscountResponse]:
    return [_discount_response(d) for d in DiscountLedger().list_for_store(store_id)]


@store_router.post("/{store_id}/recover-checkouts", response_model=RecoveryResponse)
def recover_abandoned_checkouts(store_id: str) -> RecoveryResponse:
    return RecoveryResponse(released=CheckoutOrchestrator().release_abandoned_checkouts(store_id))


@store_router.get("/{store_id}/orders", response_model=list[OrderResponse])
def list_orders(store_id: str, search: str | None = Query(default=None)) -> list[OrderResponse]:
    return [_order_response(o) for o in OrderLifecycleManager().list_orders(store_id, search=search)]


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.put("/{product_id}", response_model=StatusResponse)
def update_product(product_id: str, body: UpdateProductRequest) -> StatusResponse:
    command = UpdateProductDetails(
        product_id=product_id,
        name=body.name,
        description=body.description,
        sku=body.sku,
        is_featured=body.is_featured,
    )
    get_data_access().submit(command)
    return StatusResponse()


@product_router.put("/{product_id}/price", response_model=StatusResponse)
def change_product_price(product_id: str, body: ChangePriceRequest) -> StatusResponse:
    command = ChangeProductPrice(product_id=product_id, price=body.price, compare_price=body.compare_price)
    get_data_access().submit(command)
    return StatusResponse()


@product_router.put("/{product_id}/activate", response_model=StatusResponse)
def activate_product(product_id: str) -> StatusResponse:
    get_data_access().submit(ActivateProduct(product_id=product_id))
    return StatusResponse()


@product_router.put("/{product_id}/deactivate", response_model=StatusResponse)
def deactivate_product(product_id: str) -> StatusResponse:
    get_data_access().submit(DeactivateProduct(product_id=product_id))
    return StatusResponse()


@product_router.delete("/{product_id}", response_model=StatusResponse)
def delete_product(product_id: str) -> StatusResponse:
    get_data_access().submit(DeleteProduct(product_id=product_id))
    return StatusResponse()


@product_router.post("/{product_id}/restock", response_model=StockResponse)
def restock_product(product_id: str, body: RestockRequest) -> StockResponse:
    new_stock = CatalogStore().restock(product_id, body.quantity)
    return StockResponse(product_id=product_id, stock_quantity=new_stock)


# ---------------------------------------------------------------------------
# Discount Router
# ---------------------------------------------------------------------------
discount_router = APIRouter(prefix="/discounts", tags=["discounts"])


@discount_router.put("/{discount_id}/activate", response_model=StatusResponse)
def activate_discount(discount_id: str) -> StatusResponse:
    get_data_access().submit(ActivateDiscountCode(discount_id=discount_id))
    return StatusResponse()


@discount_router.put("/{discount_id}/deactivate", response_model=StatusResponse)
def deactivate_discount(discount_id: str) -> StatusResponse:
    get_data_access().submit(DeactivateDiscountCode(discount_id=discount_id))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Storefront Router (public)
# ---------------------------------------------------------------------------
storefront_router = APIRouter(prefix="/storefront", tags=["storefront"])


@storefront_router.get("/{slug}/products", response_model=list[ProductResponse])
def storefront_products(slug: str) -> list[ProductResponse]:
    return [
        ProductResponse(
            product_id=str(p.id),
            name=p.name,
            slug=p.slug,
            sku=p.sku,
            description=p.description,
            price=p.price,
            compare_price=p.compare_price,
            track_quantity=p.track_quantity,
            stock_quantity=p.stock_quantity,
            is_featured=p.is_featured,
        )
        for p in list_storefront_products(slug)
    ]


@storefront_router.get("/{slug}/discounts/{code}", response_model=DiscountPreviewResponse)
def storefront_discount_preview(slug: str, code: str, subtotal: float = Query(ge=0)) -> DiscountPreviewResponse:
    preview = preview_discount(slug, code, subtotal)
    return DiscountPreviewResponse(
        code=preview.code,
        discount_type=preview.discount_type,
        value=preview.value,
        subtotal=preview.subtotal,
        discount=preview.discount,
        total=preview.total,
    )


@storefront_router.post("/{slug}/cart", response_model=CartPreviewResponse)
def storefront_cart_preview(slug: str, body: CartPreviewRequest) -> CartPreviewResponse:
    totals = preview_cart(slug, [(line.product_id, line.quantity) for line in body.lines], code=body.discount_code)
    return CartPreviewResponse(
        subtotal=float(totals.subtotal),
        discount=float(totals.discount),
        total=float(totals.total),
        unresolved=list(totals.unresolved),
    )


@storefront_router.post("/{slug}/checkout", status_code=201, response_model=OrderResponse)
def storefront_checkout(slug: str, body: CheckoutRequest) -> OrderResponse:
    store = store_by_slug(slug, require_active=False)
    buyer = BuyerInfo(
        customer_id=body.customer_id,
        email=body.email,
        phone=body.phone,
        note=body.note,
        shipping_address=body.shipping_address.model_dump() if body.shipping_address else None,
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
    )
    order = CheckoutOrchestrator().checkout(
        store.id,
        [(line.product_id, line.quantity) for line in body.lines],
        discount_code=body.discount_code,
        buyer=buyer,
        shipping=body.shipping,
        tax=body.tax,
        currency=body.currency,
    )
    return _order_response(order)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str) -> OrderResponse:
    return _order_response(OrderLifecycleManager().get_order(order_id))


@order_router.put("/{order_id}/paid", response_model=OrderResponse)
def mark_order_paid(order_id: str) -> OrderResponse:
    return _order_response(OrderLifecycleManager().mark_paid(order_id))


@order_router.put("/{order_id}/payment-failed", response_model=OrderResponse)
def mark_payment_failed(order_id: str, body: PaymentFailedRequest) -> OrderResponse:
    return _order_response(OrderLifecycleManager().mark_payment_failed(order_id, reason=body.reason))


@order_router.put("/{order_id}/payment-retry", response_model=OrderResponse)
def retry_payment(order_id: str) -> OrderResponse:
    return _order_response(OrderLifecycleManager().retry_payment(order_id))


@order_router.put("/{order_id}/refund", response_model=OrderResponse)
def refund_order(order_id: str) -> OrderResponse:
    return _order_response(OrderLifecycleManager().refund(order_id))


@order_router.put("/{order_id}/fulfill", response_model=OrderResponse)
def fulfill_order(order_id: str) -> OrderResponse:
    return _order_response(OrderLifecycleManager().fulfill(order_id))


@order_router.put("/{order_id}/fulfill-items", response_model=OrderResponse)
def fulfill_order_items(order_id: str, body: FulfillItemsRequest) -> OrderResponse:
    return _order_response(OrderLifecycleManager().fulfill_items(order_id, body.line_item_ids))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(order_id: str, body: CancelOrderRequest) -> OrderResponse:
    return _order_response(OrderLifecycleManager().cancel(order_id, reason=body.reason))


@order_router.post("/{order_id}/release-stock", response_model=StatusResponse)
def release_cancelled_stock(order_id: str) -> StatusResponse:
    OrderLifecycleManager().release_cancelled_stock(order_id)
    return StatusResponse()
