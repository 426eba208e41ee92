"""Catalog management — commands and handler for store owners.

Stock itself is not edited here: quantities move only through reservations
and restocks issued by ``CatalogStore``.

Deleting a product drops whatever it still holds for orders. Orders keep
the name, sku and price captured at checkout, and cancelling them later has
no stock to return for the deleted product.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from commerce.catalog.product import Product, StockReservation
from commerce.domain import commerce
from commerce.errors import StoreNotFound
from commerce.store.store import Store

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Product")
class CreateProduct:
    store_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    compare_price = Float(min_value=0.0)
    track_quantity = Boolean(default=True)
    stock_quantity = Integer(min_value=0)
    sku = String(max_length=100)
    slug = String(max_length=255)
    description = Text()
    is_featured = Boolean(default=False)


@commerce.command(part_of="Product")
class UpdateProductDetails:
    product_id = Identifier(required=True)
    name = String(max_length=255)
    description = Text()
    sku = String(max_length=100)
    is_featured = Boolean()


@commerce.command(part_of="Product")
class ChangeProductPrice:
    product_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)
    compare_price = Float(min_value=0.0)


@commerce.command(part_of="Product")
class ActivateProduct:
    product_id = Identifier(required=True)


@commerce.command(part_of="Product")
class DeactivateProduct:
    product_id = Identifier(required=True)


@commerce.command(part_of="Product")
class DeleteProduct:
    product_id = Identifier(required=True)


@commerce.command_handler(part_of=Product)
class CatalogManagementHandler:
    @handle(CreateProduct)
    def create_product(self, command):
        try:
            current_domain.repository_for(Store).get(command.store_id)
        except ObjectNotFoundError:
            raise StoreNotFound(command.store_id)

        product = Product.create(
            store_id=command.store_id,
            name=command.name,
            price=command.price,
            stock_quantity=command.stock_quantity,
            track_quantity=command.track_quantity,
            sku=command.sku,
            slug=command.slug,
            description=command.description,
            compare_price=command.compare_price,
            is_featured=command.is_featured,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(UpdateProductDetails)
    def update_product_details(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.update_details(
            name=command.name,
            description=command.description,
            sku=command.sku,
            is_featured=command.is_featured,
        )
        repo.add(product)

    @handle(ChangeProductPrice)
    def change_product_price(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.change_price(command.price, compare_price=command.compare_price)
        repo.add(product)

    @handle(ActivateProduct)
    def activate_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.activate()
        repo.add(product)

    @handle(DeactivateProduct)
    def deactivate_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.deactivate()
        repo.add(product)

    @handle(DeleteProduct)
    def delete_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)

        held = product.active_reservations()
        for reservation in held:
            current_domain.repository_for(StockReservation)._dao.delete(reservation)
        repo._dao.delete(product)

        logger.info(
            "Product deleted",
            product_id=str(product.id),
            store_id=str(product.store_id),
            dropped_reservations=len(held),
        )
