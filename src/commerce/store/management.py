"""Store management — commands and handler.

Slugs are globally unique and frozen once any product or order references
the store. A store cannot be deactivated while it still has open orders.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.catalog.product import Product
from commerce.domain import commerce
from commerce.errors import StoreHasOpenOrders
from commerce.order.order import OPEN_FULFILLMENT_STATUSES, Order
from commerce.shared.slug import slugify
from commerce.store.store import Store


@commerce.command(part_of="Store")
class CreateStore:
    owner_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    slug = String(max_length=100)
    description = Text()


@commerce.command(part_of="Store")
class UpdateStoreDetails:
    store_id = Identifier(required=True)
    name = String(max_length=255)
    description = Text()


@commerce.command(part_of="Store")
class ChangeStoreSlug:
    store_id = Identifier(required=True)
    slug = String(required=True, max_length=100)


@commerce.command(part_of="Store")
class ActivateStore:
    store_id = Identifier(required=True)


@commerce.command(part_of="Store")
class DeactivateStore:
    store_id = Identifier(required=True)


def _slug_taken(slug, exclude_store_id=None):
    stores = current_domain.repository_for(Store)._dao.query.filter(slug=slug).all().items
    return any(str(s.id) != str(exclude_store_id) for s in stores)


def _is_referenced(store_id):
    store_id = str(store_id)
    if current_domain.repository_for(Product)._dao.query.filter(store_id=store_id).all().items:
        return True
    return bool(current_domain.repository_for(Order)._dao.query.filter(store_id=store_id).all().items)


def count_open_orders(store_id) -> int:
    orders = current_domain.repository_for(Order)._dao.query.filter(store_id=str(store_id)).all().items
    return sum(1 for order in orders if order.fulfillment_status in OPEN_FULFILLMENT_STATUSES)


@commerce.command_handler(part_of=Store)
class StoreManagementHandler:
    @handle(CreateStore)
    def create_store(self, command):
        slug = command.slug or slugify(command.name)
        if _slug_taken(slug):
            raise ValidationError({"slug": [f"Slug '{slug}' is already taken"]})

        store = Store.create(
            owner_id=command.owner_id,
            name=command.name,
            slug=slug,
            description=command.description,
        )
        current_domain.repository_for(Store).add(store)
        return str(store.id)

    @handle(UpdateStoreDetails)
    def update_store_details(self, command):
        repo = current_domain.repository_for(Store)
        store = repo.get(command.store_id)
        store.update_details(name=command.name, description=command.description)
        repo.add(store)

    @handle(ChangeStoreSlug)
    def change_store_slug(self, command):
        repo = current_domain.repository_for(Store)
        store = repo.get(command.store_id)

        if _is_referenced(store.id):
            raise ValidationError({"slug": ["Slug cannot change once products or orders reference the store"]})
        if _slug_taken(command.slug, exclude_store_id=store.id):
            raise ValidationError({"slug": [f"Slug '{command.slug}' is already taken"]})

        store.change_slug(command.slug)
        repo.add(store)

    @handle(ActivateStore)
    def activate_store(self, command):
        repo = current_domain.repository_for(Store)
        store = repo.get(command.store_id)
        store.activate()
        repo.add(store)

    @handle(DeactivateStore)
    def deactivate_store(self, command):
        repo = current_domain.repository_for(Store)
        store = repo.get(command.store_id)

        open_orders = count_open_orders(store.id)
        if open_orders:
            raise StoreHasOpenOrders(store.id, open_orders)

        store.deactivate()
        repo.add(store)
