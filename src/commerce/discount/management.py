"""Discount code management — commands and handler for store owners."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.discount.discount import DiscountCode, normalize_code
from commerce.domain import commerce
from commerce.errors import StoreNotFound
from commerce.store.store import Store


@commerce.command(part_of="DiscountCode")
class CreateDiscountCode:
    store_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=20)
    value = Float(required=True, min_value=0.0)
    minimum_amount = Float(default=0.0, min_value=0.0)
    usage_limit = Integer(min_value=1)
    starts_at = DateTime()
    ends_at = DateTime()


@commerce.command(part_of="DiscountCode")
class ActivateDiscountCode:
    discount_id = Identifier(required=True)


@commerce.command(part_of="DiscountCode")
class DeactivateDiscountCode:
    discount_id = Identifier(required=True)


@commerce.command_handler(part_of=DiscountCode)
class DiscountManagementHandler:
    @handle(CreateDiscountCode)
    def create_discount_code(self, command):
        try:
            current_domain.repository_for(Store).get(command.store_id)
        except ObjectNotFoundError:
            raise StoreNotFound(command.store_id)

        repo = current_domain.repository_for(DiscountCode)
        lookup_code = normalize_code(command.code)
        if repo._dao.query.filter(store_id=str(command.store_id), lookup_code=lookup_code).all().items:
            raise ValidationError({"code": [f"Discount code '{command.code}' already exists in this store"]})

        discount = DiscountCode.create(
            store_id=command.store_id,
            code=command.code,
            discount_type=command.discount_type,
            value=command.value,
            minimum_amount=command.minimum_amount,
            usage_limit=command.usage_limit,
            starts_at=command.starts_at,
            ends_at=command.ends_at,
        )
        repo.add(discount)
        return str(discount.id)

    @handle(ActivateDiscountCode)
    def activate_discount_code(self, command):
        repo = current_domain.repository_for(DiscountCode)
        discount = repo.get(command.discount_id)
        discount.activate()
        repo.add(discount)

    @handle(DeactivateDiscountCode)
    def deactivate_discount_code(self, command):
        repo = current_domain.repository_for(DiscountCode)
        discount = repo.get(command.discount_id)
        discount.deactivate()
        repo.add(discount)
