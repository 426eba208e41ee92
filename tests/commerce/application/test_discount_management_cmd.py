"""Application tests for discount code management commands."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from commerce.discount.discount import DiscountCode
from commerce.discount.management import (
    ActivateDiscountCode,
    CreateDiscountCode,
    DeactivateDiscountCode,
)
from commerce.errors import StoreNotFound
from commerce.store.store import Store


def _create_discount(store_id, **overrides):
    defaults = {"store_id": store_id, "code": "SAVE10", "discount_type": "percentage", "value": 10.0}
    defaults.update(overrides)
    return current_domain.process(CreateDiscountCode(**defaults), asynchronous=False)


class TestCreateDiscountCode:
    def test_create_persists_code(self, store):
        discount_id = _create_discount(store.id, usage_limit=5, minimum_amount=20.0)
        discount = current_domain.repository_for(DiscountCode).get(discount_id)
        assert discount.lookup_code == "SAVE10"
        assert discount.usage_limit == 5
        assert discount.used_count == 0

    def test_code_unique_per_store_ignoring_case(self, store):
        _create_discount(store.id)
        with pytest.raises(ValidationError) as exc_info:
            _create_discount(store.id, code="save10")
        assert "code" in exc_info.value.messages

    def test_same_code_allowed_in_another_store(self, store):
        other = Store.create(owner_id="owner-002", name="Other Shop")
        current_domain.repository_for(Store).add(other)

        _create_discount(store.id)
        assert _create_discount(other.id) is not None

    def test_unknown_store_rejected(self):
        with pytest.raises(StoreNotFound):
            _create_discount("no-such-store")

    def test_invalid_percentage_rejected(self, store):
        with pytest.raises(ValidationError):
            _create_discount(store.id, value=120)


class TestToggleDiscountCode:
    def test_deactivate_then_activate(self, store):
        discount_id = _create_discount(store.id)
        current_domain.process(DeactivateDiscountCode(discount_id=discount_id), asynchronous=False)
        assert current_domain.repository_for(DiscountCode).get(discount_id).is_active is False

        current_domain.process(ActivateDiscountCode(discount_id=discount_id), asynchronous=False)
        assert current_domain.repository_for(DiscountCode).get(discount_id).is_active is True
