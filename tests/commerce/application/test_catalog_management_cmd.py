"""Application tests for product management commands."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError

from commerce.catalog.management import (
    ActivateProduct,
    ChangeProductPrice,
    CreateProduct,
    DeactivateProduct,
    DeleteProduct,
    UpdateProductDetails,
)
from commerce.catalog.inventory import CatalogStore
from commerce.catalog.product import Product
from commerce.errors import StoreNotFound


def _create_product(store_id, **overrides):
    defaults = {"store_id": store_id, "name": "Sourdough Loaf", "price": 8.5, "stock_quantity": 10}
    defaults.update(overrides)
    return current_domain.process(CreateProduct(**defaults), asynchronous=False)


class TestCreateProduct:
    def test_create_persists_product(self, store):
        product_id = _create_product(store.id, sku="SD-1")
        product = current_domain.repository_for(Product).get(product_id)
        assert product.name == "Sourdough Loaf"
        assert product.stock_quantity == 10
        assert product.sku == "SD-1"
        assert str(product.store_id) == str(store.id)

    def test_unknown_store_rejected(self):
        with pytest.raises(StoreNotFound):
            _create_product("no-such-store")

    def test_untracked_product(self, store):
        product_id = _create_product(store.id, track_quantity=False, stock_quantity=None)
        product = current_domain.repository_for(Product).get(product_id)
        assert product.track_quantity is False
        assert product.stock_quantity is None


class TestUpdateProduct:
    def test_change_price(self, store):
        product_id = _create_product(store.id)
        current_domain.process(ChangeProductPrice(product_id=product_id, price=9.75), asynchronous=False)
        assert current_domain.repository_for(Product).get(product_id).price == 9.75

    def test_update_details_keeps_stock(self, store):
        product_id = _create_product(store.id)
        current_domain.process(
            UpdateProductDetails(product_id=product_id, name="Rye Loaf", is_featured=True),
            asynchronous=False,
        )
        product = current_domain.repository_for(Product).get(product_id)
        assert product.name == "Rye Loaf"
        assert product.is_featured is True
        assert product.stock_quantity == 10

    def test_deactivate_and_activate(self, store):
        product_id = _create_product(store.id)
        current_domain.process(DeactivateProduct(product_id=product_id), asynchronous=False)
        assert current_domain.repository_for(Product).get(product_id).is_active is False

        current_domain.process(ActivateProduct(product_id=product_id), asynchronous=False)
        assert current_domain.repository_for(Product).get(product_id).is_active is True


class TestDeleteProduct:
    def test_delete_removes_product(self, store):
        product_id = _create_product(store.id)
        current_domain.process(DeleteProduct(product_id=product_id), asynchronous=False)

        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(Product).get(product_id)

    def test_delete_with_held_stock(self, store):
        product_id = _create_product(store.id)
        token = CatalogStore().reserve_stock(product_id, 2, "order-1")

        current_domain.process(DeleteProduct(product_id=product_id), asynchronous=False)

        assert CatalogStore().release_stock(token) is False
        assert CatalogStore().release_for_order(product_id, "order-1") == []

    def test_delete_unknown_product(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(DeleteProduct(product_id="no-such-product"), asynchronous=False)
