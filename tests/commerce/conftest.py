from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def commerce_bed():
    from commerce.domain import commerce

    bed = DomainFixture(commerce)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(commerce_bed):
    with commerce_bed.domain_context():
        yield


@pytest.fixture()
def store():
    """A persisted, active store."""
    from commerce.store.store import Store

    store = Store.create(owner_id="owner-001", name="Corner Bakery")
    current_domain.repository_for(Store).add(store)
    return store


@pytest.fixture()
def make_product(store):
    """Factory persisting products in the ``store`` fixture's catalog."""
    from commerce.catalog.product import Product

    def _make(name="Sourdough Loaf", price=8.5, stock=10, track_quantity=True, store_id=None, **extra):
        product = Product.create(
            store_id=store_id or store.id,
            name=name,
            price=price,
            stock_quantity=stock,
            track_quantity=track_quantity,
            **extra,
        )
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_discount(store):
    """Factory persisting discount codes in the ``store`` fixture."""
    from commerce.discount.discount import DiscountCode

    def _make(code="SAVE10", discount_type="percentage", value=10.0, store_id=None, **extra):
        discount = DiscountCode.create(
            store_id=store_id or store.id,
            code=code,
            discount_type=discount_type,
            value=value,
            **extra,
        )
        current_domain.repository_for(DiscountCode).add(discount)
        return discount

    return _make


@pytest.fixture()
def now():
    return datetime.now(UTC)


@pytest.fixture()
def yesterday(now):
    return now - timedelta(days=1)


@pytest.fixture()
def tomorrow(now):
    return now + timedelta(days=1)
