"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the API's Pydantic request
schemas and the domain's own rules (slug format, positive prices, usage
limits of at least one).
"""

import random
import uuid

from faker import Faker

fake = Faker()


def store_data() -> dict:
    """CreateStoreRequest payload with an explicit, unique slug."""
    suffix = uuid.uuid4().hex[:8]
    return {
        "owner_id": f"owner-{suffix}",
        "name": f"{fake.company()[:60]} {suffix}",
        "slug": f"lt-{suffix}",
        "description": fake.catch_phrase(),
    }


def product_data(stock_quantity: int | None = None, track_quantity: bool = True) -> dict:
    """CreateProductRequest payload."""
    price = round(random.uniform(2, 120), 2)
    return {
        "name": fake.unique.catch_phrase()[:120],
        "price": price,
        "compare_price": round(price * 1.2, 2) if random.random() < 0.3 else None,
        "track_quantity": track_quantity,
        "stock_quantity": stock_quantity if stock_quantity is not None else random.randint(5, 200),
        "sku": f"SKU-{uuid.uuid4().hex[:8].upper()}",
        "is_featured": random.random() < 0.2,
    }


def discount_data(usage_limit: int | None = None) -> dict:
    """CreateDiscountRequest payload with a random code."""
    if random.random() < 0.5:
        discount_type, value = "percentage", random.choice([5, 10, 15, 20])
    else:
        discount_type, value = "fixed_amount", random.choice([2, 5, 10])
    return {
        "code": f"LT{uuid.uuid4().hex[:6].upper()}",
        "discount_type": discount_type,
        "value": value,
        "usage_limit": usage_limit,
    }


def address_data() -> dict:
    return {
        "name": fake.name()[:255],
        "line1": fake.street_address()[:255],
        "city": fake.city()[:100],
        "province": fake.state_abbr(),
        "postal_code": fake.zipcode()[:20],
        "country": "US",
    }


def checkout_data(product_ids: list[str], discount_code: str | None = None, max_quantity: int = 3) -> dict:
    """CheckoutRequest payload for a random selection of products."""
    chosen = random.sample(product_ids, k=min(len(product_ids), random.randint(1, 3)))
    shipping = address_data()
    return {
        "lines": [{"product_id": pid, "quantity": random.randint(1, max_quantity)} for pid in chosen],
        "discount_code": discount_code,
        "email": fake.email(),
        "shipping_address": shipping,
        "billing_address": shipping,
        "shipping": random.choice([0.0, 4.99, 9.99]),
        "tax": round(random.uniform(0, 5), 2),
    }
