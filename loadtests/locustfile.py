"""Storefront Commerce Load Testing — Locust entry point.

Discovers all user classes from the scenarios package. The contention
scenario's store is created once when the test starts and its stock and
discount usage are audited when the test stops.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py --host http://localhost:8000

    # Contention only, headless (CI mode):
    locust -f loadtests/locustfile.py HotProductShopper --headless \
           -u 50 -r 10 -t 120s --host http://localhost:8000
"""

import logging
import os
import time

import requests
from locust import events

from loadtests.data_generators import store_data
from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.contention import HOT_STORE, HotProductShopper  # noqa: F401
from loadtests.scenarios.storefront import MerchantUser  # noqa: F401

logger = logging.getLogger("loadtest")

HOT_STOCK = int(os.getenv("LOADTEST_HOT_STOCK", "25"))
HOT_USAGE_LIMIT = int(os.getenv("LOADTEST_HOT_USAGE_LIMIT", "10"))


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request."""
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 500:
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, extract_error_detail(response))


def _create_hot_store(host: str) -> None:
    payload = store_data()
    resp = requests.post(f"{host}/stores", json=payload, timeout=10)
    resp.raise_for_status()
    HOT_STORE.store_id = resp.json()["store_id"]

    resp = requests.post(
        f"{host}/stores/{HOT_STORE.store_id}/products",
        json={"name": "Limited Drop", "price": 49.0, "stock_quantity": HOT_STOCK},
        timeout=10,
    )
    resp.raise_for_status()
    HOT_STORE.product_id = resp.json()["product_id"]

    resp = requests.post(
        f"{host}/stores/{HOT_STORE.store_id}/discounts",
        json={"code": "DROP20", "discount_type": "percentage", "value": 20, "usage_limit": HOT_USAGE_LIMIT},
        timeout=10,
    )
    resp.raise_for_status()
    HOT_STORE.discount_code = "DROP20"
    HOT_STORE.initial_stock = HOT_STOCK
    HOT_STORE.usage_limit = HOT_USAGE_LIMIT
    HOT_STORE.slug = payload["slug"]


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    try:
        _create_hot_store(environment.host)
        print(f"[LOADTEST] Hot store /{HOT_STORE.slug}: {HOT_STOCK} units, code usage limit {HOT_USAGE_LIMIT}")
    except requests.RequestException as e:
        print(f"[LOADTEST] Could not create the hot store, contention scenario disabled: {e}")
    print()


@events.test_stop.add_listener
def on_test_stop(environment, **_kwargs):
    """Audit the hot store: sold units and discounted orders must stay within their caps."""
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}")
    if not HOT_STORE.store_id:
        return

    try:
        orders = requests.get(f"{environment.host}/stores/{HOT_STORE.store_id}/orders", timeout=10).json()
        products = requests.get(f"{environment.host}/storefront/{HOT_STORE.slug}/products", timeout=10).json()
    except requests.RequestException as e:
        print(f"[LOADTEST] Could not audit the hot store: {e}")
        return

    sold = sum(item["quantity"] for order in orders for item in order["line_items"])
    discounted = sum(1 for order in orders if order["discount_code"])
    remaining = products[0]["stock_quantity"] if products else None

    print(f"[LOADTEST] Hot store orders: {len(orders)}, units sold: {sold}, remaining stock: {remaining}")
    print(f"[LOADTEST] Discounted orders: {discounted} (limit {HOT_STORE.usage_limit})")
    if sold > HOT_STORE.initial_stock or discounted > HOT_STORE.usage_limit:
        print("[LOADTEST] OVERSOLD: a cap was exceeded")
        environment.process_exit_code = 1
    print()
