"""Contention scenario: many shoppers racing for one scarce product.

Every ``HotProductShopper`` checks out against the same store, product and
single discount code, all created once in ``locustfile.py``. The invariant
under test is visible in the final report: successful checkouts never exceed
the initial stock, and discounted orders never exceed the usage limit.
"""

import random

from locust import HttpUser, between, task

from loadtests.helpers.response import error_code, extract_error_detail
from loadtests.helpers.state import HotStoreState

HOT_STORE = HotStoreState()

# Rule errors that are the expected outcome of losing a race
EXPECTED_CONFLICTS = {"insufficient_stock", "discount_usage_exhausted"}


class HotProductShopper(HttpUser):
    wait_time = between(0.05, 0.3)

    def _checkout(self, use_code: bool):
        body = {
            "lines": [{"product_id": HOT_STORE.product_id, "quantity": 1}],
            "discount_code": HOT_STORE.discount_code if use_code else None,
        }
        name = "[HOT] checkout with code" if use_code else "[HOT] checkout"
        with self.client.post(
            f"/storefront/{HOT_STORE.slug}/checkout",
            json=body,
            catch_response=True,
            name=name,
        ) as resp:
            if resp.status_code == 201:
                return
            if error_code(resp) in EXPECTED_CONFLICTS:
                resp.success()
            elif resp.status_code == 503:
                resp.failure(f"Retryable data-layer error: {extract_error_detail(resp)}")
            else:
                resp.failure(f"Checkout failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task(3)
    def checkout(self):
        if HOT_STORE.slug:
            self._checkout(use_code=False)

    @task(1)
    def checkout_with_code(self):
        if HOT_STORE.slug:
            self._checkout(use_code=random.random() < 0.9)
