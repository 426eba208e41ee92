"""Storefront load test scenarios.

A merchant journey that opens a store and works its first orders. Checkout
conflicts (409) are expected business outcomes, not failures.
"""

import random

from locust import HttpUser, SequentialTaskSet, between, task

from loadtests.data_generators import checkout_data, discount_data, product_data, store_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import StoreState


class MerchantJourney(SequentialTaskSet):
    """Create Store -> Add Products -> Create Code -> Browse -> Sell -> Pay / Fulfill / Cancel."""

    def on_start(self):
        self.state = StoreState()

    @task
    def create_store(self):
        payload = store_data()
        with self.client.post("/stores", json=payload, catch_response=True, name="POST /stores") as resp:
            if resp.status_code == 201:
                self.state.store_id = resp.json()["store_id"]
                self.state.slug = payload["slug"]
            else:
                resp.failure(f"Create store failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def add_products(self):
        for _ in range(3):
            with self.client.post(
                f"/stores/{self.state.store_id}/products",
                json=product_data(stock_quantity=50),
                catch_response=True,
                name="POST /stores/{id}/products",
            ) as resp:
                if resp.status_code == 201:
                    self.state.product_ids.append(resp.json()["product_id"])
                else:
                    resp.failure(f"Create product failed: {resp.status_code} — {extract_error_detail(resp)}")
                    self.interrupt()

    @task
    def create_discount(self):
        payload = discount_data(usage_limit=10)
        with self.client.post(
            f"/stores/{self.state.store_id}/discounts",
            json=payload,
            catch_response=True,
            name="POST /stores/{id}/discounts",
        ) as resp:
            if resp.status_code == 201:
                self.state.discount_codes.append(payload["code"])
            else:
                resp.failure(f"Create discount failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def browse(self):
        self.client.get(f"/storefront/{self.state.slug}/products", name="GET /storefront/{slug}/products")
        lines = [{"product_id": pid, "quantity": 1} for pid in self.state.product_ids]
        self.client.post(
            f"/storefront/{self.state.slug}/cart",
            json={"lines": lines},
            name="POST /storefront/{slug}/cart",
        )

    @task
    def sell(self):
        for _ in range(3):
            code = random.choice(self.state.discount_codes) if self.state.discount_codes else None
            with self.client.post(
                f"/storefront/{self.state.slug}/checkout",
                json=checkout_data(self.state.product_ids, discount_code=code),
                catch_response=True,
                name="POST /storefront/{slug}/checkout",
            ) as resp:
                if resp.status_code == 201:
                    self.state.order_ids.append(resp.json()["order_id"])
                elif resp.status_code in (409, 422):
                    resp.success()
                else:
                    resp.failure(f"Checkout failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def process_orders(self):
        for order_id in self.state.order_ids:
            if random.random() < 0.7:
                self.client.put(f"/orders/{order_id}/paid", name="PUT /orders/{id}/paid")
                self.client.put(f"/orders/{order_id}/fulfill", name="PUT /orders/{id}/fulfill")
            else:
                self.client.put(
                    f"/orders/{order_id}/cancel",
                    json={"reason": "Customer changed their mind"},
                    name="PUT /orders/{id}/cancel",
                )

    @task
    def done(self):
        self.interrupt()


class MerchantUser(HttpUser):
    tasks = [MerchantJourney]
    wait_time = between(0.5, 2)
