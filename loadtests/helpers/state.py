"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance keeps its own state. The only shared state is the
contended store created once per test run in ``locustfile.py``.
"""

from dataclasses import dataclass, field


@dataclass
class StoreState:
    """A store owned by one simulated merchant."""

    store_id: str | None = None
    slug: str | None = None
    product_ids: list[str] = field(default_factory=list)
    discount_codes: list[str] = field(default_factory=list)
    order_ids: list[str] = field(default_factory=list)


@dataclass
class HotStoreState:
    """The contended store every shopper in the contention scenario buys from."""

    store_id: str | None = None
    slug: str | None = None
    product_id: str | None = None
    discount_code: str | None = None
    initial_stock: int = 0
    usage_limit: int = 0
