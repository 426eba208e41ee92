"""Data-access port (abstract interface).

The commerce engine never reads-then-writes a shared counter from
application code. Every mutation of stock, discount usage or an order
sequence is expressed as ``atomic_update``: the adapter loads the aggregate,
applies the change and persists it as one indivisible step, or persists
nothing when the change raises. Unique inserts (order numbers) go through
``insert_unique``.

Adapters must make both operations linearizable per aggregate and must bound
every wait on the underlying store, raising ``DataAccessTimeout`` instead of
blocking forever.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


class DataAccess(ABC):
    """Abstract data-access interface used by the commerce services."""

    @abstractmethod
    def load(self, aggregate_cls: type[T], identifier: str) -> T:
        """Fetch an aggregate by identity. Raises ``ObjectNotFoundError``."""
        ...

    @abstractmethod
    def find(self, aggregate_cls: type[T], **filters: Any) -> list[T]:
        """Return all aggregates matching equality filters."""
        ...

    @abstractmethod
    def atomic_update(self, aggregate_cls: type[T], identifier: str, change: Callable[[T], Any]) -> Any:
        """Load, change and persist one aggregate atomically.

        ``change`` receives the freshly loaded aggregate and may raise to
        reject the update, in which case nothing is written. Its return value
        is passed back to the caller.
        """
        ...

    @abstractmethod
    def insert_unique(
        self,
        aggregate: Any,
        unique_on: tuple[str, ...] = (),
        precondition: Callable[[], None] | None = None,
    ) -> None:
        """Persist a new aggregate unless another one shares the ``unique_on`` values.

        Raises ``UniqueViolation`` on conflict. ``precondition`` runs in the
        same serialized step as the insert and may raise to reject it, in
        which case nothing is written.
        """
        ...

    @abstractmethod
    def submit(self, command: Any) -> Any:
        """Process a domain command, including its unit-of-work commit, as one serialized step.

        Returns whatever the command handler returns.
        """
        ...
