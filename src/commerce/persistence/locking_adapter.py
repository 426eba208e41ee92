"""In-process data-access adapter over Protean repositories.

A single re-entrant lock serializes every operation issued through the adapter,
which makes each ``atomic_update`` a conditional read-modify-write that no
other caller can interleave with. The lock is acquired with a timeout so a
stuck writer surfaces as ``DataAccessTimeout`` rather than a hung request.

This adapter guarantees linearizability within one process. Deployments
that run several worker processes against a shared SQL database need an
adapter that pushes the same conditions into the database
(``UPDATE ... WHERE stock_quantity >= :qty``) behind the same port.
"""

import threading
import time
from contextlib import contextmanager

import structlog
from protean.utils.globals import current_domain

from commerce.errors import DataAccessTimeout, UniqueViolation
from commerce.persistence.port import DataAccess

logger = structlog.get_logger(__name__)


class LockingDataAccess(DataAccess):
    """Serializes data access behind one lock with a bounded wait."""

    def __init__(self, lock_timeout: float = 5.0) -> None:
        self.lock_timeout = lock_timeout
        self._lock = threading.RLock()

    @contextmanager
    def _exclusive(self, operation: str, target: str):
        started = time.monotonic()
        if not self._lock.acquire(timeout=self.lock_timeout):
            logger.warning(
                "Data access lock wait timed out",
                operation=operation,
                target=target,
                timeout_seconds=self.lock_timeout,
            )
            raise DataAccessTimeout(f"Timed out after {self.lock_timeout}s waiting to {operation} {target}")

        waited = time.monotonic() - started
        if waited > self.lock_timeout / 2:
            logger.info("Slow data access lock acquisition", operation=operation, target=target, waited=waited)

        try:
            yield
        finally:
            self._lock.release()

    # Reads take the same lock: the in-memory provider iterates plain dicts
    # that a concurrent insert would resize.
    def load(self, aggregate_cls, identifier):
        with self._exclusive("load", f"{aggregate_cls.__name__}:{identifier}"):
            return current_domain.repository_for(aggregate_cls).get(identifier)

    def find(self, aggregate_cls, **filters):
        with self._exclusive("find", aggregate_cls.__name__):
            return current_domain.repository_for(aggregate_cls)._dao.query.filter(**filters).all().items

    def atomic_update(self, aggregate_cls, identifier, change):
        with self._exclusive("update", f"{aggregate_cls.__name__}:{identifier}"):
            repo = current_domain.repository_for(aggregate_cls)
            aggregate = repo.get(identifier)
            result = change(aggregate)
            repo.add(aggregate)
            return result

    def insert_unique(self, aggregate, unique_on=(), precondition=None):
        aggregate_name = type(aggregate).__name__
        with self._exclusive("insert", f"{aggregate_name}:{aggregate.id}"):
            if precondition is not None:
                precondition()
            repo = current_domain.repository_for(type(aggregate))
            if unique_on:
                key = {field: getattr(aggregate, field) for field in unique_on}
                if repo._dao.query.filter(**key).all().items:
                    raise UniqueViolation(aggregate_name, key)
            repo.add(aggregate)

    def submit(self, command):
        with self._exclusive("process", type(command).__name__):
            return current_domain.process(command, asynchronous=False)
