"""Data-access factory.

Provides get_data_access() / set_data_access() to swap implementations:
- LockingDataAccess for single-process deployments and tests (default)
- Any other DataAccess adapter injected by the composition root
"""

import os
import threading

from commerce.persistence.locking_adapter import LockingDataAccess
from commerce.persistence.port import DataAccess

_current_data_access: DataAccess | None = None
_factory_lock = threading.Lock()


def lock_timeout_from_env() -> float:
    return float(os.getenv("COMMERCE_LOCK_TIMEOUT_SECONDS", "5"))


def get_data_access() -> DataAccess:
    """Return the current data-access adapter. Defaults to LockingDataAccess."""
    global _current_data_access
    with _factory_lock:
        if _current_data_access is None:
            _current_data_access = LockingDataAccess(lock_timeout=lock_timeout_from_env())
        return _current_data_access


def set_data_access(data_access: DataAccess) -> None:
    """Override the active adapter (useful for tests)."""
    global _current_data_access
    _current_data_access = data_access


def reset_data_access() -> None:
    global _current_data_access
    _current_data_access = None
