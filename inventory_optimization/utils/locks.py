import threading
from contextlib import contextmanager
from typing import Dict

class ProductLockRegistry:
    """One re-entrant lock per product id.

    Recalculations for the same product run one at a time; different
    products never wait on each other.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.RLock] = {}

    def get(self, product_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(product_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[product_id] = lock
            return lock

    @contextmanager
    def hold(self, product_id: int):
        lock = self.get(product_id)
        with lock:
            yield

    def __len__(self):
        with self._guard:
            return len(self._locks)

# Shared by the ingestion trigger and the batch job
product_locks = ProductLockRegistry()
