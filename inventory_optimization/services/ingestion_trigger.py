# inventory_optimization/services/ingestion_trigger.py
from typing import Callable, Dict, Optional
import logging

from inventory_optimization.db import session_scope
from inventory_optimization.events import EventBus, FactAppended
from inventory_optimization.services.reorder_point_service import ReorderPointService
from inventory_optimization.utils.locks import ProductLockRegistry, product_locks
from inventory_optimization.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

class IngestionTrigger:
    """Keeps a product's reorder point current after each appended fact.

    Recalculations for one product are serialized by a per-product lock and
    each runs in its own transaction, reading the full committed history.
    Running it again for the same history stores the same value.
    """

    def __init__(
        self,
        settings: Optional[Dict] = None,
        locks: Optional[ProductLockRegistry] = None,
        scope: Callable = session_scope,
        max_retries: int = 2
    ):
        """Initialize the trigger.

        Args:
            settings: Optional business rules, defaults to configuration
            locks: Lock registry, defaults to the process-wide one
            scope: Transaction scope factory
            max_retries: Extra attempts after a concurrent write conflict
        """
        self.settings = settings
        self.locks = locks or product_locks
        self.scope = scope
        self.max_retries = max_retries

    def attach(self, bus: EventBus) -> 'IngestionTrigger':
        bus.subscribe(FactAppended, self.handle)
        return self

    def detach(self, bus: EventBus) -> None:
        bus.unsubscribe(FactAppended, self.handle)

    def handle(self, event: FactAppended) -> Dict:
        logger.debug(f"Fact appended for product {event.product_id} on {event.sales_date}")
        return self.recompute_now(event.product_id)

    def recompute_now(self, product_id: int) -> Dict:
        """Recalculate and store a product's reorder point immediately.

        Args:
            product_id: Product ID

        Returns:
            Dictionary with the recalculation results
        """
        with self.locks.hold(product_id):
            attempt = 0
            while True:
                try:
                    with self.scope() as session:
                        return ReorderPointService(session, self.settings).recalculate_for_product(product_id)
                except ConcurrencyConflictError as e:
                    if attempt >= self.max_retries:
                        logger.error(f"Giving up on product {product_id} after {attempt + 1} attempts: {e}")
                        raise
                    attempt += 1
                    logger.warning(f"Product {product_id}: {e}; retrying ({attempt}/{self.max_retries})")
