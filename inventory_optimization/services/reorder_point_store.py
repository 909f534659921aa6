# inventory_optimization/services/reorder_point_store.py
from typing import Dict, List, Optional
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_optimization.models import ReorderPoint
from inventory_optimization.exceptions import ConcurrencyConflictError, CalculationError

logger = logging.getLogger(__name__)

class ReorderPointStore:
    """Sole writer of the per-product reorder point table.

    Every write is a single insert or a single version-guarded update, so
    a product never has more than one row and a row is never half written.
    """

    def __init__(self, session: Session):
        """Initialize the reorder point store.

        Args:
            session: Database session
        """
        self.session = session

    def get(self, product_id: int) -> Optional[ReorderPoint]:
        """Get the current reorder point row, or None if not yet computed."""
        return self.session.get(ReorderPoint, product_id)

    def get_version(self, product_id: int) -> int:
        """Current row version, 0 when the product has no row yet."""
        row = self.session.query(ReorderPoint.version).filter(
            ReorderPoint.product_id == product_id
        ).first()
        return row[0] if row else 0

    def list_all(self) -> List[ReorderPoint]:
        return self.session.query(ReorderPoint).order_by(ReorderPoint.product_id).all()

    def upsert(
        self,
        product_id: int,
        reorder_point: float,
        lead_time_demand: float = 0.0,
        safety_stock: float = 0.0,
        avg_rolling_sales: float = 0.0,
        avg_rolling_variance: float = 0.0,
        observations: int = 0,
        expected_version: Optional[int] = None
    ) -> Dict:
        """Insert or replace the reorder point for a product.

        Args:
            product_id: Product ID
            reorder_point: New reorder point
            lead_time_demand: Lead time demand behind the reorder point
            safety_stock: Safety stock behind the reorder point
            avg_rolling_sales: Rolling sales the figures were derived from
            avg_rolling_variance: Rolling variance the figures were derived from
            observations: Number of fact rows used
            expected_version: Version the caller read before computing;
                0 means no row was expected. None uses the version seen now.

        Returns:
            Dictionary with the stored values

        Raises:
            ConcurrencyConflictError: If another writer changed the row
                since ``expected_version`` was read
        """
        if reorder_point is None or reorder_point < 0:
            raise CalculationError(
                f"Refusing to store invalid reorder point {reorder_point} for product {product_id}"
            )

        values = {
            'reorder_point': float(reorder_point),
            'lead_time_demand': float(lead_time_demand),
            'safety_stock': float(safety_stock),
            'avg_rolling_sales': float(avg_rolling_sales),
            'avg_rolling_variance': float(avg_rolling_variance),
            'observations': int(observations)
        }

        current_version = self.get_version(product_id)
        if expected_version is None:
            expected_version = current_version

        if expected_version != current_version:
            raise ConcurrencyConflictError(
                f"Reorder point for product {product_id} changed during recalculation",
                code='STALE_VERSION',
                details={'product_id': product_id, 'expected': expected_version, 'found': current_version}
            )

        if current_version == 0:
            self._insert(product_id, values)
            version = 1
        else:
            self._update(product_id, values, current_version)
            version = current_version + 1

        logger.debug(f"Stored reorder point {values['reorder_point']:.4f} for product {product_id} (v{version})")

        result = {'product_id': product_id, 'version': version}
        result.update(values)
        return result

    def _insert(self, product_id: int, values: Dict) -> None:
        self.session.add(ReorderPoint(product_id=product_id, version=1, **values))
        try:
            self.session.flush()
        except IntegrityError as e:
            raise ConcurrencyConflictError(
                f"Reorder point for product {product_id} was created concurrently",
                code='CONCURRENT_INSERT',
                details={'product_id': product_id, 'cause': str(e.orig)}
            )

    def _update(self, product_id: int, values: Dict, current_version: int) -> None:
        statement = (
            update(ReorderPoint)
            .where(ReorderPoint.product_id == product_id)
            .where(ReorderPoint.version == current_version)
            .values(version=current_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)

        if result.rowcount != 1:
            raise ConcurrencyConflictError(
                f"Reorder point for product {product_id} was updated concurrently",
                code='CONCURRENT_UPDATE',
                details={'product_id': product_id, 'expected': current_version}
            )

        # Reload any copy already held by this session
        self.session.get(ReorderPoint, product_id, populate_existing=True)
