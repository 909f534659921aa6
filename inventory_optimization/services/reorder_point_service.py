# inventory_optimization/services/reorder_point_service.py
from datetime import date
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from inventory_optimization.config import config
from inventory_optimization.logging_setup import log_anomaly
from inventory_optimization.core.rolling_stats import compute_demand_values, compute_rolling_statistics
from inventory_optimization.core.reorder_point import calculate_reorder_point, resolve_service_z
from inventory_optimization.services.fact_store import FactStore
from inventory_optimization.services.reorder_point_store import ReorderPointStore
from inventory_optimization.utils.validation import validate_history
from inventory_optimization.exceptions import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

class ReorderPointService:
    """Recalculates a product's reorder point from its persisted history."""

    def __init__(self, session: Session, settings: Optional[Dict] = None):
        """Initialize the reorder point service.

        Args:
            session: Database session
            settings: Optional business rules, defaults to configuration
        """
        self.session = session
        self._settings = settings
        self.fact_store = FactStore(session)
        self.store = ReorderPointStore(session)

    @property
    def settings(self) -> Dict:
        """Get business rules.

        Returns:
            Dictionary with business rules
        """
        if self._settings is None:
            self._settings = config.business_rules
        return self._settings

    def calculate_for_product(self, product_id: int, as_of: Optional[date] = None) -> Dict:
        """Calculate a product's figures without storing them.

        Args:
            product_id: Product ID
            as_of: Optional reference date, inclusive

        Returns:
            Dictionary with rolling statistics, reorder point and anomalies

        Raises:
            NotFoundError: If the product has no facts
            InvalidInputError: If the history breaks the input contract
        """
        history = self.fact_store.get_history(product_id, up_to=as_of)
        if not history:
            raise NotFoundError(f"No facts recorded for product {product_id}")

        try:
            history = validate_history(product_id, history)
        except InvalidInputError as e:
            logger.error(f"Refusing to recalculate product {product_id}: {e}; rows: {e.details.get('rows')}")
            raise

        settings = self.settings
        statistics = compute_rolling_statistics(
            compute_demand_values(history),
            policy=settings.get('aggregation_policy', 'latest-row'),
            mean_window_size=settings.get('mean_window_size', 7),
            variance_window_size=settings.get('variance_window_size', 6)
        )

        result = calculate_reorder_point(
            statistics.avg_rolling_sales,
            statistics.avg_rolling_variance,
            lead_time_days=settings.get('lead_time_days', 7),
            service_z=resolve_service_z(settings)
        )

        anomalies = statistics.anomalies + result.anomalies
        for anomaly in anomalies:
            log_anomaly(product_id, anomaly)

        return {
            'product_id': product_id,
            'as_of': history[-1].sales_date,
            'observations': statistics.observations,
            'policy': statistics.policy,
            'avg_rolling_sales': statistics.avg_rolling_sales,
            'avg_rolling_variance': statistics.avg_rolling_variance,
            'lead_time_demand': result.lead_time_demand,
            'safety_stock': result.safety_stock,
            'reorder_point': result.reorder_point,
            'anomalies': [anomaly.to_dict() for anomaly in anomalies]
        }

    def recalculate_for_product(self, product_id: int) -> Dict:
        """Recalculate from full history and upsert the reorder point.

        Args:
            product_id: Product ID

        Returns:
            Dictionary with the calculation and the stored version
        """
        expected_version = self.store.get_version(product_id)

        calculation = self.calculate_for_product(product_id)

        stored = self.store.upsert(
            product_id,
            calculation['reorder_point'],
            lead_time_demand=calculation['lead_time_demand'],
            safety_stock=calculation['safety_stock'],
            avg_rolling_sales=calculation['avg_rolling_sales'],
            avg_rolling_variance=calculation['avg_rolling_variance'],
            observations=calculation['observations'],
            expected_version=expected_version
        )

        calculation['version'] = stored['version']
        logger.info(
            f"Product {product_id}: reorder point {calculation['reorder_point']:.4f} "
            f"from {calculation['observations']} observation(s)"
        )
        return calculation

    def get_reorder_point(self, product_id: int) -> Optional[Dict]:
        """Current stored reorder point, or None if not yet computed."""
        row = self.store.get(product_id)
        return row.to_dict() if row else None

    def list_reorder_points(self) -> List[Dict]:
        return [row.to_dict() for row in self.store.list_all()]
