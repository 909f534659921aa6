# inventory_optimization/services/monitoring_service.py
from typing import Dict, List, Optional
import logging

import pandas as pd
from sqlalchemy import func, case
from sqlalchemy.orm import Session

from inventory_optimization.config import config
from inventory_optimization.core.rolling_stats import compute_rolling_frame
from inventory_optimization.models import FactRecord, ReorderPoint
from inventory_optimization.services.fact_store import FactStore

logger = logging.getLogger(__name__)

class MonitoringService:
    """Read-only operator views over facts and stored reorder points."""

    def __init__(self, session: Session):
        """Initialize the monitoring service.

        Args:
            session: Database session
        """
        self.session = session

    def average_inventory_by_product(self) -> List[Dict]:
        """Average daily quantity per product, highest first."""
        avg_inventory = func.avg(FactRecord.quantity).label('avg_inventory')
        rows = (
            self.session.query(FactRecord.product_id, avg_inventory)
            .group_by(FactRecord.product_id)
            .order_by(avg_inventory.desc(), FactRecord.product_id)
            .all()
        )
        return [{'product_id': row.product_id, 'avg_inventory': float(row.avg_inventory)} for row in rows]

    def stockout_frequency(self) -> List[Dict]:
        """Days with zero inventory per product, most frequent first."""
        stockout_days = func.count(FactRecord.id).label('stockout_days')
        rows = (
            self.session.query(FactRecord.product_id, stockout_days)
            .filter(FactRecord.quantity == 0)
            .group_by(FactRecord.product_id)
            .order_by(stockout_days.desc(), FactRecord.product_id)
            .all()
        )
        return [{'product_id': row.product_id, 'stockout_days': row.stockout_days} for row in rows]

    def sales_trends(self, product_id: Optional[int] = None) -> pd.DataFrame:
        """Per-row rolling average of demand value.

        Args:
            product_id: Optional product filter

        Returns:
            DataFrame with product_id, sales_date, demand_value and
            rolling_avg_sales, ordered by product and date
        """
        fact_store = FactStore(self.session)
        product_ids = [product_id] if product_id is not None else fact_store.list_product_ids()
        mean_window_size = config.business_rules['mean_window_size']

        frames = []
        for pid in product_ids:
            history = fact_store.get_history(pid)
            if not history:
                continue
            frame = compute_rolling_frame(
                [fact.demand_value for fact in history],
                mean_window_size=mean_window_size
            )
            frame.insert(0, 'sales_date', [fact.sales_date for fact in history])
            frame.insert(0, 'product_id', pid)
            frames.append(frame[['product_id', 'sales_date', 'demand_value', 'rolling_avg_sales']])

        if not frames:
            return pd.DataFrame(columns=['product_id', 'sales_date', 'demand_value', 'rolling_avg_sales'])

        return pd.concat(frames, ignore_index=True)

    def inventory_status(self) -> List[Dict]:
        """Average inventory value, rolling sales and stockouts per product.

        Products whose reorder point has not been computed yet report None.
        """
        stockouts = func.sum(case((FactRecord.quantity == 0, 1), else_=0))
        rows = (
            self.session.query(
                FactRecord.product_id,
                func.avg(FactRecord.quantity * FactRecord.unit_cost).label('avg_inventory_value'),
                stockouts.label('stockout_days')
            )
            .group_by(FactRecord.product_id)
            .order_by(FactRecord.product_id)
            .all()
        )

        trends = self.sales_trends()
        avg_rolling_sales = trends.groupby('product_id')['rolling_avg_sales'].mean() if not trends.empty else {}

        reorder_points = {
            row.product_id: row.reorder_point
            for row in self.session.query(ReorderPoint.product_id, ReorderPoint.reorder_point).all()
        }

        return [
            {
                'product_id': row.product_id,
                'avg_inventory_value': float(row.avg_inventory_value),
                'avg_rolling_sales': float(avg_rolling_sales[row.product_id]) if row.product_id in avg_rolling_sales else 0.0,
                'stockout_days': int(row.stockout_days or 0),
                'reorder_point': reorder_points.get(row.product_id)
            }
            for row in rows
        ]
