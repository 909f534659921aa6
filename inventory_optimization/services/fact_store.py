# inventory_optimization/services/fact_store.py
from datetime import date
from typing import Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_optimization.models import FactRecord
from inventory_optimization.utils.validation import validate_fact_record
from inventory_optimization.exceptions import DataQualityError

logger = logging.getLogger(__name__)

class FactStore:
    """Append-only access to the unified fact history."""

    def __init__(self, session: Session):
        """Initialize the fact store.

        Args:
            session: Database session
        """
        self.session = session

    def append_fact(
        self,
        product_id: int,
        sales_date: date,
        quantity: float,
        unit_cost: float,
        category: Optional[str] = None,
        promotion_active: bool = False,
        gdp: Optional[float] = None,
        inflation_rate: Optional[float] = None,
        seasonal_factor: Optional[float] = None
    ) -> FactRecord:
        """Validate and append one fact row.

        Args:
            product_id: Product ID
            sales_date: Calendar date of the observation
            quantity: Units on the day, 0 for a stockout
            unit_cost: Cost per unit
            category: Product category
            promotion_active: Whether a promotion ran
            gdp: GDP for the date, if known
            inflation_rate: Inflation rate for the date, if known
            seasonal_factor: Seasonal factor for the date, if known

        Returns:
            The flushed FactRecord

        Raises:
            DataQualityError: If the row is malformed or duplicates an
                existing (product, date) pair
        """
        record = {
            'product_id': product_id,
            'sales_date': sales_date,
            'quantity': quantity,
            'unit_cost': unit_cost
        }
        errors = validate_fact_record(record)
        if errors:
            raise DataQualityError(
                f"Rejected fact row for product {product_id} on {sales_date}",
                code='INVALID_FACT',
                details={'row': {k: str(v) for k, v in record.items()}, 'errors': errors}
            )

        if self.exists(product_id, sales_date):
            raise DataQualityError(
                f"Fact already exists for product {product_id} on {sales_date}",
                code='DUPLICATE_FACT',
                details={'product_id': product_id, 'sales_date': str(sales_date)}
            )

        fact = FactRecord(
            product_id=int(product_id),
            sales_date=sales_date,
            quantity=float(quantity),
            unit_cost=float(unit_cost),
            category=category,
            promotion_active=bool(promotion_active),
            gdp=gdp,
            inflation_rate=inflation_rate,
            seasonal_factor=seasonal_factor
        )

        self.session.add(fact)
        try:
            self.session.flush()
        except IntegrityError as e:
            if not self._committed_exists(product_id, sales_date):
                raise DataQualityError(
                    f"Rejected fact row for product {product_id} on {sales_date}",
                    code='INVALID_FACT',
                    details={'row': {k: str(v) for k, v in record.items()}, 'cause': str(e.orig)}
                )
            # Lost a race with another writer for the same product and date
            raise DataQualityError(
                f"Fact already exists for product {product_id} on {sales_date}",
                code='DUPLICATE_FACT',
                details={'product_id': product_id, 'sales_date': str(sales_date), 'cause': str(e.orig)}
            )

        logger.debug(f"Appended fact for product {product_id} on {sales_date}")
        return fact

    def exists(self, product_id: int, sales_date: date) -> bool:
        return self.session.query(FactRecord.id).filter(
            FactRecord.product_id == product_id,
            FactRecord.sales_date == sales_date
        ).first() is not None

    def _committed_exists(self, product_id: int, sales_date: date) -> bool:
        # The session cannot query after a failed flush, so look on a fresh connection
        statement = select(FactRecord.id).where(
            FactRecord.product_id == product_id,
            FactRecord.sales_date == sales_date
        )
        with self.session.get_bind().connect() as connection:
            return connection.execute(statement).first() is not None

    def get_history(self, product_id: int, up_to: Optional[date] = None) -> List[FactRecord]:
        """Get a product's facts ordered by date ascending.

        Args:
            product_id: Product ID
            up_to: Optional reference date, inclusive

        Returns:
            List of FactRecord rows
        """
        query = self.session.query(FactRecord).filter(FactRecord.product_id == product_id)
        if up_to is not None:
            query = query.filter(FactRecord.sales_date <= up_to)

        return query.order_by(FactRecord.sales_date, FactRecord.id).all()

    def list_product_ids(self) -> List[int]:
        rows = self.session.query(FactRecord.product_id).distinct().order_by(FactRecord.product_id).all()
        return [row[0] for row in rows]

    def count(self, product_id: Optional[int] = None) -> int:
        query = self.session.query(FactRecord)
        if product_id is not None:
            query = query.filter(FactRecord.product_id == product_id)
        return query.count()

    def to_dicts(self, facts: List[FactRecord]) -> List[Dict]:
        """Serialize facts with neutral external factors filled in."""
        rows = []
        for fact in facts:
            row = {
                'product_id': fact.product_id,
                'sales_date': fact.sales_date,
                'quantity': fact.quantity,
                'unit_cost': fact.unit_cost,
                'demand_value': fact.demand_value,
                'category': fact.category,
                'promotion_active': fact.promotion_active
            }
            row.update(fact.external_factors())
            rows.append(row)
        return rows
