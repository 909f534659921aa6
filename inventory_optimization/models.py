# inventory_optimization/models.py
from sqlalchemy import Column, Integer, Float, Date, DateTime, Boolean, String, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

# Neutral values used when no external factor record matched the sales date
NEUTRAL_GDP = 0.0
NEUTRAL_INFLATION_RATE = 0.0
NEUTRAL_SEASONAL_FACTOR = 1.0

class FactRecord(Base):
    """Unified per-product, per-date inventory record."""
    __tablename__ = 'inventory_table'

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, nullable=False)
    sales_date = Column(Date, nullable=False)

    quantity = Column(Float, nullable=False, default=0.0)  # 0 means stockout for the day
    unit_cost = Column(Float, nullable=False)
    category = Column(String(100))
    promotion_active = Column(Boolean, default=False)

    # External factors, NULL when nothing matched the date
    gdp = Column(Float)
    inflation_rate = Column(Float)
    seasonal_factor = Column(Float)

    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint('product_id', 'sales_date', name='uq_inventory_product_date'),
        Index('idx_inventory_product_date', 'product_id', 'sales_date'),
    )

    @property
    def demand_value(self) -> float:
        """Monetary demand for the day."""
        return self.quantity * self.unit_cost

    def external_factors(self):
        """External factors with absent values replaced by neutral ones."""
        return {
            'gdp': self.gdp if self.gdp is not None else NEUTRAL_GDP,
            'inflation_rate': self.inflation_rate if self.inflation_rate is not None else NEUTRAL_INFLATION_RATE,
            'seasonal_factor': self.seasonal_factor if self.seasonal_factor is not None else NEUTRAL_SEASONAL_FACTOR
        }

    def __repr__(self):
        return f"<FactRecord product_id={self.product_id} sales_date={self.sales_date} quantity={self.quantity}>"

class ReorderPoint(Base):
    """Latest reorder point per product. Only the most recent value is kept."""
    __tablename__ = 'inventory_optimization'

    product_id = Column(Integer, primary_key=True, autoincrement=False)
    reorder_point = Column(Float, nullable=False, default=0.0)

    # Inputs that produced the reorder point
    lead_time_demand = Column(Float, default=0.0)
    safety_stock = Column(Float, default=0.0)
    avg_rolling_sales = Column(Float, default=0.0)
    avg_rolling_variance = Column(Float, default=0.0)
    observations = Column(Integer, default=0)

    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'reorder_point': self.reorder_point,
            'lead_time_demand': self.lead_time_demand,
            'safety_stock': self.safety_stock,
            'avg_rolling_sales': self.avg_rolling_sales,
            'avg_rolling_variance': self.avg_rolling_variance,
            'observations': self.observations,
            'version': self.version,
            'updated_at': self.updated_at
        }
