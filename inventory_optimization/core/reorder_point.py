# inventory_optimization/core/reorder_point.py
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from scipy import stats

from inventory_optimization.exceptions import CalculationError, ComputationAnomaly

DEFAULT_LEAD_TIME_DAYS = 7
DEFAULT_SERVICE_Z = 1.645

@dataclass
class ReorderPointResult:
    lead_time_demand: float
    safety_stock: float
    reorder_point: float
    anomalies: List[ComputationAnomaly] = field(default_factory=list)

def service_level_to_z(service_level: float) -> float:
    """Convert a service level percentage to a standard normal Z-score.

    Args:
        service_level: Service level as percentage (e.g., 95.0)

    Returns:
        Z-score, 1.645 for 95%
    """
    if service_level is None or not 0.0 < service_level < 100.0:
        raise CalculationError(f"Service level must be between 0 and 100, got {service_level}")

    return float(stats.norm.ppf(service_level / 100.0))

def resolve_service_z(settings: Dict) -> float:
    """Pick the Z-score from business rules.

    An explicit ``service_z`` wins; otherwise it is derived from
    ``service_level``.
    """
    service_z = settings.get('service_z')
    if service_z is not None:
        return float(service_z)

    service_level = settings.get('service_level')
    if service_level is not None:
        return service_level_to_z(service_level)

    return DEFAULT_SERVICE_Z

def calculate_reorder_point(
    avg_rolling_sales: Optional[float],
    avg_rolling_variance: Optional[float],
    lead_time_days: float = DEFAULT_LEAD_TIME_DAYS,
    service_z: float = DEFAULT_SERVICE_Z
) -> ReorderPointResult:
    """Calculate lead time demand, safety stock and reorder point.

    Reorder Point = Lead Time Demand + Safety Stock
    Lead Time Demand = Rolling Average Sales x Lead Time
    Safety Stock = Z x sqrt(Rolling Variance x Lead Time)

    Args:
        avg_rolling_sales: Average rolling demand value per day
        avg_rolling_variance: Average rolling variance of daily demand value
        lead_time_days: Replenishment lead time in days
        service_z: Service level Z-score

    Returns:
        ReorderPointResult, always finite and non-negative
    """
    if lead_time_days is None or lead_time_days < 0:
        raise CalculationError(f"Lead time must be non-negative, got {lead_time_days}")

    anomalies = []

    sales = 0.0 if avg_rolling_sales is None else float(avg_rolling_sales)
    if not math.isfinite(sales):
        anomalies.append(ComputationAnomaly(
            "Average rolling sales is not finite; treated as zero",
            code='NON_FINITE_SALES',
            details={'avg_rolling_sales': sales}
        ))
        sales = 0.0

    if avg_rolling_variance is None or math.isnan(avg_rolling_variance):
        anomalies.append(ComputationAnomaly(
            "Average rolling variance is missing; treated as zero",
            code='NULL_VARIANCE'
        ))
        variance = 0.0
    elif avg_rolling_variance < 0:
        anomalies.append(ComputationAnomaly(
            "Average rolling variance is negative; treated as zero",
            code='NEGATIVE_VARIANCE',
            details={'avg_rolling_variance': avg_rolling_variance}
        ))
        variance = 0.0
    elif math.isinf(avg_rolling_variance):
        anomalies.append(ComputationAnomaly(
            "Average rolling variance is infinite; treated as zero",
            code='NON_FINITE_VARIANCE'
        ))
        variance = 0.0
    else:
        variance = float(avg_rolling_variance)

    lead_time_demand = sales * lead_time_days
    if lead_time_demand < 0:
        anomalies.append(ComputationAnomaly(
            "Lead time demand is negative; clamped to zero",
            code='NEGATIVE_LEAD_TIME_DEMAND',
            details={'lead_time_demand': lead_time_demand}
        ))
        lead_time_demand = 0.0

    safety_stock = max(service_z * math.sqrt(variance * lead_time_days), 0.0)

    return ReorderPointResult(
        lead_time_demand=lead_time_demand,
        safety_stock=safety_stock,
        reorder_point=lead_time_demand + safety_stock,
        anomalies=anomalies
    )
