# inventory_optimization/core/rolling_stats.py
"""Rolling demand statistics per product.

Each fact row contributes a demand value (quantity * unit cost). For every
row the engine keeps a trailing mean of demand values and a trailing mean
of squared deviations from that row's rolling mean. The variance is
therefore a rolling mean of rolling deviations, not a textbook windowed
variance, and both windows accept partial windows at the start of history.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

import numpy as np
import pandas as pd

from inventory_optimization.exceptions import CalculationError, ComputationAnomaly

MEAN_WINDOW_SIZE = 7
VARIANCE_WINDOW_SIZE = 6

POLICY_LATEST_ROW = 'latest-row'
POLICY_FULL_HISTORY_MEAN = 'full-history-mean'
AGGREGATION_POLICIES = (POLICY_LATEST_ROW, POLICY_FULL_HISTORY_MEAN)

MIN_OBSERVATIONS = 2

@dataclass
class RollingStatistics:
    """Product-level rolling statistics as of the most recent fact."""
    avg_rolling_sales: float
    avg_rolling_variance: float
    observations: int
    policy: str = POLICY_LATEST_ROW
    anomalies: List[ComputationAnomaly] = field(default_factory=list)

def compute_demand_values(history: Iterable) -> List[float]:
    """Extract demand values from fact rows already ordered by date.

    Args:
        history: Objects exposing ``quantity`` and ``unit_cost``

    Returns:
        List of demand values in the same order
    """
    return [float(row.quantity) * float(row.unit_cost) for row in history]

def compute_rolling_frame(
    demand_values: Sequence[float],
    mean_window_size: int = MEAN_WINDOW_SIZE,
    variance_window_size: int = VARIANCE_WINDOW_SIZE
) -> pd.DataFrame:
    """Build the per-row rolling window state for one product.

    Args:
        demand_values: Demand values ordered by date ascending
        mean_window_size: Rows in the rolling mean window
        variance_window_size: Rows in the rolling variance window

    Returns:
        DataFrame with columns demand_value, rolling_avg_sales, deviation,
        squared_deviation and rolling_variance
    """
    if mean_window_size < 1 or variance_window_size < 1:
        raise CalculationError(
            f"Window sizes must be positive (mean={mean_window_size}, variance={variance_window_size})"
        )

    demand = pd.Series(list(demand_values), dtype=float, name='demand_value')

    rolling_avg_sales = demand.rolling(window=mean_window_size, min_periods=1).mean()
    deviation = demand - rolling_avg_sales
    squared_deviation = deviation ** 2
    rolling_variance = squared_deviation.rolling(window=variance_window_size, min_periods=1).mean()

    return pd.DataFrame({
        'demand_value': demand,
        'rolling_avg_sales': rolling_avg_sales,
        'deviation': deviation,
        'squared_deviation': squared_deviation,
        # Rolling sums can drift a hair below zero
        'rolling_variance': rolling_variance.clip(lower=0.0)
    })

def compute_rolling_statistics(
    demand_values: Sequence[float],
    policy: str = POLICY_LATEST_ROW,
    mean_window_size: int = MEAN_WINDOW_SIZE,
    variance_window_size: int = VARIANCE_WINDOW_SIZE
) -> RollingStatistics:
    """Reduce a product's rolling window state to one mean and one variance.

    Args:
        demand_values: Demand values ordered by date ascending
        policy: 'latest-row' uses the most recent row, 'full-history-mean'
            averages the per-row statistics over the whole history
        mean_window_size: Rows in the rolling mean window
        variance_window_size: Rows in the rolling variance window

    Returns:
        RollingStatistics with any anomalies met along the way
    """
    if policy not in AGGREGATION_POLICIES:
        raise CalculationError(
            f"Unknown aggregation policy '{policy}'",
            details={'allowed': list(AGGREGATION_POLICIES)}
        )

    observations = len(demand_values)
    anomalies = []

    if observations < MIN_OBSERVATIONS:
        anomalies.append(ComputationAnomaly(
            f"Only {observations} observation(s); demand treated as unknown",
            code='INSUFFICIENT_HISTORY',
            details={'observations': observations}
        ))
        return RollingStatistics(0.0, 0.0, observations, policy, anomalies)

    frame = compute_rolling_frame(demand_values, mean_window_size, variance_window_size)

    if policy == POLICY_LATEST_ROW:
        avg_sales = float(frame['rolling_avg_sales'].iloc[-1])
        avg_variance = float(frame['rolling_variance'].iloc[-1])
    else:
        avg_sales = float(frame['rolling_avg_sales'].mean())
        avg_variance = float(frame['rolling_variance'].mean())

    if not np.isfinite(avg_sales) or not np.isfinite(avg_variance):
        anomalies.append(ComputationAnomaly(
            "Rolling statistics are not finite; falling back to zero",
            code='NON_FINITE_STATISTIC',
            details={'avg_rolling_sales': avg_sales, 'avg_rolling_variance': avg_variance}
        ))
        avg_sales = avg_sales if np.isfinite(avg_sales) else 0.0
        avg_variance = avg_variance if np.isfinite(avg_variance) else 0.0

    return RollingStatistics(avg_sales, avg_variance, observations, policy, anomalies)
