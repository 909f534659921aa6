from .rolling_stats import (
    RollingStatistics, compute_demand_values, compute_rolling_frame,
    compute_rolling_statistics, POLICY_LATEST_ROW, POLICY_FULL_HISTORY_MEAN,
    AGGREGATION_POLICIES
)
from .reorder_point import (
    ReorderPointResult, calculate_reorder_point, service_level_to_z,
    resolve_service_z
)

__all__ = [
    'RollingStatistics',
    'compute_demand_values',
    'compute_rolling_frame',
    'compute_rolling_statistics',
    'POLICY_LATEST_ROW',
    'POLICY_FULL_HISTORY_MEAN',
    'AGGREGATION_POLICIES',
    'ReorderPointResult',
    'calculate_reorder_point',
    'service_level_to_z',
    'resolve_service_z'
]
