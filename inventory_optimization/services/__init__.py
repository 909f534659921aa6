from .fact_store import FactStore
from .reorder_point_store import ReorderPointStore
from .reorder_point_service import ReorderPointService
from .ingestion_trigger import IngestionTrigger
from .ingestion_service import IngestionService
from .monitoring_service import MonitoringService
from .fact_loader import load_facts_csv

__all__ = [
    'FactStore',
    'ReorderPointStore',
    'ReorderPointService',
    'IngestionTrigger',
    'IngestionService',
    'MonitoringService',
    'load_facts_csv'
]
