from .config import config
from .db import db, session_scope
from .logging_setup import logger, get_logger
from .exceptions import (
    InventoryOptimizationError, DataQualityError, InvalidInputError,
    ComputationAnomaly, ConcurrencyConflictError
)

__all__ = [
    'config',
    'db',
    'session_scope',
    'logger',
    'get_logger',
    'InventoryOptimizationError',
    'DataQualityError',
    'InvalidInputError',
    'ComputationAnomaly',
    'ConcurrencyConflictError'
]
