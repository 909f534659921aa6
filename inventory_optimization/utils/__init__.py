from .validation import validate_fact_record, validate_history, parse_date
from .locks import ProductLockRegistry, product_locks

__all__ = [
    'validate_fact_record',
    'validate_history',
    'parse_date',
    'ProductLockRegistry',
    'product_locks'
]
