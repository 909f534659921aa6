# inventory_optimization/batch/__init__.py
from .recompute_job import run_recompute_all, run_recompute_all_or_raise, recompute_product

__all__ = [
    'run_recompute_all',
    'run_recompute_all_or_raise',
    'recompute_product'
]
