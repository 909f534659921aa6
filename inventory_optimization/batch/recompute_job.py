# inventory_optimization/batch/recompute_job.py
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Dict, Iterable, Optional

from inventory_optimization.config import config
from inventory_optimization.db import session_scope
from inventory_optimization.logging_setup import logger as log_manager, get_logger
from inventory_optimization.services.fact_store import FactStore
from inventory_optimization.services.ingestion_trigger import IngestionTrigger
from inventory_optimization.exceptions import BatchProcessError

logger = get_logger('recompute_job')

def list_known_products() -> list:
    """Get every product with at least one fact."""
    with session_scope() as session:
        return FactStore(session).list_product_ids()

def recompute_product(trigger: IngestionTrigger, product_id: int) -> Dict:
    """Recalculate one product, turning any failure into a result entry."""
    try:
        result = trigger.recompute_now(product_id)
        return {'product_id': product_id, 'success': True, 'result': result}
    except Exception as e:
        logger.error(f"Error recalculating product {product_id}: {str(e)}", exc_info=True)
        error = e.to_dict() if hasattr(e, 'to_dict') else {'error': e.__class__.__name__, 'message': str(e)}
        return {'product_id': product_id, 'success': False, 'error': error}

def run_recompute_all(
    product_ids: Optional[Iterable[int]] = None,
    max_workers: Optional[int] = None,
    settings: Optional[Dict] = None
) -> Dict:
    """Recalculate the reorder point of every known product.

    Products are independent, so they are spread over a thread pool with
    one transaction each. A failing product is reported and skipped.
    Re-running the job over unchanged history stores the same values.

    Args:
        product_ids: Optional subset of products, defaults to all with facts
        max_workers: Worker threads, defaults to BATCH_PROCESS.max_workers
        settings: Optional business rules, defaults to configuration

    Returns:
        Dictionary with job results
    """
    start_time = datetime.now()
    log_info = log_manager.job_start('recompute_all', {'max_workers': max_workers})

    results = {
        'start_time': start_time,
        'end_time': None,
        'duration': None,
        'total_products': 0,
        'processed': 0,
        'updated': 0,
        'errors': 0,
        'error_products': [],
        'anomalies': []
    }

    try:
        if product_ids is None:
            product_ids = list_known_products()
        product_ids = sorted(set(int(product_id) for product_id in product_ids))
        results['total_products'] = len(product_ids)

        if max_workers is None:
            max_workers = config.batch_config['max_workers']
        max_workers = max(1, int(max_workers or 1))

        trigger = IngestionTrigger(settings=settings)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(recompute_product, trigger, product_id): product_id
                for product_id in product_ids
            }

            for future in as_completed(futures):
                outcome = future.result()
                results['processed'] += 1

                if outcome['success']:
                    results['updated'] += 1
                    for anomaly in outcome['result'].get('anomalies', []):
                        results['anomalies'].append({'product_id': outcome['product_id'], **anomaly})
                else:
                    results['errors'] += 1
                    results['error_products'].append({
                        'product_id': outcome['product_id'],
                        'error': outcome['error']
                    })

        results['error_products'].sort(key=lambda entry: entry['product_id'])
        results['success'] = True

    except Exception as e:
        logger.error(f"Error during recompute job: {str(e)}", exc_info=True)
        results['success'] = False
        results['error'] = str(e)

    results['end_time'] = datetime.now()
    results['duration'] = results['end_time'] - start_time

    if results['anomalies']:
        affected = len({entry['product_id'] for entry in results['anomalies']})
        log_manager.anomaly_logger.info(
            f"recompute_all: {len(results['anomalies'])} anomalies across {affected} product(s)"
        )

    log_manager.job_end(
        log_info,
        success=results['success'],
        counts={key: results[key] for key in ('processed', 'updated', 'errors')}
    )

    return results

def run_recompute_all_or_raise(*args, **kwargs) -> Dict:
    """Like run_recompute_all, raising BatchProcessError if the job itself failed."""
    results = run_recompute_all(*args, **kwargs)
    if not results.get('success'):
        raise BatchProcessError(
            f"Recompute job failed: {results.get('error', 'Unknown error')}",
            details={key: results[key] for key in ('processed', 'updated', 'errors')}
        )
    return results
