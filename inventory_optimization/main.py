import argparse
import sys

from tabulate import tabulate

from inventory_optimization.config import config
from inventory_optimization.db import db, session_scope
from inventory_optimization.logging_setup import logger, get_logger, log_exception
from inventory_optimization.exceptions import InventoryOptimizationError

def init_application(database_url=None):
    """Initialize application components."""
    db.initialize(database_url)
    db.check_connection()

    log = logger.app_logger
    log.info("Inventory Optimization System initialized")
    log.info(f"Using database: {db.engine.url.render_as_string(hide_password=True)}")

    return True

def setup_database(drop_existing=False):
    """Create the schema, optionally dropping existing tables first."""
    log = get_logger('db_setup')

    if drop_existing:
        log.info("Dropping all existing tables...")
        db.drop_all_tables()

    log.info("Creating database tables...")
    db.create_all_tables()
    log.info("Database tables created successfully.")
    return True

def ingest_csv(args):
    """Ingest a unified fact CSV, recalculating affected products."""
    from inventory_optimization.services.fact_loader import load_facts_csv
    from inventory_optimization.services.ingestion_service import IngestionService

    log = get_logger('ingest')
    log.info(f"Loading facts from {args.csv}")

    records = load_facts_csv(args.csv)
    service = IngestionService(publish_events=not args.no_trigger)
    results = service.ingest_many(records)

    print(tabulate(
        [[results['total_rows'], results['ingested'], results['rejected'], results['recalculation_errors']]],
        headers=['Rows', 'Ingested', 'Rejected', 'Recalculation Errors']
    ))

    if args.verbose:
        for error in results['errors']:
            print(f"  row {error['row']}: {error['error'].get('message')}")

    return 0 if results['rejected'] == 0 and results['recalculation_errors'] == 0 else 1

def recompute_product(args):
    """Recalculate one product immediately."""
    from inventory_optimization.services.ingestion_trigger import IngestionTrigger

    result = IngestionTrigger().recompute_now(args.product_id)
    print(tabulate(
        [[result['product_id'], result['observations'], result['avg_rolling_sales'],
          result['avg_rolling_variance'], result['lead_time_demand'], result['safety_stock'],
          result['reorder_point']]],
        headers=['Product ID', 'Observations', 'Avg Rolling Sales', 'Avg Rolling Variance',
                 'Lead Time Demand', 'Safety Stock', 'Reorder Point'],
        floatfmt='.4f'
    ))

    for anomaly in result['anomalies']:
        print(f"  anomaly [{anomaly.get('code')}]: {anomaly.get('message')}")

    return 0

def recompute_all(args):
    """Recalculate every known product."""
    from inventory_optimization.batch.recompute_job import run_recompute_all_or_raise

    results = run_recompute_all_or_raise(max_workers=args.workers)

    print(tabulate(
        [[results['total_products'], results['updated'], results['errors'], len(results['anomalies'])]],
        headers=['Products', 'Updated', 'Errors', 'Anomalies']
    ))
    for entry in results['error_products']:
        print(f"  product {entry['product_id']}: {entry['error'].get('message')}")
    print(f"\nDuration: {results['duration']}")

    return 0 if results['errors'] == 0 else 1

def show_reorder_points(args):
    """Print stored reorder points."""
    from inventory_optimization.services.reorder_point_service import ReorderPointService

    with session_scope() as session:
        service = ReorderPointService(session)
        if args.product_id is not None:
            row = service.get_reorder_point(args.product_id)
            if row is None:
                print(f"Reorder point for product {args.product_id} not yet computed")
                return 1
            rows = [row]
        else:
            rows = service.list_reorder_points()

    print(tabulate(
        [[r['product_id'], r['reorder_point'], r['lead_time_demand'], r['safety_stock'],
          r['observations'], r['version'], r['updated_at']] for r in rows],
        headers=['Product ID', 'Reorder Point', 'Lead Time Demand', 'Safety Stock',
                 'Observations', 'Version', 'Updated'],
        floatfmt='.4f'
    ))
    return 0

def show_history(args):
    """Print a product's fact history with neutral external factors."""
    from inventory_optimization.services.fact_store import FactStore

    with session_scope() as session:
        fact_store = FactStore(session)
        rows = fact_store.to_dicts(fact_store.get_history(args.product_id))

    if not rows:
        print(f"No facts recorded for product {args.product_id}")
        return 1

    print(tabulate(rows, headers='keys', floatfmt='.2f'))
    return 0

def monitor(args):
    """Print operator monitoring views."""
    from inventory_optimization.services.monitoring_service import MonitoringService

    with session_scope() as session:
        service = MonitoringService(session)
        if args.view == 'inventory':
            data = service.average_inventory_by_product()
        elif args.view == 'stockouts':
            data = service.stockout_frequency()
        elif args.view == 'trends':
            data = service.sales_trends(args.product_id).to_dict(orient='records')
        else:
            data = service.inventory_status()

    if not data:
        print("No data")
        return 0

    print(tabulate(data, headers='keys', floatfmt='.2f'))
    return 0

def build_parser():
    parser = argparse.ArgumentParser(description='Inventory Optimization System')

    parser.add_argument('--setup-db', action='store_true',
                      help='Set up the database schema')
    parser.add_argument('--drop-db', action='store_true',
                      help='Drop existing tables before setup')
    parser.add_argument('--database-url', type=str,
                      help='Override the configured database URL')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    ingest_parser = subparsers.add_parser('ingest', help='Ingest a unified fact CSV')
    ingest_parser.add_argument('--csv', required=True, help='Path to the fact CSV')
    ingest_parser.add_argument('--no-trigger', action='store_true',
                               help='Store facts without recalculating reorder points')
    ingest_parser.add_argument('--verbose', '-v', action='store_true',
                               help='List rejected rows')

    recompute_parser = subparsers.add_parser('recompute', help='Recalculate one product now')
    recompute_parser.add_argument('--product-id', type=int, required=True)

    recompute_all_parser = subparsers.add_parser('recompute-all', help='Recalculate every product')
    recompute_all_parser.add_argument('--workers', type=int,
                                      help='Worker threads (defaults to BATCH_PROCESS.max_workers)')

    show_parser = subparsers.add_parser('show', help='Show stored reorder points')
    show_parser.add_argument('--product-id', type=int)

    history_parser = subparsers.add_parser('history', help='Show a product fact history')
    history_parser.add_argument('--product-id', type=int, required=True)

    monitor_parser = subparsers.add_parser('monitor', help='Operator monitoring views')
    monitor_parser.add_argument('view', choices=['inventory', 'stockouts', 'trends', 'status'])
    monitor_parser.add_argument('--product-id', type=int, help='Product filter for trends')

    return parser

COMMANDS = {
    'ingest': ingest_csv,
    'recompute': recompute_product,
    'recompute-all': recompute_all,
    'show': show_reorder_points,
    'history': show_history,
    'monitor': monitor
}

def main(argv=None):
    """Main application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    init_application(args.database_url or config.get_db_url())

    if args.setup_db:
        setup_database(args.drop_db)
        if not args.command:
            return 0

    if not args.command:
        parser.print_help()
        return 0

    try:
        return COMMANDS[args.command](args)
    except InventoryOptimizationError as e:
        log_exception('cli', e, f"{args.command} failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1

if __name__ == "__main__":
    sys.exit(main())
