import math
import threading
import unittest
from datetime import date
from pathlib import Path

from db_testcase import DatabaseTestCase, TEST_SETTINGS, daily_facts

from inventory_optimization.config import config
from inventory_optimization.db import session_scope
from inventory_optimization.events import EventBus, FactAppended
from inventory_optimization.logging_setup import logger as log_manager
from inventory_optimization.services.ingestion_service import IngestionService
from inventory_optimization.services.ingestion_trigger import IngestionTrigger
from inventory_optimization.services.reorder_point_service import ReorderPointService
from inventory_optimization.services.reorder_point_store import ReorderPointStore
from inventory_optimization.utils.locks import ProductLockRegistry
from inventory_optimization.exceptions import (
    ConcurrencyConflictError,
    DataQualityError,
    InvalidInputError,
    NotFoundError
)


def stored_reorder_point(product_id):
    with session_scope() as session:
        row = ReorderPointStore(session).get(product_id)
        return row.to_dict() if row else None


class TestIngestionTrigger(DatabaseTestCase):
    """Test cases for recalculation after each appended fact."""

    def setUp(self):
        super().setUp()
        self.service = IngestionService(settings=TEST_SETTINGS)

    def test_constant_demand_end_to_end(self):
        for row in daily_facts(101, [50] * 7):
            self.service.ingest(row)

        stored = stored_reorder_point(101)
        self.assertEqual(stored['reorder_point'], 350.0)
        self.assertEqual(stored['safety_stock'], 0.0)
        self.assertEqual(stored['observations'], 7)

    def test_spike_end_to_end(self):
        for row in daily_facts(202, [50] * 6 + [150]):
            self.service.ingest(row)

        mean = 450 / 7
        variance = (150 - mean) ** 2 / 6
        stored = stored_reorder_point(202)

        self.assertAlmostEqual(stored['lead_time_demand'], 450.0, delta=1e-6)
        self.assertAlmostEqual(stored['safety_stock'], 1.645 * math.sqrt(variance * 7), delta=1e-6)
        self.assertAlmostEqual(stored['reorder_point'], 450.0 + 1.645 * math.sqrt(variance * 7), delta=1e-6)

    def test_each_fact_updates_the_value(self):
        rows = daily_facts(7, [10, 20, 30])
        results = [self.service.ingest(row) for row in rows]

        self.assertEqual(len(results[-1]['recalculations']), 1)
        self.assertEqual(results[-1]['recalculations'][0]['observations'], 3)
        self.assertEqual(stored_reorder_point(7)['version'], 3)
        self.assertEqual(stored_reorder_point(7)['reorder_point'], results[-1]['recalculations'][0]['reorder_point'])

    def test_single_record_has_zero_reorder_point(self):
        self.service.ingest(daily_facts(303, [500])[0])

        stored = stored_reorder_point(303)
        self.assertEqual(stored['reorder_point'], 0.0)
        self.assertEqual(stored['observations'], 1)

    def test_string_dates_are_parsed(self):
        result = self.service.ingest({'product_id': 9, 'sales_date': '2024-02-01', 'quantity': 3, 'unit_cost': 2})
        self.assertEqual(result['sales_date'], date(2024, 2, 1))

        with self.assertRaises(DataQualityError) as ctx:
            self.service.ingest({'product_id': 9, 'sales_date': 'yesterday', 'quantity': 3, 'unit_cost': 2})
        self.assertEqual(ctx.exception.code, 'INVALID_FACT')

    def test_recompute_is_idempotent(self):
        for row in daily_facts(202, [50] * 6 + [150]):
            self.service.ingest(row)

        trigger = IngestionTrigger(settings=TEST_SETTINGS)
        first = trigger.recompute_now(202)
        second = trigger.recompute_now(202)

        self.assertEqual(first['reorder_point'], second['reorder_point'])
        self.assertEqual(stored_reorder_point(202)['reorder_point'], second['reorder_point'])

    def test_malformed_history_leaves_stored_value(self):
        for row in daily_facts(101, [50] * 7):
            self.service.ingest(row)
        before = stored_reorder_point(101)

        self.insert_raw_facts([
            dict(product_id=101, sales_date=date(2024, 1, 8), quantity=-4.0, unit_cost=5.0)
        ])

        with self.assertRaises(InvalidInputError) as ctx:
            IngestionTrigger(settings=TEST_SETTINGS).recompute_now(101)
        self.assertEqual(ctx.exception.details['product_id'], 101)

        after = stored_reorder_point(101)
        self.assertEqual(after['reorder_point'], before['reorder_point'])
        self.assertEqual(after['version'], before['version'])

    def test_infinite_quantity_never_reaches_the_calculation(self):
        for row in daily_facts(101, [50] * 7):
            self.service.ingest(row)
        before = stored_reorder_point(101)

        with self.assertRaises(DataQualityError) as ctx:
            self.service.ingest({'product_id': 101, 'sales_date': date(2024, 1, 8),
                                 'quantity': float('inf'), 'unit_cost': 5.0})
        self.assertEqual(ctx.exception.code, 'INVALID_FACT')

        # Written around the store, the row is refused at recalculation
        self.insert_raw_facts([
            dict(product_id=101, sales_date=date(2024, 1, 8), quantity=float('inf'), unit_cost=5.0)
        ])
        with self.assertRaises(InvalidInputError):
            IngestionTrigger(settings=TEST_SETTINGS).recompute_now(101)

        after = stored_reorder_point(101)
        self.assertEqual(after['reorder_point'], before['reorder_point'])
        self.assertEqual(after['version'], before['version'])

    def test_anomalies_are_written_to_the_anomaly_log(self):
        with self.assertLogs(log_manager.anomaly_logger, level='WARNING') as captured:
            self.service.ingest(daily_facts(303, [500])[0])

        self.assertEqual(len(captured.records), 1)
        self.assertIn('product=303', captured.output[0])
        self.assertIn('code=INSUFFICIENT_HISTORY', captured.output[0])

    def test_anomaly_log_file(self):
        self.service.ingest(daily_facts(304, [500])[0])

        for handler in log_manager.anomaly_logger.handlers:
            handler.flush()
        log_file = Path(config.log_config['directory']) / 'anomalies.log'
        self.assertIn('product=304 code=INSUFFICIENT_HISTORY', log_file.read_text())

    def test_recompute_without_facts(self):
        with self.assertRaises(NotFoundError):
            IngestionTrigger(settings=TEST_SETTINGS).recompute_now(404)
        self.assertIsNone(stored_reorder_point(404))

    def test_publishing_disabled(self):
        service = IngestionService(settings=TEST_SETTINGS, publish_events=False)
        for row in daily_facts(11, [5, 6]):
            result = service.ingest(row)
            self.assertEqual(result['recalculations'], [])

        self.assertIsNone(stored_reorder_point(11))

    def test_duplicate_row_does_not_trigger(self):
        row = daily_facts(12, [5])[0]
        self.service.ingest(row)

        with self.assertRaises(DataQualityError):
            self.service.ingest(row)

        self.assertEqual(stored_reorder_point(12)['version'], 1)

    def test_concurrent_recalculations_for_one_product(self):
        for row in daily_facts(42, [40, 55, 38, 61, 47, 52, 44, 70, 35]):
            self.service.ingest(row)
        version_before = stored_reorder_point(42)['version']

        trigger = IngestionTrigger(settings=TEST_SETTINGS, locks=ProductLockRegistry())
        errors = []

        def worker():
            try:
                trigger.recompute_now(42)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])

        with session_scope() as session:
            expected = ReorderPointService(session, TEST_SETTINGS).calculate_for_product(42)

        stored = stored_reorder_point(42)
        self.assertEqual(stored['version'], version_before + 5)
        self.assertAlmostEqual(stored['reorder_point'], expected['reorder_point'], delta=1e-9)

    def test_conflict_is_retried(self):
        for row in daily_facts(8, [10, 12]):
            self.service.ingest(row)

        calls = []

        class RacingService(ReorderPointService):
            def recalculate_for_product(self, product_id):
                if not calls:
                    calls.append(product_id)
                    raise ConcurrencyConflictError("simulated", code='STALE_VERSION')
                return super().recalculate_for_product(product_id)

        import inventory_optimization.services.ingestion_trigger as trigger_module
        original = trigger_module.ReorderPointService
        trigger_module.ReorderPointService = RacingService
        try:
            result = IngestionTrigger(settings=TEST_SETTINGS).recompute_now(8)
        finally:
            trigger_module.ReorderPointService = original

        self.assertEqual(calls, [8])
        self.assertEqual(result['observations'], 2)

    def test_conflict_gives_up_after_retries(self):
        for row in daily_facts(8, [10, 12]):
            self.service.ingest(row)

        class AlwaysStale(ReorderPointService):
            def recalculate_for_product(self, product_id):
                raise ConcurrencyConflictError("simulated", code='STALE_VERSION')

        import inventory_optimization.services.ingestion_trigger as trigger_module
        original = trigger_module.ReorderPointService
        trigger_module.ReorderPointService = AlwaysStale
        try:
            with self.assertRaises(ConcurrencyConflictError):
                IngestionTrigger(settings=TEST_SETTINGS, max_retries=1).recompute_now(8)
        finally:
            trigger_module.ReorderPointService = original


class TestEventBus(unittest.TestCase):
    """Test cases for in-process event dispatch."""

    def test_handlers_receive_events_in_order(self):
        bus = EventBus()
        seen = []
        bus.subscribe(FactAppended, lambda event: seen.append(('a', event.product_id)) or 'a')
        bus.subscribe(FactAppended, lambda event: seen.append(('b', event.product_id)) or 'b')

        results = bus.publish(FactAppended(product_id=1, sales_date=date(2024, 1, 1)))

        self.assertEqual(results, ['a', 'b'])
        self.assertEqual(seen, [('a', 1), ('b', 1)])

    def test_unsubscribe(self):
        bus = EventBus()
        handler = lambda event: event.product_id
        bus.subscribe(FactAppended, handler)
        bus.subscribe(FactAppended, handler)
        bus.unsubscribe(FactAppended, handler)

        self.assertEqual(bus.publish(FactAppended(product_id=1, sales_date=date(2024, 1, 1))), [])

    def test_handler_errors_propagate(self):
        bus = EventBus()

        def failing(event):
            raise RuntimeError("boom")

        bus.subscribe(FactAppended, failing)
        with self.assertRaises(RuntimeError):
            bus.publish(FactAppended(product_id=1, sales_date=date(2024, 1, 1)))

    def test_lock_registry_reuses_locks(self):
        registry = ProductLockRegistry()
        self.assertIs(registry.get(1), registry.get(1))
        self.assertIsNot(registry.get(1), registry.get(2))
        self.assertEqual(len(registry), 2)


if __name__ == '__main__':
    unittest.main()
