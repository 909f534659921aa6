import unittest
from datetime import date

from db_testcase import DatabaseTestCase, TEST_SETTINGS, daily_facts

from inventory_optimization.batch.recompute_job import (
    list_known_products,
    run_recompute_all,
    run_recompute_all_or_raise
)
from inventory_optimization.db import session_scope
from inventory_optimization.services.fact_store import FactStore
from inventory_optimization.services.reorder_point_store import ReorderPointStore


class TestRecomputeJob(DatabaseTestCase):
    """Test cases for the recompute-all batch job."""

    def setUp(self):
        super().setUp()
        with session_scope() as session:
            store = FactStore(session)
            for row in (daily_facts(101, [50] * 7)
                        + daily_facts(202, [50] * 6 + [150])
                        + daily_facts(303, [500])):
                store.append_fact(**row)

    def stored_values(self):
        with session_scope() as session:
            return {row.product_id: (row.reorder_point, row.version) for row in ReorderPointStore(session).list_all()}

    def test_recomputes_every_product(self):
        results = run_recompute_all(max_workers=1, settings=TEST_SETTINGS)

        self.assertTrue(results['success'])
        self.assertEqual(results['total_products'], 3)
        self.assertEqual(results['processed'], 3)
        self.assertEqual(results['updated'], 3)
        self.assertEqual(results['errors'], 0)
        self.assertIsNotNone(results['duration'])

        stored = self.stored_values()
        self.assertEqual(sorted(stored), [101, 202, 303])
        self.assertEqual(stored[101][0], 350.0)
        self.assertEqual(stored[303][0], 0.0)

    def test_single_record_reports_anomaly(self):
        results = run_recompute_all(max_workers=1, settings=TEST_SETTINGS)

        codes = {(a['product_id'], a.get('code')) for a in results['anomalies']}
        self.assertIn((303, 'INSUFFICIENT_HISTORY'), codes)

    def test_rerun_is_idempotent(self):
        run_recompute_all(max_workers=2, settings=TEST_SETTINGS)
        first = self.stored_values()

        run_recompute_all(max_workers=2, settings=TEST_SETTINGS)
        second = self.stored_values()

        for product_id, (value, version) in first.items():
            self.assertEqual(second[product_id][0], value)
            self.assertEqual(second[product_id][1], version + 1)

    def test_failing_product_is_isolated(self):
        self.insert_raw_facts([
            dict(product_id=404, sales_date=date(2024, 1, 1), quantity=-2.0, unit_cost=5.0),
            dict(product_id=404, sales_date=date(2024, 1, 2), quantity=3.0, unit_cost=5.0)
        ])

        results = run_recompute_all(max_workers=2, settings=TEST_SETTINGS)

        self.assertTrue(results['success'])
        self.assertEqual(results['total_products'], 4)
        self.assertEqual(results['updated'], 3)
        self.assertEqual(results['errors'], 1)
        self.assertEqual(results['error_products'][0]['product_id'], 404)
        self.assertEqual(results['error_products'][0]['error']['code'], 'INVALID_HISTORY')
        self.assertNotIn(404, self.stored_values())

    def test_explicit_product_subset(self):
        results = run_recompute_all(product_ids=[202, 202], max_workers=1, settings=TEST_SETTINGS)

        self.assertEqual(results['total_products'], 1)
        self.assertEqual(sorted(self.stored_values()), [202])

    def test_unknown_product_is_an_error(self):
        results = run_recompute_all(product_ids=[999], max_workers=1, settings=TEST_SETTINGS)

        self.assertEqual(results['errors'], 1)
        self.assertEqual(results['error_products'][0]['error']['error'], 'NotFoundError')

    def test_list_known_products(self):
        self.assertEqual(list_known_products(), [101, 202, 303])

    def test_or_raise_returns_results(self):
        results = run_recompute_all_or_raise(max_workers=1, settings=TEST_SETTINGS)
        self.assertEqual(results['updated'], 3)


if __name__ == '__main__':
    unittest.main()
