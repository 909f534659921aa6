# inventory_optimization/services/ingestion_service.py
from typing import Dict, Iterable, Optional
import logging

from inventory_optimization.db import session_scope
from inventory_optimization.events import EventBus, FactAppended
from inventory_optimization.services.fact_store import FactStore
from inventory_optimization.services.ingestion_trigger import IngestionTrigger
from inventory_optimization.utils.validation import parse_date
from inventory_optimization.exceptions import DataQualityError, InventoryOptimizationError

logger = logging.getLogger(__name__)

FACT_FIELDS = (
    'product_id', 'sales_date', 'quantity', 'unit_cost', 'category',
    'promotion_active', 'gdp', 'inflation_rate', 'seasonal_factor'
)

class IngestionService:
    """Appends facts and announces them to subscribers."""

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        trigger: Optional[IngestionTrigger] = None,
        settings: Optional[Dict] = None,
        publish_events: bool = True
    ):
        """Initialize the ingestion service.

        Args:
            bus: Event bus, a private one is created if omitted
            trigger: Trigger to subscribe, created from settings if omitted
            settings: Optional business rules for the default trigger
            publish_events: When False facts are stored without recalculation
        """
        self.bus = bus or EventBus()
        self.publish_events = publish_events
        self.trigger = trigger or IngestionTrigger(settings=settings)
        self.trigger.attach(self.bus)

    def _fact_kwargs(self, record: Dict) -> Dict:
        kwargs = {key: record.get(key) for key in FACT_FIELDS if key in record}

        if kwargs.get('sales_date') is not None:
            try:
                kwargs['sales_date'] = parse_date(kwargs['sales_date'])
            except ValueError:
                raise DataQualityError(
                    f"Unparseable sales date {kwargs['sales_date']!r}",
                    code='INVALID_FACT',
                    details={'row': {k: str(v) for k, v in record.items()}}
                )

        for key in ('product_id', 'sales_date', 'quantity', 'unit_cost'):
            kwargs.setdefault(key, None)

        return kwargs

    def ingest(self, record: Dict) -> Dict:
        """Durably append one fact, then publish FactAppended.

        Args:
            record: Fact fields

        Returns:
            Dictionary with the appended key and subscriber results
        """
        kwargs = self._fact_kwargs(record)

        with session_scope() as session:
            fact = FactStore(session).append_fact(**kwargs)
            event = FactAppended(product_id=fact.product_id, sales_date=fact.sales_date)

        result = {
            'product_id': event.product_id,
            'sales_date': event.sales_date,
            'recalculations': []
        }

        if self.publish_events:
            result['recalculations'] = self.bus.publish(event)

        return result

    def ingest_many(self, records: Iterable[Dict]) -> Dict:
        """Ingest rows one at a time, collecting failures instead of stopping.

        Args:
            records: Iterable of fact dictionaries

        Returns:
            Dictionary with ingestion counts and rejected rows
        """
        results = {
            'total_rows': 0,
            'ingested': 0,
            'rejected': 0,
            'recalculation_errors': 0,
            'errors': []
        }

        for index, record in enumerate(records):
            results['total_rows'] += 1
            try:
                self.ingest(record)
                results['ingested'] += 1
            except DataQualityError as e:
                # The row itself may still be stored when only the recalculation refused it
                if e.code == 'INVALID_HISTORY':
                    results['ingested'] += 1
                    results['recalculation_errors'] += 1
                else:
                    results['rejected'] += 1
                logger.warning(f"Row {index}: {e}")
                results['errors'].append({'row': index, 'error': e.to_dict()})
            except InventoryOptimizationError as e:
                results['ingested'] += 1
                results['recalculation_errors'] += 1
                logger.error(f"Row {index}: recalculation failed: {e}")
                results['errors'].append({'row': index, 'error': e.to_dict()})

        logger.info(
            f"Ingested {results['ingested']} of {results['total_rows']} rows, "
            f"{results['rejected']} rejected"
        )
        return results
