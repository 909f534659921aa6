import math
from collections import Counter
from datetime import date, datetime
from typing import Dict, Iterable, List

from inventory_optimization.exceptions import InvalidInputError

REQUIRED_FIELDS = ('product_id', 'sales_date', 'quantity', 'unit_cost')

def validate_fact_record(record: Dict) -> Dict[str, str]:
    """Validate a single fact row before it is appended.

    Args:
        record: Dictionary with fact fields

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    for field_name in REQUIRED_FIELDS:
        if record.get(field_name) is None:
            errors[field_name] = f'{field_name} is required'

    sales_date = record.get('sales_date')
    if sales_date is not None and not isinstance(sales_date, date):
        errors['sales_date'] = 'sales_date must be a calendar date'

    for field_name in ('quantity', 'unit_cost'):
        value = record.get(field_name)
        if value is None:
            continue
        try:
            value = float(value)
        except (TypeError, ValueError):
            errors[field_name] = f'{field_name} must be numeric'
            continue

        if not math.isfinite(value):
            errors[field_name] = f'{field_name} must be finite'
        elif field_name == 'quantity' and value < 0:
            errors[field_name] = 'quantity cannot be negative'
        elif field_name == 'unit_cost' and value <= 0:
            errors[field_name] = 'unit_cost must be positive'

    return errors

def _row_reference(row) -> Dict:
    return {
        'id': getattr(row, 'id', None),
        'product_id': getattr(row, 'product_id', None),
        'sales_date': str(getattr(row, 'sales_date', None))
    }

def validate_history(product_id: int, history: Iterable) -> List:
    """Check a product's fact history before any rolling computation.

    Args:
        product_id: Product the history belongs to
        history: Fact rows ordered by date

    Returns:
        The history as a list

    Raises:
        InvalidInputError: If any row is malformed or dates repeat
    """
    rows = list(history)
    problems = []

    for row in rows:
        record = {field_name: getattr(row, field_name, None) for field_name in REQUIRED_FIELDS}
        errors = validate_fact_record(record)
        if errors:
            problems.append({'row': _row_reference(row), 'errors': errors})

    date_counts = Counter(row.sales_date for row in rows if getattr(row, 'sales_date', None) is not None)
    for sales_date, count in date_counts.items():
        if count > 1:
            problems.append({
                'row': {'product_id': product_id, 'sales_date': str(sales_date)},
                'errors': {'sales_date': f'{count} rows share this date'}
            })

    if problems:
        raise InvalidInputError(
            f"History for product {product_id} has {len(problems)} invalid row(s)",
            code='INVALID_HISTORY',
            details={'product_id': product_id, 'rows': problems}
        )

    return rows

def parse_date(value) -> date:
    """Coerce an ISO-8601 string or datetime to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())
