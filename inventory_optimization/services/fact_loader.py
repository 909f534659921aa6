# inventory_optimization/services/fact_loader.py
from pathlib import Path
from typing import Dict, List, Union

import pandas as pd

from inventory_optimization.exceptions import DataQualityError

REQUIRED_COLUMNS = {"product_id", "sales_date", "quantity", "unit_cost"}
# Column names used by the source sales, product and external factor tables
COLUMN_ALIASES = {
    "inventory_quantity": "quantity",
    "product_cost": "unit_cost",
    "product_category": "category",
    "promotions": "promotion_active"
}

_PROMOTION_FLAGS = {"yes": True, "y": True, "true": True, "1": True, "no": False, "n": False, "false": False, "0": False}

def _promotion_flag(value) -> bool:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return False
    if isinstance(value, bool):
        return value
    return _PROMOTION_FLAGS.get(str(value).strip().lower(), False)

def _optional_float(value):
    return None if pd.isna(value) else float(value)

def load_facts_csv(path: Union[str, Path]) -> List[Dict]:
    """Read a unified fact CSV into record dictionaries ordered by product and date.

    Missing external factor columns or cells become None.
    """
    df = pd.read_csv(path)
    df.columns = [str(column).strip().lower().replace(" ", "_") for column in df.columns]
    df = df.rename(columns=COLUMN_ALIASES)

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise DataQualityError(
            f"CSV missing required columns: {sorted(missing)}",
            code="MISSING_COLUMNS",
            details={"path": str(path)}
        )

    df["sales_date"] = pd.to_datetime(df["sales_date"], errors="coerce").dt.date
    df = df.sort_values(["product_id", "sales_date"], kind="stable")

    records = []
    for row in df.to_dict(orient="records"):
        record = {
            "product_id": None if pd.isna(row["product_id"]) else int(row["product_id"]),
            "sales_date": None if pd.isna(row["sales_date"]) else row["sales_date"],
            "quantity": _optional_float(row["quantity"]),
            "unit_cost": _optional_float(row["unit_cost"]),
            "category": None,
            "promotion_active": _promotion_flag(row.get("promotion_active")),
            "gdp": None,
            "inflation_rate": None,
            "seasonal_factor": None
        }
        if "category" in row and not pd.isna(row["category"]):
            record["category"] = str(row["category"])
        for column in ("gdp", "inflation_rate", "seasonal_factor"):
            if column in row:
                record[column] = _optional_float(row[column])
        records.append(record)

    return records
