import datetime

import numpy as np
import pandera.pandas as pa
from pandera.pandas import Check, Column, DataFrameSchema


def _is_time_of_day(value) -> bool:
    return isinstance(value, datetime.time)


sales_clean_schema = DataFrameSchema(
    {
        # Identifier (natural key)
        "invoice_id": Column(str, nullable=False, unique=True),

        # Dimensions used by the analytics catalogue
        "branch": Column(str, nullable=False),
        "city": Column(str, nullable=False),
        "category": Column(str, nullable=False),

        # Measures
        "unit_price": Column(float, Check.ge(0), nullable=False),
        "quantity": Column(int, Check.gt(0), nullable=False),

        # Date/time dimensions
        "date": Column(pa.Date, nullable=False),
        "time": Column(object, Check(_is_time_of_day, element_wise=True), nullable=False),

        "payment_method": Column(str, nullable=False),
        "rating": Column(float, Check.between(0, 10), nullable=False),
        "profit_margin": Column(float, Check.between(0, 1), nullable=True),

        # Derived: unit_price * quantity
        "total": Column(float, Check(np.isfinite, error="total is not finite"), nullable=False),
    },
    strict=True,
    ordered=True,
)

CLEAN_COLUMNS = list(sales_clean_schema.columns)

# Same checks without key uniqueness, for rows not yet deduplicated by invoice_id
sales_range_schema = sales_clean_schema.update_column("invoice_id", unique=False)
