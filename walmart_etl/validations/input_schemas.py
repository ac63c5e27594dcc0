from pandera.pandas import Column, DataFrameSchema

# Fields a raw row must carry a value for; the row is dropped otherwise.
REQUIRED_FIELDS = [
    "invoice_id",
    "branch",
    "category",
    "unit_price",
    "quantity",
    "date",
    "time",
    "payment_method",
    "rating",
]

# Non-critical fields, filled with a default (or left null) when absent.
OPTIONAL_FIELDS = {
    "city": "UNKNOWN",
    "profit_margin": None,
}


# Raw rows are untyped text, so only column presence is enforced here.
# Typing and range checks run against the clean schema after coercion.
raw_sales_schema = DataFrameSchema(
    {name: Column(nullable=True, required=True) for name in REQUIRED_FIELDS},
    strict=False,  # Extra columns (e.g. a sourced total) are dropped during cleaning
)
