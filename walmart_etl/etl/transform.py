import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from walmart_etl.etl.extract import rows_to_frame
from walmart_etl.logger import setup_logger
from walmart_etl.validations.input_schemas import OPTIONAL_FIELDS, REQUIRED_FIELDS
from walmart_etl.validations.output_schemas import CLEAN_COLUMNS, sales_range_schema
from walmart_etl.validations.validate_inputs import validate_raw_sales
from walmart_etl.validations.validate_outputs import validate_sales_clean

logger = setup_logger("etl.transform")

PriceNormalizer = Callable[[pd.Series], pd.Series]

DEFAULT_DATE_FORMAT = "%d/%m/%y"
TIME_FORMATS = ["%H:%M:%S", "%H:%M"]
RECORD_FIELDS = REQUIRED_FIELDS + list(OPTIONAL_FIELDS)
TEXT_FIELDS = ["branch", "city", "category", "payment_method"]

# ValidationDrop reasons
DUPLICATE = "duplicate"
MISSING = "missing"
PARSE = "parse"
OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True)
class ValidationDrop:
    """One raw row removed during cleaning. Recorded, never raised."""

    row: Any
    reason: str
    column: Optional[str] = None


@dataclass(frozen=True)
class CleaningReport:
    input_rows: int = 0
    duplicates_removed: int = 0
    missing_dropped: int = 0
    parse_failures: int = 0
    out_of_range: int = 0
    final_rows: int = 0
    drops: tuple[ValidationDrop, ...] = ()

    @property
    def dropped_rows(self) -> int:
        return self.duplicates_removed + self.missing_dropped + self.parse_failures + self.out_of_range

    def as_dict(self) -> dict[str, int]:
        counts = asdict(self)
        counts.pop("drops")
        return counts


def make_currency_normalizer(symbols: str = "$€£¥", thousands_separator: str = ",") -> PriceNormalizer:
    """
    Build a price normalizer that strips the given currency symbols,
    thousands separators and whitespace, then parses what is left.
    Unparseable values become NaN.
    """
    pattern = re.compile("[" + re.escape(symbols + thousands_separator) + r"\s]")

    def normalize(values: pd.Series) -> pd.Series:
        text = values.astype(str).str.replace(pattern, "", regex=True)
        return pd.to_numeric(text, errors="coerce")

    return normalize


normalize_currency = make_currency_normalizer()


def _is_blank(value: Any) -> bool:
    return isinstance(value, str) and not value.strip()


def _key_text(value: Any) -> str:
    # 1.0 -> "1" for ids that went through a float column
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _parse_with_formats(values: pd.Series, formats: list[str]) -> pd.Series:
    text = values.astype(str).str.strip()
    parsed = pd.to_datetime(text, format=formats[0], errors="coerce")
    for fmt in formats[1:]:
        pending = parsed.isna()
        if not pending.any():
            break
        parsed.loc[pending] = pd.to_datetime(text[pending], format=fmt, errors="coerce")
    return parsed


def _finite(values: pd.Series) -> pd.Series:
    # inf, -inf and non-numeric output become NaN, i.e. a parse failure
    values = pd.to_numeric(values, errors="coerce")
    return values.where(np.isfinite(values))


def _parse_quantity(values: pd.Series) -> pd.Series:
    quantity = _finite(values.astype(str).str.strip())
    # integral and within int64
    return quantity.where((quantity == np.floor(quantity)) & (quantity.abs() < 2**63))


def _first_flagged_column(flags: pd.DataFrame) -> pd.Series:
    if flags.empty:
        return pd.Series(dtype=object)
    return flags.idxmax(axis=1)


def _drop_rows(
    df: pd.DataFrame,
    mask: pd.Series,
    reason: str,
    drops: list[ValidationDrop],
    columns: Optional[pd.Series] = None,
) -> pd.DataFrame:
    for label in df.index[mask]:
        column = columns[label] if columns is not None else None
        drops.append(ValidationDrop(row=label, reason=reason, column=column))
    return df.loc[~mask].copy()


def _empty_clean_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "invoice_id": pd.Series(dtype=object),
            "branch": pd.Series(dtype=object),
            "city": pd.Series(dtype=object),
            "category": pd.Series(dtype=object),
            "unit_price": pd.Series(dtype="float64"),
            "quantity": pd.Series(dtype="int64"),
            "date": pd.Series(dtype=object),
            "time": pd.Series(dtype=object),
            "payment_method": pd.Series(dtype=object),
            "rating": pd.Series(dtype="float64"),
            "profit_margin": pd.Series(dtype="float64"),
            "total": pd.Series(dtype="float64"),
        }
    )[CLEAN_COLUMNS]


def clean_sales(
    raw: Union[pd.DataFrame, Iterable[Mapping[str, Any]]],
    *,
    price_normalizer: PriceNormalizer = normalize_currency,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> tuple[pd.DataFrame, CleaningReport]:
    """
    Clean raw Walmart sales rows into typed records.

    Rows are deduplicated (identical rows first, then by invoice_id once
    range checks have run), rows missing a required field or carrying an
    unparseable value are dropped, and `total` is derived from unit_price and
    quantity. Every drop is counted in the returned CleaningReport; only an
    input that cannot be read as a table at all raises IngestionError.
    """
    df = rows_to_frame(raw)
    input_rows = len(df)
    logger.info(f"Starting cleaning of {input_rows} raw rows")

    if input_rows == 0:
        logger.warning("Raw sales input is empty, nothing to clean")
        return _empty_clean_frame(), CleaningReport()

    validate_raw_sales(df)

    # Row labels become positions; drops are reported against them
    df = df.reset_index(drop=True)
    drops: list[ValidationDrop] = []

    # --------------------------------------------------
    # 0. Keep record fields only, never trust a sourced total
    # --------------------------------------------------
    for name in OPTIONAL_FIELDS:
        if name not in df.columns:
            df[name] = np.nan
    df = df[RECORD_FIELDS].copy()
    for col in df.columns:
        if df[col].dtype == object:
            df[col] = df[col].where(~df[col].map(_is_blank))

    # --------------------------------------------------
    # 1. Collapse fully identical rows
    # --------------------------------------------------
    duplicated = df.duplicated(keep="first")
    df = _drop_rows(df, duplicated, DUPLICATE, drops)
    duplicates_removed = int(duplicated.sum())

    # --------------------------------------------------
    # 2. Drop rows missing a required field, default the rest
    # --------------------------------------------------
    missing_flags = df[REQUIRED_FIELDS].isna()
    missing = missing_flags.any(axis=1)
    df = _drop_rows(df, missing, MISSING, drops, _first_flagged_column(missing_flags))
    missing_dropped = int(missing.sum())
    if missing_dropped:
        logger.warning(f"Missing values: dropped {missing_dropped} rows")

    df["city"] = df["city"].fillna(OPTIONAL_FIELDS["city"])

    # --------------------------------------------------
    # 3. Type normalization
    # --------------------------------------------------
    df["invoice_id"] = df["invoice_id"].map(_key_text)
    for col in TEXT_FIELDS:
        df[col] = df[col].astype(str).str.strip()

    dates = _parse_with_formats(df["date"], [date_format, "%Y-%m-%d"])
    times = _parse_with_formats(df["time"], TIME_FORMATS)
    parsed = pd.DataFrame(
        {
            "unit_price": _finite(price_normalizer(df["unit_price"]).round(2)),
            "quantity": _parse_quantity(df["quantity"]),
            "date": dates,
            "time": times,
            "rating": _finite(df["rating"].astype(str).str.strip()),
            "profit_margin": _finite(df["profit_margin"].astype(str).str.strip()),
        },
        index=df.index,
    )
    parse_flags = parsed.isna()
    # A blank profit margin is allowed, an unreadable one is not
    parse_flags["profit_margin"] &= df["profit_margin"].notna()
    unparseable = parse_flags.any(axis=1)
    failed_columns = _first_flagged_column(parse_flags)

    df = _drop_rows(df, unparseable, PARSE, drops, failed_columns)
    parsed = parsed.loc[df.index]
    parse_failures = int(unparseable.sum())
    if parse_failures:
        logger.warning(f"Type normalization: dropped {parse_failures} unparseable rows")

    df["unit_price"] = parsed["unit_price"].astype("float64")
    df["quantity"] = parsed["quantity"].astype("int64")
    df["date"] = parsed["date"].dt.date
    df["time"] = parsed["time"].dt.time
    df["rating"] = parsed["rating"].astype("float64")
    df["profit_margin"] = parsed["profit_margin"].astype("float64")

    # --------------------------------------------------
    # 4. Derived total, recomputed for every surviving row
    # --------------------------------------------------
    df["total"] = df["unit_price"] * df["quantity"]
    df = df[CLEAN_COLUMNS]

    # --------------------------------------------------
    # 5. Range checks, ahead of key dedup so an out-of-range
    #    copy of an invoice never shadows a valid later one
    # --------------------------------------------------
    out_of_range = 0
    if not df.empty:
        df, failures = validate_sales_clean(df, schema=sales_range_schema)
        for failure in failures.to_dict(orient="records"):
            drops.append(ValidationDrop(row=int(failure["index"]), reason=OUT_OF_RANGE, column=failure["column"]))
        out_of_range = len(failures)

    # --------------------------------------------------
    # 6. One row per invoice_id (natural key)
    # --------------------------------------------------
    key_duplicated = df.duplicated(subset=["invoice_id"], keep="first")
    df = _drop_rows(df, key_duplicated, DUPLICATE, drops, pd.Series("invoice_id", index=df.index))
    duplicates_removed += int(key_duplicated.sum())
    if duplicates_removed:
        logger.info(f"Deduplication: removed {duplicates_removed} duplicate rows")

    clean_df = _empty_clean_frame() if df.empty else df.reset_index(drop=True)

    report = CleaningReport(
        input_rows=input_rows,
        duplicates_removed=duplicates_removed,
        missing_dropped=missing_dropped,
        parse_failures=parse_failures,
        out_of_range=out_of_range,
        final_rows=len(clean_df),
        drops=tuple(sorted(drops, key=lambda drop: drop.row)),
    )
    logger.info(f"Cleaning completed: {report.as_dict()}")
    return clean_df, report
