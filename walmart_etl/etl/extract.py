from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Union

import pandas as pd

from walmart_etl.errors import IngestionError
from walmart_etl.logger import setup_logger

logger = setup_logger("etl.extract")


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Lowercase column names, trim them and replace spaces with underscores."""
    df.columns = df.columns.astype(str).str.strip().str.lower().str.replace(" ", "_")
    return df


def rows_to_frame(raw: Union[pd.DataFrame, Iterable[Mapping[str, Any]]]) -> pd.DataFrame:
    """
    Accept a DataFrame or any iterable of row mappings and return a fresh
    DataFrame with normalized column names.
    """
    if isinstance(raw, pd.DataFrame):
        df = raw.copy()
    else:
        if raw is None or isinstance(raw, (str, bytes)):
            raise IngestionError(f"Raw sales input is not tabular: {type(raw).__name__}")
        try:
            df = pd.DataFrame.from_records(list(raw))
        except (TypeError, ValueError) as exc:
            raise IngestionError(f"Raw sales input is not tabular: {exc}") from exc

    return normalize_columns(df)


def read_raw_sales(path: Union[str, Path], delimiter: str = ",") -> pd.DataFrame:
    """
    Read the raw sales extract from a delimited text file.
    Every column is kept as text; typing happens during cleaning.
    """
    path = Path(path)
    logger.info(f"Reading raw sales from {path}")

    try:
        sales_df = pd.read_csv(path, sep=delimiter, dtype=str, keep_default_na=False)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        logger.error(f"Cannot read raw sales from {path}: {exc}")
        raise IngestionError(f"Cannot read raw sales from {path}: {exc}") from exc

    normalize_columns(sales_df)
    logger.info(f"Extracted {len(sales_df)} rows, columns: {list(sales_df.columns)}")
    return sales_df
