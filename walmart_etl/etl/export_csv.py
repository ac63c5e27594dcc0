from pathlib import Path
from typing import Union

import pandas as pd

from walmart_etl.logger import setup_logger

logger = setup_logger("etl.export_csv")


def clean_sales_to_csv(df: pd.DataFrame) -> str:
    """Render the clean frame as CSV text (ISO dates, HH:MM:SS times)."""
    if df.empty:
        raise ValueError("DataFrame is empty - nothing to export")

    df = df.copy()
    df["date"] = df["date"].astype(str)
    df["time"] = df["time"].astype(str)
    return df.to_csv(index=False)


def write_clean_sales_csv(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    path = Path(path)
    csv_data = clean_sales_to_csv(df)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(csv_data)
    logger.info(f"Wrote {len(df)} clean rows ({len(csv_data)} bytes) to {path}")
    return path
