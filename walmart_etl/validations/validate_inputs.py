import pandas as pd
from pandera.errors import SchemaErrors

from walmart_etl.errors import IngestionError
from walmart_etl.logger import setup_logger
from .input_schemas import REQUIRED_FIELDS, raw_sales_schema

logger = setup_logger("validation.input")


def validate_raw_sales(df: pd.DataFrame) -> pd.DataFrame:
    """
    Check that the raw extract carries every required column.
    A raw frame without them cannot be cleaned at all.
    """
    logger.info(f"Starting raw sales validation on {len(df)} rows")
    try:
        validated_df = raw_sales_schema.validate(df, lazy=True)
        logger.info("Raw sales validation passed")
        return validated_df

    except SchemaErrors as err:
        failed = err.failure_cases
        missing = [name for name in REQUIRED_FIELDS if name not in df.columns]
        logger.error(f"Raw sales validation failed, missing columns: {missing}")
        logger.error(f"Errors summary:\n{failed.groupby(['column', 'check'], dropna=False).size()}")
        raise IngestionError(
            f"Raw sales input is missing required columns: {', '.join(missing) or 'unknown'}"
        ) from err
