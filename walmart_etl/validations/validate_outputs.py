import pandas as pd
from pandera.errors import SchemaError, SchemaErrors
from pandera.pandas import DataFrameSchema

from walmart_etl.logger import setup_logger
from .output_schemas import sales_clean_schema

logger = setup_logger("validation.output")

FAILURE_COLUMNS = ["index", "column", "check"]


def validate_sales_clean(
    df: pd.DataFrame, schema: DataFrameSchema = sales_clean_schema
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Validate the coerced sales frame against the clean schema.

    Returns the rows that pass plus one failure entry (index, column, check)
    per dropped row.
    """
    logger.info(f"Starting output validation on {len(df)} records")

    try:
        validated_df = schema.validate(df, lazy=True)
        logger.info("Output validation passed")
        return validated_df, pd.DataFrame(columns=FAILURE_COLUMNS)

    except SchemaErrors as err:
        failed = err.failure_cases
        logger.warning(f"Output validation failed with {len(failed)} issues")
        logger.warning(
            f"Failure summary:\n{failed.groupby(['column', 'check'], dropna=False).size()}"
        )

        # Keep the first failing check per row
        row_failures = (
            failed.dropna(subset=["index"])
            .drop_duplicates(subset=["index"])
            .loc[:, FAILURE_COLUMNS]
            .reset_index(drop=True)
        )
        clean_df = df.drop(index=row_failures["index"].unique())

        # Re-validate cleaned dataset
        try:
            clean_df = schema.validate(clean_df)
            logger.info(f"Cleaned output dataset: {len(clean_df)} valid rows")
        except (SchemaError, SchemaErrors):
            logger.warning("Could not clean all invalid rows. Returning best effort.")

        return clean_df, row_failures
