"""
S3 extraction and export, through Airflow's S3Hook.

Requires the `airflow` extra; the rest of the package does not import this
module.
"""

from io import StringIO

import pandas as pd
from airflow.providers.amazon.aws.hooks.s3 import S3Hook
from botocore.exceptions import ClientError, NoCredentialsError

from walmart_etl.errors import IngestionError
from walmart_etl.etl.export_csv import clean_sales_to_csv
from walmart_etl.etl.extract import normalize_columns
from walmart_etl.logger import setup_logger

logger = setup_logger("etl.s3_io")


def extract_raw_sales_from_s3(aws_conn_id: str, bucket: str, key: str, delimiter: str = ",") -> pd.DataFrame:
    """
    Read the raw Walmart extract from S3, every column as text.
    Normalizes column names to lowercase with underscores.
    """
    hook = S3Hook(aws_conn_id=aws_conn_id)

    logger.info(f"Extracting raw sales from s3://{bucket}/{key}")
    try:
        content = hook.read_key(key=key, bucket_name=bucket)
        sales_df = pd.read_csv(StringIO(content), sep=delimiter, dtype=str, keep_default_na=False)
    except (ClientError, NoCredentialsError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        logger.error(f"Cannot read s3://{bucket}/{key}: {exc}")
        raise IngestionError(f"Cannot read raw sales from s3://{bucket}/{key}: {exc}") from exc

    normalize_columns(sales_df)
    logger.info(f"Successfully extracted {len(sales_df)} rows, columns: {list(sales_df.columns)}")
    return sales_df


def write_clean_sales_csv_to_s3(df: pd.DataFrame, aws_conn_id: str, bucket: str, key: str) -> None:
    """
    Write the clean sales frame to S3 as CSV.
    Translates missing-bucket and access-denied errors into clearer exceptions.
    """
    logger.info(f"Writing {len(df)} records to s3://{bucket}/{key}")

    if not bucket or not key:
        raise ValueError("Bucket and key must not be empty")

    csv_data = clean_sales_to_csv(df)
    logger.info(f"CSV prepared: {len(csv_data)} bytes")

    try:
        hook = S3Hook(aws_conn_id=aws_conn_id)
        hook.load_string(string_data=csv_data, key=key, bucket_name=bucket, replace=True)

    except NoCredentialsError as e:
        logger.error(f"AWS credentials not found for connection '{aws_conn_id}'")
        raise ValueError(f"Invalid AWS connection '{aws_conn_id}'") from e

    except ClientError as e:
        error_code = e.response["Error"]["Code"]
        if error_code == "NoSuchBucket":
            logger.error(f"S3 bucket '{bucket}' does not exist")
            raise ValueError(f"S3 bucket '{bucket}' not found") from e
        elif error_code == "AccessDenied":
            logger.error(f"Access denied to bucket '{bucket}'")
            raise PermissionError(
                f"Access denied to S3 bucket '{bucket}'. "
                "Check AWS credentials and bucket permissions."
            ) from e
        else:
            logger.error(f"S3 operation failed: {error_code} - {e}")
            raise

    logger.info(f"Successfully written to S3: s3://{bucket}/{key}")
