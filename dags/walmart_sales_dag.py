from datetime import datetime, timedelta
from airflow.decorators import dag, task
from airflow.exceptions import AirflowException
from airflow.hooks.base import BaseHook
from typing import Any

from walmart_etl.config import load_config
from walmart_etl.logger import setup_logger
from walmart_etl.utils.names import build_s3_key

# Load config
config = load_config()

SOURCE_CONFIG = config["source"]
STORE_CONFIG = config["store"]
EXPORT_CONFIG = config["export"]
AWS_CONN_ID = SOURCE_CONFIG["aws_conn_id"]
BUCKET = SOURCE_CONFIG["bucket"]
RAW_KEY = build_s3_key(SOURCE_CONFIG["raw_folder"], SOURCE_CONFIG["raw_key"])
CLEAN_KEY = build_s3_key(EXPORT_CONFIG["cleansed_folder"], EXPORT_CONFIG["clean_key"])
TABLE_NAME = STORE_CONFIG["table_name"]
SCHEMA = STORE_CONFIG.get("schema")

# Default arguments for DAG
DEFAULT_ARGS = {
    "owner": "data-engineering",
    "email_on_failure": False,
    "email_on_retry": False,
    # Single-shot run: failures surface to the operator instead of retrying
    "retries": 0,
    "execution_timeout": timedelta(hours=1),
}


@dag(
    dag_id="walmart_sales_pipeline",
    description="""
    Walmart Sales Pipeline - Extracts the raw Walmart sales extract from S3,
    cleans it, loads it into the relational store and runs the analytical
    query catalogue.

    Data Flow:
    1. Extract: Load Walmart.csv from S3 (all columns as text)
    2. Clean: Deduplicate, drop incomplete rows, coerce types, derive total
    3. Export: Write the clean CSV to the S3 cleansed zone
    4. Load: Replace the store table in one transaction
    5. Analyse: Run the nine business queries
    """,
    start_date=datetime(2026, 1, 1),
    schedule=None,
    catchup=False,
    max_active_runs=1,
    default_args=DEFAULT_ARGS,
    tags=["walmart", "etl", "analytics"],
)
def walmart_sales_pipeline():
    """
    Walmart sales pipeline DAG.

    One task per stage; every stage failure is logged and re-raised as an
    AirflowException with the original cause attached.
    """
    from walmart_etl.analytics.queries import run_all_queries
    from walmart_etl.etl.load_sql import create_store_engine, load_sales_to_store, store_url_from_connection
    from walmart_etl.etl.s3_io import extract_raw_sales_from_s3, write_clean_sales_csv_to_s3
    from walmart_etl.etl.transform import clean_sales, make_currency_normalizer

    logger = setup_logger("dags.walmart_sales_pipeline")

    def _store_engine():
        conn = BaseHook.get_connection(STORE_CONFIG["conn_id"])
        try:
            return create_store_engine(store_url_from_connection(conn))
        except Exception as e:
            logger.error(f"✗ Store connection '{conn.conn_id}' unusable: {str(e)}")
            raise AirflowException(f"Store connection setup failed: {str(e)}") from e

    @task(task_id="extract_raw_sales")
    def extract():
        """Extract the raw sales extract from S3"""
        try:
            raw_df = extract_raw_sales_from_s3(
                aws_conn_id=AWS_CONN_ID,
                bucket=BUCKET,
                key=RAW_KEY,
                delimiter=SOURCE_CONFIG["delimiter"],
            )
            logger.info(f"✓ Extracted {len(raw_df)} raw sales rows")
            return raw_df
        except Exception as e:
            logger.error(f"✗ Extraction failed: {str(e)}")
            raise AirflowException(f"Data extraction failed: {str(e)}") from e

    @task(task_id="clean_sales")
    def clean(raw_df: Any):
        """Clean raw rows and report what was dropped"""
        cleaning = config["cleaning"]
        try:
            clean_df, report = clean_sales(
                raw_df,
                price_normalizer=make_currency_normalizer(
                    symbols=cleaning["currency_symbols"],
                    thousands_separator=cleaning["thousands_separator"],
                ),
                date_format=cleaning["date_format"],
            )
        except Exception as e:
            logger.error(f"✗ Cleaning failed: {str(e)}")
            raise AirflowException(f"Data cleaning failed: {str(e)}") from e

        logger.info(f"✓ Cleaning report: {report.as_dict()}")
        if report.dropped_rows > 0:
            logger.warning(f"  ⚠ {report.dropped_rows} rows were dropped during cleaning")
        if clean_df.empty:
            raise AirflowException("Cleaning resulted in empty dataset")
        return clean_df

    @task(task_id="export_clean_csv")
    def export(clean_df: Any):
        """Write the clean dataset to the S3 cleansed zone"""
        try:
            write_clean_sales_csv_to_s3(clean_df, aws_conn_id=AWS_CONN_ID, bucket=BUCKET, key=CLEAN_KEY)
            return f"s3://{BUCKET}/{CLEAN_KEY}"
        except Exception as e:
            logger.error(f"✗ Export failed: {str(e)}")
            raise AirflowException(f"Clean CSV export failed: {str(e)}") from e

    @task(task_id="load_to_store")
    def load(clean_df: Any):
        """Replace the store table with the clean dataset"""
        engine = _store_engine()
        try:
            result = load_sales_to_store(clean_df, engine, table_name=TABLE_NAME, schema=SCHEMA)
            logger.info(f"✓ Loaded {result.rows_loaded} rows into {result.table_name}")
            return result.rows_loaded
        except Exception as e:
            logger.error(f"✗ Load failed: {str(e)}")
            raise AirflowException(f"Store load failed: {str(e)}") from e
        finally:
            engine.dispose()

    @task(task_id="run_analytics")
    def analyse(rows_loaded: int):
        """Run the analytical query catalogue against the loaded table"""
        engine = _store_engine()
        try:
            results = run_all_queries(engine, table_name=TABLE_NAME, schema=SCHEMA)
        except Exception as e:
            logger.error(f"✗ Analytics failed: {str(e)}")
            raise AirflowException(f"Analytical queries failed: {str(e)}") from e
        finally:
            engine.dispose()

        for name, frame in results.items():
            logger.info(f"{name}:\n{frame.to_string(index=False)}")
        return {name: len(frame) for name, frame in results.items()}

    # Define task dependencies
    raw = extract()
    cleaned = clean(raw)
    exported = export(cleaned)
    loaded = load(cleaned)
    exported >> loaded
    analyse(loaded)


# Instantiate DAG
walmart_sales_pipeline()
