"""
End-to-end Walmart sales pipeline: clean, load, then run the query catalogue.

Usage:
  python -m walmart_etl.pipeline --config walmart_etl/config.yaml [--source PATH] [--store-url URL]
"""

import argparse
from collections import OrderedDict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd
from sqlalchemy.engine import Engine

from walmart_etl.analytics.queries import run_all_queries
from walmart_etl.config import load_config
from walmart_etl.errors import WalmartEtlError
from walmart_etl.etl.export_csv import write_clean_sales_csv
from walmart_etl.etl.extract import read_raw_sales
from walmart_etl.etl.load_sql import LoadResult, create_store_engine, load_sales_to_store
from walmart_etl.etl.transform import CleaningReport, clean_sales, make_currency_normalizer
from walmart_etl.logger import setup_logger

logger = setup_logger("walmart_etl.pipeline")


@dataclass(frozen=True)
class PipelineResult:
    report: CleaningReport
    load: LoadResult
    results: "OrderedDict[str, pd.DataFrame]"


def run_pipeline(
    raw: Union[pd.DataFrame, Iterable[Mapping[str, Any]]],
    engine: Engine,
    *,
    table_name: str = "walmart",
    schema: Optional[str] = None,
    cleaning: Optional[Mapping[str, Any]] = None,
    clean_csv_path: Optional[Union[str, Path]] = None,
) -> PipelineResult:
    """
    Clean `raw`, replace `table_name` in the store with the result and run the
    nine analytical queries against it. Load and query failures propagate.
    """
    cleaning = dict(cleaning or {})
    normalizer = make_currency_normalizer(
        symbols=cleaning.get("currency_symbols", "$€£¥"),
        thousands_separator=cleaning.get("thousands_separator", ","),
    )

    clean_df, report = clean_sales(
        raw,
        price_normalizer=normalizer,
        date_format=cleaning.get("date_format", "%d/%m/%y"),
    )
    logger.info(f"✓ Cleaned {report.final_rows} of {report.input_rows} rows")
    if report.dropped_rows:
        logger.warning(f"  ⚠ {report.dropped_rows} rows dropped: {report.as_dict()}")

    if clean_csv_path and not clean_df.empty:
        write_clean_sales_csv(clean_df, clean_csv_path)

    load = load_sales_to_store(clean_df, engine, table_name=table_name, schema=schema)
    logger.info(f"✓ Loaded {load.rows_loaded} rows into {load.table_name}")

    results = run_all_queries(engine, table_name=table_name, schema=schema)
    logger.info(f"✓ Ran {len(results)} analytical queries")

    return PipelineResult(report=report, load=load, results=results)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Clean, load and analyse Walmart sales data.")
    parser.add_argument("--config", help="Path to a YAML config (defaults to the packaged config.yaml)")
    parser.add_argument("--source", help="Raw sales file, overrides source.path")
    parser.add_argument("--store-url", help="SQLAlchemy URL, overrides store.url")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        source = config["source"]
        store = config["store"]

        raw_df = read_raw_sales(args.source or source["path"], delimiter=source["delimiter"])
        engine = create_store_engine(args.store_url or store["url"])
        try:
            result = run_pipeline(
                raw_df,
                engine,
                table_name=store["table_name"],
                schema=store.get("schema"),
                cleaning=config["cleaning"],
                clean_csv_path=config["export"].get("clean_csv_path"),
            )
        finally:
            engine.dispose()

    except WalmartEtlError as e:
        logger.error(f"✗ Pipeline failed: {e}")
        return 1

    for name, frame in result.results.items():
        logger.info(f"{name}:\n{frame.to_string(index=False)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
