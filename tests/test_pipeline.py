"""
End-to-end tests: raw rows in, cleaned table loaded, catalogue answered.
"""

import pytest
import pandas as pd
from sqlalchemy import text

from walmart_etl.analytics.queries import QUERY_NAMES
from walmart_etl.errors import IngestionError, LoadError
from walmart_etl.pipeline import main, run_pipeline


def write_config(tmp_path, source, store_url, clean_csv_path=None):
    config = tmp_path / "config.yaml"
    lines = [
        "source:",
        f"  path: {source}",
        "store:",
        f"  url: sqlite:///{store_url}",
        "  table_name: walmart",
        "export:",
        f"  clean_csv_path: {clean_csv_path if clean_csv_path else 'null'}",
    ]
    config.write_text("\n".join(lines) + "\n")
    return config


class TestRunPipeline:
    """Test suite for run_pipeline."""

    def test_clean_load_and_query(self, store_engine, sales_rows):
        result = run_pipeline(sales_rows, store_engine)
        assert result.report.final_rows == 6
        assert result.load.rows_loaded == 6
        assert list(result.results) == QUERY_NAMES
        assert len(result.results["payment_method_volume"]) == 3

    def test_writes_clean_csv(self, tmp_path, store_engine, sales_rows):
        path = tmp_path / "out" / "walmart_clean_data.csv"
        run_pipeline(sales_rows, store_engine, clean_csv_path=path)
        assert len(pd.read_csv(path)) == 6

    def test_cleaning_settings_are_applied(self, store_engine, raw_row):
        rows = [raw_row(1, date="01/05/19", unit_price="₹10")]
        result = run_pipeline(
            rows,
            store_engine,
            cleaning={"date_format": "%m/%d/%y", "currency_symbols": "₹", "thousands_separator": ","},
        )
        assert result.report.final_rows == 1
        with store_engine.connect() as conn:
            row = conn.execute(text("SELECT date, unit_price FROM walmart")).one()
        assert row.date == "2019-01-05"
        assert row.unit_price == 10.0

    def test_unreadable_input_stops_before_load(self, store_engine, raw_row):
        row = raw_row(1)
        del row["branch"]
        with pytest.raises(IngestionError):
            run_pipeline([row], store_engine)
        with store_engine.connect() as conn:
            assert not store_engine.dialect.has_table(conn, "walmart")

    def test_load_failure_propagates(self, tmp_path, sales_rows):
        from walmart_etl.etl.load_sql import create_store_engine

        engine = create_store_engine(f"sqlite:///{tmp_path / 'missing' / 'walmart.db'}")
        with pytest.raises(LoadError):
            run_pipeline(sales_rows, engine)
        engine.dispose()


class TestMain:
    """Test suite for the command-line entry point."""

    @pytest.fixture
    def raw_csv(self, tmp_path, sales_rows):
        path = tmp_path / "Walmart.csv"
        pd.DataFrame(sales_rows).to_csv(path, index=False)
        return path

    def test_main_runs_pipeline(self, tmp_path, raw_csv):
        db = tmp_path / "walmart.db"
        clean_csv = tmp_path / "walmart_clean_data.csv"
        config = write_config(tmp_path, raw_csv, db, clean_csv)
        assert main(["--config", str(config)]) == 0
        assert db.exists()
        assert clean_csv.exists()

    def test_cli_overrides_config(self, tmp_path, raw_csv):
        config = write_config(tmp_path, tmp_path / "not_there.csv", tmp_path / "unused.db")
        db = tmp_path / "override.db"
        assert main(["--config", str(config), "--source", str(raw_csv), "--store-url", f"sqlite:///{db}"]) == 0
        assert db.exists()
        assert not (tmp_path / "unused.db").exists()

    def test_missing_source_returns_error_code(self, tmp_path):
        config = write_config(tmp_path, tmp_path / "not_there.csv", tmp_path / "walmart.db")
        assert main(["--config", str(config)]) == 1

    def test_bad_config_returns_error_code(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("unknown_section: {}\n")
        assert main(["--config", str(config)]) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
