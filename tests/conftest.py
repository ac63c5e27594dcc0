"""
Pytest configuration and fixtures for the Walmart sales pipeline tests.

This file is automatically discovered by pytest and provides
shared fixtures and configuration for all test modules.
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from walmart_etl.etl.load_sql import create_store_engine


def make_raw_row(invoice_id, /, **overrides):
    """One raw Walmart row as it comes out of the CSV extract (all text)."""
    row = {
        "invoice_id": str(invoice_id),
        "branch": "WALM003",
        "city": "San Antonio",
        "category": "Health and beauty",
        "unit_price": "$74.69",
        "quantity": "7",
        "date": "05/01/19",
        "time": "13:08:00",
        "payment_method": "Ewallet",
        "rating": "9.1",
        "profit_margin": "0.48",
    }
    row.update(overrides)
    return row


@pytest.fixture
def raw_row():
    return make_raw_row


@pytest.fixture
def sales_rows():
    """
    Raw rows spanning two branches and two years, with distinct totals so
    every ranking in the query catalogue has a well-defined winner.
    """
    return [
        # WALM001: 2022 revenue 1000, 2023 revenue 800 -> 20% decline
        make_raw_row(1, branch="WALM001", city="Dallas", category="Food", unit_price="$100.00",
                     quantity="10", date="03/01/22", time="09:15:00", payment_method="Cash",
                     rating="7.0", profit_margin="0.30"),
        make_raw_row(2, branch="WALM001", city="Dallas", category="Sports", unit_price="$200.00",
                     quantity="4", date="10/01/23", time="14:00:00", payment_method="Cash",
                     rating="8.5", profit_margin="0.20"),
        make_raw_row(3, branch="WALM001", city="Dallas", category="Food", unit_price="$20.00",
                     quantity="0", date="17/01/23", time="20:30:00", payment_method="Credit card",
                     rating="6.0", profit_margin="0.30"),
        make_raw_row(4, branch="WALM001", city="Dallas", category="Food", unit_price="$0.00",
                     quantity="1", date="17/01/23", time="19:45:00", payment_method="Cash",
                     rating="6.0", profit_margin="0.30"),
        # WALM002: 2022 revenue 500, 2023 revenue 600 -> no decline
        make_raw_row(5, branch="WALM002", city="Houston", category="Home", unit_price="$50.00",
                     quantity="10", date="07/02/22", time="11:59:00", payment_method="Ewallet",
                     rating="5.5", profit_margin="0.10"),
        make_raw_row(6, branch="WALM002", city="Houston", category="Food", unit_price="$60.00",
                     quantity="10", date="14/02/23", time="12:00:00", payment_method="Ewallet",
                     rating="9.0", profit_margin="0.40"),
        make_raw_row(7, branch="WALM002", city="Houston", category="Home", unit_price="$1,000.00",
                     quantity="1", date="15/02/19", time="18:00:00", payment_method="Credit card",
                     rating="4.0", profit_margin="0.25"),
    ]


@pytest.fixture
def store_engine(tmp_path):
    """SQLite store in a temporary file, with transactional DDL enabled."""
    engine = create_store_engine(f"sqlite:///{tmp_path / 'walmart.db'}")
    yield engine
    engine.dispose()


# Add pytest CLI options
def pytest_addoption(parser):
    """Add custom pytest options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires a live store or S3 credentials)"
    )


def pytest_collection_modifyitems(config, items):
    """Mark integration tests for conditional execution."""
    if config.getoption("--integration"):
        # Run all tests
        return

    # Skip integration tests if flag not provided
    skip_integration = pytest.mark.skip(reason="need --integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
