"""
Analytical query catalogue over the loaded Walmart sales table.

Nine fixed business questions, each a parameterless SQL query. Date and time
functions differ between engines, so each query is a template rendered
against a Dialect before it runs.
"""

import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

import pandas as pd
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from walmart_etl.errors import QueryError
from walmart_etl.logger import setup_logger
from walmart_etl.utils.names import qualify_table_name

logger = setup_logger("analytics.queries")

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

_SQLITE_WEEKDAYS = " ".join(
    f"WHEN '{number}' THEN '{name}'"
    for number, name in enumerate(
        ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
    )
)


@dataclass(frozen=True)
class Dialect:
    name: str
    day_name: Callable[[str], str]
    hour: Callable[[str], str]
    year: Callable[[str], str]
    round2: Callable[[str], str]
    rank: str = "rank"


DIALECTS = {
    "sqlite": Dialect(
        name="sqlite",
        day_name=lambda col: f"CASE strftime('%w', {col}) {_SQLITE_WEEKDAYS} END",
        # SQLAlchemy stores TIME as 'HH:MM:SS.ffffff' text
        hour=lambda col: f"CAST(substr({col}, 1, 2) AS INTEGER)",
        year=lambda col: f"CAST(strftime('%Y', {col}) AS INTEGER)",
        round2=lambda expr: f"ROUND({expr}, 2)",
    ),
    "postgresql": Dialect(
        name="postgresql",
        day_name=lambda col: f"TRIM(TO_CHAR({col}, 'Day'))",
        hour=lambda col: f"EXTRACT(HOUR FROM {col})",
        year=lambda col: f"EXTRACT(YEAR FROM {col})",
        round2=lambda expr: f"CAST(ROUND(CAST({expr} AS NUMERIC), 2) AS DOUBLE PRECISION)",
    ),
    "mysql": Dialect(
        name="mysql",
        day_name=lambda col: f"DAYNAME({col})",
        hour=lambda col: f"HOUR({col})",
        year=lambda col: f"YEAR({col})",
        round2=lambda expr: f"ROUND({expr}, 2)",
        rank="`rank`",
    ),
}


@dataclass(frozen=True)
class Query:
    name: str
    question: str
    template: str
    columns: tuple[str, ...]

    def render(self, table: str, dialect: Dialect) -> str:
        return self.template.format(
            table=table,
            rank=dialect.rank,
            day_name=dialect.day_name("date"),
            hour=dialect.hour("time"),
            year=dialect.year("date"),
            decline_ratio=dialect.round2("(ls.revenue - cs.revenue) / ls.revenue * 100"),
        )


CATALOGUE = OrderedDict(
    (query.name, query)
    for query in [
        Query(
            name="payment_method_volume",
            question="How many transactions and items were sold with each payment method?",
            template="""
            SELECT
                payment_method,
                COUNT(*) AS no_payments,
                SUM(quantity) AS no_qty_sold
            FROM {table}
            GROUP BY payment_method
            ORDER BY payment_method
            """,
            columns=("payment_method", "no_payments", "no_qty_sold"),
        ),
        Query(
            name="top_category_by_rating",
            question="Which category received the highest average rating in each branch?",
            template="""
            SELECT branch, category, avg_rating, {rank}
            FROM (
                SELECT
                    branch,
                    category,
                    AVG(rating) AS avg_rating,
                    RANK() OVER (PARTITION BY branch ORDER BY AVG(rating) DESC) AS {rank}
                FROM {table}
                GROUP BY 1, 2
            ) ranked
            WHERE {rank} = 1
            ORDER BY branch, avg_rating DESC, category
            """,
            columns=("branch", "category", "avg_rating", "rank"),
        ),
        Query(
            name="busiest_day_by_branch",
            question="What is the busiest day of the week for each branch?",
            template="""
            SELECT branch, day_name, no_transactions, {rank}
            FROM (
                SELECT
                    branch,
                    {day_name} AS day_name,
                    COUNT(*) AS no_transactions,
                    RANK() OVER (PARTITION BY branch ORDER BY COUNT(*) DESC) AS {rank}
                FROM {table}
                GROUP BY 1, 2
            ) ranked
            WHERE {rank} = 1
            ORDER BY branch, day_name
            """,
            columns=("branch", "day_name", "no_transactions", "rank"),
        ),
        Query(
            name="items_sold_by_payment_method",
            question="How many items were sold through each payment method?",
            template="""
            SELECT
                payment_method,
                SUM(quantity) AS no_qty_sold
            FROM {table}
            GROUP BY payment_method
            ORDER BY payment_method
            """,
            columns=("payment_method", "no_qty_sold"),
        ),
        Query(
            name="rating_stats_by_city_category",
            question="What are the minimum, maximum and average ratings for each category in each city?",
            template="""
            SELECT
                city,
                category,
                MIN(rating) AS min_rating,
                MAX(rating) AS max_rating,
                AVG(rating) AS avg_rating
            FROM {table}
            GROUP BY 1, 2
            ORDER BY city, category
            """,
            columns=("city", "category", "min_rating", "max_rating", "avg_rating"),
        ),
        Query(
            name="profit_by_category",
            question="What is the total revenue and profit (total * profit_margin) of each category?",
            template="""
            SELECT
                category,
                SUM(total) AS total_revenue,
                SUM(total * profit_margin) AS profit
            FROM {table}
            GROUP BY 1
            ORDER BY profit DESC, category
            """,
            columns=("category", "total_revenue", "profit"),
        ),
        Query(
            name="preferred_payment_by_branch",
            question="What is the most frequently used payment method in each branch?",
            template="""
            WITH counted AS (
                SELECT
                    branch,
                    payment_method,
                    COUNT(*) AS total_trans,
                    RANK() OVER (PARTITION BY branch ORDER BY COUNT(*) DESC) AS {rank}
                FROM {table}
                GROUP BY 1, 2
            )
            SELECT branch, payment_method, total_trans, {rank}
            FROM counted
            WHERE {rank} = 1
            ORDER BY branch, payment_method
            """,
            columns=("branch", "payment_method", "total_trans", "rank"),
        ),
        Query(
            name="transactions_by_shift",
            question="How many transactions occur in each shift (Morning, Afternoon, Evening) per branch?",
            template="""
            SELECT
                branch,
                CASE
                    WHEN {hour} < 12 THEN 'Morning'
                    WHEN {hour} BETWEEN 12 AND 17 THEN 'Afternoon'
                    ELSE 'Evening'
                END AS shift,
                COUNT(*) AS no_transactions
            FROM {table}
            GROUP BY 1, 2
            ORDER BY branch, no_transactions DESC, shift
            """,
            columns=("branch", "shift", "no_transactions"),
        ),
        Query(
            name="revenue_decline_2022_2023",
            question="Which 5 branches had the highest revenue decrease ratio from 2022 to 2023?",
            template="""
            WITH revenue_2022 AS (
                SELECT branch, SUM(total) AS revenue
                FROM {table}
                WHERE {year} = 2022
                GROUP BY branch
            ),
            revenue_2023 AS (
                SELECT branch, SUM(total) AS revenue
                FROM {table}
                WHERE {year} = 2023
                GROUP BY branch
            )
            SELECT
                ls.branch,
                ls.revenue AS last_year_revenue,
                cs.revenue AS current_year_revenue,
                {decline_ratio} AS decline_ratio
            FROM revenue_2022 AS ls
            JOIN revenue_2023 AS cs ON ls.branch = cs.branch
            WHERE ls.revenue > cs.revenue
            ORDER BY decline_ratio DESC, ls.branch
            LIMIT 5
            """,
            columns=("branch", "last_year_revenue", "current_year_revenue", "decline_ratio"),
        ),
    ]
)

QUERY_NAMES = list(CATALOGUE)


def get_dialect(engine: Engine) -> Dialect:
    try:
        return DIALECTS[engine.dialect.name]
    except KeyError:
        raise QueryError(
            f"Unsupported store dialect '{engine.dialect.name}', expected one of {sorted(DIALECTS)}"
        ) from None


def _table_reference(table_name: str, schema: Optional[str]) -> str:
    qualified = qualify_table_name(table_name, schema)
    if not _IDENTIFIER.match(qualified):
        raise QueryError(f"Invalid table name: {qualified!r}")
    return qualified


def render_query(name: str, engine: Engine, table_name: str = "walmart", schema: Optional[str] = None) -> str:
    """Return the SQL text of catalogue query `name` for this engine."""
    if name not in CATALOGUE:
        raise QueryError(f"Unknown query '{name}', expected one of {QUERY_NAMES}")
    return CATALOGUE[name].render(_table_reference(table_name, schema), get_dialect(engine))


def _fetch(engine: Engine, sql: str, params: Optional[dict] = None) -> pd.DataFrame:
    with engine.connect() as conn:
        result = conn.execute(text(sql), params or {})
        return pd.DataFrame(result.fetchall(), columns=list(result.keys()))


def run_query(engine: Engine, name: str, table_name: str = "walmart", schema: Optional[str] = None) -> pd.DataFrame:
    """Run one catalogue query and return its result table."""
    sql = render_query(name, engine, table_name, schema)
    logger.info(f"Running query '{name}' against {qualify_table_name(table_name, schema)}")
    try:
        result_df = _fetch(engine, sql)
    except SQLAlchemyError as exc:
        logger.error(f"Query '{name}' failed: {exc}")
        raise QueryError(f"Query '{name}' failed: {exc}") from exc

    result_df.columns = list(CATALOGUE[name].columns)
    logger.info(f"Query '{name}' returned {len(result_df)} rows")
    return result_df


def run_all_queries(
    engine: Engine, table_name: str = "walmart", schema: Optional[str] = None
) -> "OrderedDict[str, pd.DataFrame]":
    """Run the full catalogue in order. The first failing query stops the run."""
    return OrderedDict((name, run_query(engine, name, table_name, schema)) for name in QUERY_NAMES)


def preview_table(
    engine: Engine, table_name: str = "walmart", schema: Optional[str] = None, limit: int = 10
) -> pd.DataFrame:
    """First `limit` rows of the loaded table, as a quick sanity check."""
    table = _table_reference(table_name, schema)
    try:
        return _fetch(engine, f"SELECT * FROM {table} LIMIT :limit", {"limit": int(limit)})
    except SQLAlchemyError as exc:
        raise QueryError(f"Preview of {table} failed: {exc}") from exc
