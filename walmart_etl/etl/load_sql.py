import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Optional, Union

import pandas as pd
from sqlalchemy import (
    Column,
    Date,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Time,
    create_engine,
    event,
    func,
    inspect,
    select,
)
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from walmart_etl.errors import LoadError
from walmart_etl.logger import setup_logger
from walmart_etl.utils.names import qualify_table_name
from walmart_etl.validations.output_schemas import CLEAN_COLUMNS

logger = setup_logger("etl.load_sql")

_table_locks: dict[str, threading.Lock] = {}
_registry_lock = threading.Lock()


@dataclass(frozen=True)
class LoadResult:
    table_name: str
    rows_loaded: int
    replaced: bool


def create_store_engine(url: Union[str, URL], **engine_kwargs: Any) -> Engine:
    """
    Create the SQLAlchemy engine used as the store handle.

    pysqlite commits DDL on its own, which would make the drop/recreate in
    load_sales_to_store visible before the rows are in. For SQLite the driver's
    transaction handling is turned off and SQLAlchemy emits BEGIN itself, so
    DROP/CREATE/INSERT share one transaction.
    """
    engine = create_engine(url, **engine_kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


# Airflow conn_type -> SQLAlchemy drivername
CONN_TYPE_DRIVERS = {
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "mysql": "mysql",
    "sqlite": "sqlite",
}


def store_url_from_connection(conn: Any) -> URL:
    """
    Build the store URL from an Airflow Connection's fields.

    Connection.get_uri() keeps the conn_type as scheme ("postgres://"),
    which SQLAlchemy does not accept, so the URL is assembled here instead.
    For SQLite the database file path lives in the connection's host.
    """
    conn_type = (conn.conn_type or "").lower()
    try:
        drivername = CONN_TYPE_DRIVERS[conn_type]
    except KeyError:
        raise LoadError(
            f"Unsupported store connection type '{conn.conn_type}', expected one of {sorted(CONN_TYPE_DRIVERS)}"
        ) from None

    if drivername == "sqlite":
        return URL.create(drivername, database=conn.host or conn.schema)
    return URL.create(
        drivername,
        username=conn.login or None,
        password=conn.password or None,
        host=conn.host or None,
        port=conn.port or None,
        database=conn.schema or None,
    )


def build_sales_table(metadata: MetaData, table_name: str, schema: Optional[str] = None) -> Table:
    """Table definition matching the clean record shape."""
    return Table(
        table_name,
        metadata,
        Column("invoice_id", String(64), primary_key=True),
        Column("branch", String(64), nullable=False),
        Column("city", String(128), nullable=False),
        Column("category", String(128), nullable=False),
        Column("unit_price", Float, nullable=False),
        Column("quantity", Integer, nullable=False),
        Column("date", Date, nullable=False),
        Column("time", Time, nullable=False),
        Column("payment_method", String(64), nullable=False),
        Column("rating", Float, nullable=False),
        Column("profit_margin", Float, nullable=True),
        Column("total", Float, nullable=False),
        schema=schema,
    )


@contextmanager
def table_write_lock(qualified_name: str) -> Iterator[None]:
    """Serialize loads into the same table issued from this process."""
    with _registry_lock:
        lock = _table_locks.setdefault(qualified_name, threading.Lock())
    with lock:
        yield


def _to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    # NaN -> None so nullable columns land as SQL NULL
    values = df[CLEAN_COLUMNS].astype(object)
    return values.where(values.notna(), None).to_dict(orient="records")


def load_sales_to_store(
    rows: Union[pd.DataFrame, Iterable[Mapping[str, Any]]],
    engine: Engine,
    table_name: str = "walmart",
    schema: Optional[str] = None,
) -> LoadResult:
    """
    Replace `table_name` with the given clean rows in one transaction.

    The table is dropped, recreated and filled inside a single transaction;
    on any failure the transaction is rolled back, the previous contents
    stay in place and LoadError is raised from the original error.
    """
    df = rows if isinstance(rows, pd.DataFrame) else pd.DataFrame.from_records(list(rows))
    missing = [col for col in CLEAN_COLUMNS if col not in df.columns]
    if missing:
        raise LoadError(f"Rows are missing record columns: {', '.join(missing)}")

    qualified = qualify_table_name(table_name, schema)
    records = _to_records(df)
    table = build_sales_table(MetaData(), table_name, schema=schema)

    logger.info(f"Loading {len(records)} rows into {qualified} ({engine.dialect.name})")

    try:
        with table_write_lock(qualified), engine.begin() as conn:
            replaced = inspect(conn).has_table(table_name, schema=schema)
            table.drop(conn, checkfirst=True)
            table.create(conn)
            if records:
                conn.execute(table.insert(), records)
            rows_loaded = conn.execute(select(func.count()).select_from(table)).scalar_one()
            if rows_loaded != len(records):
                raise LoadError(f"Expected {len(records)} rows in {qualified}, found {rows_loaded}")

    except SQLAlchemyError as exc:
        logger.error(f"Load into {qualified} failed, rolled back: {exc}", exc_info=True)
        raise LoadError(f"Load into {qualified} failed: {exc}") from exc

    logger.info(f"Load complete: {rows_loaded} rows in {qualified} (replaced={replaced})")
    return LoadResult(table_name=qualified, rows_loaded=int(rows_loaded), replaced=replaced)
