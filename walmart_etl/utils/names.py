"""
Name helpers for S3 keys and store tables.

S3 keys and schema-qualified table names are built in one place so the DAG,
the loader and the query catalogue agree on them.
"""

from typing import Optional


def build_s3_key(folder: str, relative_key: str) -> str:
    """
    Join an S3 folder and a file key with exactly one slash between them.

    Example:
        build_s3_key("raw-data", "/Walmart.csv") -> "raw-data/Walmart.csv"
    """
    prefix = folder.rstrip("/") + "/" if folder else ""
    return f"{prefix}{relative_key.lstrip('/') if relative_key else ''}"


def qualify_table_name(table_name: str, schema: Optional[str] = None) -> str:
    if not table_name:
        raise ValueError("Table name must not be empty")
    if schema and "." not in table_name:
        return f"{schema}.{table_name}"
    return table_name
