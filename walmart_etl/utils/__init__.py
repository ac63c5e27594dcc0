"""
Shared helpers for the Walmart sales pipeline.

Keep helpers here small and dependency-free so DAG parsing stays reliable.
"""

from .names import build_s3_key, qualify_table_name

__all__ = ["build_s3_key", "qualify_table_name"]
