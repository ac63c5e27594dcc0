"""
Exception hierarchy for the Walmart sales pipeline.

Each stage raises its own error type; per-row cleaning problems are not
exceptions at all but ValidationDrop entries in the cleaning report.
"""


class WalmartEtlError(Exception):
    """Base exception for all pipeline failures."""


class ConfigError(WalmartEtlError):
    """Raised for an unreadable or incomplete pipeline configuration."""


class IngestionError(WalmartEtlError):
    """Raised when the raw input cannot be read as a whole."""


class LoadError(WalmartEtlError):
    """Raised when the bulk load into the store fails. Nothing is committed."""


class QueryError(WalmartEtlError):
    """Raised for unknown, unsupported or failing analytical queries."""
