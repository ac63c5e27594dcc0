import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(name: str = "walmart_etl") -> logging.Logger:
    """
    Configure and return a logger for one pipeline stage.
    Level comes from WALMART_ETL_LOG_LEVEL (default INFO).
    """
    logger = logging.getLogger(name)
    logger.setLevel(os.environ.get("WALMART_ETL_LOG_LEVEL", "INFO").upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
