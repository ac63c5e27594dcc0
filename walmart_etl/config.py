"""
Pipeline configuration.

Settings live in a YAML file (walmart_etl/config.yaml by default). Values in
the file override DEFAULTS section by section, so a deployment only needs to
spell out what differs.
"""

import copy
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from walmart_etl.errors import ConfigError

CONFIG_PATH = Path(__file__).parent / "config.yaml"

DEFAULTS: dict[str, dict[str, Any]] = {
    "source": {
        "path": "data/Walmart.csv",
        "delimiter": ",",
        "aws_conn_id": "aws_default",
        "bucket": None,
        "raw_folder": "raw-data/",
        "raw_key": "Walmart.csv",
    },
    "cleaning": {
        "date_format": "%d/%m/%y",
        "currency_symbols": "$€£¥",
        "thousands_separator": ",",
    },
    "store": {
        "url": "sqlite:///data/walmart.db",
        "conn_id": "walmart_db",
        "table_name": "walmart",
        "schema": None,
    },
    "export": {
        "clean_csv_path": None,
        "cleansed_folder": "cleansed-data/",
        "clean_key": "walmart_clean_data.csv",
    },
}


def load_config(path: Optional[Union[str, Path]] = None) -> dict[str, dict[str, Any]]:
    """
    Read the YAML config at `path` (packaged config.yaml when omitted) and
    merge it over DEFAULTS.
    """
    config_path = Path(path) if path else CONFIG_PATH
    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Config {config_path} must be a mapping of sections")

    unknown = set(raw) - set(DEFAULTS)
    if unknown:
        raise ConfigError(f"Unknown config sections: {sorted(unknown)}")

    config = copy.deepcopy(DEFAULTS)
    for section, values in raw.items():
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")
        config[section].update(values)

    if not config["store"].get("table_name"):
        raise ConfigError("store.table_name must not be empty")

    return config
