"""
Unit tests for loading the pipeline configuration.
"""

import pytest

from walmart_etl.config import CONFIG_PATH, DEFAULTS, load_config
from walmart_etl.errors import ConfigError


class TestLoadConfig:
    """Test suite for load_config."""

    def test_packaged_config_loads(self):
        assert CONFIG_PATH.exists()
        config = load_config()
        assert set(config) == set(DEFAULTS)
        assert config["store"]["table_name"] == "walmart"
        assert config["cleaning"]["date_format"] == "%d/%m/%y"

    def test_file_values_override_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("store:\n  table_name: walmart_sales\n  schema: analytics\n")
        config = load_config(path)
        assert config["store"]["table_name"] == "walmart_sales"
        assert config["store"]["schema"] == "analytics"
        assert config["store"]["conn_id"] == DEFAULTS["store"]["conn_id"]
        assert config["source"] == DEFAULTS["source"]

    def test_defaults_are_not_mutated(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("cleaning:\n  date_format: '%m/%d/%Y'\n")
        load_config(path)
        assert DEFAULTS["cleaning"]["date_format"] == "%d/%m/%y"

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == DEFAULTS

    def test_empty_section_is_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("export:\n")
        assert load_config(path)["export"] == DEFAULTS["export"]

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read config"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("store: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_unknown_section_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("warehouse:\n  name: x\n")
        with pytest.raises(ConfigError, match="warehouse"):
            load_config(path)

    def test_non_mapping_section_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("store: walmart\n")
        with pytest.raises(ConfigError, match="store"):
            load_config(path)

    def test_non_mapping_document_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- source\n- store\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_empty_table_name_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("store:\n  table_name: ''\n")
        with pytest.raises(ConfigError, match="table_name"):
            load_config(path)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
