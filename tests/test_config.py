"""
Tests for the configuration loader.
"""
import pytest
import tempfile
from decimal import Decimal
from pathlib import Path

from costcontrol.config import EngineConfig, get_config, reload_config, ConfigurationError


class TestEngineConfig:
    """Tests for EngineConfig class."""

    def test_load_default_config(self):
        """Test loading the default configuration file."""
        config = get_config()
        assert config.version == "1.0.0"
        assert len(config.wbs_groups) == 14

    def test_get_config_is_cached(self):
        """get_config() returns the same instance until reloaded."""
        assert get_config() is get_config()

    def test_reload_config_returns_fresh_instance(self):
        first = get_config()
        second = reload_config()
        assert first is not second
        assert second is get_config()


class TestLaborSettings:
    """Tests for labor costing settings."""

    def test_burden_and_overtime(self, config):
        assert config.burden_rate == Decimal("0.28")
        assert config.overtime_multiplier == Decimal("1.5")

    def test_rates_and_hours_are_decimal(self, config):
        assert config.fallback_labor_rate == Decimal("50")
        assert config.forecast_weekly_hours == Decimal("40")
        assert config.headcount_weekly_hours == Decimal("50")
        assert isinstance(config.burden_rate, Decimal)

    def test_composite_windows(self, config):
        assert config.composite_weeks_back == 12
        assert config.composite_recent_weeks == 4
        assert config.default_labor_category == "direct"


class TestForecastSettings:
    """Tests for forecast policy settings."""

    def test_spend_threshold(self, config):
        assert config.spend_threshold == Decimal("0.20")

    def test_default_margin(self, config):
        assert config.default_base_margin_percentage == Decimal("15")


class TestPerDiemSettings:
    """Tests for per diem settings."""

    def test_days_and_ceiling(self, config):
        assert config.per_diem_days_per_week == Decimal("5")
        assert config.per_diem_rate_warning_ceiling == Decimal("500")


class TestWBSSettings:
    """Tests for WBS lookup tables."""

    def test_parent_groups(self, config):
        assert config.wbs_parent_groups == ["08", "09", "10"]

    def test_discipline_lookup_keys_are_upper_case(self, config):
        mapping = config.discipline_to_group
        assert mapping["MECHANICAL"] == "09"
        assert mapping["PIPING"] == "09"
        assert mapping["I&E"] == "10"
        assert all(key == key.upper() for key in mapping)

    def test_cost_categories(self, config):
        types = [c['type'] for c in config.wbs_cost_categories]
        assert types == ["DL", "IL", "MAT", "EQ", "SUB"]

    def test_unassigned_group(self, config):
        assert str(config.wbs_unassigned_group['code']) == "99"

    def test_line_item_gap(self, config):
        assert config.wbs_line_item_gap == 10


class TestRawAccess:
    """Tests for raw config access."""

    def test_get_method(self, config):
        assert config.get("version") == "1.0.0"
        assert config.get("nonexistent", "default") == "default"

    def test_getitem(self, config):
        assert config["labor"]["burden_rate"] == 0.28

    def test_contains(self, config):
        assert "wbs" in config
        assert "nonexistent" not in config


class TestConfigurationError:
    """Tests for configuration error handling."""

    def test_missing_file(self):
        """Test error on missing config file."""
        with pytest.raises(ConfigurationError) as exc_info:
            EngineConfig(Path("/nonexistent/path.yaml"))
        assert "not found" in str(exc_info.value)

    def test_invalid_yaml(self):
        """Test error on invalid YAML."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("invalid: yaml: content: [")
            temp_path = Path(f.name)

        try:
            with pytest.raises(ConfigurationError) as exc_info:
                EngineConfig(temp_path)
            assert "Invalid YAML" in str(exc_info.value)
        finally:
            temp_path.unlink()

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            EngineConfig(path)

    def test_overridden_values(self, tmp_path):
        """Values missing from a custom file fall back to defaults."""
        path = tmp_path / "custom.yaml"
        path.write_text("version: '2.0'\nlabor:\n  burden_rate: 0.30\n")
        config = EngineConfig(path)
        assert config.burden_rate == Decimal("0.3")
        assert config.fallback_labor_rate == Decimal("50")
