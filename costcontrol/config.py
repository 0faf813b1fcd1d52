"""
Configuration loader for the cost engine.

Loads settings from cost_engine_config.yaml and provides typed access
to all configuration sections.
"""
import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional
from functools import lru_cache

import yaml


# Default config path, overridable through COSTCONTROL_CONFIG
DEFAULT_CONFIG_PATH = Path(__file__).parent / "cost_engine_config.yaml"
CONFIG_PATH_ENV = "COSTCONTROL_CONFIG"


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


def _decimal(value: Any, default: str) -> Decimal:
    if value is None:
        return Decimal(default)
    return Decimal(str(value))


class EngineConfig:
    """
    Configuration manager for the cost engine.

    Loads YAML configuration and provides typed access to all sections.
    Use get_config() to obtain the singleton instance, or construct one
    directly and inject it into a calculator.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._config: dict = {}
        self._load()

    def _load(self) -> None:
        """Load configuration from YAML file."""
        if not self._config_path.exists():
            raise ConfigurationError(f"Config file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r') as f:
                self._config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(self._config, dict):
            raise ConfigurationError("Config file must contain a YAML mapping")

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load()
        # Clear the cached singleton to force reload on next get_config()
        get_config.cache_clear()

    @property
    def version(self) -> str:
        """Configuration file version."""
        return self._config.get("version", "unknown")

    # =========================================================================
    # Labor
    # =========================================================================

    @property
    def labor(self) -> dict:
        """Labor costing configuration."""
        return self._config.get("labor", {})

    @property
    def burden_rate(self) -> Decimal:
        """Burden loading applied to straight-time wages (e.g. 0.28)."""
        return _decimal(self.labor.get("burden_rate"), "0.28")

    @property
    def overtime_multiplier(self) -> Decimal:
        """Overtime wage multiplier."""
        return _decimal(self.labor.get("overtime_multiplier"), "1.5")

    @property
    def fallback_labor_rate(self) -> Decimal:
        """Hourly rate used when no running average or craft default exists."""
        return _decimal(self.labor.get("fallback_rate"), "50")

    @property
    def forecast_weekly_hours(self) -> Decimal:
        """Weekly hours per head for forecast rows that carry none."""
        return _decimal(self.labor.get("forecast_weekly_hours"), "40")

    @property
    def headcount_weekly_hours(self) -> Decimal:
        """Weekly hours per head for stored headcount plans that carry none."""
        return _decimal(self.labor.get("headcount_weekly_hours"), "50")

    @property
    def default_labor_category(self) -> str:
        """Bucket for labor rows whose category is missing or unknown."""
        return self.labor.get("default_category", "direct")

    @property
    def composite_weeks_back(self) -> int:
        """History window (weeks) for composite rate calculations."""
        return int(self.labor.get("composite_weeks_back", 12))

    @property
    def composite_recent_weeks(self) -> int:
        """Window (weeks) for the recent composite rate."""
        return int(self.labor.get("composite_recent_weeks", 4))

    # =========================================================================
    # Forecasting
    # =========================================================================

    @property
    def forecast(self) -> dict:
        """Forecast policy configuration."""
        return self._config.get("forecast", {})

    @property
    def spend_threshold(self) -> Decimal:
        """
        Spend fraction below which forecasts are margin-based.

        Returns:
            Fraction between 0 and 1 (0.20 = 20% of revised contract)
        """
        return _decimal(self.forecast.get("spend_threshold"), "0.20")

    @property
    def default_base_margin_percentage(self) -> Decimal:
        """Margin percentage assumed when a project carries none."""
        return _decimal(self.forecast.get("default_base_margin_percentage"), "15")

    # =========================================================================
    # Per Diem
    # =========================================================================

    @property
    def per_diem(self) -> dict:
        """Per diem configuration."""
        return self._config.get("per_diem", {})

    @property
    def per_diem_days_per_week(self) -> Decimal:
        """Days of per diem charged for each week of labor."""
        return _decimal(self.per_diem.get("days_per_week"), "5")

    @property
    def per_diem_rate_warning_ceiling(self) -> Decimal:
        """Daily rate above which a configuration warning is raised."""
        return _decimal(self.per_diem.get("rate_warning_ceiling"), "500")

    # =========================================================================
    # WBS
    # =========================================================================

    @property
    def wbs(self) -> dict:
        """Work Breakdown Structure tables."""
        return self._config.get("wbs", {})

    @property
    def wbs_root(self) -> dict:
        return self.wbs.get("root", {"code": "1", "name": "PROJECT TOTAL"})

    @property
    def wbs_phase(self) -> dict:
        return self.wbs.get("phase", {
            "code": "1.1",
            "name": "CONSTRUCTION PHASE",
            "phase": "PROJECT_EXECUTION"
        })

    @property
    def wbs_groups(self) -> list:
        """Fixed level-3 groups in sort order."""
        return self.wbs.get("groups", [])

    @property
    def wbs_parent_groups(self) -> List[str]:
        """Group codes that hold one sub-node per discipline."""
        return [str(code) for code in self.wbs.get("parent_groups", ["08", "09", "10"])]

    @property
    def wbs_unassigned_group(self) -> dict:
        return self.wbs.get("unassigned_group", {"code": "99", "name": "UNASSIGNED"})

    @property
    def discipline_to_group(self) -> Dict[str, str]:
        """Discipline name (upper case) -> group code."""
        table = self.wbs.get("discipline_to_group", {})
        return {str(name).upper(): str(code) for name, code in table.items()}

    @property
    def wbs_cost_categories(self) -> list:
        """Level-4 cost categories in sort order."""
        return self.wbs.get("cost_categories", [])

    @property
    def wbs_material_types(self) -> list:
        """Level-5 material subtypes."""
        return self.wbs.get("material_types", [])

    @property
    def wbs_line_item_gap(self) -> int:
        """Sort-order slots reserved per cost category for line items."""
        return int(self.wbs.get("line_item_gap", 10))

    # =========================================================================
    # Raw Access
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Get a top-level config value by key."""
        return self._config.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Dictionary-style access to config."""
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        """Check if key exists in config."""
        return key in self._config


@lru_cache(maxsize=1)
def get_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Get the singleton configuration instance.

    Args:
        config_path: Optional path to config file. Only used on first call.
            Falls back to the COSTCONTROL_CONFIG environment variable.

    Returns:
        EngineConfig singleton instance
    """
    path = config_path or os.getenv(CONFIG_PATH_ENV)
    return EngineConfig(Path(path) if path else None)


def reload_config() -> EngineConfig:
    """Reload configuration from disk and return new instance."""
    get_config.cache_clear()
    return get_config()
