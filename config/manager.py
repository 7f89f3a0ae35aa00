"""
Configuration manager: bundled YAML defaults with an optional override file.

The override file is named by the ROSTER_FORECASTER_CONFIG environment variable
(or passed explicitly) and deep-merged on top of config/defaults.yaml. Values
are read with dot notation, e.g. ``get("evaluation.max_workers", 1)``.
"""

import copy
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ROSTER_FORECASTER_CONFIG"
DEFAULTS_PATH = Path(__file__).resolve().parent / "defaults.yaml"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
KNOWN_PERIODICITIES = (
    "year", "yearly", "annual", "y", "a", "quarter", "quarterly", "q",
    "month", "monthly", "m", "week", "weekly", "w", "day", "daily", "d",
)


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping")
    return data


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge `override` into a copy of `base`."""
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigurationManager:
    """Read-only view over the merged configuration."""

    def __init__(self, override_path: Optional[Union[str, Path]] = None,
                 defaults_path: Optional[Union[str, Path]] = None):
        self.defaults_path = Path(defaults_path) if defaults_path else DEFAULTS_PATH
        if override_path is None:
            override_path = os.environ.get(CONFIG_ENV_VAR) or None
        self.override_path = Path(override_path) if override_path else None

        config = _load_yaml(self.defaults_path)
        if self.override_path is not None:
            config = merge_configs(config, _load_yaml(self.override_path))
            logger.info("Loaded configuration overrides from %s", self.override_path)
        self._config = config

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a value using dot notation.

        Parameters
        ----------
        key_path : str
            Dot-separated path, e.g. 'evaluation.max_workers'
        default : Any
            Returned when any segment of the path is absent

        Returns
        -------
        Any
            A deep copy of the stored value, or `default`
        """
        current: Any = self._config
        for key in key_path.split("."):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return copy.deepcopy(current)

    def get_section(self, name: str) -> Dict[str, Any]:
        section = self.get(name, {})
        return section if isinstance(section, dict) else {}

    def get_models_config(self) -> Dict[str, Any]:
        return self.get_section("models")

    def get_evaluation_config(self) -> Dict[str, Any]:
        return self.get_section("evaluation")

    def validate_configuration(self) -> List[str]:
        """Return a list of human-readable problems; empty when the configuration is usable."""
        errors: List[str] = []

        roster = self.get("models.roster")
        if roster is not None:
            if not isinstance(roster, list) or not roster:
                errors.append("models.roster must be a non-empty list of model names")
            elif not all(isinstance(name, str) and name for name in roster):
                errors.append("models.roster entries must be non-empty strings")
            elif len(set(roster)) != len(roster):
                errors.append("models.roster contains duplicate names")

        for key in ("evaluation.holdout_length", "forecast.horizon"):
            value = self.get(key)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 1):
                errors.append(f"{key} must be null or a positive integer")

        workers = self.get("evaluation.max_workers", 1)
        if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
            errors.append("evaluation.max_workers must be a positive integer")

        periodicity = self.get("series.periodicity")
        if periodicity is not None and str(periodicity).strip().lower() not in KNOWN_PERIODICITIES:
            errors.append(f"series.periodicity {periodicity!r} is not recognised")

        level = self.get("logging.level", "INFO")
        if str(level).upper() not in VALID_LOG_LEVELS:
            errors.append(f"logging.level must be one of {VALID_LOG_LEVELS}")

        return errors

    def get_configuration_summary(self) -> Dict[str, Any]:
        return {
            "defaults_path": str(self.defaults_path),
            "override_path": str(self.override_path) if self.override_path else None,
            "roster": self.get("models.roster"),
            "holdout_length": self.get("evaluation.holdout_length"),
            "horizon": self.get("forecast.horizon"),
            "max_workers": self.get("evaluation.max_workers"),
            "progress": self.get("evaluation.progress"),
            "validation_errors": self.validate_configuration(),
        }


_config_manager: Optional[ConfigurationManager] = None
_config_lock = threading.Lock()


def get_config() -> ConfigurationManager:
    """Process-wide configuration manager, created on first use."""
    global _config_manager
    with _config_lock:
        if _config_manager is None:
            _config_manager = ConfigurationManager()
        return _config_manager


def reset_config() -> None:
    """Drop the cached manager so the next get_config() re-reads the files."""
    global _config_manager
    with _config_lock:
        _config_manager = None
