"""YAML configuration for the SARIMA forecaster.

The packaged default.yaml is always loaded first; an optional user file is
deep-merged on top. Values are read with dot-notation keys such as
'pruning.threshold'.
"""

import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default.yaml")

_MISSING = object()


class ConfigurationError(Exception):
    """Configuration file missing, unreadable or malformed."""


def deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge `source` into `target` in place and return it."""
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            deep_merge(target[key], value)
        else:
            target[key] = value
    return target


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Could not read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping")
    return data


class ConfigurationManager:
    """Layered configuration: packaged defaults, then an optional user file."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file).expanduser() if config_file else None
        self.loaded_configs: List[str] = []
        self._config_data: Dict[str, Any] = {}
        self.reload()

    def reload(self) -> None:
        self._config_data = _load_yaml(DEFAULT_CONFIG_PATH)
        self.loaded_configs = [str(DEFAULT_CONFIG_PATH)]
        if self.config_file is not None:
            if not self.config_file.is_file():
                raise ConfigurationError(f"Config file not found: {self.config_file}")
            deep_merge(self._config_data, _load_yaml(self.config_file))
            self.loaded_configs.append(str(self.config_file))
        logger.debug("Loaded configuration from %s", self.loaded_configs)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Value at a dot-notation key, or `default` when any part is missing."""
        node: Any = self._config_data
        for part in key_path.split("."):
            if not isinstance(node, dict):
                return default
            node = node.get(part, _MISSING)
            if node is _MISSING:
                return default
        return deepcopy(node)

    def set(self, key_path: str, value: Any) -> None:
        parts = key_path.split(".")
        node = self._config_data
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value

    def as_dict(self) -> Dict[str, Any]:
        return deepcopy(self._config_data)

    def validate_configuration(self) -> Dict[str, List[str]]:
        """
        Check types and ranges of the workflow settings.

        Returns
        -------
        Dict[str, List[str]]
            Errors per top-level section; empty when the configuration is valid.
        """
        errors: Dict[str, List[str]] = {}

        def add(section: str, message: str) -> None:
            errors.setdefault(section, []).append(message)

        grid = self.get("transform.candidate_exponents", {}) or {}
        step = grid.get("step", 0.1)
        if not isinstance(step, (int, float)) or step <= 0:
            add("transform", "candidate_exponents.step must be a positive number")
        if grid.get("start", -2.0) > grid.get("stop", 2.0):
            add("transform", "candidate_exponents.start must not exceed stop")

        for key in ("order", "seasonal_order"):
            value = self.get(f"differencing.{key}", 0)
            if not isinstance(value, int) or value < 0:
                add("differencing", f"{key} must be a non-negative integer")
        if not isinstance(self.get("differencing.lag", 1), int) or self.get("differencing.lag", 1) < 1:
            add("differencing", "lag must be a positive integer")
        period = self.get("differencing.period", 12)
        if not isinstance(period, int) or period < 2:
            add("differencing", "period must be an integer >= 2")

        candidates = self.get("model.candidates", [])
        if not isinstance(candidates, list) or not candidates:
            add("model", "candidates must be a non-empty list")

        if self.get("pruning.threshold", 2.0) <= 0:
            add("pruning", "threshold must be positive")
        if self.get("stability.tolerance", 1e-6) < 0:
            add("stability", "tolerance must be non-negative")

        lags = self.get("diagnostics.lags", 22)
        if not isinstance(lags, int) or lags < 1:
            add("diagnostics", "lags must be a positive integer")
        fitdf = self.get("diagnostics.fitdf", None)
        if fitdf is not None and (not isinstance(fitdf, int) or fitdf < 0):
            add("diagnostics", "fitdf must be null or a non-negative integer")
        if not 0 < self.get("diagnostics.significance_level", 0.05) < 1:
            add("diagnostics", "significance_level must lie in (0, 1)")
        if self.get("spectral.significance_level", 0.05) not in (0.10, 0.05, 0.01):
            add("spectral", "significance_level must be one of 0.10, 0.05, 0.01")

        horizons = self.get("forecast.horizons", [])
        if not isinstance(horizons, list) or not all(isinstance(h, int) and h > 0 for h in horizons):
            add("forecast", "horizons must be a list of positive integers")
        if self.get("forecast.interval_width", 2.0) <= 0:
            add("forecast", "interval_width must be positive")

        return errors

    def get_configuration_summary(self) -> Dict[str, Any]:
        return {
            "loaded_configs": list(self.loaded_configs),
            "candidates": len(self.get("model.candidates", []) or []),
            "horizons": self.get("forecast.horizons", []),
        }


_config_manager: Optional[ConfigurationManager] = None


def get_config(config_file: Optional[Union[str, Path]] = None, reload: bool = False) -> ConfigurationManager:
    """Get or create the global configuration manager."""
    global _config_manager
    if _config_manager is None or reload or config_file is not None:
        _config_manager = ConfigurationManager(config_file)
    return _config_manager
