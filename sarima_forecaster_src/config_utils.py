# sarima_forecaster_src/config_utils.py

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from config import ConfigurationError, get_config

from .model_utils import ModelSpecification
from .parsing_utils import parse_candidate_specs, parse_exponent_grid, parse_horizons

logger = logging.getLogger(__name__)

# Global configuration manager, set by initialize_config()
config_manager = None


def initialize_config(config_file: Optional[Union[str, Path]] = None):
    """
    Initializes the global configuration manager.

    The packaged defaults are loaded and, when given, the user file is merged on
    top. Validation problems are logged as warnings; an unreadable or missing
    user file raises ConfigurationError.
    """
    global config_manager
    config_manager = get_config(config_file, reload=True)
    validation_errors = config_manager.validate_configuration()
    if validation_errors:
        logger.warning("Configuration validation warnings: %s", validation_errors)
    return config_manager


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager is not None:
        config_value = config_manager.get(key_path, default)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default


@dataclass
class WorkflowConfig:
    """Resolved settings for one workflow run."""

    candidates: List[ModelSpecification]
    exponent_grid: np.ndarray = field(repr=False)
    d: int = 1
    lag: int = 1
    D: int = 0
    s: int = 12
    train_start: Optional[str] = None
    train_end: Optional[str] = None
    test_start: Optional[str] = None
    test_end: Optional[str] = None
    date_column: Optional[str] = None
    value_column: Optional[str] = None
    max_lag: int = 36
    prune: bool = True
    threshold: float = 2.0
    max_rounds: Optional[int] = None
    stability_tolerance: float = 1e-6
    diagnostic_lags: int = 22
    diagnostic_fitdf: Optional[int] = None
    significance_level: float = 0.05
    spectral_significance_level: float = 0.05
    spectral_taper: float = 0.1
    horizons: List[int] = field(default_factory=lambda: [12, 24])
    interval_width: float = 2.0
    output_dir: Path = Path("outputs")
    figures: bool = False

    @classmethod
    def from_sources(cls, args: Optional[argparse.Namespace] = None) -> "WorkflowConfig":
        """Resolve every setting through get_config_value (CLI > config file > default)."""
        def value(key: str, default: Any, cli_param: Optional[str] = None) -> Any:
            return get_config_value(key, default, args, cli_param)

        candidates = parse_candidate_specs(value("model.candidates", None, "candidates"))
        grid_value = value("transform.candidate_exponents", None, "exponents")
        max_rounds = value("pruning.max_rounds", None)
        fitdf = value("diagnostics.fitdf", None, "fitdf")
        prune = value("pruning.enabled", True)
        if args is not None and getattr(args, "no_prune", False):
            prune = False
        figures = bool(value("output.figures", False)) or bool(getattr(args, "figures", False))

        return cls(
            candidates=candidates,
            exponent_grid=parse_exponent_grid(grid_value),
            d=int(value("differencing.order", 1, "d")),
            lag=int(value("differencing.lag", 1)),
            D=int(value("differencing.seasonal_order", 0, "D")),
            s=int(value("differencing.period", 12, "period")),
            train_start=value("windows.train_start", None, "train_start"),
            train_end=value("windows.train_end", None, "train_end"),
            test_start=value("windows.test_start", None, "test_start"),
            test_end=value("windows.test_end", None, "test_end"),
            date_column=value("data.date_column", None, "date_column"),
            value_column=value("data.value_column", None, "value_column"),
            max_lag=int(value("autocorrelation.max_lag", 36, "max_lag")),
            prune=bool(prune),
            threshold=float(value("pruning.threshold", 2.0, "threshold")),
            max_rounds=int(max_rounds) if max_rounds is not None else None,
            stability_tolerance=float(value("stability.tolerance", 1e-6)),
            diagnostic_lags=int(value("diagnostics.lags", 22, "lags")),
            diagnostic_fitdf=int(fitdf) if fitdf is not None else None,
            significance_level=float(value("diagnostics.significance_level", 0.05)),
            spectral_significance_level=float(value("spectral.significance_level", 0.05)),
            spectral_taper=float(value("spectral.taper", 0.1)),
            horizons=parse_horizons(value("forecast.horizons", None, "horizons")),
            interval_width=float(value("forecast.interval_width", 2.0)),
            output_dir=Path(value("output.directory", "outputs", "output_dir")),
            figures=figures,
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "candidates": [c.label for c in self.candidates],
            "differencing": {"d": self.d, "lag": self.lag, "D": self.D, "s": self.s},
            "exponents": f"{self.exponent_grid.min():g}..{self.exponent_grid.max():g} ({len(self.exponent_grid)})",
            "horizons": self.horizons,
        }


__all__ = ["ConfigurationError", "WorkflowConfig", "get_config_value", "initialize_config"]
