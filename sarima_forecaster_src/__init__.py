# sarima_forecaster_src/__init__.py

"""
SARIMA Forecaster - Box-Jenkins modelling of monthly series

This package implements the classical Box-Jenkins workflow: variance
stabilisation and differencing, correlogram inspection, maximum-likelihood
SARIMA fitting with AICc-driven coefficient pruning, and multi-step forecasts
back-transformed to the original scale. Stability and residual checks live in
the sibling `diagnostics` package, input checks in `validation`.

Key Components
--------------
- exceptions: Error taxonomy carrying workflow stage and candidate
- data_utils: Monthly CSV loading and train/test windows
- transform_utils: Power transform selection, differencing and integration
- autocorrelation_utils: ACF/PACF tables with white-noise bounds
- model_utils: Model specifications, fitting, pruning and candidate selection
- forecasting_utils: Multi-step forecasts with standard errors on three scales
- metrics_utils: Holdout accuracy metrics
- config_utils: Configuration access with CLI override support
- parsing_utils, file_utils, plotting_utils: CLI parsing, outputs and figures
- main: Workflow orchestration and command-line entry point

Usage
-----
    # Command-line usage
    python -m sarima_forecaster_src.main --series-csv data/retail_sales.csv

    # Programmatic usage
    from sarima_forecaster_src import ModelSpecification, fit, forecast
"""

__version__ = "1.0.0"
__author__ = "SARIMA Forecaster Development Team"

# Import key functions for easy access; main is left out so the diagnostics
# and validation packages can import the exception taxonomy from here.
from .exceptions import (
    ForecasterError, DataError, TransformError, EstimationError,
    StabilityError, NonCausalModel, NonInvertibleModel, DiagnosticFailure,
)
from .transform_utils import (
    select_power_exponent, power_transform, inverse_power_transform, transform,
    difference, integrate, stabilize,
)
from .model_utils import ModelSpecification, FittedModel, fit, prune_coefficients, fit_candidates, select_best
from .forecasting_utils import Forecast, forecast

__all__ = [
    # Errors
    "ForecasterError",
    "DataError",
    "TransformError",
    "EstimationError",
    "StabilityError",
    "NonCausalModel",
    "NonInvertibleModel",
    "DiagnosticFailure",
    # Core functionality
    "select_power_exponent",
    "power_transform",
    "inverse_power_transform",
    "transform",
    "difference",
    "integrate",
    "stabilize",
    "ModelSpecification",
    "FittedModel",
    "fit",
    "prune_coefficients",
    "fit_candidates",
    "select_best",
    "Forecast",
    "forecast",
    # Version info
    "__version__",
    "__author__"
]
