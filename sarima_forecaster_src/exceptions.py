# sarima_forecaster_src/exceptions.py

"""
Exception taxonomy for the Box-Jenkins workflow.

Every error carries the workflow stage that raised it and, where relevant, the
candidate model label, so a run's decision trail can be reproduced from logs.

Propagation
-----------
- DataError, TransformError: abort the whole run.
- EstimationError: drops the affected candidate only.
- NonCausalModel, NonInvertibleModel: remove the candidate from forecasting.
- DiagnosticFailure: advisory; attached to forecasts, never raised by the workflow.
"""

from typing import Any, Dict, Optional


class ForecasterError(Exception):
    """Base class for all workflow errors."""

    default_stage = "workflow"

    def __init__(self, message: str, stage: Optional[str] = None,
                 candidate: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.candidate = candidate
        self.details = details or {}

    def __str__(self) -> str:
        prefix = f"[{self.stage}]"
        if self.candidate:
            prefix += f"[{self.candidate}]"
        return f"{prefix} {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Serialisable form for candidate tables and reports."""
        return {
            "error": type(self).__name__,
            "stage": self.stage,
            "candidate": self.candidate,
            "message": self.message,
            **self.details,
        }


class DataError(ForecasterError):
    """Malformed or too-short input series, or non-positive values for a power transform."""

    default_stage = "load"


class TransformError(ForecasterError):
    """Variance-stabilisation grid has no finite optimum."""

    default_stage = "transform"


class EstimationError(ForecasterError):
    """Likelihood optimiser failed or produced an invalid parameter covariance."""

    default_stage = "fit"


class StabilityError(ForecasterError):
    """A characteristic polynomial has a root on or inside the unit circle."""

    default_stage = "stability"


class NonCausalModel(StabilityError):
    """Autoregressive polynomial fails the causality condition."""


class NonInvertibleModel(StabilityError):
    """Moving-average polynomial fails the invertibility condition."""


class DiagnosticFailure(ForecasterError):
    """
    Residuals reject the white-noise null in at least one test.

    Advisory only: point forecasts remain valid conditional means, but interval
    coverage is unreliable. The report that produced the failure is kept on the
    instance.
    """

    default_stage = "diagnostics"

    def __init__(self, message: str, report: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.report = report
