"""Validation pipeline for monthly input series.

This module checks the invariants every downstream stage relies on before any
statistics are computed, and turns fatal findings into a DataError.

Features:
- Structured validation issues with severity levels
- Monthly regularity checks (gaps, duplicates, ordering)
- Finite-value and minimum-length checks
- Optional positivity check for power transforms
- Fingerprinting of the validated series for run provenance
"""

import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from enum import Enum

import pandas as pd
import numpy as np

from helpers.temporal import missing_months
from sarima_forecaster_src.exceptions import DataError

from .data_integrity import DataFingerprint

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    """Validation issue severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ValidationIssue:
    """Individual validation issue."""
    severity: ValidationSeverity
    message: str
    component: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class ValidationResult:
    """Complete validation result with all issues and metrics."""
    is_valid: bool
    issues: List[ValidationIssue]
    metrics: Dict[str, Any]
    fingerprint: Optional[DataFingerprint] = None

    @property
    def has_errors(self) -> bool:
        """Check if result has any errors or critical issues."""
        return any(issue.severity in [ValidationSeverity.ERROR, ValidationSeverity.CRITICAL]
                   for issue in self.issues)

    @property
    def has_warnings(self) -> bool:
        """Check if result has any warnings."""
        return any(issue.severity == ValidationSeverity.WARNING for issue in self.issues)

    def get_issues_by_severity(self, severity: ValidationSeverity) -> List[ValidationIssue]:
        """Get all issues of a specific severity."""
        return [issue for issue in self.issues if issue.severity == severity]

    def summary(self) -> str:
        """Get a summary string of the validation result."""
        total_issues = len(self.issues)
        errors = len(self.get_issues_by_severity(ValidationSeverity.ERROR))
        criticals = len(self.get_issues_by_severity(ValidationSeverity.CRITICAL))
        warnings = len(self.get_issues_by_severity(ValidationSeverity.WARNING))

        status = "PASS" if self.is_valid and not self.has_errors else "FAIL"
        return f"Validation {status}: {total_issues} issues ({criticals} critical, {errors} error, {warnings} warning)"


class SeriesValidator:
    """Checks a monthly series against the workflow's input invariants."""

    def __init__(self, min_length: int = 24, require_positive: bool = False):
        """Initialize the validator.

        Parameters
        ----------
        min_length : int, default 24
            Minimum number of observations; shorter series are an error.
        require_positive : bool, default False
            Flag non-positive values as errors (needed by power transforms).
        """
        self.min_length = min_length
        self.require_positive = require_positive
        self.issues: List[ValidationIssue] = []
        self.metrics: Dict[str, Any] = {}

    def validate(self, series: pd.Series, name: str = "series") -> ValidationResult:
        """Run every check and collect the issues.

        Parameters
        ----------
        series : pd.Series
            Series with a DatetimeIndex.
        name : str
            Label used in messages.

        Returns
        -------
        ValidationResult
            All issues found; `is_valid` is False when any error was recorded.
        """
        logger.info("Validating series '%s' (%d observations)", name, len(series))
        self.issues = []
        self.metrics = {"observations": int(len(series))}

        if series is None or series.empty:
            self._add(ValidationSeverity.CRITICAL, f"Series '{name}' is empty", "basic_properties")
            return self._result(None)

        self._validate_index(series, name)
        self._validate_values(series, name)

        fingerprint = None
        if not self.has_errors():
            fingerprint = DataFingerprint.from_series(series, series_id=name, frequency="MS")
            self.metrics["fingerprint"] = fingerprint.hash
        result = self._result(fingerprint)
        logger.info("Validation completed: %s", result.summary())
        return result

    def has_errors(self) -> bool:
        return any(issue.severity in (ValidationSeverity.ERROR, ValidationSeverity.CRITICAL)
                   for issue in self.issues)

    def _add(self, severity: ValidationSeverity, message: str, component: str,
             details: Optional[Dict[str, Any]] = None) -> None:
        self.issues.append(ValidationIssue(severity=severity, message=message,
                                           component=component, details=details))

    def _result(self, fingerprint: Optional[DataFingerprint]) -> ValidationResult:
        return ValidationResult(
            is_valid=not self.has_errors(),
            issues=list(self.issues),
            metrics=dict(self.metrics),
            fingerprint=fingerprint,
        )

    def _validate_index(self, series: pd.Series, name: str) -> None:
        """Validate ordering and monthly regularity of the index."""
        index = series.index
        if not isinstance(index, pd.DatetimeIndex):
            self._add(ValidationSeverity.ERROR, f"Series '{name}' does not have a DatetimeIndex",
                      "temporal")
            return

        duplicates = int(index.duplicated().sum())
        if duplicates:
            self._add(ValidationSeverity.ERROR,
                      f"Series '{name}' has {duplicates} duplicated timestamps",
                      "temporal", {"duplicates": duplicates})

        if not index.is_monotonic_increasing:
            self._add(ValidationSeverity.ERROR,
                      f"Series '{name}' is not sorted chronologically", "temporal")

        gaps = missing_months(index)
        self.metrics["missing_months"] = int(len(gaps))
        if len(gaps):
            first = gaps[0].strftime("%Y-%m")
            self._add(ValidationSeverity.ERROR,
                      f"Series '{name}' has {len(gaps)} missing months (first gap at {first})",
                      "temporal", {"missing_months": [g.strftime("%Y-%m") for g in gaps[:12]]})

    def _validate_values(self, series: pd.Series, name: str) -> None:
        """Validate length, finiteness and (optionally) positivity."""
        values = pd.to_numeric(series, errors="coerce").to_numpy(dtype=float)
        non_finite = int((~np.isfinite(values)).sum())
        if non_finite:
            self._add(ValidationSeverity.ERROR,
                      f"Series '{name}' has {non_finite} missing or non-finite values",
                      "data_quality", {"non_finite": non_finite})

        if len(values) < self.min_length:
            self._add(ValidationSeverity.ERROR,
                      f"Series '{name}' has only {len(values)} observations (minimum: {self.min_length})",
                      "basic_properties", {"observations": len(values), "minimum": self.min_length})

        finite = values[np.isfinite(values)]
        if self.require_positive and finite.size and (finite <= 0).any():
            count = int((finite <= 0).sum())
            self._add(ValidationSeverity.ERROR,
                      f"Series '{name}' has {count} non-positive values; power transforms need x > 0",
                      "data_quality", {"non_positive": count})

        if finite.size:
            self.metrics["mean"] = float(finite.mean())
            self.metrics["variance"] = float(finite.var(ddof=1)) if finite.size > 1 else float("nan")


def run_validation_pipeline(series: pd.Series,
                            min_length: int = 24,
                            require_positive: bool = True,
                            name: str = "series") -> ValidationResult:
    """Validate a series and raise DataError on any error-level issue.

    Parameters
    ----------
    series : pd.Series
        Monthly series to validate
    min_length : int
        Minimum observations required by the largest candidate model
    require_positive : bool
        Whether non-positive values are fatal
    name : str
        Series label for messages

    Returns
    -------
    ValidationResult
        Result for a series that passed (warnings may still be present)

    Raises
    ------
    DataError
        If any error or critical issue was found
    """
    validator = SeriesValidator(min_length=min_length, require_positive=require_positive)
    result = validator.validate(series, name=name)
    if result.has_errors:
        messages = "; ".join(issue.message for issue in result.issues
                             if issue.severity in (ValidationSeverity.ERROR, ValidationSeverity.CRITICAL))
        raise DataError(messages, stage="validate", details={"issues": len(result.issues)})
    for issue in result.get_issues_by_severity(ValidationSeverity.WARNING):
        logger.warning("%s", issue.message)
    return result


def minimum_length_for(order: tuple, seasonal_order: tuple) -> int:
    """Observations needed to difference and still estimate a model of the given orders."""
    p, d, q = order
    P, D, Q, s = seasonal_order
    s = s or 0
    lost = d + D * s
    max_lag = max(p + P * s, q + Q * s)
    return lost + max_lag + 2 * (p + q + P + Q) + 10
