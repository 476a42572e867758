"""Causality and invertibility checks for fitted SARIMA models.

A model is usable for forecasting only when every root of its autoregressive
polynomials (causality) and of its moving-average polynomials (invertibility)
lies strictly outside the unit circle.

Features:
- Roots as eigenvalues of the companion matrix
- Configurable tolerance around |z| = 1
- Per-polynomial reports for the four SARIMA factors
- Hard gate raising NonCausalModel / NonInvertibleModel
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Sequence

import numpy as np

from sarima_forecaster_src.exceptions import NonCausalModel, NonInvertibleModel

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-6

AR_POLYNOMIALS = ("ar", "seasonal_ar")
MA_POLYNOMIALS = ("ma", "seasonal_ma")


def polynomial_roots(coefficients: Sequence[float]) -> np.ndarray:
    """Roots of c0 + c1 z + ... + cn z^n from the eigenvalues of its companion matrix.

    Trailing zero coefficients (structural zeros at the highest lags) are
    dropped first; a constant polynomial has no roots.
    """
    coefs = np.trim_zeros(np.asarray(coefficients, dtype=float), trim="b")
    if coefs.size <= 1:
        return np.array([], dtype=complex)
    return np.asarray(np.polynomial.polynomial.polyroots(coefs), dtype=complex)


@dataclass(frozen=True)
class PolynomialCheck:
    """Roots of one characteristic polynomial and the stability verdict."""

    coefficients: np.ndarray = field(repr=False)
    roots: np.ndarray
    moduli: np.ndarray
    stable: bool
    tolerance: float = DEFAULT_TOLERANCE

    @property
    def min_modulus(self) -> float:
        return float(self.moduli.min()) if self.moduli.size else float("inf")


def check(polynomial_coefficients: Sequence[float], tolerance: float = DEFAULT_TOLERANCE) -> PolynomialCheck:
    """Check whether every root lies outside the unit circle.

    Parameters
    ----------
    polynomial_coefficients : sequence of float
        Coefficients in ascending powers, leading 1 first.
    tolerance : float, default 1e-6
        A root counts as outside the circle only when |root| > 1 + tolerance.

    Returns
    -------
    PolynomialCheck
        Roots, their moduli and the verdict. A polynomial without roots is stable.
    """
    coefs = np.asarray(polynomial_coefficients, dtype=float)
    roots = polynomial_roots(coefs)
    moduli = np.abs(roots)
    stable = bool(np.all(moduli > 1.0 + tolerance))
    return PolynomialCheck(coefficients=coefs, roots=roots, moduli=moduli, stable=stable, tolerance=tolerance)


@dataclass(frozen=True)
class ModelStability:
    """Checks of the four SARIMA polynomials of one fitted model."""

    label: str
    checks: Dict[str, PolynomialCheck]

    @property
    def causal(self) -> bool:
        return all(self.checks[name].stable for name in AR_POLYNOMIALS if name in self.checks)

    @property
    def invertible(self) -> bool:
        return all(self.checks[name].stable for name in MA_POLYNOMIALS if name in self.checks)

    @property
    def stable(self) -> bool:
        return self.causal and self.invertible

    def failing(self) -> Dict[str, float]:
        """Minimum root modulus of each polynomial that failed."""
        return {name: c.min_modulus for name, c in self.checks.items() if not c.stable}

    def summary(self) -> str:
        parts = [f"{name}: min|root|={c.min_modulus:.4f}" for name, c in self.checks.items() if c.roots.size]
        status = "stable" if self.stable else "UNSTABLE"
        return f"{self.label} {status}" + (f" ({'; '.join(parts)})" if parts else "")


def check_model(fitted, tolerance: float = DEFAULT_TOLERANCE) -> ModelStability:
    """Check the AR, seasonal AR, MA and seasonal MA polynomials of a fitted model.

    Seasonal polynomials are checked in the variable B^s; their roots in B are
    the s-th roots of those, which lie outside the unit circle exactly when
    the B^s roots do.
    """
    checks = {name: check(poly, tolerance) for name, poly in fitted.polynomials().items()}
    result = ModelStability(label=fitted.label, checks=checks)
    logger.debug("Stability %s", result.summary())
    return result


def assert_stable(fitted, tolerance: float = DEFAULT_TOLERANCE) -> ModelStability:
    """Gate a fitted model before diagnostics and forecasting.

    Raises
    ------
    NonCausalModel
        If an autoregressive polynomial has a root with |z| <= 1 + tolerance.
    NonInvertibleModel
        If a moving-average polynomial has such a root.
    """
    result = check_model(fitted, tolerance)
    if not result.causal:
        failing = {k: v for k, v in result.failing().items() if k in AR_POLYNOMIALS}
        raise NonCausalModel(
            f"AR polynomial root inside or on the unit circle (min |root| {min(failing.values()):.6f})",
            candidate=fitted.label, details={"min_modulus": failing},
        )
    if not result.invertible:
        failing = {k: v for k, v in result.failing().items() if k in MA_POLYNOMIALS}
        raise NonInvertibleModel(
            f"MA polynomial root inside or on the unit circle (min |root| {min(failing.values()):.6f})",
            candidate=fitted.label, details={"min_modulus": failing},
        )
    logger.info("%s", result.summary())
    return result
