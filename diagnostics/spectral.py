"""Frequency-domain checks for seasonality and residual whiteness.

Features:
- Raw periodogram at the Fourier frequencies
- Dominant frequencies and the share of power at seasonal harmonics
- Fisher's g test for a hidden periodicity, exact p-value
- Tapered cumulative periodogram with Kolmogorov-Smirnov bounds
"""

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from math import comb, floor
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import signal

logger = logging.getLogger(__name__)

# Kolmogorov-Smirnov coefficients for the cumulative periodogram band.
KS_COEFFICIENTS: Dict[float, float] = {0.10: 1.224, 0.05: 1.358, 0.01: 1.628}


def _as_array(series, minimum: int = 4) -> np.ndarray:
    x = np.asarray(series, dtype=float)
    x = x[np.isfinite(x)]
    if x.size < minimum:
        raise ValueError(f"Spectral analysis needs at least {minimum} finite observations, got {x.size}")
    return x


def _fourier_ordinates(x: np.ndarray, window: str = "boxcar"):
    """Periodogram at the Fourier frequencies k/n, excluding 0 and Nyquist."""
    freqs, power = signal.periodogram(x, fs=1.0, window=window, detrend="constant", scaling="spectrum")
    keep = (freqs > 0) & (freqs < 0.5)
    return freqs[keep], power[keep]


def spectrum(series, frequency: int = 12) -> pd.DataFrame:
    """
    Raw periodogram of the demeaned series.

    Parameters
    ----------
    series : array-like
        Observations (typically the transformed, differenced series)
    frequency : int, default 12
        Observations per seasonal cycle, used for the cycles-per-period axis

    Returns
    -------
    pd.DataFrame
        Columns ['frequency', 'cycles_per_period', 'period', 'power'] where
        `frequency` is in cycles per observation and `period` in observations.
        The zero frequency is excluded.
    """
    x = _as_array(series)
    freqs, power = signal.periodogram(x, fs=1.0, detrend="constant", scaling="spectrum")
    keep = freqs > 0
    freqs, power = freqs[keep], power[keep]
    return pd.DataFrame({
        "frequency": freqs,
        "cycles_per_period": freqs * frequency,
        "period": 1.0 / freqs,
        "power": power,
    })


def dominant_frequencies(spec: pd.DataFrame, top: int = 3) -> pd.DataFrame:
    """Rows of a `spectrum` table with the largest power, strongest first."""
    return spec.nlargest(top, "power").reset_index(drop=True)


@dataclass(frozen=True)
class FisherGResult:
    """Fisher's g statistic for the largest periodogram ordinate."""

    statistic: float
    p_value: float
    m: int
    frequency: float

    @property
    def period(self) -> float:
        return 1.0 / self.frequency if self.frequency else float("inf")

    def is_significant(self, significance_level: float = 0.05) -> bool:
        return self.p_value < significance_level


def fisher_g_pvalue(g: float, m: int) -> float:
    """
    Exact null probability P(G > g) for m Fourier ordinates.

        p = sum_{j=1}^{floor(1/g)} (-1)^(j-1) C(m, j) (1 - j g)^(m-1)

    Evaluated in integer arithmetic over the exact rational value of g, since
    the alternating sum cancels catastrophically in floating point.
    """
    if m < 2:
        raise ValueError("Fisher's g test needs at least 2 Fourier frequencies")
    if not 0 < g <= 1:
        raise ValueError(f"g must lie in (0, 1], got {g}")
    frac = Fraction(g)
    a, b = frac.numerator, frac.denominator
    upper = min(floor(1 / frac), m)
    total = 0
    for j in range(1, upper + 1):
        term = comb(m, j) * (b - j * a) ** (m - 1)
        total += term if j % 2 == 1 else -term
    p = Fraction(total, b ** (m - 1))
    return float(min(max(p, Fraction(0)), Fraction(1)))


def fisher_g_test(residuals) -> FisherGResult:
    """
    Fisher's g test for a hidden periodic component.

    g is the largest periodogram ordinate divided by the sum over the m Fourier
    frequencies strictly between 0 and Nyquist.
    """
    x = _as_array(residuals, minimum=5)
    freqs, power = _fourier_ordinates(x)
    total = power.sum()
    if total <= 0:
        raise ValueError("Periodogram is identically zero")
    idx = int(np.argmax(power))
    g = float(power[idx] / total)
    p = fisher_g_pvalue(g, len(power))
    logger.debug("Fisher g=%.4f (m=%d, period=%.2f) p=%.4g", g, len(power), 1.0 / freqs[idx], p)
    return FisherGResult(statistic=g, p_value=p, m=int(len(power)), frequency=float(freqs[idx]))


@dataclass(frozen=True)
class CumulativePeriodogram:
    """Normalised cumulative periodogram and its white-noise band."""

    frequency: np.ndarray = field(repr=False)
    cumulative: np.ndarray = field(repr=False)
    expected: np.ndarray = field(repr=False)
    critical_value: float
    max_deviation: float
    significance_level: float

    @property
    def lower(self) -> np.ndarray:
        return self.expected - self.critical_value

    @property
    def upper(self) -> np.ndarray:
        return self.expected + self.critical_value

    @property
    def within_bounds(self) -> bool:
        return bool(self.max_deviation <= self.critical_value)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "frequency": self.frequency,
            "cumulative": self.cumulative,
            "lower": self.lower,
            "upper": self.upper,
        })


def cumulative_periodogram(residuals, significance_level: float = 0.05, taper: float = 0.1) -> CumulativePeriodogram:
    """
    Cumulative periodogram test of residual whiteness.

    The demeaned residuals are split-cosine tapered (`taper` of the data at
    each end), the periodogram is accumulated and normalised to end at 1, and
    compared with the line f / f_max. The band half-width is
    c / (sqrt(m) + 0.12 + 0.11 / sqrt(m)).

    Parameters
    ----------
    residuals : array-like
        Model residuals
    significance_level : float
        One of 0.10, 0.05, 0.01
    taper : float
        Proportion tapered at each end, in [0, 0.5]
    """
    if significance_level not in KS_COEFFICIENTS:
        raise ValueError(f"significance_level must be one of {sorted(KS_COEFFICIENTS)}")
    if not 0 <= taper <= 0.5:
        raise ValueError("taper must lie in [0, 0.5]")
    x = _as_array(residuals, minimum=5)
    window = signal.windows.tukey(x.size, alpha=2 * taper)
    freqs, power = signal.periodogram(x, fs=1.0, window=window, detrend="constant", scaling="spectrum")
    keep = freqs > 0
    freqs, power = freqs[keep], power[keep]
    if power.sum() <= 0:
        raise ValueError("Periodogram is identically zero")

    m = len(power)
    cumulative = np.cumsum(power) / power.sum()
    expected = freqs / freqs.max()
    crit = KS_COEFFICIENTS[significance_level] / (np.sqrt(m) + 0.12 + 0.11 / np.sqrt(m))
    deviation = float(np.max(np.abs(cumulative - expected)))
    return CumulativePeriodogram(
        frequency=freqs,
        cumulative=cumulative,
        expected=expected,
        critical_value=float(crit),
        max_deviation=deviation,
        significance_level=significance_level,
    )


@dataclass(frozen=True)
class SeasonalityEvidence:
    """How much of the spectrum sits at the seasonal harmonics j/s."""

    period: int
    harmonic_periods: List[float]
    harmonic_share: float
    power_ratio: float
    dominant_period: float
    dominant_is_seasonal: bool


def seasonality_evidence(series, s: int = 12, spec: Optional[pd.DataFrame] = None) -> SeasonalityEvidence:
    """
    Share of periodogram power at the seasonal harmonics of period `s`.

    For each harmonic j/s (j = 1..floor(s/2)) the nearest Fourier frequency is
    taken. `power_ratio` compares mean power at those ordinates with the mean
    elsewhere; values well above 1 corroborate seasonal structure seen in the
    ACF.
    """
    if s < 2:
        raise ValueError("Seasonal period must be >= 2")
    spec = spectrum(series, frequency=s) if spec is None else spec
    freqs = spec["frequency"].to_numpy()
    power = spec["power"].to_numpy()

    targets = [j / s for j in range(1, s // 2 + 1)]
    picked = sorted({int(np.argmin(np.abs(freqs - t))) for t in targets})
    mask = np.zeros(len(freqs), dtype=bool)
    mask[picked] = True

    total = power.sum()
    share = float(power[mask].sum() / total) if total > 0 else float("nan")
    rest = power[~mask]
    ratio = float(power[mask].mean() / rest.mean()) if rest.size and rest.mean() > 0 else float("inf")
    top = int(np.argmax(power))
    evidence = SeasonalityEvidence(
        period=s,
        harmonic_periods=[float(1.0 / freqs[i]) for i in picked],
        harmonic_share=share,
        power_ratio=ratio,
        dominant_period=float(1.0 / freqs[top]),
        dominant_is_seasonal=bool(mask[top]),
    )
    logger.info("Seasonality evidence (s=%d): %.1f%% of power at harmonics, ratio %.2f, dominant period %.2f",
                s, 100 * share, ratio, evidence.dominant_period)
    return evidence
