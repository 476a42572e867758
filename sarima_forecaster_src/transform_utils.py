# sarima_forecaster_src/transform_utils.py

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from statsmodels.regression.linear_model import OLS
from statsmodels.tsa.stattools import adfuller

from .exceptions import DataError, TransformError

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray, pd.Series]

# Relative tolerance used to decide that two profile values are tied.
PROFILE_TIE_RTOL = 1e-12


def default_exponent_grid(start: float = -2.0, stop: float = 2.0, step: float = 0.1) -> np.ndarray:
    """
    Build the candidate exponent grid for variance stabilisation.

    Parameters
    ----------
    start, stop : float
        Inclusive grid bounds
    step : float
        Grid spacing (must be positive)

    Returns
    -------
    np.ndarray
        Grid values rounded to 10 decimals so 0.0 is exactly representable
    """
    if step <= 0:
        raise ValueError("Exponent grid step must be positive")
    n = int(np.floor((stop - start) / step + 1e-9)) + 1
    return np.round(start + step * np.arange(n), 10)


def _require_positive(values: np.ndarray, what: str = "power transform") -> None:
    if values.size and not np.all(np.isfinite(values)):
        raise DataError(f"{what} requires finite values", stage="transform")
    if values.size and np.any(values <= 0):
        raise DataError(
            f"{what} requires strictly positive values; found {int(np.sum(values <= 0))} non-positive",
            stage="transform",
        )


def power_transform(x: ArrayLike, lam: float) -> ArrayLike:
    """
    Apply the simplified power transform Y = X**lam.

    This is the plain power map, not the affine Box-Cox form. lam = 0 is taken
    as its limiting case, log(X).

    Parameters
    ----------
    x : float, np.ndarray or pd.Series
        Strictly positive values
    lam : float
        Exponent

    Returns
    -------
    Same type as `x`

    Raises
    ------
    DataError
        If any value is non-positive or non-finite
    """
    _require_positive(np.atleast_1d(np.asarray(x, dtype=float)))
    if lam == 0:
        return np.log(x)
    return np.power(x, lam)


def inverse_power_transform(y: ArrayLike, lam: float) -> ArrayLike:
    """
    Invert the simplified power transform: X = Y**(1/lam).

    Power-scale values at or below zero have no real pre-image for a general
    exponent. They are mapped to the boundary of the original (positive) scale
    instead of producing NaN: 0 when lam > 0 and +inf when lam < 0. lam = 1 is
    the identity and lam = 0 inverts the log.

    Parameters
    ----------
    y : float, np.ndarray or pd.Series
        Values on the power-transformed scale
    lam : float
        Exponent used by the forward transform

    Returns
    -------
    Same type as `y`
    """
    if lam == 0:
        return np.exp(y)
    if lam == 1:
        return y

    arr = np.asarray(y, dtype=float)
    with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
        safe = np.where(arr > 0, arr, 1.0)
        out = np.where(arr > 0, np.power(safe, 1.0 / lam), 0.0 if lam > 0 else np.inf)

    if isinstance(y, pd.Series):
        return pd.Series(out, index=y.index, name=y.name)
    if np.ndim(y) == 0:
        return float(out)
    return out


def power_likelihood_profile(series: Union[pd.Series, np.ndarray],
                             candidate_exponents: Optional[Iterable[float]] = None) -> pd.DataFrame:
    """
    Profile log-likelihood of the power transform against a linear trend.

    For every candidate exponent the normalised value (x**lam - 1)/lam (log x for
    lam = 0) is regressed on an intercept and the trend index 1..n by OLS, and
    the Gaussian profile log-likelihood including the Jacobian of the
    transform is evaluated:

        loglik(lam) = -n/2 * log(RSS/n) + (lam - 1) * sum(log x)

    Parameters
    ----------
    series : pd.Series or np.ndarray
        Strictly positive observations
    candidate_exponents : iterable of float, optional
        Exponent grid; defaults to -2..2 by 0.1

    Returns
    -------
    pd.DataFrame
        Columns ['lambda', 'loglik', 'variance', 'valid'] in grid order. Rows
        whose regression overflowed or degenerated have valid=False and NaN
        log-likelihood.
    """
    x = np.asarray(series, dtype=float)
    _require_positive(x, "power likelihood profile")
    if x.size < 3:
        raise DataError("At least 3 observations are needed to profile the power transform",
                        stage="transform")

    grid = default_exponent_grid() if candidate_exponents is None else np.asarray(
        list(candidate_exponents), dtype=float)
    if grid.size == 0:
        raise TransformError("Empty exponent grid")

    n = x.size
    trend = np.column_stack([np.ones(n), np.arange(1, n + 1, dtype=float)])
    log_x = np.log(x)
    log_x_sum = float(log_x.sum())

    rows: List[Dict[str, float]] = []
    for lam in grid:
        with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
            z = log_x if lam == 0 else (np.power(x, lam) - 1.0) / lam
            if not np.all(np.isfinite(z)):
                rows.append({"lambda": float(lam), "loglik": np.nan, "variance": np.nan, "valid": False})
                continue
            rss = float(OLS(z, trend).fit().ssr)
            variance = rss / n
            loglik = -0.5 * n * np.log(variance) + (lam - 1.0) * log_x_sum
        valid = bool(np.isfinite(variance) and variance > 0 and np.isfinite(loglik))
        rows.append({
            "lambda": float(lam),
            "loglik": float(loglik) if valid else np.nan,
            "variance": float(variance) if np.isfinite(variance) else np.nan,
            "valid": valid,
        })

    return pd.DataFrame(rows, columns=["lambda", "loglik", "variance", "valid"])


@dataclass(frozen=True)
class PowerTransformProfile:
    """Selected exponent together with the profile it was chosen from."""

    lam: float
    profile: pd.DataFrame = field(repr=False, compare=False)

    @property
    def loglik(self) -> float:
        row = self.profile.loc[self.profile["lambda"] == self.lam, "loglik"]
        return float(row.iloc[0]) if len(row) else float("nan")


def select_power_exponent(series: Union[pd.Series, np.ndarray],
                          candidate_exponents: Optional[Iterable[float]] = None) -> PowerTransformProfile:
    """
    Select the variance-stabilising exponent by maximising the profile.

    Tie-break rule: among grid values whose profile log-likelihood equals the
    maximum within a relative tolerance of 1e-12, the one with the smallest
    |lambda| is chosen; if two share the same magnitude the first in grid order
    wins.

    Raises
    ------
    TransformError
        If no candidate exponent yields a finite profile value
    """
    profile = power_likelihood_profile(series, candidate_exponents)
    valid = profile[profile["valid"]]
    if valid.empty:
        raise TransformError(
            "Degenerate exponent grid: no candidate produced a finite variance",
            details={"candidates": int(len(profile))},
        )

    best = valid["loglik"].max()
    tied = valid[np.isclose(valid["loglik"], best, rtol=PROFILE_TIE_RTOL, atol=0.0)]
    magnitudes = tied["lambda"].abs()
    chosen = tied.loc[magnitudes[magnitudes == magnitudes.min()].index[0], "lambda"]
    if len(tied) > 1:
        logger.info("Profile tie across lambda=%s; chose %.4g (smallest magnitude)",
                    tied["lambda"].tolist(), chosen)

    logger.info("Selected power exponent lambda=%.4g (profile loglik=%.4f)", chosen, best)
    return PowerTransformProfile(lam=float(chosen), profile=profile)


def transform(series: pd.Series,
              candidate_exponents: Optional[Iterable[float]] = None) -> Tuple[pd.Series, float]:
    """
    Select lambda and apply the power transform.

    Returns
    -------
    Tuple[pd.Series, float]
        (transformed_series, lambda)
    """
    selection = select_power_exponent(series, candidate_exponents)
    transformed = power_transform(series.astype(float), selection.lam)
    transformed.name = series.name
    return transformed, selection.lam


@dataclass(frozen=True, eq=False)
class DifferencedSeries:
    """
    A series after repeated finite differencing.

    `lags` lists the lag of every differencing pass in the order applied and
    `levels[i]` is the input of pass i, so `levels[0]` is the undifferenced
    series. Each pass at lag L drops the first L observations; the surviving
    values keep their original timestamps.
    """

    values: pd.Series
    lags: Tuple[int, ...]
    levels: Tuple[pd.Series, ...] = field(repr=False, compare=False)

    @property
    def order(self) -> int:
        return len(self.lags)

    @property
    def dropped(self) -> int:
        """Leading observations lost to differencing."""
        return int(sum(self.lags))

    @property
    def original(self) -> pd.Series:
        return self.levels[0] if self.levels else self.values

    def __len__(self) -> int:
        return len(self.values)


def difference_steps(series: pd.Series, lags: Sequence[int]) -> DifferencedSeries:
    """
    Apply one differencing pass per entry of `lags`.

    Raises
    ------
    DataError
        If the series is too short to survive the requested passes
    """
    lags = tuple(int(lag) for lag in lags)
    if any(lag < 1 for lag in lags):
        raise ValueError("Differencing lags must be >= 1")
    if len(series) <= sum(lags):
        raise DataError(
            f"Series of length {len(series)} is too short for differencing lags {lags}",
            stage="difference",
        )

    levels: List[pd.Series] = []
    current = series.astype(float)
    for lag in lags:
        levels.append(current)
        current = current.diff(lag).iloc[lag:]
    return DifferencedSeries(values=current, lags=lags, levels=tuple(levels))


def difference(series: pd.Series, order: int = 1, lag: int = 1) -> DifferencedSeries:
    """Difference `order` times at a fixed `lag` (diff(Y, lag, order))."""
    if order < 0:
        raise ValueError("Differencing order must be non-negative")
    return difference_steps(series, [lag] * order)


def difference_for_spec(series: pd.Series, d: int, D: int = 0, s: int = 0) -> DifferencedSeries:
    """Difference d times at lag 1, then D times at the seasonal lag s."""
    if D and not s:
        raise ValueError("Seasonal differencing requires a seasonal period s >= 2")
    return difference_steps(series, [1] * d + [s] * D)


def _undifference(diffs: np.ndarray, history: np.ndarray, lag: int) -> np.ndarray:
    """Invert one lag-`lag` pass given the preceding `history` of the level."""
    buf = list(np.asarray(history, dtype=float)[-lag:])
    out = np.empty(len(diffs), dtype=float)
    for i, value in enumerate(diffs):
        nxt = value + buf[-lag]
        buf.append(nxt)
        out[i] = nxt
    return out


def integrate(differenced: DifferencedSeries) -> pd.Series:
    """
    Recover the undifferenced series by cumulative summation.

    The leading observations dropped by each pass are stored on the
    DifferencedSeries, so integrate(difference(x)) reproduces x exactly up to
    floating-point error.
    """
    current = differenced.values.to_numpy(dtype=float)
    for lag, level in zip(reversed(differenced.lags), reversed(differenced.levels)):
        head = level.to_numpy(dtype=float)[:lag]
        current = np.concatenate([head, _undifference(current, head, lag)])
    original = differenced.original
    return pd.Series(current, index=original.index, name=original.name)


def integrate_forecast(differenced: DifferencedSeries,
                       future_values: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """
    Extend the undifferenced level with values forecast on the differenced scale.

    Each differencing pass is inverted in reverse order using the tail of the
    corresponding observed level, i.e. cumulative summation matching the
    original differencing orders and lags.
    """
    current = np.asarray(future_values, dtype=float)
    for lag, level in zip(reversed(differenced.lags), reversed(differenced.levels)):
        current = _undifference(current, level.to_numpy(dtype=float), lag)
    return current


def safe_adf_pval(series: pd.Series) -> float:
    """
    Safely compute ADF test p-value with error handling.

    Parameters
    ----------
    series : pd.Series
        Time series to test for stationarity

    Returns
    -------
    float
        ADF test p-value, or NaN if test cannot be performed

    Notes
    -----
    Requires at least 12 observations to perform the test reliably.
    """
    s = pd.Series(series).dropna()
    if len(s) < 12:
        return float("nan")
    try:
        return float(adfuller(s)[1])
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.debug("ADF test skipped: %s", e)
        return float("nan")


@dataclass(frozen=True, eq=False)
class StationarityResult:
    """Outcome of variance stabilisation plus differencing."""

    raw: pd.Series = field(repr=False)
    transformed: pd.Series = field(repr=False)
    differenced: DifferencedSeries = field(repr=False)
    selection: PowerTransformProfile = field(repr=False)
    variances: Dict[str, float] = field(default_factory=dict)
    adf_pvalues: Dict[str, float] = field(default_factory=dict)

    @property
    def lam(self) -> float:
        return self.selection.lam

    @property
    def variance_reduction(self) -> float:
        """Ratio of raw variance to differenced variance."""
        after = self.variances.get("differenced", float("nan"))
        return self.variances.get("raw", float("nan")) / after if after else float("inf")


def stabilize(series: pd.Series,
              candidate_exponents: Optional[Iterable[float]] = None,
              d: int = 1,
              lag: int = 1,
              D: int = 0,
              s: int = 12) -> StationarityResult:
    """
    Run the full stationarity transformation.

    The exponent is selected from the likelihood profile, the power transform
    is applied, then the series is differenced `d` times at `lag` and `D` times
    at the seasonal lag `s`. The differencing orders are configuration inputs,
    not detected.

    The empirical variance of the raw, transformed and differenced series is
    logged and kept on the result, together with ADF p-values for the raw and
    differenced series.

    Parameters
    ----------
    series : pd.Series
        Strictly positive monthly observations
    candidate_exponents : iterable of float, optional
        Exponent grid
    d : int, default=1
        Non-seasonal differencing order
    lag : int, default=1
        Lag of the non-seasonal differencing passes
    D : int, default=0
        Seasonal differencing order
    s : int, default=12
        Seasonal period

    Returns
    -------
    StationarityResult
    """
    selection = select_power_exponent(series, candidate_exponents)
    lam = selection.lam
    transformed = power_transform(series.astype(float), lam)
    transformed.name = series.name

    lags = [lag] * d + ([s] * D if D else [])
    differenced = difference_steps(transformed, lags) if lags else DifferencedSeries(
        values=transformed, lags=(), levels=())

    variances = {
        "raw": float(series.var(ddof=1)),
        "transformed": float(transformed.var(ddof=1)),
        "differenced": float(differenced.values.var(ddof=1)),
    }
    adf_pvalues = {
        "raw": safe_adf_pval(series),
        "differenced": safe_adf_pval(differenced.values),
    }
    logger.info(
        "Variance raw=%.6g transformed=%.6g differenced=%.6g (lambda=%.4g, lags=%s)",
        variances["raw"], variances["transformed"], variances["differenced"], lam, tuple(lags),
    )
    logger.info("ADF p-value raw=%.4f differenced=%.4f", adf_pvalues["raw"], adf_pvalues["differenced"])

    return StationarityResult(
        raw=series,
        transformed=transformed,
        differenced=differenced,
        selection=selection,
        variances=variances,
        adf_pvalues=adf_pvalues,
    )
