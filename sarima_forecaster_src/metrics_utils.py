# sarima_forecaster_src/metrics_utils.py

import numpy as np
import pandas as pd
from typing import Union, List, Dict, Tuple
import logging

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]


def aligned_arrays(y_true: ArrayLike, y_hat: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert a pair of inputs to 1D float arrays, keeping positions where both are finite.

    Parameters
    ----------
    y_true, y_hat : Union[List[float], np.ndarray, pd.Series]
        Actual and predicted values; truncated to the shorter length

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
    """
    yt = np.asarray(y_true, dtype=float).ravel()
    yh = np.asarray(y_hat, dtype=float).ravel()
    n = min(len(yt), len(yh))
    yt, yh = yt[:n], yh[:n]
    mask = np.isfinite(yt) & np.isfinite(yh)
    return yt[mask], yh[mask]


def mean_error(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean of actual - predicted; positive values mean the forecast is too low."""
    yt, yh = aligned_arrays(y_true, y_hat)
    return float(np.mean(yt - yh)) if yt.size else float("nan")


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Error.

    Returns
    -------
    float
        MAE value, or NaN if no valid data
    """
    yt, yh = aligned_arrays(y_true, y_hat)
    return float(np.mean(np.abs(yt - yh))) if yt.size else float("nan")


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Root Mean Square Error.

    Returns
    -------
    float
        RMSE value, or NaN if no valid data
    """
    yt, yh = aligned_arrays(y_true, y_hat)
    return float(np.sqrt(np.mean((yt - yh) ** 2))) if yt.size else float("nan")


def mape(y_true: ArrayLike, y_hat: ArrayLike, eps: float = 1e-8) -> float:
    """
    Calculate Mean Absolute Percentage Error with epsilon stabilization.

    Returns
    -------
    float
        MAPE as percentage (0-100+), or NaN if no valid data
    """
    yt, yh = aligned_arrays(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    denom = np.maximum(np.abs(yt), eps)
    return float(np.mean(np.abs(yh - yt) / denom) * 100.0)


def smape(y_true: ArrayLike, y_hat: ArrayLike, eps: float = 1e-12) -> float:
    """
    Calculate Symmetric Mean Absolute Percentage Error.

    Returns
    -------
    float
        sMAPE as percentage (0-200), or NaN if no valid data
    """
    yt, yh = aligned_arrays(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    denom = np.maximum(np.abs(yt) + np.abs(yh), eps)
    return float(np.mean(2.0 * np.abs(yh - yt) / denom) * 100.0)


def interval_coverage(y_true: ArrayLike, lower: ArrayLike, upper: ArrayLike) -> float:
    """Share of actual values inside [lower, upper]."""
    yt = np.asarray(y_true, dtype=float).ravel()
    lo = np.asarray(lower, dtype=float).ravel()
    hi = np.asarray(upper, dtype=float).ravel()
    n = min(len(yt), len(lo), len(hi))
    yt, lo, hi = yt[:n], lo[:n], hi[:n]
    mask = np.isfinite(yt) & ~np.isnan(lo) & ~np.isnan(hi)
    if not mask.any():
        return float("nan")
    return float(np.mean((yt[mask] >= lo[mask]) & (yt[mask] <= hi[mask])))


def evaluate_holdout(fc, test: pd.Series) -> Dict[str, float]:
    """
    Accuracy of an original-scale forecast against a held-out window.

    Forecast and test are matched on their monthly timestamps; leads beyond the
    test window are ignored.

    Parameters
    ----------
    fc : Forecast
        Forecast whose index continues the training series
    test : pd.Series
        Observed values for (part of) the forecast period

    Returns
    -------
    Dict[str, float]
        ME, MAE, RMSE, MAPE, sMAPE, interval coverage and the number of matched months
    """
    bounds = fc.intervals("original")
    common = bounds.index.intersection(test.index)
    if len(common) == 0:
        logger.warning("No overlap between forecast %s and the test window", fc.label)
        return {"n": 0, "ME": np.nan, "MAE": np.nan, "RMSE": np.nan,
                "MAPE": np.nan, "sMAPE": np.nan, "coverage": np.nan}

    actual = test.loc[common].to_numpy(dtype=float)
    b = bounds.loc[common]
    metrics = {
        "n": int(len(common)),
        "ME": mean_error(actual, b["point"]),
        "MAE": mae(actual, b["point"]),
        "RMSE": rmse(actual, b["point"]),
        "MAPE": mape(actual, b["point"]),
        "sMAPE": smape(actual, b["point"]),
        "coverage": interval_coverage(actual, b["lower"], b["upper"]),
    }
    logger.info("Holdout %s (%d months): MAE=%.4g RMSE=%.4g MAPE=%.2f%% coverage=%.2f",
                fc.label, metrics["n"], metrics["MAE"], metrics["RMSE"], metrics["MAPE"], metrics["coverage"])
    return metrics
