# sarima_forecaster_src/autocorrelation_utils.py

import logging
from typing import Dict, List

import numpy as np
import pandas as pd
from statsmodels.tsa.stattools import acf as _sm_acf
from statsmodels.tsa.stattools import pacf as _sm_pacf

logger = logging.getLogger(__name__)

# Two-sided 95% normal quantile for the white-noise band.
CONFIDENCE_Z = 1.96

_COLUMNS = ["lag", "correlation", "confidence_bound", "significant"]


def _prepare(series, max_lag: int) -> np.ndarray:
    x = np.asarray(series, dtype=float)
    if x.size < 3:
        raise ValueError("Autocorrelation needs at least 3 observations")
    if not np.all(np.isfinite(x)):
        raise ValueError("Autocorrelation input contains non-finite values")
    if max_lag < 1:
        raise ValueError("max_lag must be >= 1")
    if max_lag >= x.size:
        raise ValueError(f"max_lag={max_lag} must be smaller than the series length {x.size}")
    return x


def _table(values: np.ndarray, n: int) -> pd.DataFrame:
    bound = CONFIDENCE_Z / np.sqrt(n)
    lags = np.arange(1, len(values) + 1)
    return pd.DataFrame({
        "lag": lags,
        "correlation": values,
        "confidence_bound": np.full(len(values), bound),
        "significant": np.abs(values) > bound,
    }, columns=_COLUMNS)


def acf(series, max_lag: int) -> pd.DataFrame:
    """
    Sample autocorrelation for lags 1..max_lag.

    Parameters
    ----------
    series : array-like
        Stationary (differenced) series
    max_lag : int
        Largest lag; must be below the series length

    Returns
    -------
    pd.DataFrame
        Columns ['lag', 'correlation', 'confidence_bound', 'significant'].
        The bound is the approximate 95% white-noise band 1.96/sqrt(n).
    """
    x = _prepare(series, max_lag)
    values = _sm_acf(x, nlags=max_lag, fft=True, adjusted=False)[1:]
    return _table(values, x.size)


def pacf(series, max_lag: int) -> pd.DataFrame:
    """
    Sample partial autocorrelation for lags 1..max_lag.

    Computed by the Durbin-Levinson recursion on the biased sample ACF.
    Same columns and bound as `acf`.
    """
    x = _prepare(series, max_lag)
    if max_lag >= x.size // 2:
        raise ValueError(f"PACF max_lag={max_lag} must be below half the series length ({x.size // 2})")
    values = _sm_pacf(x, nlags=max_lag, method="ldb")[1:]
    return _table(values, x.size)


def significant_lags(table: pd.DataFrame, s: int = 12) -> Dict[str, List[int]]:
    """
    Split the significant lags of an ACF/PACF table by seasonal position.

    Returns
    -------
    Dict[str, List[int]]
        'nonseasonal': significant lags 1..s-1,
        'seasonal': significant multiples of s,
        'other': remaining significant lags.
    """
    sig = [int(lag) for lag in table.loc[table["significant"], "lag"]]
    out: Dict[str, List[int]] = {"nonseasonal": [], "seasonal": [], "other": []}
    for lag in sig:
        if s and lag % s == 0:
            out["seasonal"].append(lag)
        elif lag < s or not s:
            out["nonseasonal"].append(lag)
        else:
            out["other"].append(lag)
    return out


def summarize_correlogram(series, max_lag: int, s: int = 12) -> Dict[str, object]:
    """ACF and PACF tables plus their significant-lag breakdown, logged as a decision aid."""
    acf_table = acf(series, max_lag)
    pacf_table = pacf(series, max_lag)
    acf_sig = significant_lags(acf_table, s)
    pacf_sig = significant_lags(pacf_table, s)
    logger.info("ACF significant lags: non-seasonal=%s seasonal=%s", acf_sig["nonseasonal"], acf_sig["seasonal"])
    logger.info("PACF significant lags: non-seasonal=%s seasonal=%s", pacf_sig["nonseasonal"], pacf_sig["seasonal"])
    return {"acf": acf_table, "pacf": pacf_table, "acf_significant": acf_sig, "pacf_significant": pacf_sig}
