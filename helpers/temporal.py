# -*- coding: utf-8 -*-
"""
Temporal utilities for monthly series alignment.

Functions
---------
- to_month_start_index(index): Normalise date labels to month-start timestamps.
- expected_monthly_index(index): Gap-free monthly index spanning the observed range.
- missing_months(index): Months absent from an otherwise monthly index.
- future_index(index, steps): Month-start timestamps following the last observation.
- slice_window(series, start, end): Inclusive label-based window on a monthly series.
"""

from __future__ import annotations

from typing import Optional, Union

import pandas as pd

MONTHLY_FREQ = "MS"

DateLike = Union[str, pd.Timestamp, None]


def to_month_start_index(index) -> pd.DatetimeIndex:
    """
    Convert an index of date labels to a month-start DatetimeIndex.

    - PeriodIndex is converted at period start.
    - Strings and timestamps anywhere inside a month map to that month's first day.
    """
    if isinstance(index, pd.PeriodIndex):
        return index.asfreq("M").to_timestamp(how="start")
    dt = pd.DatetimeIndex(pd.to_datetime(index))
    return dt.to_period("M").to_timestamp(how="start")


def expected_monthly_index(index: pd.DatetimeIndex) -> pd.DatetimeIndex:
    """Gap-free month-start index from the first to the last observed month."""
    if len(index) == 0:
        return pd.DatetimeIndex([], freq=MONTHLY_FREQ)
    idx = to_month_start_index(index)
    return pd.date_range(idx.min(), idx.max(), freq=MONTHLY_FREQ)


def missing_months(index: pd.DatetimeIndex) -> pd.DatetimeIndex:
    """Months inside the observed span that have no observation."""
    idx = to_month_start_index(index)
    return expected_monthly_index(idx).difference(idx)


def future_index(index: pd.DatetimeIndex, steps: int) -> pd.DatetimeIndex:
    """
    Month-start timestamps for the `steps` months after the last observation.

    Parameters
    ----------
    index : pd.DatetimeIndex
        Observed index (monthly).
    steps : int
        Number of future periods; must be positive.
    """
    if steps <= 0:
        raise ValueError("steps must be positive")
    if len(index) == 0:
        raise ValueError("cannot extend an empty index")
    last = to_month_start_index(index[-1:])[0]
    return pd.date_range(last + pd.offsets.MonthBegin(1), periods=steps, freq=MONTHLY_FREQ)


def slice_window(series: pd.Series, start: DateLike = None, end: DateLike = None) -> pd.Series:
    """
    Inclusive window of a monthly series between `start` and `end` labels.

    Bounds are normalised to month starts so '1995-06-30' and '1995-06' select
    the same month. Missing bounds leave that side open.
    """
    lo: Optional[pd.Timestamp] = None
    hi: Optional[pd.Timestamp] = None
    if start is not None:
        lo = to_month_start_index([start])[0]
    if end is not None:
        hi = to_month_start_index([end])[0]
    return series.loc[lo:hi]
