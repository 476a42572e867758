# sarima_forecaster_src/data_utils.py

import pandas as pd
from pathlib import Path
from typing import Optional, Tuple
import logging

from helpers.temporal import slice_window, to_month_start_index
from .exceptions import DataError

logger = logging.getLogger(__name__)


def load_monthly_series_csv(series_path: Path,
                            date_column: Optional[str] = None,
                            value_column: Optional[str] = None) -> pd.Series:
    """
    Load a monthly series from a two-column CSV (time label, value).

    Parameters
    ----------
    series_path : Path
        CSV file path.
    date_column : Optional[str]
        Column holding the time labels. Defaults to the first column.
    value_column : Optional[str]
        Column holding the observations. Defaults to the second column.

    Returns
    -------
    pd.Series
        Float series indexed by month-start timestamps, sorted chronologically.

    Raises
    ------
    DataError
        If the file doesn't exist, lacks the requested columns, or contains no valid rows.

    Notes
    -----
    Labels such as '1992-01', '1992-01-31' or 'Jan 1992' all map to 1992-01-01.
    Rows whose label or value cannot be parsed are dropped with a warning;
    regularity of the remaining index is checked by the validation pipeline.
    """
    series_path = Path(series_path)
    if not series_path.exists():
        raise DataError(f"Series CSV not found: {series_path}", stage="load")

    logger.info("Loading monthly series from: %s", series_path)
    df = pd.read_csv(series_path)
    if df.shape[1] < 2:
        raise DataError("Series CSV must contain a time label column and a value column.", stage="load")

    date_col = date_column or df.columns[0]
    value_col = value_column or df.columns[1]
    for col in (date_col, value_col):
        if col not in df.columns:
            raise DataError(f"Series CSV has no column '{col}' (found {list(df.columns)})", stage="load")

    parsed = pd.DataFrame({
        "date": pd.to_datetime(df[date_col], errors="coerce"),
        "value": pd.to_numeric(df[value_col], errors="coerce"),
    })
    dropped = int(parsed.isna().any(axis=1).sum())
    if dropped:
        logger.warning("Dropped %d unparseable rows from %s", dropped, series_path.name)
    parsed = parsed.dropna().sort_values("date").reset_index(drop=True)

    if parsed.empty:
        raise DataError("No valid rows found in series CSV after parsing.", stage="load")

    index = to_month_start_index(parsed["date"])
    return pd.Series(parsed["value"].to_numpy(dtype=float), index=index, name=str(value_col))


def split_train_test(series: pd.Series,
                     train_start: Optional[str] = None,
                     train_end: Optional[str] = None,
                     test_start: Optional[str] = None,
                     test_end: Optional[str] = None) -> Tuple[pd.Series, pd.Series]:
    """
    Split a monthly series into training and test windows.

    Bounds are inclusive labels. When `test_start` is omitted the test window
    begins the month after `train_end`; an empty test window is allowed.

    Returns
    -------
    Tuple[pd.Series, pd.Series]
        (train, test)

    Raises
    ------
    DataError
        If the training window is empty or the windows overlap.
    """
    train = slice_window(series, train_start, train_end)
    if train.empty:
        raise DataError(f"Training window {train_start}..{train_end} selects no observations",
                        stage="load")

    if test_start is None:
        test = series.loc[series.index > train.index[-1]]
        if test_end is not None:
            test = slice_window(test, None, test_end)
    else:
        test = slice_window(series, test_start, test_end)

    if len(test) and test.index[0] <= train.index[-1]:
        raise DataError("Test window overlaps the training window", stage="load")

    logger.info("Training window %s..%s (%d obs), test window %d obs",
                train.index[0].strftime("%Y-%m"), train.index[-1].strftime("%Y-%m"),
                len(train), len(test))
    return train, test


def infer_series_name(series_path: Path) -> str:
    """
    Series label from a CSV filename.

    Examples
    --------
    >>> infer_series_name(Path("data/retail_sales.csv"))
    'retail_sales'
    """
    return Path(series_path).stem or "series"
