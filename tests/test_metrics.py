import numpy as np
import pandas as pd
import pytest

from sarima_forecaster_src.forecasting_utils import Forecast
from sarima_forecaster_src.metrics_utils import (
    evaluate_holdout,
    interval_coverage,
    mae,
    mape,
    mean_error,
    rmse,
    smape,
)


def test_point_metrics():
    y = [100.0, 200.0, 300.0]
    yhat = [110.0, 190.0, 300.0]
    assert mean_error(y, yhat) == pytest.approx(0.0)
    assert mae(y, yhat) == pytest.approx(20.0 / 3)
    assert rmse(y, yhat) == pytest.approx(np.sqrt(200.0 / 3))
    assert mape(y, yhat) == pytest.approx((10.0 + 5.0) / 3)
    assert smape([1.0], [1.0]) == 0.0


def test_metrics_skip_non_finite_pairs():
    assert mae([1.0, np.nan, 3.0], [2.0, 5.0, 3.0]) == pytest.approx(0.5)
    assert np.isnan(rmse([np.nan], [1.0]))


def test_interval_coverage():
    assert interval_coverage([1.0, 5.0, 3.0, 10.0], [0.0] * 4, [4.0] * 4) == pytest.approx(0.5)


def test_evaluate_holdout_matches_on_dates():
    idx = pd.date_range("2021-01-01", periods=4, freq="MS")
    fc = Forecast(
        label="manual",
        index=idx,
        model_point=np.zeros(4),
        model_se=np.ones(4),
        transformed_point=np.array([10.0, 11.0, 12.0, 13.0]),
        transformed_se=np.full(4, 0.5),
        lam=None,
    )
    test = pd.Series([10.5, 12.5, 99.0], index=pd.date_range("2021-01-01", periods=3, freq="MS"))
    metrics = evaluate_holdout(fc, test)
    assert metrics["n"] == 3
    assert metrics["MAE"] == pytest.approx((0.5 + 1.5 + 87.0) / 3)
    assert metrics["coverage"] == pytest.approx(1 / 3)

    later = pd.Series([1.0], index=pd.date_range("2030-01-01", periods=1, freq="MS"))
    assert evaluate_holdout(fc, later)["n"] == 0
