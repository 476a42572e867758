import numpy as np
import pandas as pd
import pytest

from sarima_forecaster_src.autocorrelation_utils import acf, pacf, significant_lags, summarize_correlogram

from conftest import simulate_ar1


def test_acf_of_ar1_decays_geometrically():
    x = simulate_ar1(2000, 0.6, seed=5)
    table = acf(x, 5)
    assert list(table.columns) == ["lag", "correlation", "confidence_bound", "significant"]
    assert table["lag"].tolist() == [1, 2, 3, 4, 5]
    assert abs(table.loc[0, "correlation"] - 0.6) < 0.05
    assert abs(table.loc[1, "correlation"] - 0.36) < 0.06
    assert np.isclose(table.loc[0, "confidence_bound"], 1.96 / np.sqrt(2000))


def test_pacf_of_ar1_cuts_off_after_lag_one():
    x = simulate_ar1(2000, 0.6, seed=5)
    table = pacf(x, 10)
    assert table.loc[0, "significant"]
    assert abs(table.loc[0, "correlation"] - 0.6) < 0.05
    assert (table.loc[1:, "correlation"].abs() < 0.1).all()


def test_lag_limits():
    x = np.random.default_rng(0).normal(size=40)
    with pytest.raises(ValueError):
        acf(x, 40)
    with pytest.raises(ValueError):
        pacf(x, 20)
    with pytest.raises(ValueError):
        acf(x, 0)


def test_significant_lags_split_by_season():
    table = pd.DataFrame({
        "lag": [1, 2, 12, 13, 24],
        "correlation": [0.5, 0.0, -0.4, 0.3, 0.2],
        "confidence_bound": [0.15] * 5,
        "significant": [True, False, True, True, True],
    })
    assert significant_lags(table, 12) == {"nonseasonal": [1], "seasonal": [12, 24], "other": [13]}


def test_summarize_correlogram_keys():
    x = simulate_ar1(200, 0.6)
    out = summarize_correlogram(x, 24, 12)
    assert set(out) == {"acf", "pacf", "acf_significant", "pacf_significant"}
    assert 1 in out["acf_significant"]["nonseasonal"]
