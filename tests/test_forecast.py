from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from sarima_forecaster_src.exceptions import DiagnosticFailure
from sarima_forecaster_src.forecasting_utils import Forecast, forecast, forecast_standard_errors, psi_weights
from sarima_forecaster_src.model_utils import ModelSpecification, fit
from sarima_forecaster_src.transform_utils import power_transform

from conftest import simulate_airline


def test_psi_weights_of_ar1():
    psi = psi_weights(np.array([1.0, -0.5]), np.array([1.0]), 5)
    assert np.allclose(psi, 0.5 ** np.arange(5))


def test_random_walk_standard_errors_grow_with_sqrt_h():
    se = forecast_standard_errors(4.0, np.array([1.0, -1.0]), np.array([1.0]), 9)
    assert np.allclose(se, 2.0 * np.sqrt(np.arange(1, 10)))


def test_airline_forecast_shapes_and_monotone_errors(airline_series):
    fitted = fit(airline_series, ModelSpecification.parse("(0,1,1)x(0,1,1)12"))
    fc = forecast(fitted, 24)

    assert fc.horizon == 24
    assert fc.index[0] == airline_series.index[-1] + pd.offsets.MonthBegin(1)
    assert fc.index.freqstr == "MS"
    assert np.all(np.diff(fc.model_se) >= -1e-12)
    assert np.all(np.diff(fc.transformed_se) >= -1e-12)
    assert np.isclose(fc.model_se[0], np.sqrt(fitted.sigma2))
    assert np.isclose(fc.transformed_se[0], fc.model_se[0])

    frame = fc.to_frame()
    assert len(frame) == 24
    assert list(frame["lead"]) == list(range(1, 25))
    orig = fc.intervals("original")
    assert (orig["lower"] <= orig["point"]).all() and (orig["point"] <= orig["upper"]).all()
    assert np.allclose(orig["point"], fc.transformed_point)
    assert fitted.params["ma.L1"] < 0 and fitted.params["ma.S.L12"] < 0


def test_random_walk_model_recovers_sigma_sqrt_h():
    rng = np.random.default_rng(12)
    idx = pd.date_range("1995-01-01", periods=240, freq="MS")
    walk = pd.Series(np.cumsum(rng.normal(0, 1.5, 240)) + 100, index=idx)
    fitted = fit(walk, ModelSpecification(order=(0, 1, 0)))
    fc = forecast(fitted, 6)
    sigma = np.sqrt(fitted.sigma2)
    assert np.allclose(fc.transformed_se, sigma * np.sqrt(np.arange(1, 7)))
    assert np.allclose(fc.model_se, sigma)
    # Zero-mean differences: the walk stays at its last value
    assert np.allclose(fc.transformed_point, walk.iloc[-1])


def test_negative_exponent_bounds_are_ordered():
    idx = pd.date_range("2020-01-01", periods=3, freq="MS")
    fc = Forecast(
        label="manual",
        index=idx,
        model_point=np.zeros(3),
        model_se=np.array([0.01, 0.02, 0.03]),
        transformed_point=np.full(3, -0.1),
        transformed_se=np.array([0.01, 0.02, 0.03]),
        lam=-0.5,
    )
    orig = fc.intervals("original")
    assert (orig["lower"] < orig["point"]).all()
    assert (orig["point"] < orig["upper"]).all()
    with pytest.raises(ValueError):
        fc.intervals("log")


def test_caveat_is_carried_in_summary(ar1_series):
    fitted = fit(ar1_series, ModelSpecification(order=(1, 0, 0)))
    fc = forecast(fitted, 3).with_caveat(DiagnosticFailure("Residuals reject white noise in: ljung_box"))
    summary = fc.summary()
    assert summary["horizon"] == 3
    assert len(summary["caveats"]) == 1
    assert "ljung_box" in summary["caveats"][0]
    with pytest.raises(ValueError):
        forecast(fitted, 0)


def test_forecasts_compare_by_identity(ar1_series):
    fitted = fit(ar1_series, ModelSpecification(order=(1, 0, 0)))
    fc = forecast(fitted, 3)
    assert fc == fc
    assert fc != replace(fc)
    assert len({fc, replace(fc)}) == 2


def test_log_scale_airline_forecast_returns_to_level():
    raw = simulate_airline(216, level=1000.0, sigma=5.0)
    fitted = fit(power_transform(raw, 0.0), ModelSpecification.parse("(0,1,1)x(0,1,1)12"))
    fc = forecast(fitted, 12, lam=0.0)

    orig = fc.intervals("original")
    assert np.isfinite(orig.to_numpy()).all()
    assert (orig["lower"] < orig["point"]).all() and (orig["point"] < orig["upper"]).all()
    assert np.allclose(orig["point"], np.exp(fc.transformed_point))
    assert abs(orig["point"].iloc[0] / raw.iloc[-1] - 1.0) < 0.1
    assert np.isclose(fc.model_se[0], np.sqrt(fitted.sigma2))
