import numpy as np
import pandas as pd
import pytest

from sarima_forecaster_src.exceptions import DataError, TransformError
from sarima_forecaster_src.transform_utils import (
    default_exponent_grid,
    difference,
    difference_for_spec,
    difference_steps,
    integrate,
    integrate_forecast,
    inverse_power_transform,
    power_likelihood_profile,
    power_transform,
    select_power_exponent,
    stabilize,
    transform,
)


def _monthly(values, start="2001-01-01"):
    return pd.Series(np.asarray(values, dtype=float),
                     index=pd.date_range(start, periods=len(values), freq="MS"), name="y")


def test_default_grid_contains_exact_zero():
    grid = default_exponent_grid()
    assert len(grid) == 41
    assert grid[0] == -2.0 and grid[-1] == 2.0
    assert 0.0 in grid


def test_power_round_trip_negative_exponent():
    y = power_transform(100.0, -0.18)
    assert np.isclose(inverse_power_transform(y, -0.18), 100.0)


@pytest.mark.parametrize("lam", [-1.0, -0.5, 0.0, 0.3, 1.0, 2.0])
def test_power_round_trip_series(lam):
    s = _monthly(np.linspace(1.0, 50.0, 30))
    back = inverse_power_transform(power_transform(s, lam), lam)
    assert np.allclose(back.values, s.values)


def test_power_transform_rejects_non_positive():
    with pytest.raises(DataError):
        power_transform(np.array([1.0, 0.0, 2.0]), 0.5)


def test_inverse_maps_non_positive_to_boundary():
    out = inverse_power_transform(np.array([-1.0, 0.0, 4.0]), 0.5)
    assert list(out) == [0.0, 0.0, 16.0]
    out = inverse_power_transform(np.array([-1.0, 0.25]), -0.5)
    assert np.isinf(out[0]) and np.isclose(out[1], 16.0)


def test_profile_prefers_log_for_exponential_growth():
    t = np.arange(1, 241)
    rng = np.random.default_rng(0)
    s = _monthly(np.exp(0.01 * t + rng.normal(0, 0.02, t.size)))
    sel = select_power_exponent(s)
    assert abs(sel.lam) <= 0.3
    assert set(sel.profile.columns) == {"lambda", "loglik", "variance", "valid"}


def test_tie_break_prefers_smallest_magnitude(monkeypatch):
    import sarima_forecaster_src.transform_utils as tu

    flat = pd.DataFrame({
        "lambda": [-0.5, 0.5, 0.2, -0.2, 1.0],
        "loglik": [-10.0, -10.0, -10.0, -10.0, -12.0],
        "variance": [1.0] * 5,
        "valid": [True] * 5,
    })
    monkeypatch.setattr(tu, "power_likelihood_profile", lambda series, grid=None: flat)
    sel = tu.select_power_exponent(_monthly([1.0, 2.0, 3.0]))
    assert sel.lam == 0.2


def test_degenerate_grid_raises_transform_error():
    s = _monthly(np.linspace(1e200, 2e200, 12))
    with pytest.raises(TransformError):
        select_power_exponent(s, [5.0, 6.0])


@pytest.mark.parametrize("lags", [(1,), (1, 1), (1, 12), (12,)])
def test_difference_integrate_round_trip(lags):
    rng = np.random.default_rng(1)
    s = _monthly(np.cumsum(rng.normal(size=60)) + 50)
    diffed = difference_steps(s, lags)
    assert len(diffed) == len(s) - sum(lags)
    assert diffed.values.index[0] == s.index[sum(lags)]
    back = integrate(diffed)
    assert back.index.equals(s.index)
    assert np.allclose(back.values, s.values)


def test_difference_orders_and_short_series():
    s = _monthly(np.arange(10.0) ** 2)
    d2 = difference(s, order=2)
    assert np.allclose(d2.values.values, 2.0)
    assert d2.lags == (1, 1)
    assert difference_for_spec(_monthly(np.arange(40.0)), 1, 1, 12).lags == (1, 12)
    with pytest.raises(DataError):
        difference(s, order=1, lag=12)


def test_integrate_forecast_extends_quadratic():
    t = np.arange(20.0)
    s = _monthly(t ** 2)
    d2 = difference(s, order=2)
    future = integrate_forecast(d2, [2.0, 2.0, 2.0])
    assert np.allclose(future, [400.0, 441.0, 484.0])


def test_transform_returns_series_and_lambda():
    s = _monthly(np.linspace(10, 20, 36))
    out, lam = transform(s, [0.0, 1.0])
    assert out.index.equals(s.index)
    assert lam in (0.0, 1.0)


def test_stabilize_reduces_variance_of_quadratic_trend():
    rng = np.random.default_rng(11)
    t = np.arange(1, 481, dtype=float)
    s = _monthly(t ** 2 + rng.uniform(0, 5, t.size), start="1980-01-01")
    result = stabilize(s, d=2)
    assert result.differenced.lags == (1, 1)
    assert result.variances["raw"] >= 10 * result.variances["differenced"]
    assert result.variance_reduction >= 10
    assert set(result.adf_pvalues) == {"raw", "differenced"}
