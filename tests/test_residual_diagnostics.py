import numpy as np
import pandas as pd
import pytest

from diagnostics.residual_diagnostics import DiagnosticTest, ResidualDiagnostics, diagnose
from sarima_forecaster_src.exceptions import DiagnosticFailure


def _ar1(n, phi, rng):
    e = rng.normal(size=n + 50)
    x = np.zeros_like(e)
    for t in range(1, e.size):
        x[t] = phi * x[t - 1] + e[t]
    return pd.Series(x[50:])


def test_white_noise_rejection_rate_near_nominal():
    rng = np.random.default_rng(2024)
    diag = ResidualDiagnostics(significance_level=0.05)
    rejections = sum(
        diag.ljung_box_test(pd.Series(rng.normal(size=200)), lags=22).is_significant
        for _ in range(200)
    )
    assert rejections <= 20


def test_lags_must_exceed_fitted_parameters():
    x = pd.Series(np.random.default_rng(0).normal(size=100))
    diag = ResidualDiagnostics()
    with pytest.raises(ValueError):
        diag.ljung_box_test(x, lags=2, fitdf=2)
    with pytest.raises(ValueError):
        diagnose(x, fitted_params_count=5, lags=5)
    with pytest.raises(ValueError):
        diag.box_pierce_test(x, lags=100)


def test_degrees_of_freedom_subtract_fitted_parameters():
    x = pd.Series(np.random.default_rng(1).normal(size=150))
    result = ResidualDiagnostics().ljung_box_test(x, lags=12, fitdf=2)
    assert result.degrees_of_freedom == 10
    assert result.test_type is DiagnosticTest.LJUNG_BOX


def test_white_noise_report_passes():
    x = pd.Series(np.random.default_rng(5).normal(size=240))
    report = diagnose(x, fitted_params_count=0, lags=12, model_name="wn")
    assert set(report.results) == {"shapiro_wilk", "box_pierce", "ljung_box", "mcleod_li"}
    assert report.summary_statistics["n"] == 240
    if report.is_white_noise:
        assert report.failure() is None


def test_autocorrelated_residuals_fail_with_advisory():
    x = _ar1(300, 0.7, np.random.default_rng(3))
    report = diagnose(x, fitted_params_count=0, lags=22, model_name="(0,0,0)")
    assert not report.is_white_noise
    assert "ljung_box" in report.rejected
    assert "box_pierce" in report.rejected

    failure = report.failure()
    assert isinstance(failure, DiagnosticFailure)
    assert failure.report is report
    assert failure.candidate == "(0,0,0)"
    assert failure.stage == "diagnostics"

    frame = report.to_frame()
    assert bool(frame.loc["ljung_box", "reject"])
    assert frame.loc["ljung_box", "df"] == 22


def test_mcleod_li_detects_arch_effects():
    rng = np.random.default_rng(9)
    n = 600
    e = np.zeros(n)
    for t in range(1, n):
        sigma = np.sqrt(0.2 + 0.7 * e[t - 1] ** 2)
        e[t] = sigma * rng.normal()
    result = ResidualDiagnostics().mcleod_li_test(pd.Series(e), lags=12)
    assert result.is_significant
    assert result.degrees_of_freedom == 12


@pytest.mark.parametrize("phi", [0.0, 0.4, 0.9])
def test_report_p_values_are_probabilities(phi):
    x = _ar1(200, phi, np.random.default_rng(11))
    report = diagnose(x, fitted_params_count=1, lags=12)
    for result in report.results.values():
        assert 0.0 <= result.p_value <= 1.0, result.test_name
        assert np.isfinite(result.test_statistic)
