import dataclasses
import types

import numpy as np
import pandas as pd
import pytest

import sarima_forecaster_src.model_utils as mu
from sarima_forecaster_src.exceptions import EstimationError, NonCausalModel
from sarima_forecaster_src.model_utils import (
    CandidateResult,
    ModelSpecification,
    candidate_table,
    fit,
    fit_candidates,
    information_criteria,
    prune_coefficients,
    select_best,
)
from sarima_forecaster_src.transform_utils import power_transform

from conftest import simulate_airline


def test_parse_spec_string():
    spec = ModelSpecification.parse("(1,2,1)x(0,0,1)12")
    assert spec.order == (1, 2, 1)
    assert spec.seasonal_order == (0, 0, 1, 12)
    assert spec.coefficient_names == ["ar.L1", "ma.L1", "ma.S.L12"]
    assert spec.differencing_lags == (1, 1)
    assert spec.label == "(1,2,1)x(0,0,1)12"

    plain = ModelSpecification.parse("(2,1,0)")
    assert plain.seasonal_order == (0, 0, 0, 0)
    assert plain.label == "(2,1,0)"


def test_spec_from_config_mapping_and_fixed_label():
    spec = ModelSpecification.from_config(
        {"order": [2, 1, 0], "seasonal_order": [1, 1, 0, 12], "fixed": ["ar.L1"]})
    assert spec.fixed == frozenset({"ar.L1"})
    assert spec.free_coefficient_names == ["ar.L2", "ar.S.L12"]
    assert spec.label.endswith("[ar.L1=0]")
    assert spec.differencing_lags == (1, 12)


def test_spec_rejects_bad_input():
    with pytest.raises(ValueError):
        ModelSpecification.parse("ARIMA 1 2 1")
    with pytest.raises(ValueError):
        ModelSpecification(order=(1, 0, 0), fixed=frozenset({"ma.L1"}))
    with pytest.raises(ValueError):
        ModelSpecification(order=(1, 0, 0), seasonal_order=(1, 0, 0, 0))


def test_information_criteria():
    aic, aicc, bic = information_criteria(-100.0, 3, 50)
    assert aic == pytest.approx(206.0)
    assert aicc == pytest.approx(206.0 + 2 * 3 * 4 / 46)
    assert bic == pytest.approx(200.0 + 3 * np.log(50))
    assert information_criteria(-1.0, 5, 6)[1] == float("inf")


def test_fit_ar1_recovers_coefficient(ar1_series):
    fitted = fit(ar1_series, ModelSpecification(order=(1, 0, 0)))
    assert abs(fitted.params["ar.L1"] - 0.6) < 0.1
    assert fitted.k == 2
    assert fitted.n == len(ar1_series)
    assert fitted.aicc > fitted.aic
    assert fitted.t_ratios["ar.L1"] > 2.0
    assert fitted.polynomials()["ar"][0] == 1.0
    assert np.isclose(fitted.polynomials()["ar"][1], -fitted.params["ar.L1"])


def test_fit_with_fixed_mask_holds_zero(ar1_series):
    fitted = fit(ar1_series, ModelSpecification(order=(2, 0, 0)), fixed_mask=["ar.L1"])
    assert fitted.params["ar.L1"] == 0.0
    assert np.isnan(fitted.std_errors["ar.L1"])
    assert fitted.k == 2
    assert "ar.L1" in fitted.fixed
    # Structural zero stays in the polynomial
    assert list(fitted.polynomials()["ar"][:2]) == [1.0, 0.0]


def test_pruning_never_increases_aicc(ar1_series):
    result = prune_coefficients(ar1_series, ModelSpecification(order=(3, 0, 0)), threshold=2.0)
    path = result.aicc_path
    assert all(b <= a for a, b in zip(path, path[1:]))
    assert result.history[0].fixed == frozenset()
    assert result.reason in {"all_significant", "aicc_increase", "refit_failed",
                             "no_free_coefficients", "max_rounds"}
    assert "ar.L1" not in result.fixed
    for name in result.fixed:
        assert result.final.params[name] == 0.0


def test_pruning_respects_max_rounds(ar1_series):
    result = prune_coefficients(ar1_series, ModelSpecification(order=(3, 0, 0)), max_rounds=0)
    assert len(result.history) == 1
    assert result.reason == "max_rounds"


def test_non_convergence_is_estimation_error(ar1_series, monkeypatch):
    stub = types.SimpleNamespace(mle_retvals={"converged": False, "iterations": 50})
    monkeypatch.setattr(mu, "_estimate", lambda endog, spec: stub)
    with pytest.raises(EstimationError) as excinfo:
        fit(ar1_series, ModelSpecification(order=(1, 0, 0)))
    assert excinfo.value.stage == "fit"


def test_estimation_error_only_drops_its_candidate(ar1_series, monkeypatch):
    original = mu._estimate

    def flaky(endog, spec):
        if spec.order == (2, 0, 0):
            raise RuntimeError("optimizer blew up")
        return original(endog, spec)

    monkeypatch.setattr(mu, "_estimate", flaky)
    specs = [ModelSpecification(order=(1, 0, 0)), ModelSpecification(order=(2, 0, 0))]
    results = fit_candidates(ar1_series, specs, prune=False, progress=False)

    assert [r.status for r in results] == ["ok", "failed"]
    assert results[1].error.stage == "fit"
    assert results[1].error.candidate == "(2,0,0)"
    assert select_best(results) is results[0]

    table = candidate_table(results)
    assert list(table["status"]) == ["ok", "failed"]
    assert table.loc[1, "stage"] == "fit"


def test_gate_failure_marks_candidate_unstable(ar1_series):
    def reject(fitted):
        raise NonCausalModel("root inside unit circle", candidate=fitted.label)

    results = fit_candidates(ar1_series, [ModelSpecification(order=(1, 0, 0))],
                             prune=False, gate=reject, progress=False)
    assert results[0].status == "unstable"
    with pytest.raises(EstimationError):
        select_best(results)


def test_select_best_tie_breaks():
    def cand(position, aicc, k):
        fitted = types.SimpleNamespace(aicc=aicc, k=k)
        return CandidateResult(spec=ModelSpecification(order=(position, 0, 0)), position=position, fitted=fitted)

    cands = [cand(0, 10.0, 3), cand(1, 10.0, 2), cand(2, 10.0, 2), cand(3, 11.0, 1)]
    assert select_best(cands).position == 1


def test_pruning_stops_when_refit_raises_aicc(ar1_series, monkeypatch):
    spec = ModelSpecification(order=(3, 0, 0))
    initial = fit(ar1_series, spec)
    monkeypatch.setattr(mu, "fit", lambda series, spec, **kw: dataclasses.replace(initial, aicc=initial.aicc + 1.0))

    result = prune_coefficients(ar1_series, spec, threshold=1e6, initial=initial)
    assert result.reason == "aicc_increase"
    assert len(result.history) == 1
    assert result.final is initial


@pytest.mark.parametrize("lam", [0.0, -0.5])
def test_airline_fit_converges_on_transformed_scale(lam):
    series = power_transform(simulate_airline(216, level=1000.0, sigma=5.0), lam)
    fitted = fit(series, ModelSpecification.parse("(0,1,1)x(0,1,1)12"))
    assert fitted.params["ma.L1"] < 0 and fitted.params["ma.S.L12"] < 0
    assert np.isfinite(fitted.sigma2) and fitted.sigma2 > 0
    assert np.isfinite(fitted.aicc)


def test_fit_is_equivariant_to_rescaling(airline_series):
    spec = ModelSpecification.parse("(0,1,1)x(0,1,1)12")
    small = fit(airline_series, spec)
    big = fit(airline_series * 100.0, spec)

    assert np.isclose(big.params["ma.L1"], small.params["ma.L1"], atol=1e-3)
    assert np.isclose(big.params["ma.S.L12"], small.params["ma.S.L12"], atol=1e-3)
    assert big.sigma2 / small.sigma2 == pytest.approx(1e4, rel=1e-3)
    assert np.allclose(big.residuals, 100.0 * small.residuals, rtol=1e-3, atol=1e-3 * np.std(big.residuals))
    used = small.n - small.results.loglikelihood_burn
    assert big.loglik == pytest.approx(small.loglik - used * np.log(100.0), abs=1e-3)


def test_candidate_row_reports_residual_verdict(ar1_series):
    fitted = fit(ar1_series, ModelSpecification(order=(1, 0, 0)))
    checks = types.SimpleNamespace(is_white_noise=False, rejected=["ljung_box", "box_pierce"])
    row = CandidateResult(spec=fitted.spec, position=0, fitted=fitted, checks=checks).to_row()
    assert row["white_noise"] is False
    assert row["rejected_tests"] == "ljung_box,box_pierce"

    bare = CandidateResult(spec=fitted.spec, position=0, fitted=fitted).to_row()
    assert bare["white_noise"] is None and bare["rejected_tests"] == ""
