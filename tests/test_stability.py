import types

import numpy as np
import pytest

from diagnostics.stability import assert_stable, check, check_model, polynomial_roots
from sarima_forecaster_src.exceptions import NonCausalModel, NonInvertibleModel, StabilityError


def _fake_fitted(ar=(1.0,), ma=(1.0,), seasonal_ar=(1.0,), seasonal_ma=(1.0,), label="fake"):
    polys = {
        "ar": np.array(ar, dtype=float),
        "seasonal_ar": np.array(seasonal_ar, dtype=float),
        "ma": np.array(ma, dtype=float),
        "seasonal_ma": np.array(seasonal_ma, dtype=float),
    }
    return types.SimpleNamespace(polynomials=lambda: polys, label=label)


def test_stable_ar1_root_at_two():
    result = check([1.0, -0.5])
    assert result.stable
    assert np.allclose(result.roots, [2.0])
    assert np.isclose(result.min_modulus, 2.0)


def test_explosive_and_unit_roots_fail():
    assert not check([1.0, -1.5]).stable
    assert not check([1.0, -1.0]).stable
    assert check([1.0, -1.0], tolerance=-0.01).stable


def test_trailing_structural_zeros_are_ignored():
    assert np.allclose(polynomial_roots([1.0, -0.5, 0.0, 0.0]), [2.0])
    assert polynomial_roots([1.0]).size == 0
    assert check([1.0, 0.0]).stable


def test_check_model_reports_each_polynomial():
    fitted = _fake_fitted(ar=(1.0, -0.5), ma=(1.0, 0.4), seasonal_ma=(1.0, -1.2))
    result = check_model(fitted)
    assert result.causal
    assert not result.invertible
    assert set(result.failing()) == {"seasonal_ma"}
    assert "UNSTABLE" in result.summary()


def test_assert_stable_raises_by_polynomial_kind():
    with pytest.raises(NonCausalModel) as excinfo:
        assert_stable(_fake_fitted(ar=(1.0, -1.5), label="(1,0,0)"))
    assert excinfo.value.candidate == "(1,0,0)"
    assert excinfo.value.stage == "stability"

    with pytest.raises(NonInvertibleModel):
        assert_stable(_fake_fitted(ma=(1.0, 2.0)))

    with pytest.raises(StabilityError):
        assert_stable(_fake_fitted(seasonal_ar=(1.0, -1.0)))

    assert assert_stable(_fake_fitted(ar=(1.0, -0.3), ma=(1.0, 0.5))).stable
