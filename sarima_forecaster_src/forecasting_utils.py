# sarima_forecaster_src/forecasting_utils.py

import numpy as np
import pandas as pd
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple
import logging

from statsmodels.tsa.arima_process import arma2ma

from helpers.temporal import future_index
from .exceptions import ForecasterError
from .model_utils import FittedModel
from .transform_utils import integrate_forecast, inverse_power_transform

logger = logging.getLogger(__name__)

SCALES = ("model", "transformed", "original")


def psi_weights(ar: np.ndarray, ma: np.ndarray, horizon: int) -> np.ndarray:
    """
    First `horizon` coefficients of the MA(infinity) representation.

    Parameters
    ----------
    ar, ma : np.ndarray
        Lag polynomials in ascending powers including the leading 1
        (AR as 1 - phi_1 B - ..., MA as 1 + theta_1 B + ...).
    horizon : int
        Number of weights (psi_0 = 1 first).
    """
    return np.asarray(arma2ma(ar, ma, lags=horizon), dtype=float)


def forecast_standard_errors(sigma2: float, ar: np.ndarray, ma: np.ndarray, horizon: int) -> np.ndarray:
    """
    se_h = sqrt(sigma2 * sum_{j<h} psi_j^2), non-decreasing in h.
    """
    psi = psi_weights(ar, ma, horizon)
    return np.sqrt(sigma2 * np.cumsum(psi ** 2))


@dataclass(frozen=True, eq=False)
class Forecast:
    """
    Multi-step forecast of one fitted model.

    Point forecasts and standard errors are stored on the model (differenced)
    scale and on the transformed (power) scale; the original scale and all
    bounds are derived from them. Bounds are point +/- width * se, roughly 95%
    for width 2 under Gaussian innovations. Accuracy degrades with the lead
    time and nothing is guaranteed across structural changes in the series.
    """

    label: str
    index: pd.DatetimeIndex
    model_point: np.ndarray = field(repr=False)
    model_se: np.ndarray = field(repr=False)
    transformed_point: np.ndarray = field(repr=False)
    transformed_se: np.ndarray = field(repr=False)
    lam: Optional[float] = None
    width: float = 2.0
    caveats: Tuple[ForecasterError, ...] = ()

    @property
    def horizon(self) -> int:
        return len(self.index)

    @property
    def lead(self) -> np.ndarray:
        return np.arange(1, self.horizon + 1)

    def _back(self, values: np.ndarray) -> np.ndarray:
        if self.lam is None:
            return np.asarray(values, dtype=float)
        return np.asarray(inverse_power_transform(np.asarray(values, dtype=float), self.lam), dtype=float)

    @property
    def point(self) -> pd.Series:
        """Point forecast on the original scale."""
        return pd.Series(self._back(self.transformed_point), index=self.index, name="point")

    def intervals(self, scale: str = "original") -> pd.DataFrame:
        """
        Point forecast and bounds on one scale.

        Original-scale bounds are the back-transformed power-scale bounds,
        ordered so lower <= upper for negative exponents as well.
        """
        if scale not in SCALES:
            raise ValueError(f"scale must be one of {SCALES}")
        if scale == "model":
            point, se = self.model_point, self.model_se
        else:
            point, se = self.transformed_point, self.transformed_se
        lower = point - self.width * se
        upper = point + self.width * se
        frame = pd.DataFrame({"point": point, "se": se, "lower": lower, "upper": upper}, index=self.index)
        if scale == "original":
            a, b = self._back(lower), self._back(upper)
            frame = pd.DataFrame({
                "point": self._back(point),
                "lower": np.minimum(a, b),
                "upper": np.maximum(a, b),
            }, index=self.index)
        frame.index.name = "date"
        return frame

    def to_frame(self) -> pd.DataFrame:
        """All three scales side by side, one row per lead."""
        parts = []
        for scale in SCALES:
            part = self.intervals(scale)
            part.columns = [f"{scale}_{c}" for c in part.columns]
            parts.append(part)
        frame = pd.concat(parts, axis=1)
        frame.insert(0, "lead", self.lead)
        return frame

    def with_caveat(self, caveat: ForecasterError) -> "Forecast":
        return replace(self, caveats=self.caveats + (caveat,))

    def summary(self) -> Dict[str, object]:
        orig = self.intervals("original")
        return {
            "model": self.label,
            "horizon": self.horizon,
            "lambda": self.lam,
            "first": float(orig["point"].iloc[0]),
            "last": float(orig["point"].iloc[-1]),
            "caveats": [str(c) for c in self.caveats],
        }


def forecast(fitted_model: FittedModel, horizon: int, lam: Optional[float] = None, width: float = 2.0) -> Forecast:
    """
    Forecast `horizon` months ahead from the end of the fitted series.

    Parameters
    ----------
    fitted_model : FittedModel
        Stable fitted model
    horizon : int
        Number of months; must be positive
    lam : Optional[float]
        Power-transform exponent used on the data; None skips back-transformation
    width : float, default 2.0
        Interval half-width in standard errors

    Returns
    -------
    Forecast

    Notes
    -----
    - Point forecasts on the differenced scale come from the state-space model.
    - Standard errors use the psi weights of the ARMA polynomials on the
      differenced scale and of phi(B)Phi(B^s)(1-B)^d(1-B^s)^D on the power scale.
    - Power-scale points are obtained by cumulative summation matching the
      differencing lags.
    """
    if horizon <= 0:
        raise ValueError("horizon must be positive")
    if width <= 0:
        raise ValueError("width must be positive")

    predicted = fitted_model.results.get_forecast(steps=horizon).predicted_mean
    model_point = np.asarray(predicted, dtype=float) * fitted_model.scale
    ar, ma = fitted_model.lag_polynomials()
    model_se = forecast_standard_errors(fitted_model.sigma2, ar, ma, horizon)

    transformed_point = integrate_forecast(fitted_model.differenced, model_point)
    ar_int, _ = fitted_model.lag_polynomials(integrated=True)
    transformed_se = forecast_standard_errors(fitted_model.sigma2, ar_int, ma, horizon)

    index = future_index(fitted_model.differenced.original.index, horizon)
    fc = Forecast(
        label=fitted_model.label,
        index=index,
        model_point=model_point,
        model_se=model_se,
        transformed_point=np.asarray(transformed_point, dtype=float),
        transformed_se=transformed_se,
        lam=lam,
        width=width,
    )
    logger.info("Forecast %s: %d months from %s to %s", fitted_model.label, horizon,
                index[0].strftime("%Y-%m"), index[-1].strftime("%Y-%m"))
    return fc
