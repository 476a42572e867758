# sarima_forecaster_src/model_utils.py

import logging
import re
import warnings
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.statespace.sarimax import SARIMAX

from .exceptions import EstimationError, ForecasterError, StabilityError
from .transform_utils import DifferencedSeries, difference_for_spec

logger = logging.getLogger(__name__)

_SPEC_PATTERN = re.compile(
    r"^\s*(?:S?ARIMA)?\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)"
    r"(?:\s*[xX×]\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)\s*(?:_?\[?(\d+)\]?)?)?\s*$"
)


@dataclass(frozen=True)
class ModelSpecification:
    """
    SARIMA(p,d,q)x(P,D,Q)s candidate.

    `fixed` names AR/MA coefficients held at exactly zero. They are excluded
    from optimisation but stay in the characteristic polynomials as
    structural zeros.
    """

    order: Tuple[int, int, int]
    seasonal_order: Tuple[int, int, int, int] = (0, 0, 0, 0)
    fixed: FrozenSet[str] = frozenset()
    include_mean: bool = False

    def __post_init__(self):
        order = tuple(int(v) for v in self.order)
        seasonal = tuple(int(v) for v in self.seasonal_order)
        if len(order) != 3 or len(seasonal) != 4:
            raise ValueError("order must be (p, d, q) and seasonal_order (P, D, Q, s)")
        if any(v < 0 for v in order + seasonal):
            raise ValueError(f"Negative orders are not allowed: {order}x{seasonal}")
        P, D, Q, s = seasonal
        if (P or D or Q) and s < 2:
            raise ValueError("Seasonal terms require a seasonal period s >= 2")
        object.__setattr__(self, "order", order)
        object.__setattr__(self, "seasonal_order", seasonal)
        object.__setattr__(self, "fixed", frozenset(self.fixed))
        unknown = self.fixed - set(self.coefficient_names)
        if unknown:
            raise ValueError(f"Unknown coefficients in fixed mask: {sorted(unknown)}")

    @classmethod
    def parse(cls, text: str, fixed: Iterable[str] = (), include_mean: bool = False) -> "ModelSpecification":
        """
        Parse a spec string such as '(1,2,1)x(0,0,1)12' or '(2,1,0)'.

        A seasonal block without a period defaults to s = 12.
        """
        match = _SPEC_PATTERN.match(text)
        if not match:
            raise ValueError(f"Cannot parse model specification: {text!r}")
        p, d, q, P, D, Q, s = match.groups()
        order = (int(p), int(d), int(q))
        if P is None:
            seasonal = (0, 0, 0, 0)
        else:
            seasonal = (int(P), int(D), int(Q), int(s) if s else 12)
            if seasonal[:3] == (0, 0, 0):
                seasonal = (0, 0, 0, 0)
        return cls(order=order, seasonal_order=seasonal, fixed=frozenset(fixed), include_mean=include_mean)

    @classmethod
    def from_config(cls, entry: Union[str, Dict]) -> "ModelSpecification":
        """Build from a spec string or a {order, seasonal_order, fixed, include_mean} mapping."""
        if isinstance(entry, str):
            return cls.parse(entry)
        if "spec" in entry:
            return cls.parse(entry["spec"], fixed=entry.get("fixed", ()),
                             include_mean=bool(entry.get("include_mean", False)))
        seasonal = entry.get("seasonal_order") or (0, 0, 0, 0)
        return cls(
            order=tuple(entry["order"]),
            seasonal_order=tuple(seasonal),
            fixed=frozenset(entry.get("fixed") or ()),
            include_mean=bool(entry.get("include_mean", False)),
        )

    @property
    def period(self) -> int:
        return self.seasonal_order[3]

    @property
    def coefficient_names(self) -> List[str]:
        """AR/MA coefficient names in statsmodels order."""
        p, _, q = self.order
        P, _, Q, s = self.seasonal_order
        names = [f"ar.L{i}" for i in range(1, p + 1)]
        names += [f"ma.L{i}" for i in range(1, q + 1)]
        names += [f"ar.S.L{s * i}" for i in range(1, P + 1)]
        names += [f"ma.S.L{s * i}" for i in range(1, Q + 1)]
        return names

    @property
    def free_coefficient_names(self) -> List[str]:
        return [name for name in self.coefficient_names if name not in self.fixed]

    @property
    def differencing_lags(self) -> Tuple[int, ...]:
        d = self.order[1]
        _, D, _, s = self.seasonal_order
        return tuple([1] * d + [s] * D)

    @property
    def label(self) -> str:
        p, d, q = self.order
        P, D, Q, s = self.seasonal_order
        text = f"({p},{d},{q})"
        if s:
            text += f"x({P},{D},{Q}){s}"
        if self.include_mean:
            text += "+mean"
        if self.fixed:
            text += "[" + ",".join(n for n in self.coefficient_names if n in self.fixed) + "=0]"
        return text

    def with_fixed(self, names: Iterable[str]) -> "ModelSpecification":
        return replace(self, fixed=self.fixed | frozenset(names))


def _seasonal_to_lag_polynomial(poly: np.ndarray, s: int) -> np.ndarray:
    """Expand a polynomial in B^s to one in B."""
    if len(poly) <= 1:
        return np.asarray(poly, dtype=float)
    out = np.zeros((len(poly) - 1) * s + 1)
    out[::s] = poly
    return out


@dataclass(frozen=True, eq=False)
class FittedModel:
    """
    Immutable result of one maximum-likelihood fit.

    Coefficients held fixed are reported as 0 with NaN standard errors.
    `results` is the statsmodels fit on the differenced series divided by
    `scale`; everything else is reported on the unscaled differenced scale.
    `k` counts free AR/MA coefficients, the mean (if any) and sigma2; `n` is the
    length of the differenced series the model was estimated on.
    """

    spec: ModelSpecification
    params: pd.Series
    std_errors: pd.Series
    sigma2: float
    loglik: float
    aic: float
    aicc: float
    bic: float
    k: int
    n: int
    residuals: pd.Series = field(repr=False, compare=False)
    differenced: DifferencedSeries = field(repr=False, compare=False)
    results: object = field(default=None, repr=False, compare=False)
    scale: float = 1.0

    @property
    def label(self) -> str:
        return self.spec.label

    @property
    def fixed(self) -> FrozenSet[str]:
        return self.spec.fixed

    @property
    def coefficients(self) -> pd.Series:
        return self.params.reindex(self.spec.coefficient_names)

    @property
    def free_coefficients(self) -> List[str]:
        return self.spec.free_coefficient_names

    @property
    def t_ratios(self) -> pd.Series:
        """estimate / standard error for AR/MA coefficients (NaN when fixed)."""
        names = self.spec.coefficient_names
        return self.params.reindex(names) / self.std_errors.reindex(names)

    def _coef(self, prefix: str, count: int, step: int = 1) -> np.ndarray:
        return np.array([self.params.get(f"{prefix}{step * i}", 0.0) for i in range(1, count + 1)], dtype=float)

    def polynomials(self) -> Dict[str, np.ndarray]:
        """
        Characteristic polynomials in ascending powers.

        AR polynomials are 1 - phi_1 z - ..., MA polynomials 1 + theta_1 z + ....
        The seasonal ones are in the variable B^s.
        """
        p, _, q = self.spec.order
        P, _, Q, s = self.spec.seasonal_order
        return {
            "ar": np.r_[1.0, -self._coef("ar.L", p)],
            "seasonal_ar": np.r_[1.0, -self._coef("ar.S.L", P, s)],
            "ma": np.r_[1.0, self._coef("ma.L", q)],
            "seasonal_ma": np.r_[1.0, self._coef("ma.S.L", Q, s)],
        }

    def lag_polynomials(self, integrated: bool = False) -> Tuple[np.ndarray, np.ndarray]:
        """
        Full AR and MA lag polynomials in B.

        With `integrated=True` the AR side also carries (1-B)^d (1-B^s)^D.
        """
        polys = self.polynomials()
        s = self.spec.period
        ar = np.polynomial.polynomial.polymul(polys["ar"], _seasonal_to_lag_polynomial(polys["seasonal_ar"], s))
        ma = np.polynomial.polynomial.polymul(polys["ma"], _seasonal_to_lag_polynomial(polys["seasonal_ma"], s))
        if integrated:
            for lag in self.spec.differencing_lags:
                diff = np.zeros(lag + 1)
                diff[0], diff[lag] = 1.0, -1.0
                ar = np.polynomial.polynomial.polymul(ar, diff)
        return np.asarray(ar, dtype=float), np.asarray(ma, dtype=float)

    def coefficient_table(self) -> pd.DataFrame:
        names = self.spec.coefficient_names + [n for n in self.params.index if n not in self.spec.coefficient_names]
        return pd.DataFrame({
            "estimate": self.params.reindex(names),
            "std_error": self.std_errors.reindex(names),
            "t_ratio": self.params.reindex(names) / self.std_errors.reindex(names),
            "fixed": [n in self.fixed for n in names],
        }, index=pd.Index(names, name="coefficient"))


def information_criteria(loglik: float, k: int, n: int) -> Tuple[float, float, float]:
    """
    (AIC, AICc, BIC) for `k` estimated parameters and `n` observations.

    AICc is +inf when n - k - 1 <= 0.
    """
    aic = -2.0 * loglik + 2.0 * k
    denom = n - k - 1
    aicc = aic + 2.0 * k * (k + 1) / denom if denom > 0 else float("inf")
    bic = -2.0 * loglik + k * np.log(n)
    return float(aic), float(aicc), float(bic)


def _endog_scale(endog: np.ndarray) -> float:
    """Sample standard deviation used to bring the differenced data to unit scale."""
    scale = float(np.std(endog, ddof=1)) if endog.size > 1 else 1.0
    return scale if np.isfinite(scale) and scale > 0 else 1.0


def _param_factor(name: str, scale: float) -> float:
    if name == "sigma2":
        return scale ** 2
    if name == "intercept":
        return scale
    return 1.0


def _estimate(endog: np.ndarray, spec: ModelSpecification):
    """Run the statsmodels optimiser on the already differenced data."""
    p, _, q = spec.order
    P, _, Q, s = spec.seasonal_order
    seasonal = (P, 0, Q, s) if (P or Q) else (0, 0, 0, 0)
    model = SARIMAX(
        endog,
        order=(p, 0, q),
        seasonal_order=seasonal,
        trend="c" if spec.include_mean else "n",
        enforce_stationarity=False,
        enforce_invertibility=False,
    )
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        if spec.fixed:
            return model.fit_constrained({name: 0.0 for name in spec.fixed}, disp=False)
        return model.fit(disp=False)


def fit(series: pd.Series, spec: ModelSpecification, fixed_mask: Optional[Iterable[str]] = None) -> FittedModel:
    """
    Fit a SARIMA candidate to a power-scale series.

    The series is differenced d times at lag 1 and D times at lag s, then the
    ARMA/SARMA part is estimated by exact Gaussian maximum likelihood through
    the statsmodels state-space Kalman filter. Stationarity and invertibility
    are not enforced during estimation; the stability checker judges them
    afterwards.

    Parameters
    ----------
    series : pd.Series
        Power-transformed series (undifferenced).
    spec : ModelSpecification
        Candidate orders and fixed mask.
    fixed_mask : Optional[Iterable[str]]
        Extra coefficients to hold at zero on top of `spec.fixed`.

    Returns
    -------
    FittedModel

    Raises
    ------
    EstimationError
        If the optimiser fails or does not converge, or the free-parameter
        covariance is not finite and positive definite.
    """
    if fixed_mask:
        spec = spec.with_fixed(fixed_mask)
    P, D, Q, s = spec.seasonal_order
    differenced = difference_for_spec(series, spec.order[1], D, s)
    n = len(differenced)
    k = len(spec.free_coefficient_names) + int(spec.include_mean) + 1
    if n <= k:
        raise EstimationError(f"{n} differenced observations cannot identify {k} parameters",
                              candidate=spec.label, details={"n": n, "k": k})

    endog = differenced.values.to_numpy(dtype=float)
    scale = _endog_scale(endog)
    try:
        results = _estimate(endog / scale, spec)
    except ForecasterError:
        raise
    except Exception as exc:
        raise EstimationError(f"Optimiser failed: {exc}", candidate=spec.label) from exc

    retvals = getattr(results, "mle_retvals", None) or {}
    if not retvals.get("converged", True):
        raise EstimationError("Optimiser did not converge", candidate=spec.label,
                              details={k_: v for k_, v in retvals.items() if k_ in ("iterations", "warnflag")})

    names = list(results.model.param_names)
    # sigma2 scales with scale**2 and the mean with scale; ARMA coefficients are scale free.
    factor = pd.Series([_param_factor(name, scale) for name in names], index=names)
    params = pd.Series(np.asarray(results.params, dtype=float), index=names) * factor
    for name in spec.fixed:
        params[name] = 0.0

    free = [name for name in names if name not in spec.fixed]
    cov = pd.DataFrame(np.asarray(results.cov_params(), dtype=float), index=names, columns=names)
    cov = cov * np.outer(factor, factor)
    free_cov = cov.loc[free, free].to_numpy()
    if not np.all(np.isfinite(free_cov)):
        raise EstimationError("Non-finite covariance of the free parameters", candidate=spec.label)
    coef_free = [name for name in free if name != "sigma2"]
    if coef_free:
        block = cov.loc[coef_free, coef_free].to_numpy()
        if np.linalg.eigvalsh((block + block.T) / 2.0).min() <= 0:
            raise EstimationError("Covariance of the free coefficients is not positive definite",
                                  candidate=spec.label)

    std_errors = pd.Series(np.nan, index=names)
    std_errors[free] = np.sqrt(np.diag(free_cov))

    # Residuals inside the diffuse burn-in carry the initialisation, not the model.
    burn = int(max(getattr(results, "loglikelihood_burn", 0), getattr(results, "nobs_diffuse", 0) or 0))
    # Jacobian of the rescaling over the observations entering the likelihood
    loglik = float(results.llf) - (n - int(getattr(results, "loglikelihood_burn", 0))) * np.log(scale)
    aic, aicc, bic = information_criteria(loglik, k, n)

    resid = np.asarray(results.resid, dtype=float) * scale
    residuals = pd.Series(resid[burn:], index=differenced.values.index[burn:], name="residual")

    fitted = FittedModel(
        spec=spec,
        params=params,
        std_errors=std_errors,
        sigma2=float(params["sigma2"]),
        loglik=loglik,
        aic=aic,
        aicc=aicc,
        bic=bic,
        k=k,
        n=n,
        residuals=residuals,
        differenced=differenced,
        results=results,
        scale=scale,
    )
    logger.debug("Fitted %s: loglik=%.4f AICc=%.4f k=%d n=%d", spec.label, loglik, aicc, k, n)
    return fitted


@dataclass(frozen=True)
class PruningResult:
    """Ordered fitted snapshots produced by coefficient pruning."""

    history: Tuple[FittedModel, ...]
    reason: str

    @property
    def final(self) -> FittedModel:
        return self.history[-1]

    @property
    def fixed(self) -> FrozenSet[str]:
        return self.final.fixed

    @property
    def aicc_path(self) -> List[float]:
        return [m.aicc for m in self.history]


def prune_coefficients(series: pd.Series,
                       spec: ModelSpecification,
                       threshold: float = 2.0,
                       max_rounds: Optional[int] = None,
                       initial: Optional[FittedModel] = None) -> PruningResult:
    """
    Fix insignificant coefficients at zero while AICc does not increase.

    Each round takes the free AR/MA coefficient with the smallest
    |estimate / std_error|; if it is below `threshold` the model is refitted
    with it held at zero and the refit is kept only when its AICc is not larger.
    The loop is bounded by the number of coefficients (or `max_rounds`).

    Returns
    -------
    PruningResult
        Snapshots in order (first is the unpruned fit) and the stop reason:
        'all_significant', 'aicc_increase', 'refit_failed',
        'no_free_coefficients' or 'max_rounds'.
    """
    current = initial if initial is not None else fit(series, spec)
    history: List[FittedModel] = [current]
    limit = len(spec.coefficient_names)
    if max_rounds is not None:
        limit = min(limit, int(max_rounds))

    reason = "max_rounds"
    for _ in range(limit):
        free = current.free_coefficients
        if not free:
            reason = "no_free_coefficients"
            break
        t_abs = current.t_ratios[free].abs()
        weakest = t_abs.idxmin()
        if t_abs[weakest] >= threshold:
            reason = "all_significant"
            break
        try:
            refit = fit(series, current.spec.with_fixed([weakest]))
        except EstimationError as exc:
            logger.warning("Refit of %s without %s failed: %s", current.label, weakest, exc)
            reason = "refit_failed"
            break
        if refit.aicc > current.aicc:
            logger.debug("Fixing %s would raise AICc %.4f -> %.4f", weakest, current.aicc, refit.aicc)
            reason = "aicc_increase"
            break
        logger.info("Fixed %s=0 (|t|=%.3f): AICc %.4f -> %.4f", weakest, t_abs[weakest], current.aicc, refit.aicc)
        current = refit
        history.append(refit)
    else:
        if not current.free_coefficients:
            reason = "no_free_coefficients"

    return PruningResult(history=tuple(history), reason=reason)


@dataclass(frozen=True, eq=False)
class CandidateResult:
    """Outcome of evaluating one candidate; failures keep the stage and message."""

    spec: ModelSpecification
    position: int
    fitted: Optional[FittedModel] = None
    pruning: Optional[PruningResult] = None
    error: Optional[ForecasterError] = field(default=None, compare=False)
    # Residual checks of the final model, attached by the workflow once the candidate is accepted
    checks: Optional[Any] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.fitted is not None and self.error is None

    @property
    def label(self) -> str:
        return self.spec.label

    @property
    def status(self) -> str:
        if self.ok:
            return "ok"
        if isinstance(self.error, StabilityError):
            return "unstable"
        return "failed"

    def to_row(self) -> Dict[str, object]:
        m = self.fitted
        return {
            "candidate": self.label,
            "final_model": m.label if m is not None else None,
            "status": self.status,
            "stage": self.error.stage if self.error is not None else None,
            "error": self.error.message if self.error is not None else None,
            "k": m.k if m is not None else None,
            "n": m.n if m is not None else None,
            "loglik": m.loglik if m is not None else np.nan,
            "AIC": m.aic if m is not None else np.nan,
            "AICc": m.aicc if m is not None else np.nan,
            "BIC": m.bic if m is not None else np.nan,
            "fixed": ",".join(sorted(m.fixed)) if m is not None else "",
            "white_noise": self.checks.is_white_noise if self.checks is not None else None,
            "rejected_tests": ",".join(self.checks.rejected) if self.checks is not None else "",
        }


def fit_candidates(series: pd.Series,
                   specs: Sequence[ModelSpecification],
                   prune: bool = True,
                   threshold: float = 2.0,
                   max_rounds: Optional[int] = None,
                   gate: Optional[Callable[[FittedModel], None]] = None,
                   progress: bool = True) -> List[CandidateResult]:
    """
    Evaluate every candidate independently.

    An EstimationError (or a StabilityError raised by `gate`) aborts only the
    candidate it came from; it is recorded on the CandidateResult with its
    stage and label. Other errors propagate.

    Parameters
    ----------
    series : pd.Series
        Power-transformed training series
    specs : Sequence[ModelSpecification]
        Candidates in input order
    prune : bool
        Run coefficient pruning after the initial fit
    threshold : float
        |t| threshold for pruning
    max_rounds : Optional[int]
        Pruning round limit
    gate : Optional[Callable[[FittedModel], None]]
        Check applied to the final model of each candidate, e.g. a stability gate
    progress : bool
        Show a tqdm progress bar
    """
    out: List[CandidateResult] = []
    for position, spec in enumerate(tqdm(specs, desc="Fitting SARIMA candidates", disable=not progress)):
        try:
            if prune:
                pruning = prune_coefficients(series, spec, threshold=threshold, max_rounds=max_rounds)
                fitted = pruning.final
            else:
                pruning = None
                fitted = fit(series, spec)
            if gate is not None:
                gate(fitted)
        except (EstimationError, StabilityError) as exc:
            exc.candidate = exc.candidate or spec.label
            logger.warning("Candidate %s dropped at stage '%s': %s", spec.label, exc.stage, exc.message)
            out.append(CandidateResult(spec=spec, position=position, error=exc))
            continue
        logger.info("Candidate %s -> %s AICc=%.4f", spec.label, fitted.label, fitted.aicc)
        out.append(CandidateResult(spec=spec, position=position, fitted=fitted, pruning=pruning))
    return out


def select_best(candidates: Sequence[CandidateResult]) -> CandidateResult:
    """
    Candidate with the lowest AICc among those that succeeded.

    Ties are broken by fewer parameters, then by input order.

    Raises
    ------
    EstimationError
        If no candidate succeeded.
    """
    usable = [c for c in candidates if c.ok]
    if not usable:
        raise EstimationError("No candidate model could be fitted", stage="select",
                              details={"candidates": len(candidates)})
    return min(usable, key=lambda c: (c.fitted.aicc, c.fitted.k, c.position))


def candidate_table(candidates: Sequence[CandidateResult]) -> pd.DataFrame:
    return pd.DataFrame([c.to_row() for c in candidates])
