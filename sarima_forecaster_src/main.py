# sarima_forecaster_src/main.py

"""
Box-Jenkins SARIMA modelling and forecasting of a monthly series.

This is the main entry point of the forecaster.

Purpose
-------
- Load a two-column monthly CSV and validate it (regular monthly index, finite, positive)
- Select a variance-stabilising power exponent by profile likelihood and difference the series
- Report ACF/PACF significant lags and the spectral share at seasonal harmonics
- Fit the configured SARIMA candidates by maximum likelihood, prune insignificant
  coefficients while AICc does not increase, and drop non-causal or non-invertible fits
- Select the lowest-AICc model, test its residuals for white noise and forecast
  each configured horizon with approximate 95% bounds on the original scale
- Optionally score the forecasts against a held-out test window

Configuration-Driven Workflow
-----------------------------
Candidate orders, differencing, windows and test settings are read from YAML
(config/default.yaml merged with --config). CLI arguments override
configuration values where applicable.
"""

import argparse
import logging
import sys
import warnings
from dataclasses import dataclass, field, replace
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from config import ConfigurationError
from diagnostics import (
    CumulativePeriodogram,
    DiagnosticReport,
    FisherGResult,
    SeasonalityEvidence,
    assert_stable,
    check_model,
    cumulative_periodogram,
    diagnose,
    fisher_g_test,
    seasonality_evidence,
    spectrum,
)
from validation import ValidationResult, minimum_length_for, run_validation_pipeline

from .autocorrelation_utils import summarize_correlogram
from .config_utils import WorkflowConfig, initialize_config
from .data_utils import infer_series_name, load_monthly_series_csv, split_train_test
from .exceptions import DataError, ForecasterError, TransformError
from .file_utils import ensure_dir, md_table_from_df, resolve_path, safe_filename, write_frame_csv, write_json
from .forecasting_utils import Forecast, forecast
from .metrics_utils import evaluate_holdout
from .model_utils import CandidateResult, FittedModel, candidate_table, fit_candidates, select_best
from .parsing_utils import validate_log_level
from .plotting_utils import (
    plot_correlogram, plot_cumulative_periodogram, plot_forecast, plot_series, plot_spectrum
)
from .transform_utils import StationarityResult, stabilize

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything one workflow run decided, in pipeline order."""

    name: str
    train: pd.Series = field(repr=False)
    test: pd.Series = field(repr=False)
    validation: ValidationResult = field(repr=False)
    stationarity: StationarityResult = field(repr=False)
    correlogram: Dict[str, object] = field(repr=False)
    seasonality: SeasonalityEvidence
    candidates: List[CandidateResult] = field(repr=False)
    best: CandidateResult = field(repr=False)
    diagnostics: DiagnosticReport = field(repr=False)
    fisher_g: FisherGResult
    cumulative: CumulativePeriodogram = field(repr=False)
    forecasts: Dict[int, Forecast] = field(default_factory=dict, repr=False)
    holdout: Dict[int, Dict[str, float]] = field(default_factory=dict)

    def summary(self) -> Dict[str, object]:
        best = self.best.fitted
        return {
            "series": self.name,
            "train": [self.train.index[0].strftime("%Y-%m"), self.train.index[-1].strftime("%Y-%m")],
            "test_months": int(len(self.test)),
            "fingerprint": self.validation.fingerprint.hash if self.validation.fingerprint else None,
            "lambda": self.stationarity.lam,
            "variances": self.stationarity.variances,
            "adf_pvalues": self.stationarity.adf_pvalues,
            "acf_significant": self.correlogram["acf_significant"],
            "pacf_significant": self.correlogram["pacf_significant"],
            "seasonal_power_share": self.seasonality.harmonic_share,
            "selected_model": best.label,
            "aicc": best.aicc,
            "white_noise": self.diagnostics.is_white_noise,
            "rejected_tests": self.diagnostics.rejected,
            "fisher_g_pvalue": self.fisher_g.p_value,
            "cumulative_periodogram_within_bounds": self.cumulative.within_bounds,
            "candidate_white_noise": {
                c.fitted.label: c.checks.is_white_noise for c in self.candidates if c.checks is not None
            },
            "forecasts": {h: fc.summary() for h, fc in self.forecasts.items()},
            "holdout": self.holdout,
        }


@dataclass
class ResidualChecks:
    """Portmanteau, normality and spectral checks of one accepted candidate."""

    report: DiagnosticReport
    fisher_g: FisherGResult
    cumulative: CumulativePeriodogram = field(repr=False)

    @property
    def is_white_noise(self) -> bool:
        return self.report.is_white_noise

    @property
    def rejected(self) -> List[str]:
        return list(self.report.rejected)


def check_residuals(fitted: FittedModel, cfg: WorkflowConfig) -> ResidualChecks:
    """
    Run the residual tests on one fitted model.

    The portmanteau df adjustment is `diagnostics.fitdf` when configured,
    otherwise the number of free AR/MA coefficients. Lags are capped at the
    residual count minus one.

    Raises
    ------
    DataError
        If too few residuals remain for a lag count above the df adjustment
    """
    residuals = fitted.residuals
    fitdf = cfg.diagnostic_fitdf if cfg.diagnostic_fitdf is not None else len(fitted.free_coefficients)
    lags = min(cfg.diagnostic_lags, len(residuals) - 1)
    if lags <= fitdf:
        raise DataError(f"{len(residuals)} residuals leave no portmanteau lags above fitdf={fitdf}",
                        stage="diagnostics", candidate=fitted.label,
                        details={"lags": lags, "fitdf": fitdf})

    report = diagnose(residuals, fitdf, lags=lags,
                      significance_level=cfg.significance_level, model_name=fitted.label)
    fisher = fisher_g_test(residuals)
    cumulative = cumulative_periodogram(residuals, cfg.spectral_significance_level, cfg.spectral_taper)
    if fisher.is_significant(cfg.spectral_significance_level):
        logger.warning("%s: Fisher g test finds a periodic component in residuals (period %.2f, p=%.4g)",
                       fitted.label, fisher.period, fisher.p_value)
    if not cumulative.within_bounds:
        logger.warning("%s: cumulative periodogram of residuals leaves the %.0f%% band",
                       fitted.label, 100 * (1 - cfg.spectral_significance_level))
    return ResidualChecks(report=report, fisher_g=fisher, cumulative=cumulative)


def analyze_series(series: pd.Series, cfg: WorkflowConfig, name: str = "series") -> AnalysisResult:
    """
    Run the Box-Jenkins pipeline on a loaded monthly series.

    Raises
    ------
    DataError, TransformError
        Input problems that abort the run
    EstimationError
        When no candidate survives fitting and stability gating
    """
    train, test = split_train_test(series, cfg.train_start, cfg.train_end, cfg.test_start, cfg.test_end)

    min_length = max(minimum_length_for(spec.order, spec.seasonal_order) for spec in cfg.candidates)
    validation = run_validation_pipeline(train, min_length=min_length, require_positive=True, name=name)

    stationarity = stabilize(train, cfg.exponent_grid, d=cfg.d, lag=cfg.lag, D=cfg.D, s=cfg.s)
    stationary = stationarity.differenced.values

    max_lag = min(cfg.max_lag, len(stationary) // 2 - 1)
    correlogram = summarize_correlogram(stationary, max_lag, cfg.s)
    seasonality = seasonality_evidence(stationary, cfg.s)

    gate = partial(assert_stable, tolerance=cfg.stability_tolerance)
    candidates = fit_candidates(
        stationarity.transformed, cfg.candidates,
        prune=cfg.prune, threshold=cfg.threshold, max_rounds=cfg.max_rounds, gate=gate,
    )
    candidates = [replace(c, checks=check_residuals(c.fitted, cfg)) if c.ok else c for c in candidates]
    best = select_best(candidates)
    fitted = best.fitted
    logger.info("Selected %s (AICc=%.4f, k=%d)", fitted.label, fitted.aicc, fitted.k)

    report = best.checks.report
    failure = report.failure()
    forecasts: Dict[int, Forecast] = {}
    holdout: Dict[int, Dict[str, float]] = {}
    for horizon in cfg.horizons:
        fc = forecast(fitted, horizon, lam=stationarity.lam, width=cfg.interval_width)
        if failure is not None:
            fc = fc.with_caveat(failure)
        forecasts[horizon] = fc
        if len(test):
            holdout[horizon] = evaluate_holdout(fc, test)

    return AnalysisResult(
        name=name,
        train=train,
        test=test,
        validation=validation,
        stationarity=stationarity,
        correlogram=correlogram,
        seasonality=seasonality,
        candidates=candidates,
        best=best,
        diagnostics=report,
        fisher_g=best.checks.fisher_g,
        cumulative=best.checks.cumulative,
        forecasts=forecasts,
        holdout=holdout,
    )


def write_outputs(result: AnalysisResult, output_dir: Path, figures: bool = False) -> None:
    """Write candidate, coefficient, diagnostic and forecast tables (and optional figures)."""
    ensure_dir(output_dir)
    write_frame_csv(result.stationarity.selection.profile, output_dir / "transform_profile.csv", index=False)
    write_frame_csv(result.correlogram["acf"], output_dir / "acf.csv", index=False)
    write_frame_csv(result.correlogram["pacf"], output_dir / "pacf.csv", index=False)

    table = candidate_table(result.candidates)
    write_frame_csv(table, output_dir / "candidates.csv", index=False)
    logger.info("Candidate models:\n%s", md_table_from_df(table, max_rows=50,
                                                          columns=["candidate", "final_model", "status", "AICc", "stage"]))
    for cand in result.candidates:
        if cand.ok:
            write_frame_csv(cand.fitted.coefficient_table(),
                            output_dir / f"coefficients_{safe_filename(cand.fitted.label)}.csv")

    write_frame_csv(result.diagnostics.to_frame(), output_dir / "diagnostics.csv")
    for cand in result.candidates:
        if cand.checks is not None:
            write_frame_csv(cand.checks.report.to_frame(),
                            output_dir / f"diagnostics_{safe_filename(cand.fitted.label)}.csv")
    for horizon, fc in result.forecasts.items():
        write_frame_csv(fc.to_frame(), output_dir / f"forecast_h{horizon}.csv")
    if result.holdout:
        metrics = pd.DataFrame.from_dict(result.holdout, orient="index")
        metrics.index.name = "horizon"
        write_frame_csv(metrics, output_dir / "holdout_metrics.csv")

    summary = result.summary()
    summary["stability"] = check_model(result.best.fitted).summary()
    write_json(summary, output_dir / "summary.json")

    if figures:
        fig_dir = output_dir / "figures"
        plot_series(result.train, fig_dir / "series.png", title=result.name)
        plot_series(result.stationarity.differenced.values, fig_dir / "stationary.png",
                    title=f"{result.name}: lambda={result.stationarity.lam:g}, lags={result.stationarity.differenced.lags}")
        plot_correlogram(result.correlogram["acf"], result.correlogram["pacf"], fig_dir / "correlogram.png")
        plot_spectrum(spectrum(result.stationarity.differenced.values, result.seasonality.period),
                      fig_dir / "periodogram.png")
        plot_cumulative_periodogram(result.cumulative, fig_dir / "cumulative_periodogram.png")
        for horizon, fc in result.forecasts.items():
            plot_forecast(result.train, fc, fig_dir / f"forecast_h{horizon}.png", actual=result.test)


def run_workflow(series_path: Path, cfg: WorkflowConfig, output_dir: Optional[Path] = None) -> AnalysisResult:
    """Load the CSV, analyze it and write every output table."""
    series = load_monthly_series_csv(series_path, cfg.date_column, cfg.value_column)
    name = infer_series_name(series_path)
    logger.info("Workflow settings: %s", cfg.summary())
    result = analyze_series(series, cfg, name=name)
    write_outputs(result, output_dir or cfg.output_dir, figures=cfg.figures)
    return result


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Every modelling option defaults to None so that get_config_value can fall
    back to the configuration file.
    """
    parser = argparse.ArgumentParser(
        description="Box-Jenkins SARIMA modelling and forecasting of a monthly series."
    )

    # Data and output arguments
    parser.add_argument(
        "--series-csv", type=str, required=True,
        help="Two-column monthly CSV (time label, value)."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="YAML file merged over the packaged defaults."
    )
    parser.add_argument("--date-column", type=str, default=None)
    parser.add_argument("--value-column", type=str, default=None)
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Directory for result tables (resolved against the working directory)."
    )
    parser.add_argument(
        "--figures", action="store_true", default=False,
        help="Also write PNG figures."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )

    # Windows
    parser.add_argument("--train-start", type=str, default=None)
    parser.add_argument("--train-end", type=str, default=None)
    parser.add_argument("--test-start", type=str, default=None)
    parser.add_argument("--test-end", type=str, default=None)

    # Transform and differencing
    parser.add_argument(
        "--exponents", type=str, default=None,
        help="Power exponent grid as 'start:stop:step' or a comma-separated list."
    )
    parser.add_argument("--diff-order", dest="d", type=int, default=None,
                        help="Non-seasonal differencing order used for the correlogram.")
    parser.add_argument("--seasonal-diff-order", dest="D", type=int, default=None,
                        help="Seasonal differencing order used for the correlogram.")
    parser.add_argument("--period", type=int, default=None, help="Seasonal period (12 for monthly data).")
    parser.add_argument("--max-lag", type=int, default=None, help="Largest ACF/PACF lag.")

    # Models
    parser.add_argument(
        "--candidates", nargs="+", default=None,
        help="Candidate specs such as '(1,2,1)x(0,0,1)12'. Uses config candidates if not specified."
    )
    parser.add_argument("--threshold", type=float, default=None, help="|t| threshold for pruning.")
    parser.add_argument("--no-prune", action="store_true", default=False,
                        help="Skip coefficient pruning.")
    parser.add_argument("--lags", type=int, default=None, help="Portmanteau test lags.")
    parser.add_argument("--fitdf", type=int, default=None,
                        help="Portmanteau df adjustment; defaults to the free ARMA coefficient count.")
    parser.add_argument(
        "--horizons", type=str, default=None,
        help="Comma-separated forecast horizons in months (e.g., '12,24')."
    )

    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Configure warnings based on log level
    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the SARIMA forecasting application.

    Returns
    -------
    int
        Process exit status: 0 on success, 1 when the input data, the
        configuration or every candidate model was unusable.
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    base_dir = Path.cwd()
    try:
        initialize_config(resolve_path(args.config, base_dir) if args.config else None)
        cfg = WorkflowConfig.from_sources(args)
    except (ConfigurationError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    series_path = resolve_path(args.series_csv, base_dir)
    output_dir = resolve_path(str(cfg.output_dir), base_dir)
    try:
        result = run_workflow(series_path, cfg, output_dir)
    except (DataError, TransformError) as e:
        logger.error("Aborting: %s", e)
        return 1
    except ForecasterError as e:
        logger.error("No usable model: %s", e)
        return 1

    for horizon, fc in result.forecasts.items():
        for caveat in fc.caveats:
            logger.warning("Forecast h=%d caveat: %s", horizon, caveat)
    logger.info("Results written to %s", output_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
