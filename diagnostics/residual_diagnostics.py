"""Residual diagnostics for fitted SARIMA models.

This module checks whether the residuals of a fitted model behave like
Gaussian white noise. A rejection never blocks forecasting: it is reported as
an advisory DiagnosticFailure attached to the forecast.

Features:
- Shapiro-Wilk test for normality
- Box-Pierce and Ljung-Box portmanteau tests with fitted-parameter df correction
- McLeod-Li test (Ljung-Box on squared residuals) for conditional heteroskedasticity
- Residual summary statistics and a combined white-noise verdict
"""

import logging
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from enum import Enum

import pandas as pd
import numpy as np
from scipy import stats

from statsmodels.stats.diagnostic import acorr_ljungbox

from sarima_forecaster_src.exceptions import DiagnosticFailure

logger = logging.getLogger(__name__)

DEFAULT_LAGS = 22


class DiagnosticTest(Enum):
    """Types of residual diagnostic tests."""
    SHAPIRO_WILK = "shapiro_wilk"
    BOX_PIERCE = "box_pierce"
    LJUNG_BOX = "ljung_box"
    MCLEOD_LI = "mcleod_li"


@dataclass
class DiagnosticResult:
    """Results from a single diagnostic test."""

    test_name: str
    test_type: DiagnosticTest
    test_statistic: float
    p_value: float
    significance_level: float = 0.05
    degrees_of_freedom: Optional[int] = None
    lags: Optional[int] = None
    test_description: Optional[str] = None

    @property
    def is_significant(self) -> bool:
        """Check if test rejects null hypothesis."""
        return bool(self.p_value < self.significance_level)

    @property
    def interpretation(self) -> str:
        """Get interpretation of test result."""
        if self.test_type in (DiagnosticTest.LJUNG_BOX, DiagnosticTest.BOX_PIERCE):
            if self.is_significant:
                return "Serial correlation detected in residuals"
            return "No significant serial correlation in residuals"
        if self.test_type == DiagnosticTest.MCLEOD_LI:
            if self.is_significant:
                return "Conditional heteroskedasticity detected in residuals"
            return "No significant autocorrelation in squared residuals"
        if self.is_significant:
            return "Residuals not normally distributed"
        return "Residuals appear normally distributed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test": self.test_type.value,
            "statistic": self.test_statistic,
            "p_value": self.p_value,
            "df": self.degrees_of_freedom,
            "lags": self.lags,
            "reject": self.is_significant,
        }


@dataclass
class DiagnosticReport:
    """All residual tests for one model plus the white-noise verdict."""

    results: Dict[str, DiagnosticResult]
    summary_statistics: Dict[str, float]
    significance_level: float = 0.05
    model_name: Optional[str] = None
    rejected: List[str] = field(default_factory=list)

    @property
    def is_white_noise(self) -> bool:
        """True when every test has p >= the significance level."""
        return not self.rejected

    def failure(self) -> Optional[DiagnosticFailure]:
        """Advisory DiagnosticFailure listing the rejecting tests, or None."""
        if self.is_white_noise:
            return None
        return DiagnosticFailure(
            "Residuals reject white noise in: " + ", ".join(self.rejected),
            report=self,
            candidate=self.model_name,
            details={"rejected": list(self.rejected)},
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.to_dict() for r in self.results.values()]).set_index("test")


class ResidualDiagnostics:
    """Portmanteau and normality tests on model residuals."""

    def __init__(self, significance_level: float = 0.05, config_manager: Optional[Any] = None):
        """Initialize residual diagnostics.

        Parameters
        ----------
        significance_level : float, default 0.05
            Significance level for all tests
        config_manager : ConfigurationManager, optional
            Configuration manager supplying the default number of lags
        """
        self.significance_level = significance_level
        self.config_manager = config_manager
        self.default_lags = DEFAULT_LAGS
        if config_manager is not None:
            self.default_lags = int(config_manager.get("diagnostics.lags", DEFAULT_LAGS))

    @staticmethod
    def _clean(residuals) -> pd.Series:
        s = pd.Series(residuals, dtype=float).dropna()
        if len(s) < 3:
            raise ValueError(f"Need at least 3 residuals, got {len(s)}")
        return s

    def _portmanteau(self, x: pd.Series, lags: int, fitdf: int) -> pd.Series:
        if lags <= fitdf:
            raise ValueError(f"lags ({lags}) must exceed the number of fitted parameters ({fitdf})")
        if lags >= len(x):
            raise ValueError(f"lags ({lags}) must be smaller than the number of residuals ({len(x)})")
        table = acorr_ljungbox(x, lags=[lags], boxpierce=True, model_df=fitdf, return_df=True)
        return table.loc[lags]

    def shapiro_wilk_test(self, residuals: pd.Series) -> DiagnosticResult:
        """Shapiro-Wilk test for normality of residuals.

        Parameters
        ----------
        residuals : pd.Series
            Model residuals

        Returns
        -------
        DiagnosticResult
            Shapiro-Wilk test results
        """
        x = self._clean(residuals)
        if len(x) > 5000:
            logger.warning("Shapiro-Wilk test may be unreliable for large samples (n=%d)", len(x))
        sw_stat, sw_pval = stats.shapiro(x.to_numpy())
        return DiagnosticResult(
            test_name="Shapiro-Wilk Test",
            test_type=DiagnosticTest.SHAPIRO_WILK,
            test_statistic=float(sw_stat),
            p_value=float(sw_pval),
            significance_level=self.significance_level,
            test_description="Test for normality of residuals (H0: Residuals are normally distributed)",
        )

    def box_pierce_test(self, residuals: pd.Series, lags: Optional[int] = None, fitdf: int = 0) -> DiagnosticResult:
        """Box-Pierce test Q = n * sum(r_k^2) with lags - fitdf degrees of freedom."""
        lags = self.default_lags if lags is None else int(lags)
        row = self._portmanteau(self._clean(residuals), lags, fitdf)
        return DiagnosticResult(
            test_name="Box-Pierce Test",
            test_type=DiagnosticTest.BOX_PIERCE,
            test_statistic=float(row["bp_stat"]),
            p_value=float(row["bp_pvalue"]),
            significance_level=self.significance_level,
            degrees_of_freedom=lags - fitdf,
            lags=lags,
            test_description=f"Test for serial correlation in residuals (H0: No serial correlation, lags={lags})",
        )

    def ljung_box_test(self, residuals: pd.Series, lags: Optional[int] = None, fitdf: int = 0) -> DiagnosticResult:
        """Ljung-Box test Q = n(n+2) * sum(r_k^2 / (n-k)) with lags - fitdf degrees of freedom.

        Parameters
        ----------
        residuals : pd.Series
            Model residuals
        lags : int, optional
            Number of autocorrelations included (default 22)
        fitdf : int
            Number of fitted ARMA parameters subtracted from the degrees of freedom

        Raises
        ------
        ValueError
            If lags <= fitdf
        """
        lags = self.default_lags if lags is None else int(lags)
        logger.debug("Running Ljung-Box test with %d lags (fitdf=%d)", lags, fitdf)
        row = self._portmanteau(self._clean(residuals), lags, fitdf)
        return DiagnosticResult(
            test_name="Ljung-Box Test",
            test_type=DiagnosticTest.LJUNG_BOX,
            test_statistic=float(row["lb_stat"]),
            p_value=float(row["lb_pvalue"]),
            significance_level=self.significance_level,
            degrees_of_freedom=lags - fitdf,
            lags=lags,
            test_description=f"Test for serial correlation in residuals (H0: No serial correlation, lags={lags})",
        )

    def mcleod_li_test(self, residuals: pd.Series, lags: Optional[int] = None) -> DiagnosticResult:
        """McLeod-Li test: Ljung-Box on squared residuals, no df correction."""
        lags = self.default_lags if lags is None else int(lags)
        x = self._clean(residuals)
        row = self._portmanteau(x ** 2, lags, 0)
        return DiagnosticResult(
            test_name="McLeod-Li Test",
            test_type=DiagnosticTest.MCLEOD_LI,
            test_statistic=float(row["lb_stat"]),
            p_value=float(row["lb_pvalue"]),
            significance_level=self.significance_level,
            degrees_of_freedom=lags,
            lags=lags,
            test_description=f"Test for ARCH-type dependence (H0: squared residuals uncorrelated, lags={lags})",
        )

    def run(self, residuals: pd.Series, fitted_params_count: int, lags: Optional[int] = None,
            model_name: Optional[str] = None) -> DiagnosticReport:
        """Run all four tests and assemble the report."""
        lags = self.default_lags if lags is None else int(lags)
        if lags <= fitted_params_count:
            raise ValueError(f"lags ({lags}) must exceed the number of fitted parameters ({fitted_params_count})")
        x = self._clean(residuals)

        results = {
            DiagnosticTest.SHAPIRO_WILK.value: self.shapiro_wilk_test(x),
            DiagnosticTest.BOX_PIERCE.value: self.box_pierce_test(x, lags, fitted_params_count),
            DiagnosticTest.LJUNG_BOX.value: self.ljung_box_test(x, lags, fitted_params_count),
            DiagnosticTest.MCLEOD_LI.value: self.mcleod_li_test(x, lags),
        }
        for result in results.values():
            logger.debug("%s: stat=%.4f p=%.4f - %s", result.test_name, result.test_statistic,
                         result.p_value, result.interpretation)

        summary = {
            "n": int(len(x)),
            "mean": float(x.mean()),
            "std": float(x.std()),
            "skewness": float(x.skew()),
            "kurtosis": float(x.kurtosis()),
            "min": float(x.min()),
            "max": float(x.max()),
        }
        rejected = [name for name, r in results.items() if r.is_significant]
        report = DiagnosticReport(
            results=results,
            summary_statistics=summary,
            significance_level=self.significance_level,
            model_name=model_name,
            rejected=rejected,
        )
        if rejected:
            logger.warning("Residuals of %s reject white noise in %s", model_name or "model", rejected)
        else:
            logger.info("Residuals of %s pass all white-noise tests", model_name or "model")
        return report


def diagnose(residuals: pd.Series,
             fitted_params_count: int,
             lags: int = DEFAULT_LAGS,
             significance_level: float = 0.05,
             model_name: Optional[str] = None) -> DiagnosticReport:
    """Convenience function for the full residual report.

    Parameters
    ----------
    residuals : pd.Series
        Model residuals
    fitted_params_count : int
        Number of estimated ARMA coefficients, used as the portmanteau df correction
    lags : int, default 22
        Portmanteau lag count
    significance_level : float
        Significance level for tests

    Returns
    -------
    DiagnosticReport
        White noise iff every p-value is at least `significance_level`
    """
    diagnostics = ResidualDiagnostics(significance_level)
    return diagnostics.run(residuals, fitted_params_count, lags=lags, model_name=model_name)
