"""Model checking for the SARIMA forecaster.

This package provides the checks applied to a fitted model:
- Causality and invertibility via characteristic-polynomial roots
- Residual white-noise tests (Shapiro-Wilk, Box-Pierce, Ljung-Box, McLeod-Li)
- Spectral corroboration of seasonality and residual whiteness
"""

from .stability import (
    PolynomialCheck,
    ModelStability,
    polynomial_roots,
    check,
    check_model,
    assert_stable,
)

from .residual_diagnostics import (
    ResidualDiagnostics,
    DiagnosticResult,
    DiagnosticReport,
    DiagnosticTest,
    diagnose,
)

from .spectral import (
    FisherGResult,
    CumulativePeriodogram,
    SeasonalityEvidence,
    spectrum,
    dominant_frequencies,
    fisher_g_test,
    cumulative_periodogram,
    seasonality_evidence,
)

__all__ = [
    # Stability
    'PolynomialCheck',
    'ModelStability',
    'polynomial_roots',
    'check',
    'check_model',
    'assert_stable',

    # Residual diagnostics
    'ResidualDiagnostics',
    'DiagnosticResult',
    'DiagnosticReport',
    'DiagnosticTest',
    'diagnose',

    # Spectral analysis
    'FisherGResult',
    'CumulativePeriodogram',
    'SeasonalityEvidence',
    'spectrum',
    'dominant_frequencies',
    'fisher_g_test',
    'cumulative_periodogram',
    'seasonality_evidence',
]

# Version info
__version__ = '1.0.0'
