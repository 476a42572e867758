"""Input validation and provenance for the SARIMA forecaster.

This package provides the checks applied to a monthly series before modelling:
- Data fingerprinting with SHA-256 hashing
- Monthly regularity, finiteness, length and positivity checks
- Structured validation results that convert into DataError
"""

from .data_integrity import (
    DataFingerprint,
    create_data_fingerprint,
)

from .pipeline import (
    ValidationSeverity,
    ValidationIssue,
    ValidationResult,
    SeriesValidator,
    run_validation_pipeline,
    minimum_length_for,
)

__all__ = [
    # Data integrity
    'DataFingerprint',
    'create_data_fingerprint',

    # Pipeline
    'ValidationSeverity',
    'ValidationIssue',
    'ValidationResult',
    'SeriesValidator',
    'run_validation_pipeline',
    'minimum_length_for',
]

# Version info
__version__ = '1.0.0'
