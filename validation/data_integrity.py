"""Data integrity and provenance for input series.

This module fingerprints the series a run was computed from, so results in the
output directory can be traced back to the exact data.

Features:
- SHA-256 data fingerprinting of values and index
- Source, span and frequency metadata
"""

import hashlib
import logging
from datetime import datetime
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass, asdict

import pandas as pd

logger = logging.getLogger(__name__)


@dataclass
class DataFingerprint:
    """Data fingerprint with SHA-256 hash and metadata."""

    hash: str                           # SHA-256 hash (truncated to 16 chars)
    full_hash: str                      # Full SHA-256 hash
    shape: Tuple[int, ...]              # Data shape
    date_range: Tuple[str, str]         # (min_date, max_date) as ISO strings
    source: Optional[str] = None        # Data source, usually the CSV path
    vintage: Optional[str] = None       # Fingerprint timestamp
    series_id: Optional[str] = None     # Series label
    frequency: Optional[str] = None     # Data frequency

    @classmethod
    def from_series(cls, data: pd.Series, source: Optional[str] = None,
                    series_id: Optional[str] = None,
                    frequency: Optional[str] = None) -> 'DataFingerprint':
        """Create a DataFingerprint from a pandas Series.

        Parameters
        ----------
        data : pd.Series
            Time series data with DatetimeIndex
        source : str, optional
            Data source identifier
        series_id : str, optional
            Series identifier
        frequency : str, optional
            Frequency code; inferred from the index when omitted

        Returns
        -------
        DataFingerprint
            Data fingerprint object
        """
        if data.empty:
            raise ValueError("Cannot create fingerprint from empty series")

        full_hash = cls._compute_hash(data)

        try:
            date_range = (data.index.min().isoformat(), data.index.max().isoformat())
        except AttributeError:
            date_range = ("unknown", "unknown")

        if frequency is None:
            frequency = getattr(data.index, "freqstr", None) or getattr(data.index, "inferred_freq", None)

        return cls(
            hash=full_hash[:16],
            full_hash=full_hash,
            shape=data.shape,
            date_range=date_range,
            source=source,
            vintage=datetime.now().isoformat(),
            series_id=series_id,
            frequency=frequency,
        )

    @staticmethod
    def _compute_hash(data: pd.Series) -> str:
        """Compute SHA-256 hash of data values and index."""
        values_bytes = data.to_numpy(dtype=float).tobytes()
        index_bytes = str(list(data.index)).encode("utf-8")
        return hashlib.sha256(values_bytes + index_bytes).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


def create_data_fingerprint(data: pd.Series, source: Optional[str] = None,
                            series_id: Optional[str] = None) -> DataFingerprint:
    """Convenience wrapper around DataFingerprint.from_series."""
    fingerprint = DataFingerprint.from_series(data, source=source, series_id=series_id)
    logger.debug("Fingerprint for %s: %s", series_id or "series", fingerprint.hash)
    return fingerprint
