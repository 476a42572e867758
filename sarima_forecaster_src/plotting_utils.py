# sarima_forecaster_src/plotting_utils.py

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Optional
import logging

from .file_utils import ensure_dir

logger = logging.getLogger(__name__)


def plot_series(series: pd.Series, out_path: Path, title: Optional[str] = None, ylabel: str = "value") -> None:
    """
    Render and save a monthly series.

    Parameters
    ----------
    series : pd.Series
        Series with DatetimeIndex
    out_path : Path
        File path to save the PNG (parents are created if missing)
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(series.index, series.values, color="black", linewidth=1)
    ax.set_ylabel(ylabel)
    ax.set_title(title or str(series.name or "series"))
    fig.autofmt_xdate()
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_correlogram(acf_table: pd.DataFrame, pacf_table: pd.DataFrame, out_path: Path,
                     title: str = "Correlogram") -> None:
    """
    Stem plots of ACF and PACF tables with their white-noise bands.

    The tables are those produced by autocorrelation_utils.acf / pacf.
    """
    ensure_dir(out_path.parent)
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 6), sharex=True)
    for ax, table, name in ((ax1, acf_table, "ACF"), (ax2, pacf_table, "PACF")):
        ax.vlines(table["lag"], 0, table["correlation"], color="tab:blue")
        bound = float(table["confidence_bound"].iloc[0])
        ax.axhline(bound, color="tab:red", linestyle="--", linewidth=0.8)
        ax.axhline(-bound, color="tab:red", linestyle="--", linewidth=0.8)
        ax.axhline(0, color="black", linewidth=0.5)
        ax.set_ylabel(name)
    ax2.set_xlabel("Lag")
    ax1.set_title(title)
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_spectrum(spec: pd.DataFrame, out_path: Path, title: str = "Periodogram") -> None:
    """Periodogram against cycles per seasonal period, log power axis."""
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.semilogy(spec["cycles_per_period"], np.maximum(spec["power"], 1e-300), color="black", linewidth=1)
    ax.set_xlabel("Cycles per seasonal period")
    ax.set_ylabel("Power")
    ax.set_title(title)
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_cumulative_periodogram(cpg, out_path: Path, title: str = "Cumulative periodogram") -> None:
    """Cumulative periodogram with its Kolmogorov-Smirnov band."""
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.plot(cpg.frequency, cpg.cumulative, color="black", linewidth=1)
    ax.plot(cpg.frequency, cpg.lower, color="tab:blue", linestyle="--", linewidth=0.8)
    ax.plot(cpg.frequency, cpg.upper, color="tab:blue", linestyle="--", linewidth=0.8)
    ax.set_ylim(0, 1)
    ax.set_xlabel("Frequency")
    ax.set_title(title)
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def plot_forecast(history: pd.Series, fc, out_path: Path, actual: Optional[pd.Series] = None,
                  tail: int = 120) -> None:
    """
    Original-scale forecast with its bounds after the last `tail` observations.

    `actual` (e.g. the test window) is overlaid when given.
    """
    ensure_dir(out_path.parent)
    bounds = fc.intervals("original")
    fig, ax = plt.subplots(figsize=(10, 4))
    hist = history.iloc[-tail:]
    ax.plot(hist.index, hist.values, color="black", linewidth=1, label="observed")
    if actual is not None and len(actual):
        ax.plot(actual.index, actual.values, color="tab:green", linewidth=1, label="actual")
    ax.plot(bounds.index, bounds["point"], color="tab:red", linestyle="--", label=fc.label)
    ax.fill_between(bounds.index, bounds["lower"], bounds["upper"], color="tab:red", alpha=0.15,
                    label=f"+/-{fc.width:g} se")
    ax.legend()
    ax.set_title(f"Forecast {fc.label}, {fc.horizon} months")
    fig.autofmt_xdate()
    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)
    logger.debug("Saved forecast figure %s", out_path)
