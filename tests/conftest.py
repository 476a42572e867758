import numpy as np
import pandas as pd
import pytest


def simulate_airline(n: int, theta: float = -0.4, seas_theta: float = -0.6, sigma: float = 1.0,
                     seed: int = 7, level: float = 0.0) -> pd.Series:
    """Monthly (0,1,1)x(0,1,1)12 series built by integrating its MA innovations."""
    rng = np.random.default_rng(seed)
    e = rng.normal(0.0, sigma, n + 13)
    w = e[13:] + theta * e[12:-1] + seas_theta * e[1:-12] + theta * seas_theta * e[:-13]
    y = np.zeros(n)
    for t in range(n):
        seasonal = y[t - 12] if t >= 12 else 0.0
        prev = y[t - 1] if t >= 1 else 0.0
        prev_seasonal = y[t - 13] if t >= 13 else 0.0
        y[t] = w[t] + prev + seasonal - prev_seasonal
    idx = pd.date_range("2000-01-01", periods=n, freq="MS")
    return pd.Series(y + level, index=idx, name="airline")


def simulate_ar1(n: int, phi: float, seed: int = 3) -> pd.Series:
    rng = np.random.default_rng(seed)
    e = rng.normal(size=n + 100)
    x = np.zeros(n + 100)
    for t in range(1, n + 100):
        x[t] = phi * x[t - 1] + e[t]
    idx = pd.date_range("1990-01-01", periods=n, freq="MS")
    return pd.Series(x[100:], index=idx, name="ar1")


@pytest.fixture
def airline_series() -> pd.Series:
    return simulate_airline(216, level=1000.0)


@pytest.fixture
def ar1_series() -> pd.Series:
    return simulate_ar1(300, 0.6)
