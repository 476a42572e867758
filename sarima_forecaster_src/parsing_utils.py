# sarima_forecaster_src/parsing_utils.py

from typing import Dict, Iterable, List, Optional, Sequence, Union
import logging

import numpy as np

from .model_utils import ModelSpecification
from .transform_utils import default_exponent_grid

logger = logging.getLogger(__name__)


def parse_exponent_grid(value: Union[None, str, Dict, Sequence[float]]) -> np.ndarray:
    """
    Parse a power-transform exponent grid.

    Accepts a 'start:stop:step' string, a comma-separated list, a mapping with
    start/stop/step keys (as in the YAML configuration) or a list of numbers.

    Examples
    --------
    >>> parse_exponent_grid("-1:1:0.5").tolist()
    [-1.0, -0.5, 0.0, 0.5, 1.0]
    >>> parse_exponent_grid("0,0.5,1").tolist()
    [0.0, 0.5, 1.0]
    """
    if value is None:
        return default_exponent_grid()
    if isinstance(value, dict):
        return default_exponent_grid(float(value.get("start", -2.0)), float(value.get("stop", 2.0)),
                                     float(value.get("step", 0.1)))
    if isinstance(value, str):
        txt = value.strip()
        if ":" in txt:
            parts = [float(p) for p in txt.split(":")]
            if len(parts) != 3:
                raise ValueError(f"Exponent grid '{value}' must be start:stop:step")
            return default_exponent_grid(*parts)
        vals = [float(x) for x in txt.split(",") if x.strip()]
    else:
        vals = [float(x) for x in value]
    if not vals:
        raise ValueError("Exponent grid is empty")
    return np.round(np.asarray(vals, dtype=float), 10)


def parse_horizons(value: Union[None, str, int, Iterable[int]], default: Sequence[int] = (12, 24)) -> List[int]:
    """
    Parse forecast horizons like '12,24' into sorted unique positive integers.

    Examples
    --------
    >>> parse_horizons("24,12,12")
    [12, 24]
    >>> parse_horizons(6)
    [6]
    """
    if value is None:
        vals = list(default)
    elif isinstance(value, int):
        vals = [value]
    elif isinstance(value, str):
        vals = [int(x.strip()) for x in value.split(",") if x.strip()]
    else:
        vals = [int(x) for x in value]
    bad = [v for v in vals if v <= 0]
    if bad:
        raise ValueError(f"Forecast horizons must be positive, got {bad}")
    return sorted(set(vals))


def parse_candidate_specs(entries: Optional[Iterable[Union[str, Dict]]]) -> List[ModelSpecification]:
    """
    Build candidate specifications from CLI strings or configuration entries.

    Duplicate candidates are dropped, keeping the first occurrence.
    """
    specs: List[ModelSpecification] = []
    for entry in entries or []:
        spec = ModelSpecification.from_config(entry)
        if spec in specs:
            logger.warning("Duplicate candidate %s ignored", spec.label)
            continue
        specs.append(spec)
    if not specs:
        raise ValueError("At least one candidate model specification is required")
    return specs


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
