# sarima_forecaster_src/file_utils.py

import json
import pandas as pd
from pathlib import Path
from typing import List, Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    path.mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("data/file.csv", Path("/project"))
    PosixPath('/project/data/file.csv')
    >>> resolve_path("/absolute/path.csv", Path("/project"))
    PosixPath('/absolute/path.csv')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)


def safe_filename(label: str) -> str:
    """File-name friendly form of a model label such as '(1,2,1)x(0,0,1)12'."""
    keep = [c if c.isalnum() or c in "-_." else "_" for c in label]
    return "".join(keep).strip("_") or "model"


def write_frame_csv(df: pd.DataFrame, out_path: Path, index: bool = True) -> Path:
    """
    Write a DataFrame to CSV, creating parent directories.

    Returns
    -------
    Path
        The written path
    """
    ensure_dir(out_path.parent)
    df.to_csv(out_path, index=index)
    logger.info("Wrote %s (%d rows)", out_path, len(df))
    return out_path


def write_json(payload: Dict[str, Any], out_path: Path) -> Path:
    """Write a JSON report; numpy scalars and other objects fall back to str()."""
    ensure_dir(out_path.parent)
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=_json_default)
    logger.info("Wrote %s", out_path)
    return out_path


def _json_default(obj: Any) -> Any:
    if hasattr(obj, "item"):
        return obj.item()
    if hasattr(obj, "tolist"):
        return obj.tolist()
    return str(obj)


def md_table_from_df(df: pd.DataFrame,
                     max_rows: int = 10,
                     columns: Optional[List[str]] = None) -> str:
    """
    Convert a DataFrame to markdown table format.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to convert
    max_rows : int, default=10
        Maximum number of rows to include
    columns : Optional[List[str]]
        Specific columns to include (None for all)

    Returns
    -------
    str
        Markdown table string, empty when there are no columns
    """
    if columns is not None:
        keep = [c for c in columns if c in df.columns]
        if keep:
            df = df.loc[:, keep]
    df_disp = df.head(max_rows)
    cols = list(df_disp.columns)
    if not cols:
        return ""

    def fmt(v: Any) -> str:
        return f"{v:.4g}" if isinstance(v, float) else str(v)

    header = "| " + " | ".join(str(c) for c in cols) + " |"
    separator = "| " + " | ".join("---" for _ in cols) + " |"
    rows = ["| " + " | ".join(fmt(row[c]) for c in cols) + " |" for _, row in df_disp.iterrows()]
    return "\n".join([header, separator] + rows)
