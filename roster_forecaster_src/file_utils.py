# roster_forecaster_src/file_utils.py

import csv
import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import pandas as pd

logger = logging.getLogger(__name__)

SCORES_HEADER = [
    "series", "model", "roster_position", "status", "score", "is_best",
    "ME", "MAE", "RMSE", "MAPE", "sMAPE", "MASE", "reason",
]


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    No error is raised if the directory already exists.
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


def _csv_value(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return ""
    return value


def append_scores_csv_rows(csv_path: Optional[Path],
                           scores: pd.DataFrame,
                           header: List[str] = SCORES_HEADER) -> None:
    """
    Append one row per candidate to a shared scores CSV, creating the header
    on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to the scores CSV (None to skip writing)
    scores : pd.DataFrame
        Output of EvaluationResult.scores_frame()
    header : List[str]
        Column names; columns absent from `scores` are written empty

    Notes
    -----
    Write failures are logged, not raised: the scores CSV is a by-product of
    a run whose predictions were already produced.
    """
    if csv_path is None:
        return

    try:
        ensure_dir(csv_path.parent)
        exists = csv_path.exists()

        with csv_path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=header, extrasaction="ignore")
            if not exists:
                writer.writeheader()
            for record in scores.to_dict(orient="records"):
                writer.writerow({k: _csv_value(record.get(k, "")) for k in header})

    except OSError as e:
        logger.error("Failed to append scores to %s: %s", csv_path, e)


def predictions_path_for(output_dir: Path, series_name: str) -> Path:
    """Default predictions CSV location for a series: <output_dir>/<series>_predictions.csv."""
    return output_dir / f"{series_name}_predictions.csv"


def write_run_summary(json_path: Path, summary: Dict[str, Any]) -> Path:
    """Write a run summary dict as indented JSON."""
    ensure_dir(json_path.parent)
    with json_path.open("w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, default=str)
    logger.info("Saved run summary to: %s", json_path)
    return json_path
