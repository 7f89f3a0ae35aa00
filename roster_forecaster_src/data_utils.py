# roster_forecaster_src/data_utils.py

import pandas as pd
from pathlib import Path
from typing import Tuple
import logging

logger = logging.getLogger(__name__)


def load_series_csv(series_path: Path,
                    date_column: str = "date",
                    value_column: str = "value") -> Tuple[pd.Series, pd.Series]:
    """
    Load raw (date, value) observations from a CSV file.

    Rows keep their file order. Dates are left unparsed so that preparation
    reports unparsable timestamps; values are coerced to numeric with
    unparsable entries kept as missing.

    Parameters
    ----------
    series_path : Path
        CSV file containing at least `date_column` and `value_column`.
    date_column : str, default="date"
        Name of the timestamp column.
    value_column : str, default="value"
        Name of the observation column.

    Returns
    -------
    Tuple[pd.Series, pd.Series]
        (dates, values) aligned by row.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If a required column is missing or the file has no rows.
    """
    series_path = Path(series_path)
    if not series_path.exists():
        raise FileNotFoundError(f"Series CSV not found: {series_path}")

    logger.info("Loading series from: %s", series_path)
    df = pd.read_csv(series_path)

    missing = [c for c in (date_column, value_column) if c not in df.columns]
    if missing:
        raise ValueError(f"Series CSV {series_path} is missing column(s) {missing}; found {list(df.columns)}")

    # Rows without a date carry no position in time
    df = df.dropna(subset=[date_column]).reset_index(drop=True)
    if df.empty:
        raise ValueError(f"No rows with a {date_column!r} value found in {series_path}")

    values = pd.to_numeric(df[value_column], errors="coerce")
    n_missing = int(values.isna().sum())
    if n_missing:
        logger.info("%d missing or non-numeric value(s) in %s kept as missing", n_missing, series_path.name)

    return df[date_column].rename("timestamp"), values.rename("value")


def infer_series_name_from_path(series_path: Path) -> str:
    """
    Infer a series label from a CSV filename.

    Examples
    --------
    >>> infer_series_name_from_path(Path("data/retail_sales.csv"))
    'retail_sales'
    >>> infer_series_name_from_path(Path("series_US.csv"))
    'US'
    """
    stem = Path(series_path).stem
    return stem[7:] if stem.lower().startswith("series_") and len(stem) > 7 else (stem or "series")
