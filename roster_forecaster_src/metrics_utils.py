# roster_forecaster_src/metrics_utils.py

import numpy as np
import pandas as pd
from typing import Union, List, Dict, Tuple
import logging

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]

SELECTION_METRIC = "MAPE"


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to 1D numpy array, filtering out non-finite values.

    Parameters
    ----------
    x : Union[List[float], np.ndarray, pd.Series]
        Input data to convert

    Returns
    -------
    np.ndarray
        1D array containing only finite values
    """
    arr = np.asarray(x, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def paired_finite(y_true: ArrayLike, y_hat: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    Align actuals and predictions position by position, keeping only pairs
    where both are finite.

    A missing actual drops its own forecast step only, so the remaining
    steps stay matched to the periods they were forecast for.
    """
    yt = np.asarray(y_true, dtype=float).ravel()
    yh = np.asarray(y_hat, dtype=float).ravel()
    n = min(len(yt), len(yh))
    yt = yt[:n]
    yh = yh[:n]
    mask = np.isfinite(yt) & np.isfinite(yh)
    return yt[mask], yh[mask]


def mape_epsilon_from_train(y_train: ArrayLike) -> float:
    """
    Calculate epsilon value for stabilized MAPE computation from training data.

    The epsilon is the 10th percentile of absolute training values with a
    floor of 1e-8, so a constant or near-zero series never divides by zero.
    """
    arr = to_1d_array(y_train)
    if arr.size == 0:
        return 1e-8
    return float(max(1e-8, np.percentile(np.abs(arr), 10.0)))


def mape_eps(y_true: ArrayLike, y_hat: ArrayLike, eps: float) -> float:
    """
    Calculate Mean Absolute Percentage Error with epsilon stabilization.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        True values
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Predicted values
    eps : float
        Minimum denominator

    Returns
    -------
    float
        MAPE as percentage (0-100+), or NaN if no valid pairs
    """
    yt, yh = paired_finite(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    denom = np.maximum(np.abs(yt), eps)
    return float(np.mean(np.abs(yh - yt) / denom) * 100.0)


def smape(y_true: ArrayLike, y_hat: ArrayLike, eps: float = 1e-12) -> float:
    """
    Calculate Symmetric Mean Absolute Percentage Error (0-200).
    """
    yt, yh = paired_finite(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    denom = np.maximum(np.abs(yt) + np.abs(yh), eps)
    return float(np.mean(2.0 * np.abs(yh - yt) / denom) * 100.0)


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean Absolute Error, or NaN if no valid pairs."""
    yt, yh = paired_finite(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(np.abs(yh - yt)))


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Root Mean Square Error, or NaN if no valid pairs."""
    yt, yh = paired_finite(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.sqrt(np.mean((yh - yt) ** 2)))


def mase_metric(y_true: ArrayLike, y_hat: ArrayLike, y_train: ArrayLike, m: int = 4) -> float:
    """
    Calculate Mean Absolute Scaled Error.

    MASE scales the MAE by the in-sample MAE of a seasonal naive forecast with
    period `m`. Values < 1 beat the seasonal naive benchmark.

    Returns
    -------
    float
        MASE value, or NaN when the training series is too short or has no
        seasonal variation to scale by
    """
    yt, yh = paired_finite(y_true, y_hat)
    if yt.size == 0:
        return float("nan")

    num = np.mean(np.abs(yh - yt))
    # Differences on the raw array keep each pair exactly m periods apart.
    tr = np.asarray(y_train, dtype=float).ravel()
    m = max(int(m), 1)
    if len(tr) <= m:
        return float("nan")

    diffs = np.abs(tr[m:] - tr[:-m])
    diffs = diffs[np.isfinite(diffs)]
    if diffs.size == 0:
        return float("nan")
    denom = np.mean(diffs)
    if denom <= 0.0:
        return float("nan")
    return float(num / denom)


def selection_score(y_true: ArrayLike, y_hat: ArrayLike, y_train: ArrayLike) -> float:
    """
    Holdout error used to rank candidates: epsilon-stabilized MAPE.

    The same training-derived epsilon is applied to every candidate of a run,
    keeping scores comparable across the roster.
    """
    return mape_eps(y_true, y_hat, mape_epsilon_from_train(y_train))


def compute_metrics(y_true: ArrayLike,
                    y_hat: ArrayLike,
                    y_train: ArrayLike,
                    m: int = 4) -> Dict[str, float]:
    """
    Compute the holdout accuracy report for one candidate.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        Holdout actuals
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Holdout forecasts
    y_train : Union[List[float], np.ndarray, pd.Series]
        Training data for MAPE epsilon and MASE scaling
    m : int, default=4
        Seasonal period for MASE computation

    Returns
    -------
    Dict[str, float]
        ME, MAE, RMSE, MAPE, sMAPE, MASE. Only MAPE drives selection.
    """
    yt, yh = paired_finite(y_true, y_hat)
    eps = mape_epsilon_from_train(y_train)
    err = yh - yt

    return {
        "ME": float(np.mean(err)) if yt.size > 0 else float("nan"),
        "MAE": mae(yt, yh),
        "RMSE": rmse(yt, yh),
        "MAPE": mape_eps(yt, yh, eps),
        "sMAPE": smape(yt, yh),
        "MASE": mase_metric(yt, yh, y_train, m=m),
    }
