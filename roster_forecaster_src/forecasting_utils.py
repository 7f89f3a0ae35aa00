# roster_forecaster_src/forecasting_utils.py

"""
Forecaster capability and the built-in candidate roster.

Every algorithm exposes the same two operations:

- fit(series) -> ModelHandle
- forecast(handle, horizon) -> np.ndarray of exactly `horizon` values

plus a best-effort fitted_values(handle) for in-sample fit. Each built-in
algorithm runs with one fixed configuration; there are no per-call tuning
knobs. New algorithms are added through register_forecaster() without
touching the evaluator or the assembler.
"""

import hashlib
import logging
import warnings
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from itertools import product
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from statsmodels.tsa.holtwinters import ExponentialSmoothing
from statsmodels.tsa.statespace.sarimax import SARIMAX
from statsmodels.tools.sm_exceptions import ConvergenceWarning, ValueWarning

from helpers.exceptions import FitFailure
from validation.series_preparation import PeriodicSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ModelHandle:
    """Opaque result of Forecaster.fit, owned by the candidate that was fitted."""

    model_name: str
    model: Any
    n_obs: int
    end_period: pd.Period
    fitted: Optional[np.ndarray] = None
    details: Dict[str, Any] = field(default_factory=dict)


class Forecaster(ABC):
    """Two-operation forecasting capability."""

    name: str = "forecaster"

    @abstractmethod
    def fit(self, series: PeriodicSeries) -> ModelHandle:
        """Fit on `series`; raise FitFailure if the algorithm cannot be fit."""

    @abstractmethod
    def forecast(self, handle: ModelHandle, horizon: int) -> np.ndarray:
        """Forecast `horizon` periods following the fitted series."""

    def fitted_values(self, handle: ModelHandle) -> Optional[np.ndarray]:
        """In-sample fitted values aligned with the fitted series, if available."""
        return handle.fitted

    def _handle(self, series: PeriodicSeries, model: Any,
                fitted: Optional[np.ndarray] = None, **details) -> ModelHandle:
        return ModelHandle(
            model_name=self.name,
            model=model,
            n_obs=len(series),
            end_period=series.end_period,
            fitted=fitted,
            details=details,
        )


FIT_WARNING_CATEGORIES = (ConvergenceWarning, ValueWarning, RuntimeWarning, UserWarning, FutureWarning)


@contextmanager
def suppress_fit_warnings():
    """
    Silence the warnings statsmodels emits while fitting.

    ``warnings.catch_warnings`` swaps the process-wide filter list on entry and
    restores it on exit, so enter this only from the thread that coordinates
    the fits, never from inside a worker thread.
    """
    with warnings.catch_warnings():
        for category in FIT_WARNING_CATEGORIES:
            warnings.simplefilter("ignore", category)
        yield


def _check_horizon(horizon: int) -> int:
    horizon = int(horizon)
    if horizon < 1:
        raise ValueError("horizon must be >= 1")
    return horizon


def _require_variance(y: np.ndarray, model_name: str) -> None:
    finite = y[np.isfinite(y)]
    if finite.size < 2 or float(np.ptp(finite)) == 0.0:
        raise FitFailure(f"{model_name} requires a series with non-zero variance")


class NaiveForecaster(Forecaster):
    """Last observed value carried forward."""

    name = "naive"

    def fit(self, series: PeriodicSeries) -> ModelHandle:
        y = series.values
        finite_pos = np.flatnonzero(np.isfinite(y))
        if finite_pos.size == 0:
            raise FitFailure("naive: series has no observed values")
        last_value = float(y[finite_pos[-1]])

        fitted = np.full(len(y), np.nan)
        fitted[1:] = y[:-1]
        return self._handle(series, last_value, fitted=fitted)

    def forecast(self, handle: ModelHandle, horizon: int) -> np.ndarray:
        return np.full(_check_horizon(horizon), handle.model, dtype=float)


class SeasonalNaiveForecaster(Forecaster):
    """Value from the same season of the last observed cycle."""

    name = "seasonal_naive"

    def fit(self, series: PeriodicSeries) -> ModelHandle:
        y = series.values
        m = max(int(series.season_length), 1)
        if len(y) < m:
            raise FitFailure(f"seasonal_naive: needs at least one full cycle ({m} periods), got {len(y)}")

        # Last observed value for each season position, walking back whole cycles over gaps
        last_cycle = np.full(m, np.nan)
        for k in range(m):
            for pos in range(len(y) - m + k, -1, -m):
                if np.isfinite(y[pos]):
                    last_cycle[k] = y[pos]
                    break
        if not np.isfinite(last_cycle).all():
            raise FitFailure("seasonal_naive: a season position has no observed value")

        fitted = np.full(len(y), np.nan)
        fitted[m:] = y[:-m]
        return self._handle(series, last_cycle, fitted=fitted, season_length=m)

    def forecast(self, handle: ModelHandle, horizon: int) -> np.ndarray:
        horizon = _check_horizon(horizon)
        last_cycle = handle.model
        m = len(last_cycle)
        return np.array([last_cycle[k % m] for k in range(horizon)], dtype=float)


class ExponentialSmoothingForecaster(Forecaster):
    """
    Holt-Winters exponential smoothing with one fixed configuration:
    additive damped trend, additive seasonality when the cycle exceeds one
    period, parameters estimated by statsmodels.
    """

    name = "ets"

    def fit(self, series: PeriodicSeries) -> ModelHandle:
        y = np.asarray(series.values, dtype=float)
        if not np.isfinite(y).all():
            raise FitFailure("ets: series contains missing values")
        _require_variance(y, self.name)

        m = int(series.season_length)
        seasonal = "add" if m > 1 else None
        try:
            res = ExponentialSmoothing(
                y,
                trend="add",
                damped_trend=True,
                seasonal=seasonal,
                seasonal_periods=m if seasonal else None,
                initialization_method="estimated",
            ).fit()
        except Exception as e:
            raise FitFailure(f"ets: {e}") from e

        fitted = np.asarray(res.fittedvalues, dtype=float)
        if not np.isfinite(fitted).all():
            raise FitFailure("ets: fit produced non-finite fitted values")
        return self._handle(series, res, fitted=fitted, seasonal=seasonal, seasonal_periods=m)

    def forecast(self, handle: ModelHandle, horizon: int) -> np.ndarray:
        return np.asarray(handle.model.forecast(_check_horizon(horizon)), dtype=float)


class AutoArimaForecaster(Forecaster):
    """
    ARIMA-family model selected automatically by AIC.

    The search space is fixed: (p, q) in {0, 1, 2}^2 with d=1, and seasonal
    (P, Q) in {0, 1}^2 with D=0 and s equal to the season length when the cycle
    exceeds one period. The lowest finite AIC wins; ties go to the first order
    in grid order.
    """

    name = "auto_arima"

    P_Q_RANGE = (0, 1, 2)
    SEASONAL_RANGE = (0, 1)
    D = 1
    SEASONAL_D = 0

    def __init__(self, progress: bool = False):
        self.progress = progress

    def order_grid(self, season_length: int) -> List[Tuple[int, int, int, int]]:
        seasonal = self.SEASONAL_RANGE if season_length > 1 else (0,)
        return list(product(self.P_Q_RANGE, self.P_Q_RANGE, seasonal, seasonal))

    def _fit_order(self, y: np.ndarray, order: Tuple[int, int, int, int], s: int):
        p, q, P, Q = order
        seasonal_order = (P, self.SEASONAL_D, Q, s) if (P or Q) else (0, 0, 0, 0)
        return SARIMAX(
            y,
            order=(p, self.D, q),
            seasonal_order=seasonal_order,
            simple_differencing=False,
        ).fit(disp=False)

    def fit(self, series: PeriodicSeries) -> ModelHandle:
        y = np.asarray(series.values, dtype=float)
        _require_variance(y, self.name)
        s = int(series.season_length)

        best_res = None
        best_order = None
        best_aic = np.inf
        failures = 0
        for order in tqdm(self.order_grid(s), desc="auto_arima grid", disable=not self.progress, leave=False):
            try:
                res = self._fit_order(y, order, s)
            except Exception as e:
                failures += 1
                logger.debug("auto_arima: order %s failed: %s", order, e)
                continue
            aic = float(getattr(res, "aic", np.nan))
            if np.isfinite(aic) and aic < best_aic:
                best_res, best_order, best_aic = res, order, aic

        if best_res is None:
            raise FitFailure(f"auto_arima: no order in the grid could be fit ({failures} failures)")

        logger.debug("auto_arima: selected (p,q,P,Q)=%s with AIC=%.3f", best_order, best_aic)
        fitted = np.asarray(best_res.fittedvalues, dtype=float).copy()
        # First step of a differenced model is the diffuse prior, not a fit
        fitted[: self.D] = np.nan
        return self._handle(series, best_res, fitted=fitted, order=best_order, aic=best_aic)

    def forecast(self, handle: ModelHandle, horizon: int) -> np.ndarray:
        return np.asarray(handle.model.forecast(steps=_check_horizon(horizon)), dtype=float)


@dataclass(frozen=True)
class ForecastCandidate:
    """
    One roster entry: a name, the Forecaster implementing it and, once
    fitted, the model handle the fit produced.
    """

    name: str
    forecaster: Forecaster
    handle: Optional[ModelHandle] = None

    @property
    def is_fitted(self) -> bool:
        return self.handle is not None

    def unfitted(self) -> "ForecastCandidate":
        """Fresh copy without a handle."""
        return replace(self, handle=None)

    def fit(self, series: PeriodicSeries) -> "ForecastCandidate":
        """Fit on `series` and return a new candidate holding the handle."""
        return replace(self, handle=self.forecaster.fit(series))

    def forecast(self, horizon: int) -> np.ndarray:
        if self.handle is None:
            raise RuntimeError(f"Candidate {self.name!r} has not been fitted")
        return self.forecaster.forecast(self.handle, horizon)

    def fitted_values(self) -> Optional[np.ndarray]:
        if self.handle is None:
            return None
        return self.forecaster.fitted_values(self.handle)


_REGISTRY: Dict[str, Callable[[], Forecaster]] = {
    "naive": NaiveForecaster,
    "seasonal_naive": SeasonalNaiveForecaster,
    "ets": ExponentialSmoothingForecaster,
    "auto_arima": AutoArimaForecaster,
}

DEFAULT_ROSTER = ("naive", "seasonal_naive", "ets", "auto_arima")


def register_forecaster(name: str, factory: Callable[[], Forecaster], replace_existing: bool = False) -> None:
    """
    Register a forecaster factory under `name`.

    Raises
    ------
    ValueError
        If `name` is already registered and `replace_existing` is False
    """
    if name in _REGISTRY and not replace_existing:
        raise ValueError(f"Forecaster '{name}' is already registered")
    _REGISTRY[name] = factory


def list_forecasters() -> List[str]:
    """Registered forecaster names in registration order."""
    return list(_REGISTRY.keys())


def create_forecaster(name: str) -> Forecaster:
    """Instantiate a registered forecaster by name."""
    if name not in _REGISTRY:
        raise ValueError(f"Unknown model: {name}. Available: {list_forecasters()}")
    return _REGISTRY[name]()


def build_roster(entries: Optional[Sequence[Union[str, Forecaster, ForecastCandidate]]] = None) -> List[ForecastCandidate]:
    """
    Build a fresh, unfitted roster.

    Parameters
    ----------
    entries : Sequence, optional
        Registered names, Forecaster instances or ForecastCandidate objects, in
        the order they should compete (order decides ties). Defaults to
        DEFAULT_ROSTER.

    Raises
    ------
    ValueError
        On an unknown name, an unsupported entry or duplicate candidate names
    """
    if entries is None:
        entries = DEFAULT_ROSTER

    roster: List[ForecastCandidate] = []
    for entry in entries:
        if isinstance(entry, ForecastCandidate):
            candidate = entry.unfitted()
        elif isinstance(entry, Forecaster):
            candidate = ForecastCandidate(name=entry.name, forecaster=entry)
        elif isinstance(entry, str):
            candidate = ForecastCandidate(name=entry, forecaster=create_forecaster(entry))
        else:
            raise ValueError(f"Unsupported roster entry: {entry!r}")
        roster.append(candidate)

    names = [c.name for c in roster]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate candidate names in roster: {duplicates}")
    return roster


def hash_forecast(seq: Union[List[float], np.ndarray, pd.Series]) -> str:
    """
    Generate a 16-character SHA-1 fingerprint for a forecast sequence.

    Useful for verifying forecast reproducibility across runs.
    """
    arr = np.asarray(seq, dtype=np.float64)
    return hashlib.sha1(arr.tobytes()).hexdigest()[:16]
