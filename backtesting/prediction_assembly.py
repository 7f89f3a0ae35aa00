"""Final prediction assembly.

The selected candidate is refit on the entire series (the evaluation fit is
only used for scoring) and its forecast is combined with the history and the
in-sample fit into one tidy table.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from helpers.exceptions import RefitFailure
from helpers.temporal import period_start
from roster_forecaster_src.forecasting_utils import ForecastCandidate, suppress_fit_warnings
from validation.series_preparation import PeriodicSeries

logger = logging.getLogger(__name__)

TABLE_COLUMNS = ["timestamp", "period", "kind", "value"]


class RowKind(str, Enum):
    """Kind tag of a PredictionTable row."""
    ACTUAL = "actual"
    FITTED = "fitted"
    FORECAST = "forecast"


@dataclass(frozen=True, eq=False)
class PredictionTable:
    """
    Tidy (timestamp, period, kind, value) table: history, in-sample fit and
    forecast of one series.

    The underlying frame is private; every accessor returns a copy.
    """

    _frame: pd.DataFrame
    model_name: str
    series_name: str
    horizon: int

    def __post_init__(self):
        frame = self._frame
        if list(frame.columns) != TABLE_COLUMNS:
            raise ValueError(f"PredictionTable columns must be {TABLE_COLUMNS}")
        if frame.duplicated(subset=["timestamp", "kind"]).any():
            raise ValueError("PredictionTable has duplicate (timestamp, kind) rows")
        for kind, group in frame.groupby("kind", sort=False):
            if not group["timestamp"].is_monotonic_increasing:
                raise ValueError(f"Timestamps of kind '{kind}' are not increasing")
        object.__setattr__(self, "_frame", frame.reset_index(drop=True).copy())

    def __len__(self) -> int:
        return len(self._frame)

    def to_frame(self) -> pd.DataFrame:
        """Long-format copy of the table."""
        return self._frame.copy()

    def to_wide(self) -> pd.DataFrame:
        """One column per kind, indexed by timestamp."""
        wide = self._frame.pivot(index="timestamp", columns="kind", values="value")
        columns = [k.value for k in RowKind if k.value in wide.columns]
        wide = wide[columns]
        wide.columns.name = None
        return wide

    def to_csv(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        out = self.to_frame()
        out.insert(0, "series", self.series_name)
        out["model"] = self.model_name
        out.to_csv(path, index=False)
        logger.info("Wrote %d prediction rows to %s", len(out), path)
        return path

    def rows(self, kind: Union[str, RowKind]) -> pd.Series:
        """Values of one kind indexed by timestamp."""
        kind = RowKind(kind).value
        sub = self._frame[self._frame["kind"] == kind]
        return pd.Series(sub["value"].to_numpy(), index=pd.DatetimeIndex(sub["timestamp"]), name=kind)

    @property
    def actuals(self) -> pd.Series:
        return self.rows(RowKind.ACTUAL)

    @property
    def fitted(self) -> pd.Series:
        return self.rows(RowKind.FITTED)

    @property
    def forecasts(self) -> pd.Series:
        return self.rows(RowKind.FORECAST)


def _kind_rows(periods: pd.PeriodIndex, values: np.ndarray, kind: RowKind) -> pd.DataFrame:
    return pd.DataFrame({
        "timestamp": period_start(periods),
        "period": periods.astype(str),
        "kind": kind.value,
        "value": np.asarray(values, dtype=float),
    }, columns=TABLE_COLUMNS)


class PredictionAssembler:
    """Refits the selected candidate on the full series and builds the PredictionTable."""

    def assemble(self,
                 series: PeriodicSeries,
                 best_candidate: ForecastCandidate,
                 horizon: int) -> PredictionTable:
        """Refit on all history and assemble actual, fitted and forecast rows.

        Parameters
        ----------
        series : PeriodicSeries
            The full prepared series
        best_candidate : ForecastCandidate
            Selected candidate; any handle it carries from evaluation is ignored
        horizon : int
            Number of periods to forecast, >= 1

        Returns
        -------
        PredictionTable

        Raises
        ------
        ValueError
            If horizon < 1
        RefitFailure
            If the full-series refit or its forecast fails
        """
        horizon = int(horizon)
        if horizon < 1:
            raise ValueError("horizon must be >= 1")

        name = best_candidate.name
        logger.info("Refitting %s on all %d periods of %s", name, len(series), series.name)
        with suppress_fit_warnings():
            try:
                refit = best_candidate.unfitted().fit(series)
            except Exception as e:
                raise RefitFailure(f"Refit of {name} on the full series failed: {e}", candidate_name=name) from e

            try:
                forecast = np.asarray(refit.forecast(horizon), dtype=float).ravel()
            except Exception as e:
                raise RefitFailure(f"Forecast from refit {name} failed: {e}", candidate_name=name) from e
        if forecast.shape[0] != horizon:
            raise RefitFailure(
                f"Refit {name} returned {forecast.shape[0]} forecast values, expected {horizon}",
                candidate_name=name,
            )
        if not np.isfinite(forecast).all():
            raise RefitFailure(f"Refit {name} produced non-finite forecasts", candidate_name=name)

        parts = [_kind_rows(series.periods, series.values, RowKind.ACTUAL)]

        fitted = self._fitted_values(refit, len(series))
        if fitted is not None:
            mask = np.isfinite(fitted)
            if mask.any():
                parts.append(_kind_rows(series.periods[mask], fitted[mask], RowKind.FITTED))

        parts.append(_kind_rows(series.future_periods(horizon), forecast, RowKind.FORECAST))
        frame = pd.concat(parts, ignore_index=True)

        logger.debug("Assembled %d rows for %s (%d forecast from %s)",
                     len(frame), series.name, horizon, series.end_period + 1)
        return PredictionTable(frame, model_name=name, series_name=series.name, horizon=horizon)

    def _fitted_values(self, candidate: ForecastCandidate, n_obs: int) -> Optional[np.ndarray]:
        """In-sample fit if the model exposes one of the right length; absence is not an error."""
        try:
            fitted = candidate.fitted_values()
        except Exception as e:
            logger.debug("No fitted values from %s: %s", candidate.name, e)
            return None
        if fitted is None:
            return None
        fitted = np.asarray(fitted, dtype=float).ravel()
        if fitted.shape[0] != n_obs:
            logger.debug("Ignoring fitted values from %s: %d values for %d periods",
                         candidate.name, fitted.shape[0], n_obs)
            return None
        return fitted


def assemble(series: PeriodicSeries, best_candidate: ForecastCandidate, horizon: int) -> PredictionTable:
    """Convenience function to run prediction assembly."""
    return PredictionAssembler().assemble(series, best_candidate, horizon)
