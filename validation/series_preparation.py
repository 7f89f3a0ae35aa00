"""Series preparation: raw (timestamp, value) pairs to an immutable PeriodicSeries.

This module owns the canonical in-memory representation of a dated,
evenly-spaced series and the checks that guard it:

- Stable chronological sort of the raw observations
- Snapping of each timestamp to the start of its period bucket
- Duplicate-bucket and gap detection (no implicit interpolation)
- Minimum-history enforcement for the default holdout
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from helpers.exceptions import (
    DuplicatePeriod,
    GapInSeries,
    InsufficientHistory,
    InvalidObservation,
    STAGE_PREPARATION,
)
from helpers.temporal import Periodicity, parse_periodicity, period_start, snap_to_periods, future_periods

logger = logging.getLogger(__name__)


def minimum_training_floor(season_length: int) -> int:
    """Smallest training length any candidate is given: one seasonal cycle, at least 2."""
    return max(int(season_length), 2)


def check_history_length(n_obs: int, holdout_length: int, season_length: int,
                         stage: str = STAGE_PREPARATION) -> None:
    """
    Ensure a series of `n_obs` periods can be split into a training part
    longer than the training floor and a holdout of `holdout_length`.

    Raises
    ------
    InsufficientHistory
        If ``holdout_length < 1`` or ``holdout_length >= n_obs - floor``.
    """
    floor = minimum_training_floor(season_length)
    required = floor + holdout_length + 1
    if holdout_length < 1 or n_obs < required:
        raise InsufficientHistory(
            f"Series has {n_obs} periods; holdout of {holdout_length} with a training floor "
            f"of {floor} needs at least {required}",
            stage=stage,
            n_obs=n_obs,
            required=required,
        )


@dataclass(frozen=True, eq=False)
class PeriodicSeries:
    """Dated, evenly-spaced univariate series.

    Attributes
    ----------
    periods : pd.PeriodIndex
        Strictly increasing, gap-free period buckets.
    values : np.ndarray
        Read-only float array; NaN marks an explicitly missing observation.
    periodicity : Periodicity
        Calendar step between observations.
    season_length : int
        Periods per seasonal cycle.
    name : str
        Label used in logs and exported tables.
    """

    periods: pd.PeriodIndex
    values: np.ndarray
    periodicity: Periodicity
    season_length: int
    name: str = "series"

    def __post_init__(self):
        if len(self.periods) != len(self.values):
            raise ValueError("periods and values must have the same length")
        values = np.array(self.values, dtype=float)
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def start_period(self) -> pd.Period:
        return self.periods[0]

    @property
    def end_period(self) -> pd.Period:
        return self.periods[-1]

    @property
    def timestamps(self) -> pd.DatetimeIndex:
        """Start timestamp of each period bucket."""
        return period_start(self.periods)

    @property
    def period_index(self) -> np.ndarray:
        """Zero-based position of each period relative to the start period."""
        return np.arange(len(self.values))

    @property
    def missing_count(self) -> int:
        return int(np.isnan(self.values).sum())

    def slice(self, start: int, stop: Optional[int] = None) -> "PeriodicSeries":
        """Contiguous sub-series ``[start:stop]`` as a new PeriodicSeries."""
        return PeriodicSeries(
            periods=self.periods[start:stop],
            values=self.values[start:stop],
            periodicity=self.periodicity,
            season_length=self.season_length,
            name=self.name,
        )

    def future_periods(self, horizon: int) -> pd.PeriodIndex:
        """The `horizon` periods immediately after the last observation."""
        return future_periods(self.end_period, horizon)

    def to_series(self) -> pd.Series:
        """pandas Series indexed by period start timestamps."""
        return pd.Series(self.values.copy(), index=self.timestamps, name=self.name)

    def to_frame(self) -> pd.DataFrame:
        """Tidy (period_index, period, timestamp, value) frame."""
        return pd.DataFrame({
            "period_index": self.period_index,
            "period": self.periods.astype(str),
            "timestamp": self.timestamps,
            "value": self.values.copy(),
        })

    def fingerprint(self) -> str:
        """16-character SHA-1 fingerprint of periods, values and periodicity."""
        h = hashlib.sha1()
        h.update(self.periodicity.value.encode("utf-8"))
        h.update(str(self.season_length).encode("utf-8"))
        h.update(np.asarray(self.periods.asi8, dtype=np.int64).tobytes())
        h.update(np.asarray(self.values, dtype=np.float64).tobytes())
        return h.hexdigest()[:16]


def _coerce_values(values: Iterable) -> np.ndarray:
    """Convert raw values to float, mapping None to NaN and rejecting infinities."""
    raw = [np.nan if v is None else v for v in values]
    try:
        arr = np.asarray(raw, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidObservation(f"Values must be numeric: {e}") from e
    if np.isinf(arr).any():
        raise InvalidObservation("Values must be finite or missing; found infinite value(s)")
    return arr


def prepare(timestamps: Sequence,
            values: Sequence,
            periodicity: Union[str, Periodicity],
            season_length: Optional[int] = None,
            holdout_length: Optional[int] = None,
            name: str = "series") -> PeriodicSeries:
    """
    Convert raw (timestamp, value) pairs into a PeriodicSeries.

    Parameters
    ----------
    timestamps : Sequence
        Date-like values (str, date, datetime, pd.Timestamp).
    values : Sequence
        Numeric observations aligned with `timestamps`; None/NaN are kept as missing.
    periodicity : Union[str, Periodicity]
        Periodicity selector, e.g. "quarter" or Periodicity.MONTH.
    season_length : int, optional
        Periods per seasonal cycle. Defaults to the periodicity's natural cycle.
    holdout_length : int, optional
        Holdout the series must accommodate. Defaults to one seasonal cycle.
    name : str
        Series label.

    Returns
    -------
    PeriodicSeries

    Raises
    ------
    UnknownPeriodicity, InvalidObservation, DuplicatePeriod, GapInSeries, InsufficientHistory
    """
    timestamps = list(timestamps)
    values = list(values)
    if len(timestamps) != len(values):
        raise ValueError(
            f"timestamps and values must have equal length ({len(timestamps)} != {len(values)})"
        )

    per = parse_periodicity(periodicity)
    season = int(season_length) if season_length is not None else per.season_length
    if season < 1:
        raise ValueError("season_length must be >= 1")
    holdout = int(holdout_length) if holdout_length is not None else season

    arr = _coerce_values(values)
    buckets = snap_to_periods(timestamps, per)

    # Stable sort on the raw timestamps keeps input order among equal stamps
    raw_stamps = pd.DatetimeIndex(pd.to_datetime(timestamps))
    order = np.argsort(raw_stamps.asi8, kind="stable")
    buckets = buckets[order]
    arr = arr[order]

    ordinals = np.asarray(buckets.asi8, dtype=np.int64)
    steps = np.diff(ordinals)

    dup_pos = np.flatnonzero(steps == 0)
    if dup_pos.size:
        period = buckets[int(dup_pos[0]) + 1]
        raise DuplicatePeriod(
            f"{dup_pos.size} duplicate period bucket(s) under {per.value} periodicity; first: {period}",
            period=period,
        )

    gap_pos = np.flatnonzero(steps > 1)
    if gap_pos.size:
        missing = []
        for pos in gap_pos:
            lo, hi = buckets[int(pos)], buckets[int(pos) + 1]
            missing.extend(pd.period_range(start=lo + 1, end=hi - 1, freq=lo.freq))
        raise GapInSeries(
            f"{len(missing)} missing period(s) under {per.value} periodicity; first: {missing[0]}",
            missing_periods=missing,
        )

    check_history_length(len(arr), holdout, season)

    series = PeriodicSeries(
        periods=buckets,
        values=arr,
        periodicity=per,
        season_length=season,
        name=name,
    )
    logger.debug("Prepared %s: %d %s periods from %s to %s (%d missing)",
                 name, len(series), per.value, series.start_period, series.end_period,
                 series.missing_count)
    return series
