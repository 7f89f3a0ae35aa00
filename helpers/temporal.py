# -*- coding: utf-8 -*-
"""
Temporal utilities for periodicity handling and period-bucket alignment.

Functions
---------
- parse_periodicity(value): Resolve an enum member or alias ("quarter", "Q",
  "monthly", ...) to a Periodicity.
- snap_to_periods(timestamps, periodicity): Map timestamps onto the period
  bucket that contains them. Each bucket is labelled by its start timestamp.
- future_periods(last_period, horizon): The `horizon` periods immediately
  following `last_period`, with no gap.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Union

import pandas as pd

from helpers.exceptions import InvalidObservation, UnknownPeriodicity


class Periodicity(Enum):
    """Calendar step between consecutive observations."""

    YEAR = "year"
    QUARTER = "quarter"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"

    @property
    def freq(self) -> str:
        """pandas Period frequency alias."""
        return _PERIOD_FREQ[self]

    @property
    def season_length(self) -> int:
        """Number of periods in one natural seasonal cycle."""
        return _SEASON_LENGTH[self]


_PERIOD_FREQ = {
    Periodicity.YEAR: "Y",
    Periodicity.QUARTER: "Q",
    Periodicity.MONTH: "M",
    Periodicity.WEEK: "W",
    Periodicity.DAY: "D",
}

_SEASON_LENGTH = {
    Periodicity.YEAR: 1,
    Periodicity.QUARTER: 4,
    Periodicity.MONTH: 12,
    Periodicity.WEEK: 52,
    Periodicity.DAY: 7,
}

_ALIASES = {
    "year": Periodicity.YEAR, "yearly": Periodicity.YEAR, "annual": Periodicity.YEAR,
    "y": Periodicity.YEAR, "a": Periodicity.YEAR,
    "quarter": Periodicity.QUARTER, "quarterly": Periodicity.QUARTER, "q": Periodicity.QUARTER,
    "month": Periodicity.MONTH, "monthly": Periodicity.MONTH, "m": Periodicity.MONTH,
    "week": Periodicity.WEEK, "weekly": Periodicity.WEEK, "w": Periodicity.WEEK,
    "day": Periodicity.DAY, "daily": Periodicity.DAY, "d": Periodicity.DAY,
}


def parse_periodicity(value: Union[str, Periodicity]) -> Periodicity:
    """
    Resolve a periodicity selector to a Periodicity member.

    Parameters
    ----------
    value : Union[str, Periodicity]
        Enum member or case-insensitive alias such as "quarter", "Q", "monthly".

    Returns
    -------
    Periodicity

    Raises
    ------
    UnknownPeriodicity
        If the selector is not recognised.
    """
    if isinstance(value, Periodicity):
        return value
    key = str(value).strip().lower() if value is not None else ""
    try:
        return _ALIASES[key]
    except KeyError:
        raise UnknownPeriodicity(
            f"Unknown periodicity {value!r}. Expected one of: {[p.value for p in Periodicity]}"
        ) from None


def snap_to_periods(timestamps: Iterable, periodicity: Periodicity) -> pd.PeriodIndex:
    """
    Map each timestamp onto the period bucket containing it.

    Order is preserved; duplicates are not removed here.
    """
    try:
        stamps = pd.DatetimeIndex(pd.to_datetime(list(timestamps)))
    except (ValueError, TypeError) as e:
        raise InvalidObservation(f"Could not parse timestamps: {e}") from e
    if stamps.hasnans:
        raise InvalidObservation("Timestamps contain missing values")
    if stamps.tz is not None:
        stamps = stamps.tz_localize(None)
    return stamps.to_period(periodicity.freq)


def period_start(periods: pd.PeriodIndex) -> pd.DatetimeIndex:
    """Start timestamp of each period bucket."""
    return periods.to_timestamp(how="start")


def future_periods(last_period: pd.Period, horizon: int) -> pd.PeriodIndex:
    """
    Periods immediately following `last_period`.

    Notes
    -----
    The first returned period is exactly one step after `last_period`, so a
    forecast indexed with these periods never leaves a gap after the history.
    """
    if horizon < 1:
        raise ValueError("horizon must be >= 1")
    return pd.period_range(start=last_period + 1, periods=horizon, freq=last_period.freq)
