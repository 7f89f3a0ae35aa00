import pandas as pd
import pytest

from helpers.exceptions import InvalidObservation, UnknownPeriodicity
from helpers.temporal import (
    Periodicity, future_periods, parse_periodicity, period_start, snap_to_periods
)


@pytest.mark.parametrize("alias,expected", [
    ("quarter", Periodicity.QUARTER),
    ("Quarterly", Periodicity.QUARTER),
    ("Q", Periodicity.QUARTER),
    ("monthly", Periodicity.MONTH),
    ("annual", Periodicity.YEAR),
    (" week ", Periodicity.WEEK),
    ("d", Periodicity.DAY),
    (Periodicity.MONTH, Periodicity.MONTH),
])
def test_parse_periodicity_aliases(alias, expected):
    assert parse_periodicity(alias) is expected


@pytest.mark.parametrize("bad", ["hourly", "", None, "fortnight"])
def test_parse_periodicity_rejects_unknown(bad):
    with pytest.raises(UnknownPeriodicity) as exc:
        parse_periodicity(bad)
    assert exc.value.stage == "preparation"


def test_natural_season_lengths():
    assert Periodicity.YEAR.season_length == 1
    assert Periodicity.QUARTER.season_length == 4
    assert Periodicity.MONTH.season_length == 12
    assert Periodicity.WEEK.season_length == 52
    assert Periodicity.DAY.season_length == 7


def test_snap_to_periods_maps_any_day_to_its_quarter():
    periods = snap_to_periods(["2020-02-15", "2020-03-31", "2020-04-01"], Periodicity.QUARTER)
    assert [str(p) for p in periods] == ["2020Q1", "2020Q1", "2020Q2"]
    starts = period_start(periods)
    assert list(starts) == [pd.Timestamp("2020-01-01"), pd.Timestamp("2020-01-01"), pd.Timestamp("2020-04-01")]


def test_snap_to_periods_month_end_and_month_start_agree():
    a = snap_to_periods(["2021-01-31", "2021-02-28"], Periodicity.MONTH)
    b = snap_to_periods(["2021-01-01", "2021-02-01"], Periodicity.MONTH)
    assert list(a) == list(b)


def test_snap_to_periods_drops_timezone():
    periods = snap_to_periods([pd.Timestamp("2022-06-15", tz="UTC")], Periodicity.MONTH)
    assert str(periods[0]) == "2022-06"


def test_snap_to_periods_rejects_unparsable_and_missing():
    with pytest.raises(InvalidObservation):
        snap_to_periods(["2020-01-01", "not a date"], Periodicity.MONTH)
    with pytest.raises(InvalidObservation):
        snap_to_periods(["2020-01-01", None], Periodicity.MONTH)


def test_future_periods_start_right_after_last():
    last = pd.Period("2023Q4", freq="Q")
    out = future_periods(last, 3)
    assert [str(p) for p in out] == ["2024Q1", "2024Q2", "2024Q3"]


def test_future_periods_requires_positive_horizon():
    with pytest.raises(ValueError):
        future_periods(pd.Period("2023-01", freq="M"), 0)
