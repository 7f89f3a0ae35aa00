import threading
import warnings

import numpy as np
import pandas as pd
import pytest

from backtesting.holdout_evaluation import HoldoutConfig, HoldoutEvaluator, evaluate
from helpers.exceptions import FitFailure, InsufficientHistory, NoViableModel
from roster_forecaster_src.forecasting_utils import ForecastCandidate, Forecaster
from validation import prepare


def seasonal_series(n=24):
    t = np.arange(n)
    pattern = np.array([10.0, -5.0, 20.0, -15.0])
    values = 100.0 + pattern[t % 4] + 0.5 * t
    dates = pd.date_range("2015-01-01", periods=n, freq="QS")
    return prepare(dates, values, "quarter", name="seasonal")


class SpyForecaster(Forecaster):
    """Records every series it is fit on; forecasts the last value."""

    name = "spy"

    def __init__(self):
        self.fit_calls = []
        self._lock = threading.Lock()

    def fit(self, series):
        with self._lock:
            self.fit_calls.append(series)
        return self._handle(series, float(series.values[-1]))

    def forecast(self, handle, horizon):
        return np.full(horizon, handle.model)


class OracleForecaster(Forecaster):
    """Forecasts the true continuation of a known series."""

    name = "oracle"

    def __init__(self, full_values):
        self.full_values = np.asarray(full_values, dtype=float)

    def fit(self, series):
        return self._handle(series, len(series))

    def forecast(self, handle, horizon):
        n = handle.model
        return self.full_values[n:n + horizon].copy()


class ConstantForecaster(Forecaster):
    name = "constant"

    def __init__(self, value):
        self.value = value

    def fit(self, series):
        return self._handle(series, self.value)

    def forecast(self, handle, horizon):
        return np.full(horizon, handle.model, dtype=float)


class FailingForecaster(Forecaster):
    name = "failing"

    def fit(self, series):
        raise FitFailure("cannot converge")

    def forecast(self, handle, horizon):
        raise AssertionError("forecast must not be called after a failed fit")


class BrokenForecastForecaster(ConstantForecaster):
    def forecast(self, handle, horizon):
        raise RuntimeError("boom")


class WrongLengthForecaster(ConstantForecaster):
    def forecast(self, handle, horizon):
        return np.zeros(horizon + 1)


class NanForecaster(ConstantForecaster):
    def forecast(self, handle, horizon):
        return np.full(horizon, np.nan)


def candidate(name, forecaster):
    return ForecastCandidate(name=name, forecaster=forecaster)


SEQUENTIAL = HoldoutConfig(max_workers=1)


def test_evaluation_is_deterministic():
    series = seasonal_series()
    roster = ["naive", "seasonal_naive", "ets"]
    a = evaluate(series, roster, 4, config=SEQUENTIAL)
    b = evaluate(series, roster, 4, config=SEQUENTIAL)
    assert a.best_name == b.best_name
    assert dict(a.scores) == dict(b.scores)


@pytest.mark.parametrize("spy_first", [True, False])
def test_holdout_is_always_the_last_periods(spy_first):
    series = seasonal_series()
    spy = SpyForecaster()
    roster = [candidate("spy", spy), "naive"] if spy_first else ["naive", candidate("spy", spy)]
    result = evaluate(series, roster, 5, config=SEQUENTIAL)

    assert len(spy.fit_calls) == 1
    train = spy.fit_calls[0]
    assert list(train.periods) == list(series.periods[:19])
    assert list(result.holdout_periods) == list(series.periods[-5:])
    assert result.train_length == 19


def test_default_holdout_is_one_season():
    series = seasonal_series()
    result = evaluate(series, ["naive"], config=SEQUENTIAL)
    assert result.holdout_length == 4


def test_perfect_candidate_is_selected():
    series = seasonal_series()
    roster = ["naive", "seasonal_naive", candidate("oracle", OracleForecaster(series.values))]
    result = evaluate(series, roster, 4, config=SEQUENTIAL)
    assert result.best_name == "oracle"
    assert result.scores["oracle"] == 0.0
    assert all(result.scores[n] > 0.0 for n in ("naive", "seasonal_naive"))


def test_tie_goes_to_first_in_roster():
    series = seasonal_series()
    roster = [candidate("first", ConstantForecaster(100.0)),
              candidate("second", ConstantForecaster(100.0))]
    assert evaluate(series, roster, 4, config=SEQUENTIAL).best_name == "first"
    assert evaluate(series, list(reversed(roster)), 4, config=SEQUENTIAL).best_name == "second"


def test_failed_candidates_are_disqualified_without_affecting_others():
    series = seasonal_series()
    roster = [
        candidate("failing", FailingForecaster()),
        candidate("broken", BrokenForecastForecaster(1.0)),
        candidate("wrong_length", WrongLengthForecaster(1.0)),
        candidate("nan", NanForecaster(1.0)),
        "seasonal_naive",
    ]
    result = evaluate(series, roster, 4, config=SEQUENTIAL)

    assert result.best_name == "seasonal_naive"
    assert set(result.disqualified) == {"failing", "broken", "wrong_length", "nan"}
    assert "cannot converge" in result.disqualified["failing"]
    assert "boom" in result.disqualified["broken"]
    assert set(result.scores) == {"seasonal_naive"}

    frame = result.scores_frame()
    assert list(frame["model"]) == ["failing", "broken", "wrong_length", "nan", "seasonal_naive"]
    assert list(frame["status"]) == ["disqualified"] * 4 + ["scored"]
    assert frame["is_best"].tolist() == [False, False, False, False, True]


def test_all_disqualified_raises_no_viable_model():
    series = seasonal_series()
    roster = [candidate("a", FailingForecaster()), candidate("b", FailingForecaster())]
    with pytest.raises(NoViableModel) as exc:
        evaluate(series, roster, 4, config=SEQUENTIAL)
    assert set(exc.value.attempts) == {"a", "b"}
    assert exc.value.stage == "evaluation"
    assert "cannot converge" in str(exc.value)


def test_empty_roster_raises_no_viable_model():
    with pytest.raises(NoViableModel):
        evaluate(seasonal_series(), [], 4, config=SEQUENTIAL)


def test_holdout_leaving_one_period_fails_before_fitting():
    series = seasonal_series()
    spy = SpyForecaster()
    with pytest.raises(InsufficientHistory) as exc:
        evaluate(series, [candidate("spy", spy)], holdout_length=len(series) - 1, config=SEQUENTIAL)
    assert spy.fit_calls == []
    assert exc.value.stage == "evaluation"


def test_non_positive_holdout_is_rejected():
    with pytest.raises(InsufficientHistory):
        evaluate(seasonal_series(), ["naive"], holdout_length=0, config=SEQUENTIAL)


def test_thread_pool_gives_the_same_selection():
    series = seasonal_series()
    roster = [candidate("failing", FailingForecaster()), "naive", "seasonal_naive", "ets",
              candidate("tie", ConstantForecaster(100.0))]
    sequential = evaluate(series, roster, 4, config=SEQUENTIAL)
    threaded = HoldoutEvaluator(HoldoutConfig(max_workers=4)).evaluate(series, roster, 4)

    assert threaded.best_name == sequential.best_name
    assert dict(threaded.scores) == pytest.approx(dict(sequential.scores))
    assert threaded.roster_names == sequential.roster_names
    assert dict(threaded.disqualified) == dict(sequential.disqualified)


def test_result_exposes_train_fits_and_is_read_only():
    series = seasonal_series()
    result = evaluate(series, ["naive", "seasonal_naive"], 4, config=SEQUENTIAL)

    best = result.best_candidate
    assert best.is_fitted
    assert best.handle.n_obs == len(series) - 4
    assert result.holdout_forecasts["naive"].shape == (4,)
    assert set(result.metrics["naive"]) >= {"MAE", "RMSE", "MAPE"}

    with pytest.raises(TypeError):
        result.scores["naive"] = 0.0
    with pytest.raises(ValueError):
        result.holdout_forecasts["naive"][0] = 0.0


def test_input_series_is_not_modified():
    series = seasonal_series()
    before = series.values.copy()
    evaluate(series, ["naive", "seasonal_naive"], 4, config=SEQUENTIAL)
    np.testing.assert_array_equal(series.values, before)
    assert len(series) == 24


def test_holdout_without_observed_values_fails_before_fitting():
    values = list(seasonal_series(20).values)
    values[-4:] = [None] * 4
    dates = pd.date_range("2015-01-01", periods=20, freq="QS")
    series = prepare(dates, values, "quarter", name="gappy_tail")
    spy = SpyForecaster()

    with pytest.raises(InsufficientHistory) as exc:
        evaluate(series, [candidate("spy", spy), "naive", "seasonal_naive"], 4, config=SEQUENTIAL)
    assert spy.fit_calls == []
    assert exc.value.stage == "evaluation"
    assert "no observed values" in str(exc.value)


def test_threaded_evaluation_leaves_warning_filters_untouched():
    rng = np.random.default_rng(7)
    t = np.arange(40)
    values = 100.0 + 8.0 * np.sin(2 * np.pi * t / 4) + 0.5 * t + rng.normal(0, 1.0, 40)
    dates = pd.date_range("2010-01-01", periods=40, freq="QS")
    series = prepare(dates, values, "quarter", name="noisy40")

    with warnings.catch_warnings():
        warnings.simplefilter("default")
        before = list(warnings.filters)
        for _ in range(2):
            HoldoutEvaluator(HoldoutConfig(max_workers=4)).evaluate(series, ["ets", "auto_arima", "naive"], 4)
            assert list(warnings.filters) == before
