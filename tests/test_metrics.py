import numpy as np
import pytest

from roster_forecaster_src.metrics_utils import (
    compute_metrics, mape_eps, mape_epsilon_from_train, mase_metric, paired_finite, selection_score, smape
)


def test_mape_matches_hand_computation():
    y = [100.0, 200.0]
    yhat = [110.0, 180.0]
    # (10/100 + 20/200) / 2 = 0.1
    assert mape_eps(y, yhat, eps=1e-8) == pytest.approx(10.0)


def test_perfect_forecast_scores_zero():
    y = np.array([5.0, 6.0, 7.0])
    assert selection_score(y, y.copy(), y_train=[1.0, 2.0, 3.0]) == 0.0


def test_constant_zero_series_gives_finite_score():
    train = np.zeros(16)
    actual = np.zeros(4)
    assert np.isfinite(selection_score(actual, np.zeros(4), train))
    assert np.isfinite(selection_score(actual, np.ones(4), train))


def test_epsilon_floor_from_training_data():
    assert mape_epsilon_from_train([]) == 1e-8
    assert mape_epsilon_from_train(np.zeros(10)) == 1e-8
    assert mape_epsilon_from_train(np.full(10, 50.0)) == pytest.approx(50.0)


def test_missing_actuals_are_masked_position_by_position():
    y = np.array([100.0, np.nan, 100.0])
    yhat = np.array([110.0, 0.0, 90.0])
    yt, yh = paired_finite(y, yhat)
    np.testing.assert_array_equal(yt, [100.0, 100.0])
    np.testing.assert_array_equal(yh, [110.0, 90.0])
    assert mape_eps(y, yhat, eps=1e-8) == pytest.approx(10.0)


def test_all_missing_actuals_give_nan():
    assert np.isnan(mape_eps([np.nan, np.nan], [1.0, 2.0], eps=1.0))


def test_smape_and_mase():
    assert smape([100.0], [100.0]) == 0.0
    train = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    # seasonal naive in-sample MAE with m=1 is 1.0
    assert mase_metric([7.0, 8.0], [8.0, 9.0], train, m=1) == pytest.approx(1.0)
    assert np.isnan(mase_metric([1.0], [1.0], [1.0, 1.0], m=4))


def test_compute_metrics_keys():
    out = compute_metrics([10.0, 12.0], [11.0, 12.0], [8.0, 9.0, 10.0, 11.0, 9.0, 10.0], m=4)
    assert set(out) == {"ME", "MAE", "RMSE", "MAPE", "sMAPE", "MASE"}
    assert out["ME"] == pytest.approx(0.5)
    assert out["MAE"] == pytest.approx(0.5)


def test_mase_differences_respect_missing_training_values():
    train = np.array([1.0, 2.0, 3.0, 4.0, np.nan, 6.0, 7.0, 8.0, 9.0, 10.0, 11.0, 12.0])
    # every observed lag-4 difference is 4, so an absolute error of 4 scales to 1
    assert mase_metric([13.0], [17.0], train, m=4) == pytest.approx(1.0)
    assert np.isnan(mase_metric([1.0], [2.0], [np.nan, 1.0, np.nan, 2.0], m=2))
