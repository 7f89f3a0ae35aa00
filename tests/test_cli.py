from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from roster_forecaster_src.data_utils import infer_series_name_from_path, load_series_csv
from roster_forecaster_src.file_utils import SCORES_HEADER
from roster_forecaster_src.main import main, setup_cli_parser


def write_series_csv(path: Path, n=24, date_col="date", value_col="value") -> Path:
    t = np.arange(n)
    pattern = np.array([10.0, -5.0, 20.0, -15.0])
    df = pd.DataFrame({
        date_col: pd.date_range("2015-01-01", periods=n, freq="QS").strftime("%Y-%m-%d"),
        value_col: 100.0 + pattern[t % 4] + 0.5 * t,
    })
    df.to_csv(path, index=False)
    return path


def test_parser_defaults():
    args = setup_cli_parser().parse_args([])
    assert args.series_csv is None
    assert args.date_column == "date"
    assert args.value_column == "value"
    assert args.holdout is None and args.horizon is None and args.workers is None


def test_load_series_csv_coerces_values(tmp_path: Path):
    path = tmp_path / "sales.csv"
    pd.DataFrame({"when": ["2020-01-01", "2020-02-01", None],
                  "amount": ["1.5", "n/a", "3"]}).to_csv(path, index=False)
    dates, values = load_series_csv(path, "when", "amount")
    assert list(dates) == ["2020-01-01", "2020-02-01"]
    assert values.iloc[0] == 1.5
    assert np.isnan(values.iloc[1])

    with pytest.raises(ValueError):
        load_series_csv(path, "date", "amount")
    with pytest.raises(FileNotFoundError):
        load_series_csv(tmp_path / "absent.csv")


def test_series_name_from_path():
    assert infer_series_name_from_path(Path("data/series_US.csv")) == "US"
    assert infer_series_name_from_path(Path("retail.csv")) == "retail"


def test_single_series_run_writes_predictions_and_scores(tmp_path: Path):
    series_csv = write_series_csv(tmp_path / "seasonal.csv")
    out_csv = tmp_path / "pred.csv"
    scores_csv = tmp_path / "scores.csv"
    summary_json = tmp_path / "summary.json"

    rc = main([
        "--series-csv", str(series_csv),
        "--periodicity", "quarter",
        "--models", "naive,seasonal_naive",
        "--horizon", "3",
        "--output-csv", str(out_csv),
        "--scores-csv", str(scores_csv),
        "--summary-json", str(summary_json),
        "--log-level", "WARNING",
    ])
    assert rc == 0

    pred = pd.read_csv(out_csv)
    assert (pred["kind"] == "forecast").sum() == 3
    assert (pred["kind"] == "actual").sum() == 24
    assert set(pred["model"]) == {"seasonal_naive"}

    scores = pd.read_csv(scores_csv)
    assert list(scores.columns) == SCORES_HEADER
    assert list(scores["model"]) == ["naive", "seasonal_naive"]
    assert scores.loc[scores["is_best"], "model"].tolist() == ["seasonal_naive"]
    assert summary_json.exists()

    # second run appends rows without repeating the header
    rc = main(["--series-csv", str(series_csv), "--models", "naive",
               "--output-csv", str(out_csv), "--scores-csv", str(scores_csv)])
    assert rc == 0
    assert len(pd.read_csv(scores_csv)) == 3


def test_single_series_failure_exits_nonzero(tmp_path: Path):
    series_csv = write_series_csv(tmp_path / "short.csv", n=6)
    rc = main(["--series-csv", str(series_csv), "--output-csv", str(tmp_path / "p.csv")])
    assert rc == 1
    assert not (tmp_path / "p.csv").exists()

    assert main(["--series-csv", str(tmp_path / "missing.csv")]) == 1
    assert main(["--series-csv", str(series_csv), "--models", "prophet"]) == 1


def test_batch_continues_after_a_failing_file(tmp_path: Path):
    good = write_series_csv(tmp_path / "series_good.csv")
    bad = write_series_csv(tmp_path / "series_bad.csv", n=5)
    other = write_series_csv(tmp_path / "series_other.csv", date_col="ds", value_col="y")
    out_dir = tmp_path / "outputs"

    rc = main([
        "--batch-csvs", f"{good},{bad},{other}",
        "--models", "naive,seasonal_naive",
        "--output-dir", str(out_dir),
    ])
    assert rc == 1
    assert (out_dir / "good_predictions.csv").exists()
    assert not (out_dir / "bad_predictions.csv").exists()
    # wrong column names are a load failure for that file only
    assert not (out_dir / "other_predictions.csv").exists()


def test_requires_an_input():
    with pytest.raises(SystemExit):
        main([])


def test_broken_config_exits_nonzero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    import config
    broken = tmp_path / "broken.yaml"
    broken.write_text("models: [unclosed\n", encoding="utf-8")
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(broken))
    config.reset_config()
    series_csv = write_series_csv(tmp_path / "s.csv")
    assert main(["--series-csv", str(series_csv)]) == 1
