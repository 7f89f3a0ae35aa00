from pathlib import Path

import pytest

import config
from backtesting.holdout_evaluation import HoldoutConfig
from config import ConfigurationError, ConfigurationManager, get_config
from roster_forecaster_src import config_utils
from roster_forecaster_src.config_utils import get_config_value, initialize_config
from roster_forecaster_src.parsing_utils import parse_model_list


def write_yaml(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_bundled_defaults_are_valid():
    cm = get_config()
    assert cm.validate_configuration() == []
    assert cm.get("models.roster") == ["naive", "seasonal_naive", "ets", "auto_arima"]
    assert cm.get("evaluation.max_workers") == 1
    assert cm.get("evaluation.holdout_length") is None
    assert cm.get("no.such.key", "fallback") == "fallback"


def test_override_file_is_deep_merged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    override = write_yaml(tmp_path / "override.yaml", "evaluation:\n  max_workers: 3\n")
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(override))
    config.reset_config()

    cm = get_config()
    assert cm.get("evaluation.max_workers") == 3
    # untouched siblings survive the merge
    assert cm.get("evaluation.progress") is False
    assert cm.get_configuration_summary()["override_path"] == str(override)

    hc = HoldoutConfig.from_config_manager(cm)
    assert hc.max_workers == 3
    assert hc.holdout_length is None


def test_get_returns_copies():
    cm = ConfigurationManager()
    roster = cm.get("models.roster")
    roster.append("mutated")
    assert "mutated" not in cm.get("models.roster")


def test_invalid_values_are_reported(tmp_path: Path):
    override = write_yaml(tmp_path / "bad.yaml",
                          "models:\n  roster: [naive, naive]\n"
                          "evaluation:\n  max_workers: 0\n  holdout_length: -2\n"
                          "series:\n  periodicity: hourly\n")
    errors = ConfigurationManager(override_path=override).validate_configuration()
    assert any("duplicate" in e for e in errors)
    assert any("max_workers" in e for e in errors)
    assert any("holdout_length" in e for e in errors)
    assert any("periodicity" in e for e in errors)


def test_unreadable_files_raise(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        ConfigurationManager(override_path=tmp_path / "missing.yaml")
    broken = write_yaml(tmp_path / "broken.yaml", "evaluation: [unclosed\n")
    with pytest.raises(ConfigurationError):
        ConfigurationManager(override_path=broken)
    scalar = write_yaml(tmp_path / "scalar.yaml", "just a string\n")
    with pytest.raises(ConfigurationError):
        ConfigurationManager(override_path=scalar)


def test_cli_value_beats_config_beats_default():
    initialize_config()
    args = type("Args", (), {"workers": 5, "holdout": None})()
    assert get_config_value("evaluation.max_workers", 9, args, "workers") == 5
    assert get_config_value("evaluation.max_workers", 9, args, "holdout") == 1
    assert get_config_value("evaluation.holdout_length", 4, args, "holdout") == 4

    config_utils.reset_config_manager()
    assert get_config_value("evaluation.max_workers", 9) == 9


def test_model_list_resolution(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    assert parse_model_list("seasonal_naive, naive,naive") == ["seasonal_naive", "naive"]
    with pytest.raises(ValueError):
        parse_model_list("naive,prophet")

    override = write_yaml(tmp_path / "roster.yaml", "models:\n  roster: [ets, naive]\n")
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(override))
    config.reset_config()
    initialize_config()
    assert parse_model_list(None) == ["ets", "naive"]
