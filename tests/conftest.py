import pytest

import config
from roster_forecaster_src import config_utils


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Every test starts from the bundled defaults with no override file."""
    monkeypatch.delenv(config.CONFIG_ENV_VAR, raising=False)
    config.reset_config()
    config_utils.reset_config_manager()
    yield
    config.reset_config()
    config_utils.reset_config_manager()
