# roster_forecaster_src/__init__.py

"""
Roster Forecaster - comparative forecasting of a single periodic series

This package holds the forecasting capability, the error metrics and the
command-line layer. Series preparation lives in `validation`, holdout
evaluation and prediction assembly in `backtesting`.

Key Components
--------------
- forecasting_utils: Forecaster capability, built-in roster and registry
- metrics_utils: Selection score (stabilised MAPE) and secondary metrics
- config_utils: Configuration management and CLI override support
- data_utils: CSV loading of (date, value) observations
- parsing_utils: Command-line argument parsing
- file_utils: Output paths, scores CSV and run summaries
- main: Command-line entry point

Usage
-----
    # Command-line usage
    python -m roster_forecaster_src.main --series-csv data/sales.csv --periodicity month

    # Programmatic usage
    from backtesting import run_forecast_pipeline
    run = run_forecast_pipeline(dates, values, "quarter")
    run.predictions.to_frame()
"""

__version__ = "1.0.0"
__author__ = "Roster Forecaster Development Team"

# Import key functions for easy access
from .config_utils import initialize_config, get_config_value
from .data_utils import load_series_csv
from .forecasting_utils import (
    Forecaster, ForecastCandidate, ModelHandle, build_roster,
    register_forecaster, create_forecaster, list_forecasters, hash_forecast
)
from .metrics_utils import compute_metrics, selection_score

__all__ = [
    # Core functionality
    "initialize_config",
    "get_config_value",
    "load_series_csv",
    "Forecaster",
    "ForecastCandidate",
    "ModelHandle",
    "build_roster",
    "register_forecaster",
    "create_forecaster",
    "list_forecasters",
    "hash_forecast",
    "compute_metrics",
    "selection_score",
    # Version info
    "__version__",
    "__author__"
]
