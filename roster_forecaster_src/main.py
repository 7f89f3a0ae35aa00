# roster_forecaster_src/main.py

"""
Comparative forecasting of a single periodic series from the command line.

Purpose
-------
- Load (date, value) observations from CSV
- Prepare a gap-free periodic series (yearly, quarterly, monthly, weekly or daily)
- Fit every candidate of the roster on all but the last holdout periods and
  score each on the holdout with epsilon-stabilised MAPE
- Refit the best candidate on the full history and write a tidy table of
  actuals, in-sample fit and forecast
- Optionally append per-candidate scores to a shared CSV

Batch mode runs one independent pipeline per input file; a failing file is
logged and the remaining files still run.

Configuration-Driven Workflow
-----------------------------
Default roster, holdout, horizon and evaluator workers come from the YAML
configuration (config/defaults.yaml, overridable through the
ROSTER_FORECASTER_CONFIG environment variable). CLI arguments override
configuration values.
"""

import argparse
import logging
import warnings
from pathlib import Path
from typing import List, Optional

from config import ConfigurationError
from backtesting.evaluation_pipeline import ForecastingPipeline, ForecastRun
from backtesting.holdout_evaluation import HoldoutConfig
from helpers.exceptions import ForecastPipelineError

from .config_utils import initialize_config, get_config_value
from .data_utils import load_series_csv, infer_series_name_from_path
from .parsing_utils import (
    parse_csv_list, parse_model_list, validate_log_level, validate_positive_int
)
from .file_utils import (
    ensure_dir, resolve_path, append_scores_csv_rows, predictions_path_for, write_run_summary
)

logger = logging.getLogger(__name__)


def build_pipeline(args: argparse.Namespace, config_manager=None) -> ForecastingPipeline:
    """Pipeline with evaluator settings resolved as CLI > configuration > default."""
    holdout = validate_positive_int(
        get_config_value('evaluation.holdout_length', None, args, 'holdout'), "holdout")
    workers = validate_positive_int(
        get_config_value('evaluation.max_workers', 1, args, 'workers'), "workers")
    progress = bool(get_config_value('evaluation.progress', False))
    evaluation_config = HoldoutConfig(holdout_length=holdout, max_workers=workers, progress=progress)
    return ForecastingPipeline(config_manager, evaluation_config)


def run_single_series(series_path: Path,
                      args: argparse.Namespace,
                      pipeline: ForecastingPipeline,
                      models: List[str],
                      output_csv: Optional[Path],
                      scores_csv: Optional[Path],
                      summary_json: Optional[Path] = None) -> ForecastRun:
    """
    Run the comparative forecasting pipeline for one CSV file.

    Parameters
    ----------
    series_path : Path
        CSV with a date column and a value column
    args : argparse.Namespace
        CLI arguments (column names, periodicity, season length, horizon)
    pipeline : ForecastingPipeline
        Configured pipeline
    models : List[str]
        Candidate names in competition order
    output_csv : Optional[Path]
        Where to write the prediction table
    scores_csv : Optional[Path]
        If provided, append one scores row per candidate
    summary_json : Optional[Path]
        If provided, write the run summary as JSON

    Returns
    -------
    ForecastRun

    Raises
    ------
    ForecastPipelineError
        When preparation, evaluation or assembly fails
    FileNotFoundError, ValueError
        When the CSV cannot be loaded
    """
    name = infer_series_name_from_path(series_path)
    logger.info("Starting roster forecast for %s (%s)", name, series_path)

    timestamps, values = load_series_csv(series_path, args.date_column, args.value_column)
    horizon = validate_positive_int(get_config_value('forecast.horizon', None, args, 'horizon'), "horizon")

    run = pipeline.run(
        timestamps.tolist(),
        values.tolist(),
        get_config_value('series.periodicity', 'quarter', args, 'periodicity'),
        roster=models,
        horizon=horizon,
        season_length=validate_positive_int(args.season_length, "season-length"),
        name=name,
    )

    if output_csv is not None:
        run.predictions.to_csv(output_csv)
    append_scores_csv_rows(scores_csv, run.evaluation.scores_frame())
    summary = run.summary()
    if summary_json is not None:
        write_run_summary(summary_json, summary)

    logger.info("%s: best=%s %s=%.4f, forecast_hash=%s",
                name, summary['best_model'], summary['metric'], summary['best_score'], summary['forecast_hash'])
    for model_name, reason in summary['disqualified'].items():
        logger.info("%s: %s disqualified (%s)", name, model_name, reason)
    return run


def run_batch(series_paths: List[Path],
              args: argparse.Namespace,
              pipeline: ForecastingPipeline,
              models: List[str],
              output_dir: Path,
              scores_csv: Optional[Path]) -> int:
    """
    Run one independent pipeline per file.

    Returns
    -------
    int
        Number of files that failed
    """
    ensure_dir(output_dir)
    failures = 0
    for series_path in series_paths:
        name = infer_series_name_from_path(series_path)
        try:
            run_single_series(series_path, args, pipeline, models,
                              predictions_path_for(output_dir, name), scores_csv)
        except ForecastPipelineError as e:
            failures += 1
            logger.error("Forecast failed for %s: %s", name, e.describe())
        except (FileNotFoundError, ValueError) as e:
            failures += 1
            logger.error("Could not load %s: %s", series_path, e)
    logger.info("Batch completed: %d/%d series succeeded", len(series_paths) - failures, len(series_paths))
    return failures


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Select the best of a roster of forecasting models on a holdout and forecast a periodic series."
    )

    # Inputs
    parser.add_argument(
        "--series-csv", type=str, default=None,
        help="CSV with a date column and a value column (one series)."
    )
    parser.add_argument(
        "--batch-csvs", type=str, default=None,
        help="Comma-separated list of series CSVs; one independent run per file."
    )
    parser.add_argument(
        "--date-column", type=str, default="date",
        help="Name of the timestamp column."
    )
    parser.add_argument(
        "--value-column", type=str, default="value",
        help="Name of the observation column."
    )
    parser.add_argument(
        "--periodicity", type=str, default=None,
        help="Series periodicity: year, quarter, month, week or day (default from config, else quarter)."
    )
    parser.add_argument(
        "--season-length", type=int, default=None,
        help="Periods per seasonal cycle; overrides the periodicity's natural cycle."
    )

    # Evaluation
    parser.add_argument(
        "--models", type=str, default=None,
        help="Comma-separated candidate names in competition order (e.g. 'naive,seasonal_naive,ets')."
    )
    parser.add_argument(
        "--holdout", type=int, default=None,
        help="Trailing periods withheld for scoring (default: one seasonal cycle)."
    )
    parser.add_argument(
        "--horizon", type=int, default=None,
        help="Periods to forecast beyond the last observation (default: one seasonal cycle)."
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Threads used to evaluate candidates concurrently."
    )

    # Outputs
    parser.add_argument(
        "--output-csv", type=str, default=None,
        help="Prediction table CSV for --series-csv (default: <output-dir>/<series>_predictions.csv)."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Directory for prediction tables (default from config, else 'outputs')."
    )
    parser.add_argument(
        "--scores-csv", type=str, default=None,
        help="If provided, append per-candidate holdout scores to this CSV."
    )
    parser.add_argument(
        "--summary-json", type=str, default=None,
        help="If provided with --series-csv, write the run summary as JSON."
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level (default from config, else INFO)."
    )
    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Configure warnings based on log level
    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the roster forecaster.

    Returns
    -------
    int
        Process exit status: 0 on success, 1 if any series failed
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    try:
        config_manager = initialize_config()
    except ConfigurationError as e:
        setup_logging(args.log_level or "INFO")
        logger.error("Failed to initialize configuration: %s", e)
        return 1

    setup_logging(str(get_config_value('logging.level', 'INFO', args, 'log_level')))

    if not args.series_csv and not args.batch_csvs:
        parser.error("one of --series-csv or --batch-csvs is required")

    base_dir = Path.cwd()
    output_dir = resolve_path(str(get_config_value('output.directory', 'outputs', args, 'output_dir')), base_dir)
    scores_value = get_config_value('output.scores_csv', None, args, 'scores_csv')
    scores_csv = resolve_path(str(scores_value), base_dir) if scores_value else None

    try:
        models = parse_model_list(args.models)
        pipeline = build_pipeline(args, config_manager)
    except ValueError as e:
        logger.error("Invalid arguments: %s", e)
        return 1

    # Batch mode
    if args.batch_csvs:
        paths = [resolve_path(p, base_dir) for p in parse_csv_list(args.batch_csvs)]
        if not paths:
            logger.warning("No valid paths provided to --batch-csvs; nothing to run.")
            return 0
        failures = run_batch(paths, args, pipeline, models, output_dir, scores_csv)
        return 1 if failures else 0

    # Single series mode
    series_path = resolve_path(args.series_csv, base_dir)
    if args.output_csv:
        output_csv = resolve_path(args.output_csv, base_dir)
    else:
        output_csv = predictions_path_for(output_dir, infer_series_name_from_path(series_path))
    summary_json = resolve_path(args.summary_json, base_dir) if args.summary_json else None

    try:
        run_single_series(series_path, args, pipeline, models, output_csv, scores_csv, summary_json)
    except ForecastPipelineError as e:
        logger.error("Forecast failed %s", e.describe())
        return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error("Could not load %s: %s", series_path, e)
        return 1
    return 0


def cli() -> None:
    """Console-script entry point."""
    raise SystemExit(main())


if __name__ == "__main__":
    cli()
