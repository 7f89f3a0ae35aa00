"""End-to-end comparative forecasting pipeline.

raw (timestamp, value) pairs -> prepare -> PeriodicSeries -> evaluate ->
EvaluationResult -> assemble -> PredictionTable

Each invocation handles exactly one series and shares no mutable state with
other invocations, so callers may fan out one pipeline per series.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

from config import get_config
from helpers.exceptions import ForecastPipelineError
from helpers.temporal import Periodicity
from roster_forecaster_src.forecasting_utils import DEFAULT_ROSTER, hash_forecast
from validation.series_preparation import PeriodicSeries, prepare

from .holdout_evaluation import EvaluationResult, HoldoutConfig, HoldoutEvaluator
from .prediction_assembly import PredictionAssembler, PredictionTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ForecastRun:
    """Inspectable bundle of one pipeline run."""

    series: PeriodicSeries
    evaluation: EvaluationResult
    predictions: PredictionTable
    horizon: int
    elapsed_seconds: float

    @property
    def best_model(self) -> str:
        return self.evaluation.best_name

    @property
    def scores(self) -> Dict[str, float]:
        return dict(self.evaluation.scores)

    def summary(self) -> Dict[str, Any]:
        """Flat description of the run, suitable for logging or JSON export."""
        return {
            'series': self.series.name,
            'n_obs': len(self.series),
            'periodicity': self.series.periodicity.value,
            'season_length': self.series.season_length,
            'start_period': str(self.series.start_period),
            'end_period': str(self.series.end_period),
            'holdout_length': self.evaluation.holdout_length,
            'horizon': self.horizon,
            'metric': self.evaluation.metric,
            'best_model': self.best_model,
            'best_score': self.evaluation.best_score,
            'scores': self.scores,
            'disqualified': dict(self.evaluation.disqualified),
            'series_fingerprint': self.series.fingerprint(),
            'forecast_hash': hash_forecast(self.predictions.forecasts.to_numpy()),
            'elapsed_seconds': round(self.elapsed_seconds, 3),
        }


class ForecastingPipeline:
    """Runs preparation, holdout evaluation and prediction assembly for one series."""

    def __init__(self, config_manager: Optional = None,
                 evaluation_config: Optional[HoldoutConfig] = None):
        """Initialize the pipeline.

        Parameters
        ----------
        config_manager : ConfigurationManager, optional
            Source of default roster, holdout, horizon and worker settings.
            Defaults to the process-wide manager.
        evaluation_config : HoldoutConfig, optional
            Explicit evaluator settings (overrides the configuration file)
        """
        self.config_manager = config_manager if config_manager is not None else get_config()
        self.evaluation_config = evaluation_config or HoldoutConfig.from_config_manager(self.config_manager)

    def default_roster(self) -> Sequence[str]:
        return tuple(self.config_manager.get('models.roster', None) or DEFAULT_ROSTER)

    def run(self,
            timestamps: Sequence,
            values: Sequence,
            periodicity: Union[str, Periodicity],
            roster: Optional[Sequence] = None,
            holdout_length: Optional[int] = None,
            horizon: Optional[int] = None,
            season_length: Optional[int] = None,
            name: str = "series") -> ForecastRun:
        """Prepare raw observations and run the full pipeline.

        Raises
        ------
        ForecastPipelineError
            Subclass naming the failing stage (preparation, evaluation, assembly)
        """
        holdout_length = self._resolve_holdout(holdout_length)
        series = prepare(timestamps, values, periodicity,
                         season_length=season_length,
                         holdout_length=holdout_length,
                         name=name)
        return self.run_series(series, roster=roster, holdout_length=holdout_length, horizon=horizon)

    def run_series(self,
                   series: PeriodicSeries,
                   roster: Optional[Sequence] = None,
                   holdout_length: Optional[int] = None,
                   horizon: Optional[int] = None) -> ForecastRun:
        """Run evaluation and assembly on an already prepared series."""
        start_time = time.time()
        holdout_length = self._resolve_holdout(holdout_length)
        if holdout_length is None:
            holdout_length = series.season_length
        if horizon is None:
            horizon = self.config_manager.get('forecast.horizon', None) or series.season_length
        if roster is None:
            roster = self.default_roster()

        try:
            evaluation = HoldoutEvaluator(self.evaluation_config).evaluate(series, roster, holdout_length)
            predictions = PredictionAssembler().assemble(series, evaluation.best_candidate, horizon)
        except ForecastPipelineError as e:
            logger.error("Pipeline failed for %s %s", series.name, e.describe())
            raise

        elapsed = time.time() - start_time
        logger.info("Pipeline completed for %s in %.2f seconds: best=%s, %d forecast periods",
                    series.name, elapsed, evaluation.best_name, int(horizon))
        return ForecastRun(
            series=series,
            evaluation=evaluation,
            predictions=predictions,
            horizon=int(horizon),
            elapsed_seconds=elapsed,
        )

    def _resolve_holdout(self, holdout_length: Optional[int]) -> Optional[int]:
        if holdout_length is not None:
            return int(holdout_length)
        return self.evaluation_config.holdout_length


def run_forecast_pipeline(timestamps: Sequence,
                          values: Sequence,
                          periodicity: Union[str, Periodicity],
                          roster: Optional[Sequence] = None,
                          holdout_length: Optional[int] = None,
                          horizon: Optional[int] = None,
                          season_length: Optional[int] = None,
                          name: str = "series",
                          config_manager: Optional = None,
                          evaluation_config: Optional[HoldoutConfig] = None) -> ForecastRun:
    """Convenience function for a complete pipeline run.

    Parameters
    ----------
    timestamps : Sequence
        Date-like observation times
    values : Sequence
        Observations aligned with `timestamps`
    periodicity : Union[str, Periodicity]
        e.g. "quarter", "month", Periodicity.YEAR
    roster : Sequence, optional
        Candidates in competition order (names, Forecasters or ForecastCandidates)
    holdout_length : int, optional
        Trailing periods withheld for scoring; defaults to one seasonal cycle
    horizon : int, optional
        Periods to forecast; defaults to one seasonal cycle
    season_length : int, optional
        Explicit periods per cycle, overriding the periodicity's natural cycle
    name : str
        Series label
    config_manager : optional
        Configuration manager
    evaluation_config : HoldoutConfig, optional
        Explicit evaluator settings

    Returns
    -------
    ForecastRun
    """
    pipeline = ForecastingPipeline(config_manager, evaluation_config)
    return pipeline.run(timestamps, values, periodicity,
                        roster=roster,
                        holdout_length=holdout_length,
                        horizon=horizon,
                        season_length=season_length,
                        name=name)
