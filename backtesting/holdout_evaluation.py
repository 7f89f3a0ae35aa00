"""Holdout evaluation and model selection.

The series is split once: the chronologically last `holdout_length` periods
are withheld, every roster candidate is fit on the remaining history and
scored on its holdout forecast, and the candidate with the strictly smallest
error is selected.

Features:
- Holdout is always the trailing segment; order encodes time, nothing is shuffled
- Per-candidate failure isolation (a failed fit disqualifies, never aborts)
- Optional thread-pool fan-out over candidates with roster-order selection
- Secondary accuracy metrics recorded alongside the selection score
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from config import get_config
from helpers.exceptions import FitFailure, InsufficientHistory, NoViableModel, STAGE_EVALUATION
from roster_forecaster_src.forecasting_utils import ForecastCandidate, build_roster, suppress_fit_warnings
from roster_forecaster_src.metrics_utils import SELECTION_METRIC, compute_metrics, selection_score
from validation.series_preparation import PeriodicSeries, check_history_length

logger = logging.getLogger(__name__)


@dataclass
class HoldoutConfig:
    """Configuration for holdout evaluation."""

    holdout_length: Optional[int] = None   # None = one seasonal cycle
    max_workers: int = 1                   # >1 fits candidates on a thread pool
    progress: bool = False                 # tqdm bar over the roster

    @classmethod
    def from_config_manager(cls, config_manager: Optional = None) -> 'HoldoutConfig':
        """Create HoldoutConfig from configuration manager.

        Parameters
        ----------
        config_manager : ConfigurationManager, optional
            Configuration manager instance

        Returns
        -------
        HoldoutConfig
            Configured holdout evaluation settings
        """
        config = cls()

        if config_manager:
            eval_config = config_manager.get_evaluation_config()
            config.holdout_length = eval_config.get('holdout_length', config.holdout_length)
            config.max_workers = int(eval_config.get('max_workers', config.max_workers) or 1)
            config.progress = bool(eval_config.get('progress', config.progress))
            logger.debug("Loaded holdout configuration from config manager")

        return config


@dataclass
class CandidateOutcome:
    """What happened to one candidate during evaluation."""

    name: str
    position: int
    candidate: Optional[ForecastCandidate] = None
    forecast: Optional[np.ndarray] = None
    score: float = float("nan")
    metrics: Dict[str, float] = field(default_factory=dict)
    reason: Optional[str] = None
    fit_time: Optional[float] = None

    @property
    def qualified(self) -> bool:
        return self.reason is None


@dataclass(frozen=True, eq=False)
class EvaluationResult:
    """Immutable bundle produced by HoldoutEvaluator.evaluate.

    Attributes
    ----------
    series : PeriodicSeries
        The series that was evaluated.
    holdout_length : int
        Number of trailing periods withheld for scoring.
    metric : str
        Name of the selection metric.
    roster_names : Tuple[str, ...]
        Every attempted candidate, in roster order.
    scores : Mapping[str, float]
        Selection score of each qualified candidate.
    metrics : Mapping[str, Mapping[str, float]]
        Secondary accuracy metrics of each qualified candidate.
    best_name : str
        The selected candidate.
    train_candidates : Mapping[str, ForecastCandidate]
        Candidates fitted on the training split, kept for inspection.
    disqualified : Mapping[str, str]
        Reason each disqualified candidate was excluded.
    holdout_forecasts : Mapping[str, np.ndarray]
        Holdout forecast of each qualified candidate.
    """

    series: PeriodicSeries
    holdout_length: int
    metric: str
    roster_names: Tuple[str, ...]
    scores: Mapping[str, float]
    metrics: Mapping[str, Mapping[str, float]]
    best_name: str
    train_candidates: Mapping[str, ForecastCandidate]
    disqualified: Mapping[str, str]
    holdout_forecasts: Mapping[str, np.ndarray]

    @property
    def best_candidate(self) -> ForecastCandidate:
        """The selected candidate as fitted on the training split."""
        return self.train_candidates[self.best_name]

    @property
    def best_score(self) -> float:
        return self.scores[self.best_name]

    @property
    def train_length(self) -> int:
        return len(self.series) - self.holdout_length

    @property
    def holdout_periods(self) -> pd.PeriodIndex:
        return self.series.periods[self.train_length:]

    def scores_frame(self) -> pd.DataFrame:
        """One row per attempted candidate in roster order."""
        rows = []
        for position, name in enumerate(self.roster_names):
            qualified = name in self.scores
            row = {
                'series': self.series.name,
                'model': name,
                'roster_position': position,
                'status': 'scored' if qualified else 'disqualified',
                'score': self.scores.get(name, float('nan')),
                'is_best': name == self.best_name,
                'reason': self.disqualified.get(name, ''),
            }
            for metric_name, value in self.metrics.get(name, {}).items():
                row[metric_name] = value
            rows.append(row)
        return pd.DataFrame(rows)


class HoldoutEvaluator:
    """Fits every roster candidate on the training split and selects the best."""

    def __init__(self, config: Optional[HoldoutConfig] = None):
        """Initialize the evaluator.

        Parameters
        ----------
        config : HoldoutConfig, optional
            Evaluation settings. If None, loaded from the configuration manager.
        """
        self.config = config or HoldoutConfig.from_config_manager(get_config())

    def evaluate(self,
                 series: PeriodicSeries,
                 roster: Optional[Sequence] = None,
                 holdout_length: Optional[int] = None) -> EvaluationResult:
        """Score each candidate on the trailing holdout and select the best.

        Parameters
        ----------
        series : PeriodicSeries
            Prepared series; never modified.
        roster : Sequence, optional
            ForecastCandidate objects, Forecaster instances or registered names.
            Defaults to the built-in roster. A fresh, unfitted copy of each
            entry is used.
        holdout_length : int, optional
            Trailing periods to withhold. Defaults to the configured value, or
            one seasonal cycle.

        Returns
        -------
        EvaluationResult

        Raises
        ------
        InsufficientHistory
            Before any fitting, if the series cannot accommodate the holdout
            or the holdout has no observed values
        NoViableModel
            If every candidate is disqualified
        """
        if holdout_length is None:
            holdout_length = self.config.holdout_length or series.season_length
        holdout_length = int(holdout_length)
        n = len(series)
        check_history_length(n, holdout_length, series.season_length, stage=STAGE_EVALUATION)

        candidates = build_roster(roster)
        names = tuple(c.name for c in candidates)
        if not candidates:
            raise NoViableModel({})

        train = series.slice(0, n - holdout_length)
        actuals = np.asarray(series.values[n - holdout_length:], dtype=float)
        if not np.isfinite(actuals).any():
            raise InsufficientHistory(
                f"Holdout of {holdout_length} periods ({series.periods[n - holdout_length]} to "
                f"{series.end_period}) has no observed values to score against",
                stage=STAGE_EVALUATION,
                n_obs=n,
            )
        logger.info("Evaluating %d candidate(s) on %s: train=%d periods (%s to %s), holdout=%d periods (%s to %s)",
                    len(candidates), series.name, len(train), train.start_period, train.end_period,
                    holdout_length, series.periods[n - holdout_length], series.end_period)

        outcomes = self._run_candidates(candidates, train, actuals, holdout_length)
        return self._select(series, holdout_length, names, outcomes)

    def _run_candidates(self,
                        candidates: List[ForecastCandidate],
                        train: PeriodicSeries,
                        actuals: np.ndarray,
                        holdout_length: int) -> List[CandidateOutcome]:
        """Evaluate each candidate independently; results come back in roster order."""
        outcomes: List[Optional[CandidateOutcome]] = [None] * len(candidates)
        workers = max(int(self.config.max_workers or 1), 1)
        bar = tqdm(total=len(candidates), desc=f"Evaluating {train.name}", disable=not self.config.progress)

        # Warning filters are process-wide: swap them here, never inside a worker.
        try:
            with suppress_fit_warnings():
                if workers > 1 and len(candidates) > 1:
                    with ThreadPoolExecutor(max_workers=min(workers, len(candidates))) as executor:
                        futures = {
                            executor.submit(self._evaluate_candidate, pos, cand, train, actuals, holdout_length): pos
                            for pos, cand in enumerate(candidates)
                        }
                        for future in as_completed(futures):
                            pos = futures[future]
                            outcomes[pos] = future.result()
                            bar.update(1)
                else:
                    for pos, cand in enumerate(candidates):
                        outcomes[pos] = self._evaluate_candidate(pos, cand, train, actuals, holdout_length)
                        bar.update(1)
        finally:
            bar.close()

        return outcomes

    def _evaluate_candidate(self,
                            position: int,
                            candidate: ForecastCandidate,
                            train: PeriodicSeries,
                            actuals: np.ndarray,
                            holdout_length: int) -> CandidateOutcome:
        """Fit, forecast and score one candidate. Never raises."""
        outcome = CandidateOutcome(name=candidate.name, position=position)

        fit_start = time.time()
        try:
            fitted = candidate.fit(train)
        except FitFailure as e:
            return self._disqualify(outcome, f"fit failed: {e}")
        except Exception as e:
            return self._disqualify(outcome, f"fit failed: {type(e).__name__}: {e}")
        outcome.fit_time = time.time() - fit_start
        outcome.candidate = fitted

        try:
            forecast = np.asarray(fitted.forecast(holdout_length), dtype=float).ravel()
        except Exception as e:
            return self._disqualify(outcome, f"forecast failed: {type(e).__name__}: {e}")

        if forecast.shape[0] != holdout_length:
            return self._disqualify(
                outcome, f"forecast returned {forecast.shape[0]} values, expected {holdout_length}")
        if not np.isfinite(forecast).all():
            return self._disqualify(outcome, "forecast contains non-finite values")

        score = selection_score(actuals, forecast, train.values)
        if not np.isfinite(score):
            return self._disqualify(outcome, f"{SELECTION_METRIC} is not finite")

        outcome.forecast = forecast
        outcome.score = score
        outcome.metrics = compute_metrics(actuals, forecast, train.values, m=train.season_length)
        logger.debug("Candidate %s: %s=%.4f (fit %.3fs)", candidate.name, SELECTION_METRIC, score, outcome.fit_time)
        return outcome

    def _disqualify(self, outcome: CandidateOutcome, reason: str) -> CandidateOutcome:
        logger.warning("Candidate %s disqualified: %s", outcome.name, reason)
        outcome.reason = reason
        outcome.candidate = None
        outcome.forecast = None
        return outcome

    def _select(self,
                series: PeriodicSeries,
                holdout_length: int,
                names: Tuple[str, ...],
                outcomes: List[CandidateOutcome]) -> EvaluationResult:
        """Strict minimum score, scanning in roster order so ties go to the earlier candidate."""
        best: Optional[CandidateOutcome] = None
        for outcome in outcomes:
            if outcome.qualified and (best is None or outcome.score < best.score):
                best = outcome

        disqualified = {o.name: o.reason for o in outcomes if not o.qualified}
        if best is None:
            raise NoViableModel(disqualified)

        qualified = [o for o in outcomes if o.qualified]
        logger.info("Selected %s for %s (%s=%.4f); %d scored, %d disqualified",
                    best.name, series.name, SELECTION_METRIC, best.score,
                    len(qualified), len(disqualified))

        return EvaluationResult(
            series=series,
            holdout_length=holdout_length,
            metric=SELECTION_METRIC,
            roster_names=names,
            scores=MappingProxyType({o.name: o.score for o in qualified}),
            metrics=MappingProxyType({o.name: MappingProxyType(dict(o.metrics)) for o in qualified}),
            best_name=best.name,
            train_candidates=MappingProxyType({o.name: o.candidate for o in qualified}),
            disqualified=MappingProxyType(disqualified),
            holdout_forecasts=MappingProxyType({o.name: _read_only(o.forecast) for o in qualified}),
        )


def _read_only(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=float)
    arr.setflags(write=False)
    return arr


def evaluate(series: PeriodicSeries,
             roster: Optional[Sequence] = None,
             holdout_length: Optional[int] = None,
             config: Optional[HoldoutConfig] = None) -> EvaluationResult:
    """Convenience function to run holdout evaluation.

    Parameters
    ----------
    series : PeriodicSeries
        Prepared series
    roster : Sequence, optional
        Candidates in competition order
    holdout_length : int, optional
        Trailing periods to withhold
    config : HoldoutConfig, optional
        Evaluation settings

    Returns
    -------
    EvaluationResult
    """
    return HoldoutEvaluator(config).evaluate(series, roster, holdout_length)
