"""Holdout evaluation, model selection and prediction assembly.

This package provides the comparative part of the roster forecaster:
- Train/holdout split with the holdout always the trailing segment
- Per-candidate fit, forecast and scoring with failure isolation
- Strict-minimum selection with roster-order tie-break
- Full-series refit of the winner and tidy prediction table assembly
- End-to-end pipeline returning an inspectable run bundle
"""

from .holdout_evaluation import (
    HoldoutEvaluator,
    HoldoutConfig,
    EvaluationResult,
    CandidateOutcome,
    evaluate
)

from .prediction_assembly import (
    PredictionAssembler,
    PredictionTable,
    RowKind,
    assemble
)

from .evaluation_pipeline import (
    ForecastingPipeline,
    ForecastRun,
    run_forecast_pipeline
)

__all__ = [
    # Evaluation
    'HoldoutEvaluator',
    'HoldoutConfig',
    'EvaluationResult',
    'CandidateOutcome',
    'evaluate',

    # Assembly
    'PredictionAssembler',
    'PredictionTable',
    'RowKind',
    'assemble',

    # Pipeline
    'ForecastingPipeline',
    'ForecastRun',
    'run_forecast_pipeline'
]

# Version info
__version__ = '1.0.0'
