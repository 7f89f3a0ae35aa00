"""Cross-cutting helpers: period arithmetic and the pipeline error taxonomy."""

from .exceptions import (
    ForecastPipelineError,
    UnknownPeriodicity,
    InvalidObservation,
    InsufficientHistory,
    DuplicatePeriod,
    GapInSeries,
    FitFailure,
    NoViableModel,
    RefitFailure,
)
from .temporal import Periodicity, parse_periodicity, snap_to_periods, future_periods

__all__ = [
    'ForecastPipelineError',
    'UnknownPeriodicity',
    'InvalidObservation',
    'InsufficientHistory',
    'DuplicatePeriod',
    'GapInSeries',
    'FitFailure',
    'NoViableModel',
    'RefitFailure',
    'Periodicity',
    'parse_periodicity',
    'snap_to_periods',
    'future_periods',
]
