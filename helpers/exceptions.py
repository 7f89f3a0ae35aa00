# helpers/exceptions.py

"""
Error taxonomy for the comparative forecasting pipeline.

Every error carries the pipeline ``stage`` in which it was raised so that a
failed run can report where it stopped:

- preparation: UnknownPeriodicity, InvalidObservation, InsufficientHistory,
  DuplicatePeriod, GapInSeries
- evaluation: InsufficientHistory, FitFailure (recovered per candidate),
  NoViableModel
- assembly: RefitFailure
"""

from typing import Dict, Mapping, Optional

STAGE_PREPARATION = "preparation"
STAGE_EVALUATION = "evaluation"
STAGE_ASSEMBLY = "assembly"


class ForecastPipelineError(Exception):
    """Base class for all pipeline failures."""

    default_stage = STAGE_PREPARATION

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage or self.default_stage

    def describe(self) -> str:
        """One-line description including the failing stage."""
        return f"[{self.stage}] {type(self).__name__}: {self}"


class UnknownPeriodicity(ForecastPipelineError, ValueError):
    """Periodicity selector is not one the system recognises."""


class InvalidObservation(ForecastPipelineError, ValueError):
    """A timestamp could not be parsed or a value is infinite."""


class InsufficientHistory(ForecastPipelineError):
    """Series too short for the requested holdout and periodicity."""

    def __init__(self, message: str, stage: Optional[str] = None,
                 n_obs: Optional[int] = None, required: Optional[int] = None):
        super().__init__(message, stage)
        self.n_obs = n_obs
        self.required = required


class DuplicatePeriod(ForecastPipelineError):
    """Two input timestamps map to the same period bucket."""

    def __init__(self, message: str, period=None):
        super().__init__(message)
        self.period = period


class GapInSeries(ForecastPipelineError):
    """One or more period buckets between the first and last timestamp are missing."""

    def __init__(self, message: str, missing_periods=None):
        super().__init__(message)
        self.missing_periods = list(missing_periods or [])


class FitFailure(ForecastPipelineError):
    """A candidate could not be fit; recovered locally by disqualifying it."""

    default_stage = STAGE_EVALUATION


class NoViableModel(ForecastPipelineError):
    """Every candidate in the roster was disqualified."""

    default_stage = STAGE_EVALUATION

    def __init__(self, attempts: Mapping[str, str]):
        self.attempts: Dict[str, str] = dict(attempts)
        if self.attempts:
            details = "; ".join(f"{name}: {reason}" for name, reason in self.attempts.items())
        else:
            details = "roster is empty"
        super().__init__(f"No viable model among {len(self.attempts)} candidate(s) ({details})")


class RefitFailure(ForecastPipelineError):
    """The selected candidate failed when refit on the full series."""

    default_stage = STAGE_ASSEMBLY

    def __init__(self, message: str, candidate_name: Optional[str] = None):
        super().__init__(message)
        self.candidate_name = candidate_name
