"""Series preparation and validation for the roster forecaster.

This package turns raw (timestamp, value) observations into the canonical
PeriodicSeries consumed by evaluation and prediction assembly:
- Periodicity resolution and period-bucket snapping
- Duplicate-period and gap detection (fail loudly, never interpolate)
- Minimum-history checks shared with the holdout evaluator
- Series fingerprinting for reproducibility checks
"""

from .series_preparation import (
    PeriodicSeries,
    prepare,
    check_history_length,
    minimum_training_floor,
)

__all__ = [
    'PeriodicSeries',
    'prepare',
    'check_history_length',
    'minimum_training_floor',
]

# Version info
__version__ = '1.0.0'
