"""
Resampling Module
=================

Responsibility:
- Seeded fold-generation strategies (cross-validation, repeated CV,
  holdout, bootstrap) over a given set of task row ids.
- `resample`: train/score a learner on every fold and collect the results.
"""

from .resampling import (
    Bootstrap,
    CrossValidation,
    Fold,
    Holdout,
    RepeatedCrossValidation,
    Resampling,
    ResamplingFactory,
)
from .resample import ResampleResult, resample

__all__ = [
    'Bootstrap', 'CrossValidation', 'Fold', 'Holdout', 'RepeatedCrossValidation',
    'Resampling', 'ResamplingFactory', 'ResampleResult', 'resample',
]
