"""
Tuner Module
============

Responsibility:
- Search strategies (random search, shuffled grid search) and evaluation budgets.
- `AutoTuner`: inner search + inner resampling + refit behind the plain
  learner train/predict contract.
"""

from .tuners import EvaluationBudget, GridSearchTuner, RandomSearchTuner, Tuner, TunerFactory
from .auto_tuner import AutoTuner, TuningResult, compose

__all__ = [
    'AutoTuner', 'EvaluationBudget', 'GridSearchTuner', 'RandomSearchTuner',
    'Tuner', 'TunerFactory', 'TuningResult', 'compose',
]
