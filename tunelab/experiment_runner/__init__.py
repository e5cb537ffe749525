"""
Experiment Runner Module
========================

Responsibility:
- Run the configured workflows (auto-tuning with held-out scoring, nested
  resampling, benchmark, SVM exploration) and write their artifacts.
"""

from .experiment_runner import ExperimentRunner, MODES

__all__ = ['ExperimentRunner', 'MODES']
