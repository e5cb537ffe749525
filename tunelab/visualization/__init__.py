"""
Visualization Module
====================

Responsibility:
- Off-screen PNG diagnostics: tuning archives, optimization paths, nested
  outer folds, benchmark score distributions, SVM decision regions.
"""

from .tuning_plots import TuningPlotter

__all__ = ['TuningPlotter']
