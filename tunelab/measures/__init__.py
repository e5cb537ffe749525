"""
Measures Module
===============

Responsibility:
- Scoring functions over predictions with a known optimization direction.
- Named registry (accuracy, AUC, Brier score, ...) built on sklearn.metrics.
"""

from .measures import Measure, MeasureFactory

__all__ = ['Measure', 'MeasureFactory']
