"""
Nested Resampling Module
========================

Responsibility:
- Outer resampling around an auto-tuned learner: k outer scores, k inner
  tuning results, mean aggregate, divergence of selected configurations.
"""

from .nested_resampling_engine import NestedResamplingEngine, evaluate, fold_score_summary

__all__ = ['NestedResamplingEngine', 'evaluate', 'fold_score_summary']
