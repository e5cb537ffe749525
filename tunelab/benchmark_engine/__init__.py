"""
Benchmark Engine Module
=======================

Responsibility:
- Cross-product benchmark designs over tasks, learners and resamplings.
- Independent cell evaluation with failure isolation, aggregates, ranks
  and a Friedman test across tasks.
"""

from .benchmark_engine import (
    BenchmarkCell,
    BenchmarkDesign,
    BenchmarkEngine,
    BenchmarkResult,
    DesignEntry,
    benchmark,
    benchmark_grid,
)
from .stat_tests import friedman_test

__all__ = [
    'BenchmarkCell', 'BenchmarkDesign', 'BenchmarkEngine', 'BenchmarkResult',
    'DesignEntry', 'benchmark', 'benchmark_grid', 'friedman_test',
]
