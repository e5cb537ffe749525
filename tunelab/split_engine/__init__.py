"""
Split Engine Module
===================

Responsibility:
- Fixed-ratio, seeded train/test partition of task row ids.
- Stratified on the target with a random-split fallback.
"""

from .split_engine import SplitEngine

__all__ = ['SplitEngine']
