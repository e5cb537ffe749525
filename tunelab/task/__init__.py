"""
Task Module
===========

Responsibility:
- Immutable classification task handle (feature table, target, row ids).
- Named registry of bundled data sets plus file/DataFrame constructors.
"""

from .task import Task, load_dataframe
from .task_factory import TaskFactory

__all__ = ['Task', 'TaskFactory', 'load_dataframe']
