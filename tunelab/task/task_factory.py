from pathlib import Path
from typing import Any, Callable, Optional

import pandas as pd
from sklearn.datasets import fetch_openml, load_breast_cancer, load_iris, load_wine

from tunelab.task.task import Task, load_dataframe
from tunelab.utils.registry import Registry


def _from_bunch(loader: Callable, task_id: str, positive: Optional[Any] = None) -> Task:
    bunch = loader(as_frame=True)
    data = bunch.frame.copy()
    data['target'] = pd.Categorical.from_codes(bunch.target, categories=list(bunch.target_names)).astype(str)
    return Task(task_id, data, target='target', positive=positive)


def _breast_cancer() -> Task:
    return _from_bunch(load_breast_cancer, 'breast_cancer', positive='malignant')


def _wine() -> Task:
    return _from_bunch(load_wine, 'wine')


def _iris() -> Task:
    return _from_bunch(load_iris, 'iris')


def _spam() -> Task:
    # OpenML "spambase"; downloaded on first use and cached by scikit-learn
    bunch = fetch_openml(name='spambase', version=1, as_frame=True, parser='auto')
    data = bunch.frame.copy()
    target = bunch.target.name
    data[target] = data[target].map({'1': 'spam', '0': 'nonspam', 1: 'spam', 0: 'nonspam'})
    return Task('spam', data, target=target, positive='spam')


class TaskFactory:
    """
    Builds classification tasks by name, from DataFrames or from files.
    """

    TASKS = Registry("task")
    TASKS.register('breast_cancer', _breast_cancer)
    TASKS.register('wine', _wine)
    TASKS.register('iris', _iris)
    TASKS.register('spam', _spam)

    @classmethod
    def create(cls, name: str) -> Task:
        return cls.TASKS.get(name)()

    @classmethod
    def get_available_tasks(cls):
        return cls.TASKS.names()

    @staticmethod
    def from_dataframe(data: pd.DataFrame, target: str, task_id: str = 'custom',
                       positive: Optional[Any] = None) -> Task:
        return Task(task_id, data, target=target, positive=positive)

    @classmethod
    def from_file(cls, path: Path, target: str, task_id: Optional[str] = None,
                  positive: Optional[Any] = None) -> Task:
        data = load_dataframe(Path(path))
        return cls.from_dataframe(data, target, task_id or Path(path).stem, positive)

    @classmethod
    def from_config(cls, task_cfg: dict) -> Task:
        """Resolve the `task` config section (a registered name or a file)."""
        if task_cfg.get('file_path'):
            return cls.from_file(
                task_cfg['file_path'],
                target=task_cfg['target'],
                task_id=task_cfg.get('name'),
                positive=task_cfg.get('positive'),
            )
        return cls.create(task_cfg['name'])

    @classmethod
    def validate_registry(cls) -> None:
        cls.TASKS.validate(lambda name, loader: None if callable(loader) else "loader is not callable")
