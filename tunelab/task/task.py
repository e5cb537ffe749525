import pandas as pd
import numpy as np
from pathlib import Path
from typing import Any, List, Optional, Sequence

from tunelab.utils.exceptions import DataValidationError
from tunelab.utils.file_io import read_dataframe


class Task:
    """
    Immutable classification task: a feature table, a target column and the
    row ids (0..n-1) addressing its rows.

    `X(row_ids)` / `y(row_ids)` select rows by id without touching the
    underlying frame, so train/test views never copy the data set.
    """

    def __init__(self, task_id: str, data: pd.DataFrame, target: str, positive: Optional[Any] = None):
        if not isinstance(data, pd.DataFrame) or data.empty:
            raise DataValidationError(f"Task '{task_id}' needs a non-empty DataFrame.")
        if target not in data.columns:
            raise DataValidationError(f"Target column '{target}' not found in task '{task_id}'.")
        if data[target].isna().any():
            raise DataValidationError(f"Target column '{target}' of task '{task_id}' contains missing values.")

        classes = sorted(pd.unique(data[target]).tolist(), key=str)
        if len(classes) < 2:
            raise DataValidationError(f"Task '{task_id}' needs at least two classes, found {classes}.")
        if positive is not None and positive not in classes:
            raise DataValidationError(f"Positive class {positive!r} not among classes {classes}.")
        if positive is None and len(classes) == 2:
            positive = classes[0]

        features = [c for c in data.columns if c != target]
        if not features:
            raise DataValidationError(f"Task '{task_id}' has no feature columns.")

        self._task_id = task_id
        self._data = data.reset_index(drop=True)
        self._target = target
        self._features = features
        self._classes = classes
        self._positive = positive

    # --- Read-only accessors ---

    @property
    def task_id(self) -> str:
        return self._task_id

    @property
    def target(self) -> str:
        return self._target

    @property
    def feature_names(self) -> List[str]:
        return list(self._features)

    @property
    def class_labels(self) -> List[Any]:
        return list(self._classes)

    @property
    def positive(self) -> Optional[Any]:
        return self._positive

    @property
    def is_binary(self) -> bool:
        return len(self._classes) == 2

    @property
    def n_rows(self) -> int:
        return len(self._data)

    @property
    def row_ids(self) -> np.ndarray:
        return self._data.index.to_numpy()

    def _resolve(self, row_ids: Optional[Sequence[int]]) -> np.ndarray:
        if row_ids is None:
            return self.row_ids
        ids = np.asarray(row_ids, dtype=int)
        if ids.size and (ids.min() < 0 or ids.max() >= self.n_rows):
            raise DataValidationError(f"Row ids out of range for task '{self._task_id}' ({self.n_rows} rows).")
        return ids

    def X(self, row_ids: Optional[Sequence[int]] = None) -> pd.DataFrame:
        return self._data.loc[self._resolve(row_ids), self._features]

    def y(self, row_ids: Optional[Sequence[int]] = None) -> pd.Series:
        return self._data.loc[self._resolve(row_ids), self._target]

    def class_counts(self, row_ids: Optional[Sequence[int]] = None) -> pd.Series:
        return self.y(row_ids).value_counts()

    def __repr__(self) -> str:
        return (
            f"Task(id={self._task_id!r}, rows={self.n_rows}, features={len(self._features)}, "
            f"classes={self._classes})"
        )


def load_dataframe(path: Path) -> pd.DataFrame:
    """Read a CSV / Parquet / Excel file into a DataFrame."""
    path = Path(path)
    if not path.exists():
        raise DataValidationError(f"Data file not found: {path}")

    try:
        data = read_dataframe(path)
    except ValueError as e:
        raise DataValidationError(str(e)) from e

    if data.empty:
        raise DataValidationError("Loaded dataframe is empty.")
    return data
