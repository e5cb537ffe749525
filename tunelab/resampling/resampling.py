import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from sklearn.model_selection import KFold, RepeatedKFold, RepeatedStratifiedKFold, StratifiedKFold, train_test_split

from tunelab.task import Task
from tunelab.utils.exceptions import ConfigurationError
from tunelab.utils.registry import Registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Fold:
    """Train/test row ids of one resampling iteration."""
    iteration: int
    train_ids: np.ndarray
    test_ids: np.ndarray


class Resampling(ABC):
    """
    Fold-generation policy. `instantiate` is deterministic for a given seed
    and only ever uses the row ids it is given.
    """

    id = "resampling"

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed

    @property
    @abstractmethod
    def iters(self) -> int:
        pass

    @abstractmethod
    def _split(self, row_ids: np.ndarray, y: np.ndarray) -> List[tuple]:
        """Return (train_positions, test_positions) pairs into `row_ids`."""
        pass

    def instantiate(self, task: Task, row_ids: Optional[Sequence[int]] = None) -> List[Fold]:
        ids = task.row_ids if row_ids is None else np.asarray(row_ids, dtype=int)
        y = task.y(ids).to_numpy()
        return [
            Fold(iteration=i, train_ids=ids[train_pos], test_ids=ids[test_pos])
            for i, (train_pos, test_pos) in enumerate(self._split(ids, y))
        ]

    def params(self) -> Dict[str, Any]:
        return {}

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in {**self.params(), 'seed': self.seed}.items())
        return f"{self.__class__.__name__}({args})"


def _can_stratify(y: np.ndarray, n_splits: int) -> bool:
    _, counts = np.unique(y, return_counts=True)
    return counts.size > 1 and counts.min() >= n_splits


class CrossValidation(Resampling):
    """K-fold cross-validation, stratified on the target when feasible."""

    id = "cv"

    def __init__(self, folds: int = 3, stratify: bool = True, seed: Optional[int] = None):
        super().__init__(seed)
        if folds < 2:
            raise ConfigurationError(f"Cross-validation needs folds >= 2, got {folds}.")
        self.folds = folds
        self.stratify = stratify

    @property
    def iters(self) -> int:
        return self.folds

    def params(self) -> Dict[str, Any]:
        return {'folds': self.folds, 'stratify': self.stratify}

    def _split(self, row_ids, y):
        if len(row_ids) < self.folds:
            raise ConfigurationError(f"Cannot split {len(row_ids)} rows into {self.folds} folds.")
        if self.stratify and _can_stratify(y, self.folds):
            cv = StratifiedKFold(n_splits=self.folds, shuffle=True, random_state=self.seed)
            return list(cv.split(row_ids, y))
        if self.stratify:
            logger.warning(f"Some classes have fewer than {self.folds} rows. Falling back to plain K-fold.")
        cv = KFold(n_splits=self.folds, shuffle=True, random_state=self.seed)
        return list(cv.split(row_ids))


class RepeatedCrossValidation(CrossValidation):
    """K-fold cross-validation repeated with different shuffles."""

    id = "repeated_cv"

    def __init__(self, folds: int = 3, repeats: int = 2, stratify: bool = True, seed: Optional[int] = None):
        super().__init__(folds=folds, stratify=stratify, seed=seed)
        if repeats < 1:
            raise ConfigurationError(f"repeats must be >= 1, got {repeats}.")
        self.repeats = repeats

    @property
    def iters(self) -> int:
        return self.folds * self.repeats

    def params(self) -> Dict[str, Any]:
        return {**super().params(), 'repeats': self.repeats}

    def _split(self, row_ids, y):
        if self.stratify and _can_stratify(y, self.folds):
            cv = RepeatedStratifiedKFold(n_splits=self.folds, n_repeats=self.repeats, random_state=self.seed)
            return list(cv.split(row_ids, y))
        cv = RepeatedKFold(n_splits=self.folds, n_repeats=self.repeats, random_state=self.seed)
        return list(cv.split(row_ids))


class Holdout(Resampling):
    """Single train/test split with `ratio` of the rows used for training."""

    id = "holdout"

    def __init__(self, ratio: float = 2 / 3, stratify: bool = True, seed: Optional[int] = None):
        super().__init__(seed)
        if not (0.0 < ratio < 1.0):
            raise ConfigurationError(f"Holdout ratio must be between 0 and 1 (exclusive), got {ratio}")
        self.ratio = ratio
        self.stratify = stratify

    @property
    def iters(self) -> int:
        return 1

    def params(self) -> Dict[str, Any]:
        return {'ratio': self.ratio, 'stratify': self.stratify}

    def _split(self, row_ids, y):
        positions = np.arange(len(row_ids))
        stratify = y if self.stratify and _can_stratify(y, 2) else None
        try:
            train_pos, test_pos = train_test_split(
                positions, train_size=self.ratio, random_state=self.seed, shuffle=True, stratify=stratify
            )
        except ValueError:
            # Too few rows per class for the requested test size
            logger.warning("Stratified holdout failed. Using random split.")
            train_pos, test_pos = train_test_split(
                positions, train_size=self.ratio, random_state=self.seed, shuffle=True
            )
        return [(np.sort(train_pos), np.sort(test_pos))]


class Bootstrap(Resampling):
    """
    Bootstrap resampling: training rows drawn with replacement (so train sets
    overlap across iterations), out-of-bag rows used for testing.
    """

    id = "bootstrap"

    def __init__(self, repeats: int = 30, ratio: float = 1.0, seed: Optional[int] = None):
        super().__init__(seed)
        if repeats < 1:
            raise ConfigurationError(f"repeats must be >= 1, got {repeats}.")
        if not (0.0 < ratio <= 1.0):
            raise ConfigurationError(f"Bootstrap ratio must be in (0, 1], got {ratio}")
        self.repeats = repeats
        self.ratio = ratio

    @property
    def iters(self) -> int:
        return self.repeats

    def params(self) -> Dict[str, Any]:
        return {'repeats': self.repeats, 'ratio': self.ratio}

    def _split(self, row_ids, y):
        rng = np.random.default_rng(self.seed)
        n = len(row_ids)
        size = max(1, int(round(n * self.ratio)))
        splits = []
        for _ in range(self.repeats):
            train_pos = rng.integers(0, n, size=size)
            test_pos = np.setdiff1d(np.arange(n), train_pos)
            splits.append((train_pos, test_pos))
        return splits


class ResamplingFactory:
    """
    Factory for creating resampling strategies by name.
    """

    RESAMPLINGS = Registry("resampling")
    RESAMPLINGS.register('cv', CrossValidation)
    RESAMPLINGS.register('repeated_cv', RepeatedCrossValidation)
    RESAMPLINGS.register('holdout', Holdout)
    RESAMPLINGS.register('bootstrap', Bootstrap)

    @classmethod
    def create(cls, method: str, seed: Optional[int] = None, **params) -> Resampling:
        resampling_cls = cls.RESAMPLINGS.get(method)
        try:
            return resampling_cls(seed=seed, **params)
        except TypeError as e:
            raise ConfigurationError(f"Invalid parameters for resampling '{method}': {e}") from e

    @classmethod
    def from_config(cls, resampling_cfg: Dict[str, Any], seed: Optional[int] = None) -> Resampling:
        """Build from a config section like {"method": "cv", "folds": 3}."""
        params = {k: v for k, v in resampling_cfg.items() if k not in ('method', 'seed')}
        return cls.create(resampling_cfg.get('method', 'cv'), seed=resampling_cfg.get('seed', seed), **params)

    @classmethod
    def get_available_resamplings(cls) -> List[str]:
        return cls.RESAMPLINGS.names()

    @classmethod
    def validate_registry(cls) -> None:
        cls.RESAMPLINGS.validate(
            lambda name, entry: None if isinstance(entry, type) and issubclass(entry, Resampling) and entry.id == name
            else "entry is not a Resampling subclass with a matching id"
        )
