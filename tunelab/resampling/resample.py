import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from tunelab.resampling.resampling import Fold, Resampling
from tunelab.search_space import count_distinct, is_inactive
from tunelab.task import Task

logger = logging.getLogger(__name__)


@dataclass
class ResampleResult:
    """
    Outcome of evaluating one learner on one task under one resampling.

    `scores` holds one row per fold. For auto-tuned learners
    `tuning_results` keeps the inner TuningResult of every fold unaveraged,
    so divergent winning configurations stay visible.
    """
    task_id: str
    learner_id: str
    resampling_id: str
    measure_ids: List[str]
    scores: pd.DataFrame
    predictions: List[Any] = field(default_factory=list)
    tuning_results: List[Any] = field(default_factory=list)
    models: List[Any] = field(default_factory=list)

    @property
    def iters(self) -> int:
        return len(self.scores)

    def aggregate(self) -> Dict[str, float]:
        """Arithmetic mean of every measure across folds."""
        return {m: float(self.scores[m].mean()) for m in self.measure_ids}

    def inner_tuning_table(self) -> pd.DataFrame:
        """One row per fold: selected configuration and its inner score."""
        rows = []
        for iteration, result in enumerate(self.tuning_results):
            if result is None:
                continue
            row = {
                'iteration': iteration,
                'inner_measure': result.measure_id,
                'inner_score': result.best_score,
                'n_evals': result.n_evals,
            }
            for name, value in result.best_params.items():
                row[name] = np.nan if is_inactive(value) else value
            rows.append(row)
        return pd.DataFrame(rows)

    def n_distinct_configurations(self) -> int:
        return count_distinct([r.best_params for r in self.tuning_results if r is not None])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'learner_id': self.learner_id,
            'resampling_id': self.resampling_id,
            'iters': self.iters,
            'aggregate': self.aggregate(),
        }


def resample(task: Task, learner, resampling: Union[Resampling, Sequence[Fold]], measures: Sequence[Any],
             row_ids: Optional[Sequence[int]] = None, store_models: bool = False) -> ResampleResult:
    """
    Train a fresh clone of `learner` on every fold and score it on the fold's
    test rows.

    `resampling` is either a strategy (instantiated on `row_ids`) or a list
    of already instantiated folds, which lets several learners share the
    exact same splits.
    """
    if isinstance(resampling, Resampling):
        folds = resampling.instantiate(task, row_ids)
        resampling_id = resampling.id
    else:
        folds = list(resampling)
        resampling_id = "custom"

    rows, predictions, tuning_results, models = [], [], [], []
    for fold in folds:
        fold_learner = learner.clone()
        fold_learner.train(task, fold.train_ids)
        prediction = fold_learner.predict(task, fold.test_ids)

        row = {
            'task_id': task.task_id,
            'learner_id': learner.id,
            'iteration': fold.iteration,
            'n_train': len(fold.train_ids),
            'n_test': len(fold.test_ids),
            'train_time': fold_learner.train_time,
        }
        row.update(prediction.score(measures))
        rows.append(row)
        predictions.append(prediction)
        tuning_results.append(getattr(fold_learner, 'tuning_result', None))
        if store_models:
            models.append(fold_learner)

        logger.debug(f"[{task.task_id}/{learner.id}] fold {fold.iteration}: "
                     + ", ".join(f"{m.id}={row[m.id]:.4f}" for m in measures))

    return ResampleResult(
        task_id=task.task_id,
        learner_id=learner.id,
        resampling_id=resampling_id,
        measure_ids=[m.id for m in measures],
        scores=pd.DataFrame(rows),
        predictions=predictions,
        tuning_results=tuning_results if any(r is not None for r in tuning_results) else [],
        models=models,
    )
