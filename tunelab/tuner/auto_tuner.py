import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from tunelab.learner_factory import Learner, Prediction
from tunelab.measures import Measure
from tunelab.resampling import Fold, Resampling
from tunelab.search_space import SearchSpace, is_inactive
from tunelab.task import Task
from tunelab.tuner.tuners import EvaluationBudget, Tuner
from tunelab.utils.exceptions import LearnerNotTrainedError, ModelTrainingError


@dataclass
class TuningResult:
    """
    Outcome of one inner search.

    Attributes:
        best_params: Winning raw candidate (inactive parameters kept as INACTIVE).
        best_params_transformed: The winner after transforms, as handed to the learner.
        best_score: Mean inner resampling score of the winner.
        measure_id: Measure the search optimized.
        minimize: Optimization direction of that measure.
        n_evals: Number of evaluated candidates.
        archive: One row per evaluation (config_id, parameter columns, score, status, error, runtime).
    """
    best_params: Dict[str, Any]
    best_params_transformed: Dict[str, Any]
    best_score: float
    measure_id: str
    minimize: bool
    n_evals: int
    archive: pd.DataFrame

    @property
    def n_failed(self) -> int:
        return int((self.archive['status'] == 'failed').sum())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'best_params': self.best_params,
            'best_params_transformed': self.best_params_transformed,
            'best_score': self.best_score,
            'measure_id': self.measure_id,
            'direction': 'minimize' if self.minimize else 'maximize',
            'n_evals': self.n_evals,
            'n_failed': self.n_failed,
        }


def _evaluate_candidate(config_id: int, learner: Learner, learner_params: Dict[str, Any], task: Task,
                        folds: Sequence[Fold], measure: Measure) -> Dict[str, Any]:
    """
    Score one candidate on every inner fold. Failures are reported, not raised.
    A measure that is undefined on any fold fails the candidate, so all
    successful candidates are compared on the same folds.
    """
    start_time = time.time()
    try:
        fold_scores = []
        for fold in folds:
            fitted = learner.configure(**learner_params).train(task, fold.train_ids)
            fold_scores.append(measure.score(fitted.predict(task, fold.test_ids)))
        scores = pd.Series(fold_scores, dtype=float)
        undefined = scores.index[scores.isna()].tolist()
        if undefined:
            raise ValueError(f"{measure.id} is undefined on inner fold(s) {undefined}")
        score = float(scores.mean())
        status, error = "success", None
    except Exception as e:
        score, status, error = np.nan, "failed", f"{type(e).__name__}: {e}"
    return {
        'config_id': config_id,
        'score': score,
        'status': status,
        'error': error,
        'runtime': time.time() - start_time,
    }


class AutoTuner:
    """
    Learner wrapper that tunes its own hyperparameters before fitting.

    `train(task, row_ids)` runs `tuner` for `budget` evaluations, scores each
    candidate by inner `resampling` on `row_ids` only, keeps the best one by
    the direction of `measure` (first found wins ties) and refits `learner`
    with it on all of `row_ids`. It exposes the same train/predict contract
    as a plain Learner, so it can be resampled and benchmarked like one.
    """

    def __init__(self, learner: Learner, resampling: Resampling, measure: Measure, search_space: SearchSpace,
                 budget: EvaluationBudget, tuner: Tuner, seed: Optional[int] = None, n_jobs: int = 1,
                 learner_id: Optional[str] = None, logger: Optional[logging.Logger] = None):
        if isinstance(budget, int):
            budget = EvaluationBudget(budget)
        self.learner = learner
        self.resampling = resampling
        self.measure = measure
        self.search_space = search_space
        self.budget = budget
        self.tuner = tuner
        self.seed = seed
        self.n_jobs = n_jobs
        self.id = learner_id or f"{learner.id}.tuned"
        self.logger = logger or logging.getLogger(__name__)

        self._final: Optional[Learner] = None
        self.tuning_result: Optional[TuningResult] = None
        self.train_time: Optional[float] = None

    @property
    def is_trained(self) -> bool:
        return self._final is not None

    @property
    def model(self) -> Any:
        return self.final_learner.model

    @property
    def final_learner(self) -> Learner:
        if self._final is None:
            raise LearnerNotTrainedError(f"Auto-tuner '{self.id}' has not been trained.")
        return self._final

    @property
    def archive(self) -> pd.DataFrame:
        if self.tuning_result is None:
            raise LearnerNotTrainedError(f"Auto-tuner '{self.id}' has no tuning archive yet.")
        return self.tuning_result.archive

    def reset(self) -> "AutoTuner":
        """Discard fit and tuning state."""
        self._final = None
        self.tuning_result = None
        self.train_time = None
        return self

    def clone(self) -> "AutoTuner":
        """Fresh, untrained auto-tuner with the same composition."""
        return AutoTuner(
            learner=self.learner.clone(), resampling=self.resampling, measure=self.measure,
            search_space=self.search_space, budget=self.budget, tuner=self.tuner,
            seed=self.seed, n_jobs=self.n_jobs, learner_id=self.id, logger=self.logger,
        )

    def train(self, task: Task, row_ids: Optional[Sequence[int]] = None) -> "AutoTuner":
        if self.tuning_result is not None or self._final is not None:
            raise ModelTrainingError(
                f"Auto-tuner '{self.id}' is already trained. Call reset() before training again."
            )
        ids = task.row_ids if row_ids is None else np.asarray(row_ids, dtype=int)
        start_time = time.time()

        rng = np.random.default_rng(self.seed)
        candidates = self.tuner.propose(self.search_space, self.budget, rng)
        if not candidates:
            raise ModelTrainingError(f"Tuner {self.tuner} proposed no candidates for '{self.id}'.")
        folds = self.resampling.instantiate(task, ids)

        self.logger.info(
            f"Tuning '{self.id}' on {len(ids)} rows: {len(candidates)} candidates x "
            f"{len(folds)} inner folds, optimizing {self.measure.id} ({self.measure.direction})."
        )

        evaluations = Parallel(n_jobs=self.n_jobs)(
            delayed(_evaluate_candidate)(
                i, self.learner, self.search_space.to_learner_params(candidate), task, folds, self.measure
            )
            for i, candidate in enumerate(candidates)
        )

        archive = self._build_archive(candidates, evaluations)
        failed = archive[archive['status'] == 'failed']
        for _, row in failed.iterrows():
            self.logger.warning(f"Candidate {row['config_id']} of '{self.id}' failed: {row['error']}")

        best_index = self.measure.best_index(archive['score'].to_numpy())
        if best_index < 0:
            raise ModelTrainingError(
                f"All {len(candidates)} candidates of '{self.id}' failed or produced no score."
            )
        best = candidates[best_index]

        self.tuning_result = TuningResult(
            best_params=dict(best),
            best_params_transformed=self.search_space.transform(best),
            best_score=float(archive['score'].iloc[best_index]),
            measure_id=self.measure.id,
            minimize=self.measure.minimize,
            n_evals=len(candidates),
            archive=archive,
        )

        self._final = self.learner.configure(**self.search_space.to_learner_params(best))
        self._final.train(task, ids)
        self.train_time = time.time() - start_time

        self.logger.info(
            f"Best configuration for '{self.id}': {self._format(best)} "
            f"({self.measure.id}={self.tuning_result.best_score:.4f}, "
            f"{len(failed)} failed, {self.train_time:.1f}s)"
        )
        return self

    def predict(self, task: Task, row_ids: Optional[Sequence[int]] = None) -> Prediction:
        return self.final_learner.predict(task, row_ids)

    def _build_archive(self, candidates: List[Dict[str, Any]], evaluations: List[Dict[str, Any]]) -> pd.DataFrame:
        rows = []
        for candidate, evaluation in zip(candidates, evaluations):
            row = {'config_id': evaluation['config_id']}
            for name in self.search_space.ids:
                value = candidate[name]
                row[name] = np.nan if is_inactive(value) else value
            row.update({k: evaluation[k] for k in ('score', 'status', 'error', 'runtime')})
            rows.append(row)
        return pd.DataFrame(rows)

    @staticmethod
    def _format(candidate: Dict[str, Any]) -> str:
        return ", ".join(
            f"{k}={'<inactive>' if is_inactive(v) else (f'{v:.4g}' if isinstance(v, float) else v)}"
            for k, v in candidate.items()
        )

    def __repr__(self) -> str:
        return (
            f"AutoTuner(id={self.id!r}, learner={self.learner.name!r}, tuner={self.tuner}, "
            f"budget={self.budget.n_evals}, measure={self.measure.id!r})"
        )


def compose(learner: Learner, resampling: Resampling, measure: Measure, search_space: SearchSpace,
            budget: EvaluationBudget, tuner: Tuner, **kwargs) -> AutoTuner:
    """Combine the tuning ingredients into an AutoTuner."""
    return AutoTuner(learner, resampling, measure, search_space, budget, tuner, **kwargs)
