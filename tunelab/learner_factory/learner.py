import time
from typing import Any, Dict, Optional, Sequence

import numpy as np
import pandas as pd

from tunelab.learner_factory.learner_factory import LearnerFactory
from tunelab.learner_factory.prediction import Prediction
from tunelab.task import Task
from tunelab.utils.exceptions import LearnerNotTrainedError, ModelTrainingError, PredictionError


class Learner:
    """
    Trainable classifier bound to a registry name and a parameter setting.

    `train` fits a fresh estimator on the given task rows, `predict` returns
    a Prediction for other rows. `configure` and `clone` never share the
    fitted state of the original.
    """

    def __init__(self, name: str, params: Optional[Dict[str, Any]] = None,
                 learner_id: Optional[str] = None, seed: Optional[int] = None):
        LearnerFactory.get_spec(name)  # fail fast on unknown names
        self.name = name
        self.params: Dict[str, Any] = dict(params or {})
        self.id = learner_id or name
        self.seed = seed
        self._model = None
        self.train_time: Optional[float] = None

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> Any:
        if self._model is None:
            raise LearnerNotTrainedError(f"Learner '{self.id}' has not been trained.")
        return self._model

    def configure(self, **params) -> "Learner":
        """Untrained copy with `params` merged over the current setting."""
        return Learner(self.name, {**self.params, **params}, learner_id=self.id, seed=self.seed)

    def clone(self) -> "Learner":
        return self.configure()

    def reset(self) -> "Learner":
        self._model = None
        self.train_time = None
        return self

    def train(self, task: Task, row_ids: Optional[Sequence[int]] = None) -> "Learner":
        X = task.X(row_ids)
        y = task.y(row_ids)
        if X.empty:
            raise ModelTrainingError(f"No training rows for learner '{self.id}'.")

        estimator = LearnerFactory.create_estimator(self.name, self.params, seed=self.seed)
        start_time = time.time()
        estimator.fit(X, y)
        self.train_time = time.time() - start_time
        self._model = estimator
        return self

    def predict(self, task: Task, row_ids: Optional[Sequence[int]] = None) -> Prediction:
        model = self.model
        X = task.X(row_ids)
        truth = task.y(row_ids)

        try:
            response = model.predict(X)
            prob = None
            if hasattr(model, 'predict_proba'):
                raw = model.predict_proba(X)
                prob = pd.DataFrame(raw, columns=list(model.classes_))
                # Classes missing from the training rows get zero probability
                for label in task.class_labels:
                    if label not in prob.columns:
                        prob[label] = 0.0
                prob = prob[task.class_labels]
        except Exception as e:
            raise PredictionError(f"Prediction failed for learner '{self.id}': {e}") from e

        return Prediction(
            row_ids=np.asarray(X.index),
            truth=truth.to_numpy(),
            response=np.asarray(response),
            prob=prob,
            class_labels=task.class_labels,
            positive=task.positive,
        )

    def __repr__(self) -> str:
        state = "trained" if self.is_trained else "untrained"
        return f"Learner(id={self.id!r}, name={self.name!r}, params={self.params}, {state})"
