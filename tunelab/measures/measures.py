from dataclasses import dataclass
from typing import Callable, List, Sequence

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    brier_score_loss,
    log_loss,
    roc_auc_score,
)

from tunelab.learner_factory.prediction import Prediction
from tunelab.utils.exceptions import ConfigurationError
from tunelab.utils.registry import Registry


@dataclass(frozen=True)
class Measure:
    """
    Scoring function over a Prediction with a known optimization direction.
    """
    id: str
    fn: Callable[[Prediction], float]
    minimize: bool
    requires_prob: bool = False
    lower: float = 0.0
    upper: float = 1.0

    @property
    def direction(self) -> str:
        return "minimize" if self.minimize else "maximize"

    def score(self, prediction: Prediction) -> float:
        if self.requires_prob and prediction.prob is None:
            raise ValueError(f"Measure '{self.id}' needs probability predictions.")
        return float(self.fn(prediction))

    def is_better(self, a: float, b: float) -> bool:
        """True if score `a` is strictly better than `b`."""
        if np.isnan(a):
            return False
        if np.isnan(b):
            return True
        return a < b if self.minimize else a > b

    def best_index(self, scores: Sequence[float]) -> int:
        """
        Index of the best score; the first one wins ties and NaNs are skipped.
        Returns -1 when every score is NaN.
        """
        values = np.asarray(scores, dtype=float)
        best = -1
        for i, value in enumerate(values):
            if best < 0 and not np.isnan(value):
                best = i
            elif best >= 0 and self.is_better(value, values[best]):
                best = i
        return best


# --- Scoring functions ---

def _accuracy(p: Prediction) -> float:
    return accuracy_score(p.truth, p.response)


def _classification_error(p: Prediction) -> float:
    return 1.0 - accuracy_score(p.truth, p.response)


def _balanced_accuracy(p: Prediction) -> float:
    return balanced_accuracy_score(p.truth, p.response)


def _auc(p: Prediction) -> float:
    # AUC is undefined when the rows hold a single class
    if len(np.unique(p.truth)) < 2:
        return np.nan
    if p.is_binary:
        return roc_auc_score((p.truth == p.positive).astype(int), p.prob_positive())
    return roc_auc_score(
        p.truth, p.prob[p.class_labels].to_numpy(),
        multi_class='ovr', average='macro', labels=p.class_labels,
    )


def _brier(p: Prediction) -> float:
    if p.is_binary:
        return brier_score_loss((p.truth == p.positive).astype(int), p.prob_positive())
    # Multiclass Brier: mean over rows of the summed squared class errors
    onehot = (np.asarray(p.truth)[:, None] == np.asarray(p.class_labels)[None, :]).astype(float)
    return float(np.mean(np.sum((p.prob[p.class_labels].to_numpy() - onehot) ** 2, axis=1)))


def _log_loss(p: Prediction) -> float:
    return log_loss(p.truth, p.prob[p.class_labels].to_numpy(), labels=p.class_labels)


class MeasureFactory:
    """
    Factory for creating measures by name.
    """

    MEASURES = Registry("measure")
    MEASURES.register('accuracy', Measure('accuracy', _accuracy, minimize=False))
    MEASURES.register('balanced_accuracy', Measure('balanced_accuracy', _balanced_accuracy, minimize=False))
    MEASURES.register('classification_error', Measure('classification_error', _classification_error, minimize=True))
    MEASURES.register('auc', Measure('auc', _auc, minimize=False, requires_prob=True))
    MEASURES.register('brier', Measure('brier', _brier, minimize=True, requires_prob=True, upper=2.0))
    MEASURES.register('log_loss', Measure('log_loss', _log_loss, minimize=True, requires_prob=True, upper=np.inf))

    @classmethod
    def create(cls, name: str) -> Measure:
        return cls.MEASURES.get(name)

    @classmethod
    def create_many(cls, names: Sequence[str]) -> List[Measure]:
        if not names:
            raise ConfigurationError("At least one measure is required.")
        return [cls.create(name) for name in names]

    @classmethod
    def get_available_measures(cls) -> List[str]:
        return cls.MEASURES.names()

    @classmethod
    def validate_registry(cls) -> None:
        def check(name, measure):
            if not isinstance(measure, Measure):
                return "entry is not a Measure"
            if measure.id != name:
                return f"registered under '{name}' but has id '{measure.id}'"
            if measure.lower > measure.upper:
                return "lower bound exceeds upper bound"
            return None
        cls.MEASURES.validate(check)
