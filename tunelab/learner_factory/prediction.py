from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix


@dataclass
class Prediction:
    """
    Predictions of a learner for a set of task rows.

    Attributes:
        row_ids: Task row ids the predictions belong to.
        truth: Observed class labels (aligned with row_ids).
        response: Predicted class labels.
        prob: Class probabilities (one column per class label), if available.
        class_labels: All class labels of the task.
        positive: Positive class for binary tasks.
    """
    row_ids: np.ndarray
    truth: np.ndarray
    response: np.ndarray
    prob: Optional[pd.DataFrame]
    class_labels: List[Any]
    positive: Optional[Any] = None

    def __len__(self) -> int:
        return len(self.row_ids)

    @property
    def is_binary(self) -> bool:
        return len(self.class_labels) == 2

    def prob_positive(self) -> np.ndarray:
        if self.prob is None:
            raise ValueError("Prediction has no probabilities.")
        return self.prob[self.positive].to_numpy()

    def score(self, measures: Sequence[Any]) -> Dict[str, float]:
        """Score with each measure, keyed by measure id."""
        return {measure.id: measure.score(self) for measure in measures}

    def confusion_matrix(self) -> pd.DataFrame:
        matrix = confusion_matrix(self.truth, self.response, labels=self.class_labels)
        return pd.DataFrame(
            matrix,
            index=pd.Index(self.class_labels, name='truth'),
            columns=pd.Index(self.class_labels, name='response'),
        )

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame({
            'row_id': self.row_ids,
            'truth': self.truth,
            'response': self.response,
        })
        if self.prob is not None:
            for label in self.class_labels:
                df[f'prob.{label}'] = self.prob[label].to_numpy()
        return df
