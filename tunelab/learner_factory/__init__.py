"""
Learner Factory Module
======================

Responsibility:
- Name-keyed registry of scikit-learn classifiers (k-NN, trees, forests,
  boosting, SVM, ...) with parameter aliases and admissible domains.
- `Learner`: the train/predict contract shared by plain and auto-tuned learners.
- `Prediction`: predicted labels/probabilities with scoring helpers.
"""

from .learner_factory import LearnerFactory, LearnerSpec, ParamDomain
from .prediction import Prediction
from .learner import Learner

__all__ = ['LearnerFactory', 'LearnerSpec', 'ParamDomain', 'Prediction', 'Learner']
