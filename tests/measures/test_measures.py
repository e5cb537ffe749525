import numpy as np
import pandas as pd
import pytest

from tunelab.learner_factory import Prediction
from tunelab.measures import MeasureFactory
from tunelab.utils.exceptions import ConfigurationError, RegistryError


def make_prediction(truth, response, prob_pos=None, labels=('neg', 'pos'), positive='pos'):
    prob = None
    if prob_pos is not None:
        prob_pos = np.asarray(prob_pos, dtype=float)
        prob = pd.DataFrame({labels[0]: 1 - prob_pos, labels[1]: prob_pos})
    return Prediction(
        row_ids=np.arange(len(truth)),
        truth=np.asarray(truth),
        response=np.asarray(response),
        prob=prob,
        class_labels=list(labels),
        positive=positive,
    )


@pytest.fixture
def prediction():
    return make_prediction(
        truth=['pos', 'pos', 'neg', 'neg'],
        response=['pos', 'neg', 'neg', 'neg'],
        prob_pos=[0.9, 0.4, 0.2, 0.1],
    )


def test_accuracy_and_error(prediction):
    assert MeasureFactory.create('accuracy').score(prediction) == pytest.approx(0.75)
    assert MeasureFactory.create('classification_error').score(prediction) == pytest.approx(0.25)


def test_auc_uses_positive_class(prediction):
    assert MeasureFactory.create('auc').score(prediction) == pytest.approx(1.0)


def test_brier_binary(prediction):
    expected = np.mean([(1 - 0.9) ** 2, (1 - 0.4) ** 2, 0.2 ** 2, 0.1 ** 2])
    assert MeasureFactory.create('brier').score(prediction) == pytest.approx(expected)


def test_brier_multiclass():
    prob = pd.DataFrame({'a': [1.0, 0.0], 'b': [0.0, 0.5], 'c': [0.0, 0.5]})
    p = Prediction(row_ids=np.arange(2), truth=np.array(['a', 'b']), response=np.array(['a', 'b']),
                   prob=prob, class_labels=['a', 'b', 'c'])
    assert MeasureFactory.create('brier').score(p) == pytest.approx(0.25)


def test_auc_single_class_is_nan():
    p = make_prediction(truth=['pos', 'pos'], response=['pos', 'neg'], prob_pos=[0.8, 0.3])
    assert np.isnan(MeasureFactory.create('auc').score(p))


def test_probability_measures_need_probabilities():
    p = make_prediction(truth=['pos', 'neg'], response=['pos', 'neg'])
    with pytest.raises(ValueError, match="probability"):
        MeasureFactory.create('brier').score(p)


def test_directions():
    assert MeasureFactory.create('brier').minimize
    assert MeasureFactory.create('classification_error').direction == 'minimize'
    assert MeasureFactory.create('auc').direction == 'maximize'


class TestBestIndex:
    def test_first_best_wins_ties(self):
        assert MeasureFactory.create('brier').best_index([0.3, 0.1, 0.1]) == 1
        assert MeasureFactory.create('accuracy').best_index([0.7, 0.9, 0.9]) == 1

    def test_nan_is_skipped(self):
        assert MeasureFactory.create('brier').best_index([np.nan, 0.4, 0.2]) == 2
        assert MeasureFactory.create('brier').best_index([0.4, np.nan, 0.2, np.nan]) == 2

    def test_all_nan(self):
        assert MeasureFactory.create('brier').best_index([np.nan, np.nan]) == -1
        assert MeasureFactory.create('brier').best_index([]) == -1

    def test_is_better(self):
        brier = MeasureFactory.create('brier')
        assert brier.is_better(0.1, 0.2)
        assert not brier.is_better(np.nan, 0.2)
        assert brier.is_better(0.3, np.nan)


def test_create_many():
    measures = MeasureFactory.create_many(['accuracy', 'auc'])
    assert [m.id for m in measures] == ['accuracy', 'auc']
    with pytest.raises(ConfigurationError):
        MeasureFactory.create_many([])
    with pytest.raises(RegistryError):
        MeasureFactory.create('f1')


def test_registry_is_consistent():
    MeasureFactory.validate_registry()
