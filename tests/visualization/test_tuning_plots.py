import logging
from unittest.mock import MagicMock

import numpy as np
import pandas as pd
import pytest
from sklearn.datasets import make_classification

from tunelab.resampling import ResampleResult
from tunelab.search_space import INACTIVE
from tunelab.task import Task
from tunelab.tuner import TuningResult
from tunelab.utils.exceptions import DataValidationError
from tunelab.visualization import TuningPlotter


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def plotter(mock_logger, tmp_path):
    config = {'outputs': {'base_results_dir': str(tmp_path)}, 'visualization': {'dpi': 50}}
    return TuningPlotter(config, mock_logger, output_dir=tmp_path / "plots")


@pytest.fixture
def archive():
    return pd.DataFrame({
        'config_id': [0, 1, 2, 3],
        'kernel': ['linear', 'radial', 'radial', 'linear'],
        'cost': [-1.0, 0.5, 2.0, 1.0],
        'gamma': [np.nan, 0.1, -0.3, np.nan],
        'score': [0.2, 0.15, np.nan, 0.3],
        'status': ['success', 'success', 'failed', 'success'],
        'error': [None, None, 'ValueError: boom', None],
        'runtime': [0.1, 0.1, 0.0, 0.1],
    })


def test_tuning_archive_numeric_param(plotter, archive):
    path = plotter.plot_tuning_archive(archive, 'cost', 'brier', minimize=True)
    assert path.exists()
    assert path.name == 'tuning_archive_cost.png'


def test_tuning_archive_categorical_param(plotter, archive):
    assert plotter.plot_tuning_archive(archive, 'kernel', 'brier', minimize=True).exists()


def test_tuning_archive_conditional_param(plotter, archive):
    assert plotter.plot_tuning_archive(archive, 'gamma', 'brier', minimize=True, filename='gamma.png').exists()


def test_unknown_param(plotter, archive):
    with pytest.raises(DataValidationError):
        plotter.plot_tuning_archive(archive, 'degree', 'brier', minimize=True)


def test_optimization_path(plotter, archive):
    assert plotter.plot_optimization_path(archive, 'brier', minimize=True).exists()


def test_nested_folds(plotter, archive):
    tuning = TuningResult(best_params={'kernel': 'linear', 'cost': 1.0, 'gamma': INACTIVE},
                          best_params_transformed={'kernel': 'linear', 'cost': 2.0, 'gamma': INACTIVE},
                          best_score=0.1, measure_id='brier', minimize=True, n_evals=4, archive=archive)
    result = ResampleResult(
        task_id='toy', learner_id='svm.tuned', resampling_id='cv', measure_ids=['accuracy'],
        scores=pd.DataFrame({'iteration': [0, 1], 'accuracy': [0.8, 0.9]}),
        tuning_results=[tuning, tuning],
    )
    assert plotter.plot_nested_folds(result, 'accuracy').exists()


def test_benchmark(plotter):
    table = pd.DataFrame({
        'task_id': ['a'] * 4 + ['b'] * 4,
        'learner_id': ['knn', 'knn', 'featureless', 'featureless'] * 2,
        'iteration': [0, 1] * 4,
        'classification_error': [0.1, 0.2, 0.5, 0.45, 0.15, 0.1, 0.4, 0.5],
    })
    assert plotter.plot_benchmark(table, 'classification_error').exists()
    with pytest.raises(DataValidationError):
        plotter.plot_benchmark(table.iloc[0:0], 'classification_error')


class TestSvmDecisionBoundary:
    @pytest.fixture
    def task(self):
        X, y = make_classification(n_samples=80, n_features=3, n_informative=2, n_redundant=0, random_state=3)
        data = pd.DataFrame(X, columns=['a', 'b', 'c'])
        data['label'] = np.where(y == 1, 'pos', 'neg')
        return Task('toy', data, 'label', positive='pos')

    @pytest.mark.parametrize("params", [
        {'kernel': 'linear', 'cost': 1.0},
        {'kernel': 'radial', 'cost': 1.0, 'gamma': 0.5},
        {'kernel': 'polynomial', 'cost': 1.0, 'degree': 2},
    ])
    def test_kernels(self, plotter, task, params):
        path = plotter.plot_svm_decision_boundary(task, ['a', 'b'], params, seed=0, resolution=30,
                                                  filename=f"svm_{params['kernel']}.png")
        assert path.exists()

    def test_needs_two_features(self, plotter, task):
        with pytest.raises(DataValidationError, match="exactly 2"):
            plotter.plot_svm_decision_boundary(task, ['a'], {'kernel': 'linear'})

    def test_unknown_feature(self, plotter, task):
        with pytest.raises(DataValidationError, match="not found"):
            plotter.plot_svm_decision_boundary(task, ['a', 'z'], {'kernel': 'linear'})
