import json
import logging
from unittest.mock import MagicMock, patch

import numpy as np
import pandas as pd
import pytest
from sklearn.datasets import make_classification

from tunelab.learner_factory import Learner
from tunelab.measures import MeasureFactory
from tunelab.nested_resampling import NestedResamplingEngine, evaluate, fold_score_summary
from tunelab.resampling import CrossValidation, ResampleResult
from tunelab.search_space import IntParam, SearchSpace
from tunelab.task import Task
from tunelab.tuner import AutoTuner, EvaluationBudget, RandomSearchTuner
from tunelab.utils import constants


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def task():
    X, y = make_classification(n_samples=120, n_features=4, n_informative=3, n_redundant=0, random_state=8)
    data = pd.DataFrame(X, columns=[f"x{i}" for i in range(4)])
    data['label'] = np.where(y == 1, 'pos', 'neg')
    return Task('synthetic', data, 'label', positive='pos')


@pytest.fixture
def auto_tuner(mock_logger):
    return AutoTuner(
        learner=Learner('knn'),
        resampling=CrossValidation(folds=3, seed=1),
        measure=MeasureFactory.create('brier'),
        search_space=SearchSpace([IntParam('k', lower=3, upper=25)]),
        budget=EvaluationBudget(5),
        tuner=RandomSearchTuner(),
        seed=3,
        logger=mock_logger,
    )


@pytest.fixture
def measures():
    return MeasureFactory.create_many(['accuracy', 'auc', 'brier'])


def test_one_score_and_tuning_result_per_outer_fold(task, auto_tuner, measures, mock_logger, tmp_path):
    config = {'outputs': {'base_results_dir': str(tmp_path)}}
    result = NestedResamplingEngine(config, mock_logger).execute(
        task, auto_tuner, CrossValidation(folds=3, seed=2), measures
    )

    assert result.iters == 3
    assert len(result.tuning_results) == 3
    assert result.learner_id == 'knn.tuned'
    for tuning in result.tuning_results:
        assert 3 <= tuning.best_params['k'] <= 25
        assert tuning.n_evals == 5
    assert not auto_tuner.is_trained

    inner = result.inner_tuning_table()
    assert list(inner['iteration']) == [0, 1, 2]
    assert result.aggregate()['accuracy'] == pytest.approx(result.scores['accuracy'].mean())


def test_inner_tuning_only_sees_outer_training_rows(task, auto_tuner, measures, mock_logger, tmp_path):
    config = {'outputs': {'base_results_dir': str(tmp_path), 'skip_dir_creation': True}}
    result = NestedResamplingEngine(config, mock_logger).execute(
        task, auto_tuner, CrossValidation(folds=3, seed=2), measures
    )
    assert list(result.scores['n_train']) == [80, 80, 80]


def test_artifacts(task, auto_tuner, measures, mock_logger, tmp_path):
    config = {'outputs': {'base_results_dir': str(tmp_path)}}
    NestedResamplingEngine(config, mock_logger).execute(task, auto_tuner, CrossValidation(folds=3, seed=2), measures)

    out_dir = tmp_path / constants.NESTED_RESAMPLING_DIR
    assert len(pd.read_parquet(out_dir / constants.OUTER_SCORES_FILE)) == 3
    assert len(pd.read_parquet(out_dir / constants.INNER_TUNING_RESULTS_FILE)) == 3
    with open(out_dir / constants.NESTED_AGGREGATE_FILE) as f:
        payload = json.load(f)
    assert payload['iters'] == 3
    assert len(payload['inner_results']) == 3
    assert set(payload['aggregate']) == {'accuracy', 'auc', 'brier'}


def test_divergent_configurations_are_reported(task, auto_tuner, measures, mock_logger, tmp_path):
    config = {'outputs': {'base_results_dir': str(tmp_path), 'skip_dir_creation': True}}
    with patch.object(ResampleResult, 'n_distinct_configurations', return_value=2):
        NestedResamplingEngine(config, mock_logger).execute(task, auto_tuner, CrossValidation(folds=3, seed=0),
                                                            measures)
    warnings = [str(c.args[0]) for c in mock_logger.warning.call_args_list]
    assert any("2 different configurations" in w for w in warnings)


def test_fold_score_summary():
    scores = pd.DataFrame({'accuracy': [0.8, 0.9, 1.0]})
    summary = fold_score_summary(scores, ['accuracy'])
    assert summary.loc[0, 'mean'] == pytest.approx(0.9)
    assert summary.loc[0, 'min'] == pytest.approx(0.8)
    assert summary.loc[0, 'folds'] == 3


def test_evaluate_shortcut_writes_nothing(task, auto_tuner, measures, mock_logger, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = evaluate(task, auto_tuner, CrossValidation(folds=3, seed=2), measures, logger=mock_logger)
    assert result.iters == 3
    assert len(result.tuning_results) == 3
    assert not any(tmp_path.iterdir())
