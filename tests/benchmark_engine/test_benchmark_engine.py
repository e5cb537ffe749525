import json
import logging
from unittest.mock import MagicMock

import numpy as np
import pandas as pd
import pytest
from sklearn.datasets import make_classification

from tunelab.benchmark_engine import BenchmarkEngine, benchmark, benchmark_grid
from tunelab.learner_factory import Learner
from tunelab.measures import MeasureFactory
from tunelab.resampling import CrossValidation
from tunelab.search_space import IntParam, SearchSpace
from tunelab.task import Task
from tunelab.tuner import AutoTuner, EvaluationBudget, RandomSearchTuner
from tunelab.utils import constants
from tunelab.utils.exceptions import BenchmarkError


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


def make_task(task_id, seed):
    X, y = make_classification(n_samples=90, n_features=4, n_informative=3, n_redundant=0, random_state=seed)
    data = pd.DataFrame(X, columns=[f"x{i}" for i in range(4)])
    data['label'] = np.where(y == 1, 'pos', 'neg')
    return Task(task_id, data, 'label', positive='pos')


def make_tiny_task(task_id):
    data = pd.DataFrame({'x0': [0.1, 0.9, 0.2, 0.8], 'x1': [1.0, 0.0, 1.0, 0.0],
                         'label': ['neg', 'pos', 'neg', 'pos']})
    return Task(task_id, data, 'label', positive='pos')


@pytest.fixture
def tasks():
    return [make_task('task_a', 0), make_task('task_b', 1)]


@pytest.fixture
def measures():
    return MeasureFactory.create_many(['classification_error', 'auc'])


@pytest.fixture
def config(tmp_path):
    return {'outputs': {'base_results_dir': str(tmp_path)}}


class TestBenchmarkGrid:
    def test_cross_product(self, tasks):
        learners = [Learner('featureless'), Learner('knn')]
        design = benchmark_grid(tasks, learners, [CrossValidation(folds=3, seed=0)])
        assert len(design) == 4
        frame = design.to_frame()
        assert list(frame['task_id']) == ['task_a', 'task_a', 'task_b', 'task_b']
        assert (frame['iters'] == 3).all()

    def test_learners_of_a_task_share_folds(self, tasks):
        design = benchmark_grid(tasks, [Learner('featureless'), Learner('knn')], [CrossValidation(folds=3, seed=0)])
        first, second = design.entries[0], design.entries[1]
        for a, b in zip(first.folds, second.folds):
            np.testing.assert_array_equal(a.test_ids, b.test_ids)

    def test_duplicate_learner_ids(self, tasks):
        with pytest.raises(BenchmarkError, match="unique"):
            benchmark_grid(tasks, [Learner('knn'), Learner('knn')], [CrossValidation()])

    def test_empty_design(self, tasks):
        with pytest.raises(BenchmarkError):
            benchmark_grid(tasks, [], [CrossValidation()])

    def test_unsplittable_task_keeps_its_cells(self, tasks, mock_logger):
        design = benchmark_grid([tasks[0], make_tiny_task('tiny')], [Learner('featureless'), Learner('knn')],
                                [CrossValidation(folds=5, seed=0)], logger=mock_logger)
        assert len(design) == 4
        tiny_entries = [e for e in design.entries if e.task.task_id == 'tiny']
        assert all(e.folds is None and 'Cannot split' in e.error for e in tiny_entries)
        assert list(design.to_frame()['iters']) == [5, 5, 0, 0]
        mock_logger.warning.assert_called()


class TestBenchmarkEngine:
    def test_failed_cell_does_not_stop_the_benchmark(self, tasks, measures, mock_logger, config):
        learners = [
            Learner('featureless'),
            Learner('knn', {'k': 5}),
            # More neighbours than training rows: prediction fails
            Learner('knn', {'k': 500}, learner_id='knn_broken'),
        ]
        design = benchmark_grid(tasks, learners, [CrossValidation(folds=3, seed=0)])
        result = BenchmarkEngine(config, mock_logger).execute(design, measures)

        assert len(result.cells) == 6
        failed = result.failed_cells()
        assert {c.learner_id for c in failed} == {'knn_broken'}
        assert len(failed) == 2
        assert all(c.error for c in failed)
        mock_logger.error.assert_called()

        aggregate = result.aggregate()
        assert len(aggregate) == 4
        assert set(aggregate['learner_id']) == {'featureless', 'knn'}
        assert len(result.score_table()) == 4 * 3

    def test_ranks_follow_measure_direction(self, tasks, measures, mock_logger, config):
        design = benchmark_grid(tasks, [Learner('featureless'), Learner('knn', {'k': 5})],
                                [CrossValidation(folds=3, seed=0)])
        result = BenchmarkEngine(config, mock_logger).execute(design, measures)
        ranks = result.rank('classification_error')
        best = ranks[ranks['rank'] == 1]
        assert set(best['learner_id']) == {'knn'}
        auc_ranks = result.rank('auc')
        assert set(auc_ranks[auc_ranks['rank'] == 1]['learner_id']) == {'knn'}
        with pytest.raises(BenchmarkError):
            result.rank('brier')

    def test_tuned_learner_and_friedman(self, tasks, measures, mock_logger, config):
        tuned = AutoTuner(Learner('knn'), CrossValidation(folds=3, seed=1), MeasureFactory.create('classification_error'),
                          SearchSpace([IntParam('k', lower=1, upper=15)]), EvaluationBudget(3), RandomSearchTuner(),
                          seed=0, logger=mock_logger)
        learners = [Learner('featureless'), Learner('decision_tree', {'maxdepth': 2}, seed=0), tuned]
        design = benchmark_grid(tasks, learners, [CrossValidation(folds=3, seed=0)])
        result = BenchmarkEngine(config, mock_logger).execute(design, measures)

        assert not result.failed_cells()
        tuned_cells = [c for c in result.cells if c.learner_id == 'knn.tuned']
        assert all(len(c.result.tuning_results) == 3 for c in tuned_cells)

        friedman = result.friedman_test('classification_error')
        assert friedman['n_tasks'] == 2
        assert friedman['n_learners'] == 3
        assert 0.0 <= friedman['p_value'] <= 1.0

    def test_artifacts(self, tasks, measures, mock_logger, config, tmp_path):
        learners = [Learner('featureless'), Learner('knn', {'k': 500}, learner_id='knn_broken')]
        design = benchmark_grid(tasks, learners, [CrossValidation(folds=3, seed=0)])
        BenchmarkEngine(config, mock_logger).execute(design, measures)

        out_dir = tmp_path / constants.BENCHMARK_DIR
        assert len(pd.read_parquet(out_dir / constants.BENCHMARK_SCORES_FILE)) == 6
        assert len(pd.read_parquet(out_dir / constants.BENCHMARK_AGGREGATE_FILE)) == 2
        assert (out_dir / constants.BENCHMARK_RANKS_FILE).exists()
        with open(out_dir / constants.BENCHMARK_CELLS_FILE) as f:
            cells = json.load(f)
        assert [c['status'] for c in cells] == ['success', 'failed', 'success', 'failed']


def test_benchmark_shortcut(tasks, measures, mock_logger):
    learners = [Learner('featureless'), Learner('knn', {'k': 500}, learner_id='knn_broken')]
    result = benchmark(tasks, learners, CrossValidation(folds=3, seed=0), measures, logger=mock_logger)
    assert len(result.cells) == len(tasks) * len(learners)
    assert len(result.failed_cells()) == len(tasks)


def test_unsplittable_task_fails_only_its_own_cells(tasks, measures, mock_logger):
    learners = [Learner('featureless'), Learner('knn')]
    result = benchmark([tasks[0], make_tiny_task('tiny')], learners, CrossValidation(folds=5, seed=0), measures,
                       logger=mock_logger)

    assert len(result.cells) == 4
    failed = result.failed_cells()
    assert {c.task_id for c in failed} == {'tiny'}
    assert len(failed) == 2
    assert all('Cannot split 4 rows into 5 folds' in c.error for c in failed)

    aggregate = result.aggregate()
    assert set(aggregate['task_id']) == {'task_a'}
    assert set(aggregate['learner_id']) == {'featureless', 'knn'}
    assert len(result.score_table()) == 2 * 5
