import numpy as np
import pandas as pd
import pytest
from sklearn.datasets import make_classification

from tunelab.resampling import (
    Bootstrap,
    CrossValidation,
    Holdout,
    RepeatedCrossValidation,
    ResamplingFactory,
)
from tunelab.task import Task
from tunelab.utils.exceptions import ConfigurationError, RegistryError


@pytest.fixture
def task():
    X, y = make_classification(n_samples=90, n_features=3, n_informative=2, n_redundant=0,
                               weights=[0.7, 0.3], random_state=1)
    data = pd.DataFrame(X, columns=['a', 'b', 'c'])
    data['label'] = y
    return Task('synthetic', data, 'label')


class TestCrossValidation:
    def test_folds_partition_the_rows(self, task):
        folds = CrossValidation(folds=3, seed=0).instantiate(task)
        assert len(folds) == 3
        test_ids = np.concatenate([f.test_ids for f in folds])
        np.testing.assert_array_equal(np.sort(test_ids), task.row_ids)
        for fold in folds:
            assert not set(fold.train_ids) & set(fold.test_ids)

    def test_only_given_row_ids_are_used(self, task):
        subset = np.arange(10, 70)
        folds = CrossValidation(folds=4, seed=0).instantiate(task, subset)
        for fold in folds:
            assert set(fold.train_ids) | set(fold.test_ids) == set(subset)

    def test_same_seed_same_folds(self, task):
        a = CrossValidation(folds=3, seed=42).instantiate(task)
        b = CrossValidation(folds=3, seed=42).instantiate(task)
        for fa, fb in zip(a, b):
            np.testing.assert_array_equal(fa.test_ids, fb.test_ids)

    def test_stratified_class_balance(self, task):
        overall = (task.y() == 1).mean()
        for fold in CrossValidation(folds=3, seed=0).instantiate(task):
            assert abs((task.y(fold.test_ids) == 1).mean() - overall) < 0.05

    def test_invalid_folds(self, task):
        with pytest.raises(ConfigurationError):
            CrossValidation(folds=1)
        with pytest.raises(ConfigurationError, match="Cannot split"):
            CrossValidation(folds=5).instantiate(task, [0, 1, 2])


def test_repeated_cv_iters(task):
    resampling = RepeatedCrossValidation(folds=3, repeats=2, seed=0)
    folds = resampling.instantiate(task)
    assert resampling.iters == len(folds) == 6
    assert [f.iteration for f in folds] == list(range(6))


def test_holdout_ratio(task):
    (fold,) = Holdout(ratio=0.5, seed=0).instantiate(task)
    assert len(fold.train_ids) == 45
    assert len(fold.test_ids) == 45
    with pytest.raises(ConfigurationError):
        Holdout(ratio=1.0)


def test_bootstrap_out_of_bag(task):
    folds = Bootstrap(repeats=5, seed=0).instantiate(task)
    assert len(folds) == 5
    for fold in folds:
        assert len(fold.train_ids) == task.n_rows
        assert len(np.unique(fold.train_ids)) < task.n_rows
        assert not set(fold.train_ids) & set(fold.test_ids)


class TestResamplingFactory:
    def test_create(self):
        resampling = ResamplingFactory.create('cv', seed=3, folds=5)
        assert isinstance(resampling, CrossValidation)
        assert resampling.folds == 5
        assert resampling.seed == 3

    def test_from_config_seed_override(self):
        resampling = ResamplingFactory.from_config({'method': 'holdout', 'ratio': 0.5, 'seed': 11}, seed=1)
        assert isinstance(resampling, Holdout)
        assert resampling.seed == 11

    def test_bad_parameters(self):
        with pytest.raises(ConfigurationError, match="Invalid parameters"):
            ResamplingFactory.create('cv', folds=3, repetitions=2)

    def test_unknown_method(self):
        with pytest.raises(RegistryError):
            ResamplingFactory.create('leave_one_out')

    def test_registry(self):
        assert ResamplingFactory.get_available_resamplings() == ['cv', 'repeated_cv', 'holdout', 'bootstrap']
        ResamplingFactory.validate_registry()
