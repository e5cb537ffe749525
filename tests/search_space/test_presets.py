import numpy as np
import pytest

from tunelab.search_space import IntParam, SearchSpace, is_inactive
from tunelab.search_space.presets import (
    build_search_space,
    check_against_learner,
    get_available_presets,
    search_space_from_config,
)
from tunelab.utils.exceptions import RegistryError, SearchSpaceError


@pytest.mark.parametrize("preset", get_available_presets())
def test_every_preset_builds(preset):
    space = build_search_space(preset)
    assert len(space) > 0
    candidates = space.sample(20, np.random.default_rng(0))
    for candidate in candidates:
        space.validate_candidate(candidate)


def test_knn_preset_range():
    space = build_search_space('knn')
    assert space.ids == ['k']
    assert (space['k'].lower, space['k'].upper) == (3, 51)


def test_svm_preset_conditions():
    space = build_search_space('svm')
    for row in space.grid(2):
        assert is_inactive(row['degree']) == (row['kernel'] != 'polynomial')
        assert is_inactive(row['gamma']) == (row['kernel'] == 'linear')


def test_unknown_preset():
    with pytest.raises(RegistryError, match="Unknown search space preset name"):
        build_search_space('neural_net')


def test_bounds_below_learner_domain_fail():
    space = SearchSpace([IntParam('k', lower=0, upper=10)])
    with pytest.raises(SearchSpaceError, match="outside the learner domain"):
        check_against_learner(space, 'knn')


def test_transformed_bounds_are_checked():
    # 2^x is always positive, so a log2-scaled cost fits the SVM domain
    space = search_space_from_config(
        [{'name': 'cost', 'type': 'real', 'lower': -5, 'upper': 5, 'transform': 'exp2'}], learner_name='svm'
    )
    assert space.ids == ['cost']
    with pytest.raises(SearchSpaceError):
        search_space_from_config([{'name': 'cost', 'type': 'real', 'lower': 0, 'upper': 5}], learner_name='svm')


def test_search_space_from_config_accepts_preset_name():
    assert search_space_from_config('knn').ids == ['k']
