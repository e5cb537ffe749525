"""
Ready-made search spaces per learner family.

Bounds follow the usual tuning ranges of each family; every preset is
checked against the admissible domain of the learner it targets, so a
lower bound below the estimator's minimum fails when the preset is built.
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from tunelab.learner_factory import LearnerFactory
from tunelab.search_space.parameters import CategoricalParam, Condition, IntParam, RealParam
from tunelab.search_space.search_space import SearchSpace
from tunelab.utils.exceptions import SearchSpaceError
from tunelab.utils.registry import Registry

SVM_KERNELS = ['linear', 'polynomial', 'radial', 'sigmoid']


def _knn() -> SearchSpace:
    return SearchSpace([IntParam('k', lower=3, upper=51)])


def _decision_tree() -> SearchSpace:
    return SearchSpace([
        RealParam('cp', lower=-4, upper=-1, transform='exp10'),
        IntParam('minsplit', lower=2, upper=64),
        IntParam('maxdepth', lower=1, upper=20),
    ])


def _random_forest() -> SearchSpace:
    return SearchSpace([
        IntParam('num_trees', lower=50, upper=500),
        IntParam('min_node_size', lower=1, upper=20),
        IntParam('maxdepth', lower=2, upper=30),
    ])


def _gradient_boosting() -> SearchSpace:
    return SearchSpace([
        RealParam('eta', lower=-4, upper=0, transform='exp10'),
        IntParam('nrounds', lower=50, upper=300),
        IntParam('maxdepth', lower=1, upper=6),
        RealParam('subsample', lower=0.5, upper=1.0),
    ])


def _svm() -> SearchSpace:
    return SearchSpace([
        CategoricalParam('kernel', values=SVM_KERNELS),
        RealParam('cost', lower=-10, upper=10, transform='exp2'),
        RealParam('gamma', lower=-10, upper=10, transform='exp2',
                  condition=Condition.any_of('kernel', ['radial', 'polynomial', 'sigmoid'])),
        IntParam('degree', lower=2, upper=5, condition=Condition.equal('kernel', 'polynomial')),
    ])


def _svm_radial() -> SearchSpace:
    return SearchSpace([
        CategoricalParam('kernel', values=['radial']),
        RealParam('cost', lower=-10, upper=10, transform='exp2'),
        RealParam('gamma', lower=-10, upper=10, transform='exp2'),
    ])


# preset name -> (learner the preset targets, builder)
PRESETS = Registry("search space preset")
PRESETS.register('knn', ('knn', _knn))
PRESETS.register('decision_tree', ('decision_tree', _decision_tree))
PRESETS.register('random_forest', ('random_forest', _random_forest))
PRESETS.register('gradient_boosting', ('gradient_boosting', _gradient_boosting))
PRESETS.register('svm', ('svm', _svm))
PRESETS.register('svm_radial', ('svm', _svm_radial))


def check_against_learner(space: SearchSpace, learner_name: str) -> None:
    """
    Raise SearchSpaceError when a numeric parameter's transformed bounds fall
    outside the domain of the estimator argument it maps to.
    """
    problems = []
    for param in space:
        if isinstance(param, CategoricalParam):
            continue
        arg, domain = LearnerFactory.domain_for(learner_name, param.name)
        if domain is None:
            continue
        for label, raw in (('lower', param.lower), ('upper', param.upper)):
            value = param.apply_transform(raw)
            if not domain.contains(value):
                problems.append(f"'{param.name}' ({arg}) {label} bound {value} outside the learner domain")
    if problems:
        raise SearchSpaceError(f"Search space does not fit learner '{learner_name}': " + "; ".join(problems))


def build_search_space(preset: str) -> SearchSpace:
    learner_name, builder = PRESETS.get(preset)
    space = builder()
    check_against_learner(space, learner_name)
    return space


def get_available_presets() -> List[str]:
    return PRESETS.names()


def search_space_from_config(value: Union[str, Sequence[Dict[str, Any]]],
                             learner_name: Optional[str] = None) -> SearchSpace:
    """
    Resolve a config entry: a preset name or a list of parameter specs.
    Explicit specs are checked against `learner_name` when given.
    """
    if isinstance(value, str):
        return build_search_space(value)
    space = SearchSpace.from_config(value)
    if learner_name is not None:
        check_against_learner(space, learner_name)
    return space
