import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sklearn.dummy import DummyClassifier
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.neighbors import KNeighborsClassifier
from sklearn.svm import SVC
from sklearn.tree import DecisionTreeClassifier

from tunelab.search_space.parameters import is_inactive
from tunelab.utils.registry import Registry


@dataclass(frozen=True)
class ParamDomain:
    """Admissible range of an estimator argument (None = unbounded)."""
    lower: Optional[float] = None
    upper: Optional[float] = None
    lower_open: bool = False

    def contains(self, value: float) -> bool:
        if self.lower is not None:
            if value < self.lower or (self.lower_open and value == self.lower):
                return False
        if self.upper is not None and value > self.upper:
            return False
        return True


@dataclass(frozen=True)
class LearnerSpec:
    """
    Registry entry for a learner family.

    Attributes:
        estimator_cls: scikit-learn classifier class.
        aliases: Short parameter names mapped to estimator arguments (e.g. k -> n_neighbors).
        value_aliases: Per-argument value renames (e.g. kernel: radial -> rbf).
        defaults: Arguments applied unless overridden.
        domains: Admissible ranges of numeric arguments.
        seeded: Whether the estimator takes a `random_state`.
    """
    estimator_cls: type
    aliases: Dict[str, str] = field(default_factory=dict)
    value_aliases: Dict[str, Dict[Any, Any]] = field(default_factory=dict)
    defaults: Dict[str, Any] = field(default_factory=dict)
    domains: Dict[str, ParamDomain] = field(default_factory=dict)
    seeded: bool = False


class LearnerFactory:
    """
    Factory for creating classifiers with a unified interface.
    Translates short parameter names and values (k, cost, radial, ...) to scikit-learn arguments.
    """

    LEARNERS = Registry("learner")

    LEARNERS.register('featureless', LearnerSpec(
        DummyClassifier,
        defaults={'strategy': 'prior'},
    ))
    LEARNERS.register('knn', LearnerSpec(
        KNeighborsClassifier,
        aliases={'k': 'n_neighbors', 'distance': 'p'},
        domains={'n_neighbors': ParamDomain(lower=1), 'p': ParamDomain(lower=1)},
    ))
    LEARNERS.register('logistic_regression', LearnerSpec(
        LogisticRegression,
        aliases={'cost': 'C'},
        defaults={'max_iter': 1000},
        domains={'C': ParamDomain(lower=0, lower_open=True)},
        seeded=True,
    ))
    LEARNERS.register('decision_tree', LearnerSpec(
        DecisionTreeClassifier,
        aliases={'cp': 'ccp_alpha', 'minsplit': 'min_samples_split',
                 'minbucket': 'min_samples_leaf', 'maxdepth': 'max_depth'},
        domains={'ccp_alpha': ParamDomain(lower=0), 'min_samples_split': ParamDomain(lower=2),
                 'min_samples_leaf': ParamDomain(lower=1), 'max_depth': ParamDomain(lower=1)},
        seeded=True,
    ))
    LEARNERS.register('random_forest', LearnerSpec(
        RandomForestClassifier,
        aliases={'num_trees': 'n_estimators', 'mtry': 'max_features',
                 'min_node_size': 'min_samples_leaf', 'maxdepth': 'max_depth'},
        defaults={'n_estimators': 100},
        domains={'n_estimators': ParamDomain(lower=1), 'max_features': ParamDomain(lower=1),
                 'min_samples_leaf': ParamDomain(lower=1), 'max_depth': ParamDomain(lower=1)},
        seeded=True,
    ))
    LEARNERS.register('gradient_boosting', LearnerSpec(
        GradientBoostingClassifier,
        aliases={'eta': 'learning_rate', 'nrounds': 'n_estimators', 'maxdepth': 'max_depth'},
        domains={'learning_rate': ParamDomain(lower=0, lower_open=True), 'n_estimators': ParamDomain(lower=1),
                 'max_depth': ParamDomain(lower=1), 'subsample': ParamDomain(lower=0, upper=1, lower_open=True)},
        seeded=True,
    ))
    LEARNERS.register('svm', LearnerSpec(
        SVC,
        aliases={'cost': 'C'},
        value_aliases={'kernel': {'radial': 'rbf', 'polynomial': 'poly'}},
        # Probabilities are needed for AUC and Brier score
        defaults={'probability': True},
        domains={'C': ParamDomain(lower=0, lower_open=True), 'gamma': ParamDomain(lower=0, lower_open=True),
                 'degree': ParamDomain(lower=1)},
        seeded=True,
    ))

    @classmethod
    def get_spec(cls, name: str) -> LearnerSpec:
        return cls.LEARNERS.get(name)

    @classmethod
    def get_available_learners(cls) -> List[str]:
        return cls.LEARNERS.names()

    @classmethod
    def resolve_params(cls, name: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Translate user-facing params to estimator arguments.

        Inactive values are dropped, aliases and value aliases resolved and
        arguments the estimator does not accept filtered out.
        """
        spec = cls.get_spec(name)
        resolved = dict(spec.defaults)
        for key, value in (params or {}).items():
            if is_inactive(value):
                continue
            arg = spec.aliases.get(key, key)
            value = spec.value_aliases.get(arg, {}).get(value, value)
            resolved[arg] = value
        return cls._filter_params(spec.estimator_cls, resolved)

    @classmethod
    def create_estimator(cls, name: str, params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None) -> Any:
        """
        Create and return an instantiated (unfitted) estimator.
        """
        spec = cls.get_spec(name)
        kwargs = cls.resolve_params(name, params)
        if spec.seeded and seed is not None and 'random_state' not in kwargs:
            kwargs['random_state'] = seed
        return spec.estimator_cls(**kwargs)

    @classmethod
    def domain_for(cls, name: str, param: str) -> Tuple[str, Optional[ParamDomain]]:
        """Estimator argument and its domain for a (possibly aliased) param name."""
        spec = cls.get_spec(name)
        arg = spec.aliases.get(param, param)
        return arg, spec.domains.get(arg)

    @classmethod
    def validate_registry(cls) -> None:
        """
        Check every registry entry against its estimator signature.
        Raises RegistryError listing all inconsistencies.
        """
        def check(name: str, spec: LearnerSpec) -> Optional[str]:
            accepted = set(cls._constructor_args(spec.estimator_cls))
            referenced = set(spec.aliases.values()) | set(spec.defaults) | set(spec.domains) | set(spec.value_aliases)
            unknown = sorted(referenced - accepted)
            if unknown:
                return f"{spec.estimator_cls.__name__} does not accept {unknown}"
            if spec.seeded and 'random_state' not in accepted:
                return f"{spec.estimator_cls.__name__} is marked seeded but has no random_state"
            return None
        cls.LEARNERS.validate(check)

    @staticmethod
    def _constructor_args(model_class) -> List[str]:
        sig = inspect.signature(model_class.__init__)
        return [
            p.name for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY) and p.name != 'self'
        ]

    @staticmethod
    def _filter_params(model_class, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Remove parameters from `params` that are not accepted by `model_class` constructor.
        """
        sig = inspect.signature(model_class.__init__)
        if any(p.kind == p.VAR_KEYWORD for p in sig.parameters.values()):
            return params

        valid_keys = set(LearnerFactory._constructor_args(model_class))
        return {k: v for k, v in params.items() if k in valid_keys}
